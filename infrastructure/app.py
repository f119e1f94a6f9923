#!/usr/bin/env python3
"""CDK application entry point for branch preview hosting."""

import sys
from pathlib import Path

# Add the project root to the Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

import aws_cdk as cdk
import boto3

from branchsite.config import Config
from infrastructure.stacks.site_stack import PreviewSiteStack


def get_account_id() -> str:
  """Get AWS account ID from current credentials."""
  sts = boto3.client("sts")
  return str(sts.get_caller_identity()["Account"])


def main() -> None:
  """Create CDK app with a stack for each configured site."""
  app = cdk.App()

  config_path = app.node.try_get_context("config") or "sites.yaml"
  config = Config.from_yaml(Path(config_path))

  # Edge functions need an explicit environment
  account_id = get_account_id()

  for site in config.sites:
    PreviewSiteStack(
      app,
      f"PreviewSite-{site.name}",
      site_config=site,
      env=cdk.Environment(
        account=account_id,
        region=site.region,
      ),
      description=f"Branch preview hosting for {site.name}",
    )

  app.synth()


if __name__ == "__main__":
  main()
