"""CDK stack for a single preview-hosted site."""

from typing import Any

import aws_cdk as cdk
from constructs import Construct

from branchsite.config import SiteConfig
from infrastructure.cdk_constructs import PreviewSiteConstruct

REMOVAL_POLICIES = {
  "retain": cdk.RemovalPolicy.RETAIN,
  "destroy": cdk.RemovalPolicy.DESTROY,
}


class PreviewSiteStack(cdk.Stack):
  """Stack for a single site and its branch previews."""

  def __init__(
    self,
    scope: Construct,
    id: str,
    *,
    site_config: SiteConfig,
    **kwargs: Any,
  ) -> None:
    super().__init__(scope, id, **kwargs)

    self.site = PreviewSiteConstruct(
      self,
      "Site",
      bucket_name=site_config.bucket,
      router_config=site_config.router_config(),
      domain_name=site_config.domain_name,
      certificate_arn=site_config.certificate_arn,
      removal_policy=REMOVAL_POLICIES[site_config.removal_policy],
    )

    cdk.Tags.of(self).add("Project", "branch-previews")
    cdk.Tags.of(self).add("Site", site_config.name)
