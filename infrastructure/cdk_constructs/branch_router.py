"""Lambda@Edge function that maps request paths to branch namespaces."""

import shutil
import tempfile
from pathlib import Path

from aws_cdk import Duration
from aws_cdk import aws_cloudfront as cloudfront
from aws_cdk import aws_lambda as lambda_
from constructs import Construct

from branchsite.edge import CONFIG_FILENAME
from branchsite.router import RouterConfig

PACKAGE_DIR = Path(__file__).resolve().parent.parent.parent / "branchsite"


def bundle_router(config: RouterConfig, out_dir: Path | str | None = None) -> Path:
  """Stage the branchsite package plus its router settings for upload.

  Lambda@Edge has no environment variables, so the settings travel as a
  file next to the package.
  """
  bundle = Path(out_dir or tempfile.mkdtemp(prefix="branch-router-"))
  shutil.copytree(
    PACKAGE_DIR,
    bundle / "branchsite",
    ignore=shutil.ignore_patterns("__pycache__", "*.pyc"),
    dirs_exist_ok=True,
  )
  config.to_file(bundle / CONFIG_FILENAME)
  return bundle


class BranchRouterFunction(Construct):
  """Viewer-request function running branchsite.edge.handler."""

  def __init__(
    self,
    scope: Construct,
    id: str,
    *,
    router_config: RouterConfig,
    resource_prefix: str = "",
  ) -> None:
    super().__init__(scope, id)

    self.function = cloudfront.experimental.EdgeFunction(
      self,
      f"{resource_prefix}-branch-router" if resource_prefix else "Function",
      runtime=lambda_.Runtime.PYTHON_3_12,
      handler="branchsite.edge.handler",
      code=lambda_.Code.from_asset(str(bundle_router(router_config))),
      # Viewer triggers are capped at 128 MB and 5 seconds
      memory_size=128,
      timeout=Duration.seconds(5),
      description="Rewrites request paths to branch deployment objects",
    )

  def edge_lambda(self) -> cloudfront.EdgeLambda:
    """Association for a distribution behavior."""
    return cloudfront.EdgeLambda(
      function_version=self.function.current_version,
      event_type=cloudfront.LambdaEdgeEventType.VIEWER_REQUEST,
    )
