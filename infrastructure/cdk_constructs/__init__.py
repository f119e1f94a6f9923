"""CDK constructs for branch preview hosting."""

from .branch_router import BranchRouterFunction, bundle_router
from .distribution import CloudFrontDistribution
from .preview_site import PreviewSiteConstruct
from .storage import StorageBucket

__all__ = [
  "BranchRouterFunction",
  "CloudFrontDistribution",
  "PreviewSiteConstruct",
  "StorageBucket",
  "bundle_router",
]
