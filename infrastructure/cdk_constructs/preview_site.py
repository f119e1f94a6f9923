"""Composite construct for a site with per-branch previews."""

from aws_cdk import CfnOutput, RemovalPolicy, Stack
from constructs import Construct

from branchsite.router import RouterConfig

from .branch_router import BranchRouterFunction
from .distribution import CloudFrontDistribution
from .storage import StorageBucket


class PreviewSiteConstruct(Construct):
  """Bucket, edge router and distribution for one site.

  Creates:
  - Private S3 bucket holding the primary branch at the root and one
    folder per preview branch
  - Lambda@Edge router that maps request paths into those folders
  - CloudFront distribution with origin access control
  """

  def __init__(
    self,
    scope: Construct,
    id: str,
    *,
    bucket_name: str,
    router_config: RouterConfig | None = None,
    domain_name: str | None = None,
    certificate_arn: str | None = None,
    removal_policy: RemovalPolicy = RemovalPolicy.RETAIN,
  ) -> None:
    super().__init__(scope, id)

    stack_name = Stack.of(self).stack_name

    self.bucket = StorageBucket(
      self,
      f"{stack_name}-bucket",
      bucket_name=bucket_name,
      removal_policy=removal_policy,
    )

    self.router = BranchRouterFunction(
      self,
      f"{stack_name}-router",
      router_config=router_config or RouterConfig(),
      resource_prefix=stack_name,
    )

    self.distribution = CloudFrontDistribution(
      self,
      f"{stack_name}-distribution",
      bucket=self.bucket.bucket,
      edge_lambda=self.router.edge_lambda(),
      domain_name=domain_name,
      certificate_arn=certificate_arn,
    )

    # Outputs
    CfnOutput(
      self,
      "BucketName",
      value=self.bucket.bucket.bucket_name,
      description="S3 bucket name",
    )
    CfnOutput(
      self,
      "DistributionId",
      value=self.distribution.distribution.distribution_id,
      description="CloudFront distribution ID",
    )
    CfnOutput(
      self,
      "DistributionDomainName",
      value=self.distribution.distribution.distribution_domain_name,
      description="CloudFront distribution domain name",
    )
