"""CloudFront distribution serving every branch from one bucket."""

from aws_cdk import aws_certificatemanager as acm
from aws_cdk import aws_cloudfront as cloudfront
from aws_cdk import aws_cloudfront_origins as origins
from aws_cdk import aws_s3 as s3
from constructs import Construct


class CloudFrontDistribution(Construct):
  """CloudFront distribution with the branch router on viewer requests."""

  def __init__(
    self,
    scope: Construct,
    id: str,
    *,
    bucket: s3.IBucket,
    edge_lambda: cloudfront.EdgeLambda,
    domain_name: str | None = None,
    certificate_arn: str | None = None,
  ) -> None:
    super().__init__(scope, id)

    certificate = None
    if certificate_arn:
      # Issued outside this stack
      certificate = acm.Certificate.from_certificate_arn(
        self, "Certificate", certificate_arn
      )

    self.distribution = cloudfront.Distribution(
      self,
      "Distribution",
      default_behavior=cloudfront.BehaviorOptions(
        origin=origins.S3BucketOrigin.with_origin_access_control(bucket),
        viewer_protocol_policy=cloudfront.ViewerProtocolPolicy.REDIRECT_TO_HTTPS,
        allowed_methods=cloudfront.AllowedMethods.ALLOW_GET_HEAD,
        cached_methods=cloudfront.CachedMethods.CACHE_GET_HEAD,
        edge_lambdas=[edge_lambda],
      ),
      domain_names=[domain_name] if domain_name and certificate else None,
      certificate=certificate,
      minimum_protocol_version=cloudfront.SecurityPolicyProtocol.TLS_V1_2_2021,
    )
