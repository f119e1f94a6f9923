"""Tests for the preview site CDK constructs."""

import json
from pathlib import Path

import pytest
from aws_cdk import App, Environment, RemovalPolicy, Stack
from aws_cdk.assertions import Match, Template

from branchsite.config import SiteConfig
from branchsite.router import RouterConfig
from infrastructure.cdk_constructs import PreviewSiteConstruct, bundle_router
from infrastructure.stacks import PreviewSiteStack


class TestBundleRouter:
  """Test the Lambda@Edge bundle."""

  def test_contains_package_and_settings(self, tmp_path: Path) -> None:
    """The handler ships with its settings file next to the package."""
    config = RouterConfig(index_document="home.htm", spa_mode=True)
    bundle = bundle_router(config, tmp_path)

    assert (bundle / "branchsite" / "edge.py").is_file()
    assert (bundle / "branchsite" / "router.py").is_file()
    assert not list(bundle.rglob("__pycache__"))
    settings = json.loads((bundle / "router_config.json").read_text())
    assert settings == {"index_document": "home.htm", "spa_mode": True}

  def test_settings_round_trip(self, tmp_path: Path) -> None:
    config = RouterConfig(spa_mode=True)
    bundle = bundle_router(config, tmp_path)
    assert RouterConfig.from_file(bundle / "router_config.json") == config


class TestPreviewSiteConstruct:
  """Test the main PreviewSiteConstruct."""

  @pytest.fixture
  def template(self) -> Template:
    """Create a template with default options."""
    app = App()
    stack = Stack(app, "TestStack", env=Environment(region="us-east-1"))
    PreviewSiteConstruct(
      stack,
      "TestSite",
      bucket_name="docs-previews",
      router_config=RouterConfig(spa_mode=True),
      removal_policy=RemovalPolicy.DESTROY,
    )
    return Template.from_stack(stack)

  def test_creates_private_bucket(self, template: Template) -> None:
    """Bucket is private; CloudFront reads it through origin access control."""
    template.has_resource_properties(
      "AWS::S3::Bucket",
      {
        "BucketName": "docs-previews",
        "PublicAccessBlockConfiguration": {
          "BlockPublicAcls": True,
          "BlockPublicPolicy": True,
          "IgnorePublicAcls": True,
          "RestrictPublicBuckets": True,
        },
      },
    )
    template.resource_count_is("AWS::CloudFront::OriginAccessControl", 1)

  def test_creates_router_function(self, template: Template) -> None:
    """The edge router runs the branchsite handler on Python."""
    template.has_resource_properties(
      "AWS::Lambda::Function",
      {
        "Handler": "branchsite.edge.handler",
        "Runtime": "python3.12",
        "MemorySize": 128,
        "Timeout": 5,
      },
    )

  def test_router_on_viewer_request(self, template: Template) -> None:
    """Every request passes through the router before the cache."""
    template.has_resource_properties(
      "AWS::CloudFront::Distribution",
      {
        "DistributionConfig": {
          "DefaultCacheBehavior": Match.object_like(
            {
              "ViewerProtocolPolicy": "redirect-to-https",
              "LambdaFunctionAssociations": Match.array_with(
                [Match.object_like({"EventType": "viewer-request"})]
              ),
            }
          ),
        },
      },
    )

  def test_no_aliases_without_certificate(self, template: Template) -> None:
    template.has_resource_properties(
      "AWS::CloudFront::Distribution",
      {"DistributionConfig": Match.object_like({"Aliases": Match.absent()})},
    )

  def test_outputs(self, template: Template) -> None:
    """CI needs the bucket and distribution to deploy."""
    template.has_output("*", {"Description": "S3 bucket name"})
    template.has_output("*", {"Description": "CloudFront distribution ID"})
    template.has_output("*", {"Description": "CloudFront distribution domain name"})

  def test_custom_domain(self) -> None:
    """An imported certificate enables the custom domain."""
    app = App()
    stack = Stack(app, "TestStack", env=Environment(region="us-east-1"))
    PreviewSiteConstruct(
      stack,
      "TestSite",
      bucket_name="docs-previews",
      domain_name="previews.example.com",
      certificate_arn="arn:aws:acm:us-east-1:123456789012:certificate/abc",
    )
    template = Template.from_stack(stack)

    template.has_resource_properties(
      "AWS::CloudFront::Distribution",
      {
        "DistributionConfig": Match.object_like(
          {
            "Aliases": ["previews.example.com"],
            "ViewerCertificate": Match.object_like(
              {
                "AcmCertificateArn": "arn:aws:acm:us-east-1:123456789012:certificate/abc",
                "MinimumProtocolVersion": "TLSv1.2_2021",
              }
            ),
          }
        ),
      },
    )

  def test_retain_by_default(self) -> None:
    app = App()
    stack = Stack(app, "TestStack", env=Environment(region="us-east-1"))
    PreviewSiteConstruct(stack, "TestSite", bucket_name="docs-previews")
    template = Template.from_stack(stack)

    template.has_resource("AWS::S3::Bucket", {"DeletionPolicy": "Retain"})


class TestPreviewSiteStack:
  """Test the per-site stack."""

  def test_tags(self) -> None:
    app = App()
    stack = PreviewSiteStack(
      app,
      "PreviewSite-docs",
      site_config=SiteConfig(name="docs", bucket="docs-previews"),
      env=Environment(account="123456789012", region="us-east-1"),
    )
    template = Template.from_stack(stack)

    template.has_resource_properties(
      "AWS::S3::Bucket",
      {
        "Tags": Match.array_with(
          [
            {"Key": "Project", "Value": "branch-previews"},
            {"Key": "Site", "Value": "docs"},
          ]
        ),
      },
    )
