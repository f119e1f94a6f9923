"""Wires storage, locks and the CDN together for one configured site."""

import logging
from typing import Any

import boto3

from .cleaner import Cleaner
from .config import SiteConfig
from .deployer import Deployer
from .invalidation import CacheInvalidator
from .locks import InProcessLocks, S3LeaseLocks
from .models import ArtifactTree, CleanupResult, DeploymentRecord, DeploymentResult
from .registry import DeploymentRegistry
from .slug import PRIMARY_SLUG, sanitize
from .storage import S3Storage

logger = logging.getLogger(__name__)


class PreviewSite:
  """Branch lifecycle for one site: push deploys, branch deletion cleans up."""

  def __init__(
    self,
    config: SiteConfig,
    s3_client: Any,
    cloudfront_client: Any,
    *,
    distributed_locks: bool = True,
  ) -> None:
    self.config = config
    self.storage = S3Storage(config.bucket, s3_client)
    self.registry = DeploymentRegistry(self.storage, config.max_slug_length)
    self.invalidator = CacheInvalidator(
      cloudfront_client,
      config.distribution_id,
      max_attempts=config.invalidation_attempts,
    )
    locks: InProcessLocks | S3LeaseLocks
    if distributed_locks:
      locks = S3LeaseLocks(self.storage, ttl_seconds=config.lock_ttl_seconds)
    else:
      locks = InProcessLocks()

    common: dict[str, Any] = {
      "registry": self.registry,
      "locks": locks,
      "collision_policy": config.collision_policy,
      "max_slug_length": config.max_slug_length,
    }
    self.deployer = Deployer(self.storage, self.invalidator, **common)
    self.cleaner = Cleaner(self.storage, self.invalidator, **common)

  @classmethod
  def from_config(cls, config: SiteConfig, **kwargs: Any) -> "PreviewSite":
    """Create a site with boto3 clients for its region."""
    s3 = boto3.client("s3", region_name=config.region)
    # CloudFront is a global service
    cloudfront = boto3.client("cloudfront", region_name="us-east-1")
    return cls(config, s3, cloudfront, **kwargs)

  def slug_for(self, branch_ref: str) -> str:
    return sanitize(
      branch_ref,
      primary_branches=self.config.primary_branches,
      max_length=self.config.max_slug_length,
    )

  def deploy_branch(
    self,
    branch_ref: str,
    artifacts: ArtifactTree,
    *,
    commit: str | None = None,
    is_spa: bool | None = None,
    timeout: float | None = None,
    wait: float = 0.0,
  ) -> DeploymentResult:
    """Handle a push: sanitize the branch and deploy its build."""
    slug = self.slug_for(branch_ref)
    logger.info("Deploying branch %s to %s", branch_ref, f"/{slug}/" if slug else "/")
    return self.deployer.deploy(
      slug,
      artifacts,
      is_primary=slug == PRIMARY_SLUG,
      is_spa=self.config.spa_mode if is_spa is None else is_spa,
      branch_ref=branch_ref,
      commit=commit,
      timeout=timeout,
      wait=wait,
    )

  def cleanup_branch(
    self, branch_ref: str, *, timeout: float | None = None, wait: float = 0.0
  ) -> CleanupResult:
    """Handle a branch deletion."""
    slug = self.slug_for(branch_ref)
    logger.info("Cleaning up branch %s at /%s/", branch_ref, slug)
    return self.cleaner.cleanup(slug, branch_ref=branch_ref, timeout=timeout, wait=wait)

  def deployments(self) -> list[DeploymentRecord]:
    return self.registry.list_namespaces()
