"""Upload a build into a branch namespace and refresh the CDN."""

import logging
import mimetypes
import time
from collections.abc import Callable
from datetime import UTC, datetime

from .config import OVERWRITE, REJECT
from .errors import (
  InvalidBranchName,
  OperationTimeout,
  SlugCollision,
  StorageError,
  UploadFailure,
)
from .invalidation import CacheInvalidator
from .locks import InProcessLocks, S3LeaseLocks, bounded_timeout
from .models import DEPLOYED, DEPLOYING, ArtifactTree, DeploymentRecord, DeploymentResult
from .registry import METADATA_DIR, DeploymentRegistry
from .slug import MAX_SLUG_LENGTH, PRIMARY_SLUG, is_valid_slug, namespace_prefix
from .storage import S3Storage

logger = logging.getLogger(__name__)

ROBOTS_TXT = "robots.txt"
ROBOTS_DENY_ALL = b"User-agent: *\nDisallow: /\n"


def _utc_now() -> str:
  return datetime.now(UTC).isoformat()


def content_type_for(path: str) -> str:
  content_type, _ = mimetypes.guess_type(path)
  return content_type or "application/octet-stream"


# CloudFront allows this many wildcard paths in progress per distribution
MAX_WILDCARD_INVALIDATIONS = 15


def invalidation_paths(slug: str, artifacts: ArtifactTree) -> list[str]:
  """Paths to invalidate after a deploy, limited to the slug's namespace.

  The primary branch shares the root with every preview, so it invalidates
  its own top-level entries instead of "/*". Each top-level directory costs
  one wildcard. CloudFront refuses a batch with more than
  MAX_WILDCARD_INVALIDATIONS of them; the deploy still succeeds and the
  invalidator logs the failure, so such sites rely on cache expiry.
  """
  if slug:
    return [f"/{slug}", f"/{slug}/*"]

  directories = artifacts.top_level_directories()
  if len(directories) > MAX_WILDCARD_INVALIDATIONS:
    logger.warning(
      "Primary build has %d top-level directories; CloudFront accepts %d "
      "wildcard invalidations in progress",
      len(directories),
      MAX_WILDCARD_INVALIDATIONS,
    )
  paths = ["/"]
  for entry in sorted(artifacts.top_level_entries()):
    paths.append(f"/{entry}/*" if entry in directories else f"/{entry}")
  return paths


class Deployer:
  """Writes artifact trees into slug namespaces, one operation per slug at a time."""

  def __init__(
    self,
    storage: S3Storage,
    invalidator: CacheInvalidator,
    *,
    registry: DeploymentRegistry | None = None,
    locks: InProcessLocks | S3LeaseLocks | None = None,
    collision_policy: str = REJECT,
    max_slug_length: int = MAX_SLUG_LENGTH,
    clock: Callable[[], float] = time.monotonic,
  ) -> None:
    self.storage = storage
    self.invalidator = invalidator
    self.registry = registry or DeploymentRegistry(storage, max_slug_length)
    self.locks = locks or InProcessLocks()
    self.collision_policy = collision_policy
    self.max_slug_length = max_slug_length
    self.clock = clock

  def deploy(
    self,
    slug: str,
    artifacts: ArtifactTree,
    *,
    is_primary: bool = False,
    is_spa: bool = False,
    branch_ref: str | None = None,
    commit: str | None = None,
    timeout: float | None = None,
    wait: float = 0.0,
  ) -> DeploymentResult:
    """Upload artifacts into the slug's namespace.

    Args:
      slug: Target slug, "" for the primary branch
      artifacts: Build output to upload
      is_primary: Must be True exactly when slug is ""
      is_spa: Recorded on the deployment marker
      branch_ref: Source branch, used for collision detection
      commit: Source commit, recorded on the marker
      timeout: Seconds before the deploy is abandoned, never longer than
        the lock stays valid (the lease TTL for S3LeaseLocks)
      wait: Seconds to queue behind an in-flight operation on the same slug

    Raises:
      InvalidBranchName: If the slug is malformed.
      DeployInProgress: If the slug is busy for longer than wait.
      SlugCollision: If another branch owns the namespace.
      UploadFailure: If storage rejects a write. Nothing is invalidated.
      OperationTimeout: If timeout elapses. Nothing is invalidated.
    """
    if is_primary != (slug == PRIMARY_SLUG):
      raise ValueError("is_primary must be set exactly for the empty slug")
    if slug and not is_valid_slug(slug, self.max_slug_length):
      raise InvalidBranchName(slug, "not a valid slug")

    timeout = bounded_timeout(timeout, self.locks)
    deadline = None if timeout is None else self.clock() + timeout

    with self.locks.hold(slug, wait):
      self._check_collision(slug, artifacts, branch_ref)

      record = DeploymentRecord(
        slug=slug,
        is_primary=is_primary,
        is_spa=is_spa,
        last_written_at=_utc_now(),
        branch_ref=branch_ref,
        commit=commit,
        status=DEPLOYING,
      )
      self._write_marker(record)

      uploaded = self._upload(slug, artifacts, deadline, timeout)

      record.status = DEPLOYED
      record.last_written_at = _utc_now()
      self._write_marker(record)

    logger.info(
      "Deployed %d files to %s (branch %s)", len(uploaded), record.namespace, branch_ref
    )
    invalidation_id = self.invalidator.invalidate(invalidation_paths(slug, artifacts))
    return DeploymentResult(
      slug=slug, record=record, uploaded=uploaded, invalidation_id=invalidation_id
    )

  def _check_collision(
    self, slug: str, artifacts: ArtifactTree, branch_ref: str | None
  ) -> None:
    """Refuse to write into a namespace another owner controls.

    The overwrite policy only settles disputes between two preview
    branches. Primary content and preview namespaces never share a prefix,
    because cleaning up the preview would delete the primary files.
    """
    if not slug:
      clashes = artifacts.top_level_directories() & self.registry.live_slugs()
      if clashes:
        raise SlugCollision(slug, ", ".join(sorted(clashes)), branch_ref)
      return

    existing = self.registry.get(slug)
    if existing is None:
      if self.registry.occupied(slug):
        # Objects without a marker belong to the primary site
        raise SlugCollision(slug, None, branch_ref)
      return

    if (
      branch_ref is None
      or existing.branch_ref is None
      or existing.branch_ref == branch_ref
    ):
      return
    if self.collision_policy == OVERWRITE:
      logger.warning(
        "Namespace %r is owned by %s; overwriting for %s",
        slug,
        existing.branch_ref,
        branch_ref,
      )
      return
    raise SlugCollision(slug, existing.branch_ref, branch_ref)

  def _write_marker(self, record: DeploymentRecord) -> None:
    try:
      self.registry.write(record)
    except StorageError as e:
      raise UploadFailure(record.slug, f"{METADATA_DIR}/", e) from e

  def _upload(
    self,
    slug: str,
    artifacts: ArtifactTree,
    deadline: float | None,
    timeout: float | None,
  ) -> list[str]:
    prefix = namespace_prefix(slug)
    uploaded: list[str] = []

    def check_deadline() -> None:
      if deadline is not None and self.clock() > deadline:
        logger.error("Deploy of %r timed out after %d files", slug, len(uploaded))
        raise OperationTimeout(slug, timeout or 0)

    for path in artifacts:
      if path.split("/", 1)[0] == METADATA_DIR:
        logger.warning("Skipping reserved path %s", path)
        continue
      if slug and path == ROBOTS_TXT:
        # Replaced by the deny-all file below
        continue

      check_deadline()
      key = prefix + path
      try:
        body = artifacts.read(path)
        self.storage.put_object(key, body, content_type_for(path))
      except (StorageError, OSError) as e:
        logger.error("Upload of %s failed after %d files: %s", key, len(uploaded), e)
        raise UploadFailure(slug, key, e) from e
      uploaded.append(key)

    if slug:
      check_deadline()
      key = prefix + ROBOTS_TXT
      try:
        self.storage.put_object(key, ROBOTS_DENY_ALL, "text/plain")
      except StorageError as e:
        raise UploadFailure(slug, key, e) from e
      uploaded.append(key)

    return uploaded
