"""Remove a branch namespace once its branch is deleted."""

import logging
import time
from collections.abc import Callable

from .config import REJECT
from .errors import (
  InvalidBranchName,
  OperationTimeout,
  ProtectedNamespace,
  SlugCollision,
)
from .invalidation import CacheInvalidator
from .locks import InProcessLocks, S3LeaseLocks, bounded_timeout
from .models import CleanupResult
from .registry import DeploymentRegistry, marker_key
from .slug import MAX_SLUG_LENGTH, PRIMARY_SLUG, is_valid_slug, namespace_prefix
from .storage import S3Storage

logger = logging.getLogger(__name__)


class Cleaner:
  """Deletes preview namespaces. Safe to call repeatedly for the same slug."""

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

  def cleanup(
    self,
    slug: str,
    *,
    branch_ref: str | None = None,
    timeout: float | None = None,
    wait: float = 0.0,
  ) -> CleanupResult:
    """Delete every object in the slug's namespace and invalidate it.

    Raises:
      ProtectedNamespace: For the primary slug, or a folder that was never
        deployed by a branch.
      SlugCollision: If branch_ref does not own the namespace.
      DeployInProgress: If the slug is busy for longer than wait.
      OperationTimeout: If timeout elapses. Retrying is safe.
    """
    if slug == PRIMARY_SLUG:
      raise ProtectedNamespace(slug)
    if not is_valid_slug(slug, self.max_slug_length):
      raise InvalidBranchName(slug, "not a valid slug")

    timeout = bounded_timeout(timeout, self.locks)
    deadline = None if timeout is None else self.clock() + timeout

    def check_deadline() -> None:
      if deadline is not None and self.clock() > deadline:
        raise OperationTimeout(slug, timeout or 0)

    with self.locks.hold(slug, wait):
      record = self.registry.get(slug)
      if record is None:
        if self.registry.occupied(slug):
          raise ProtectedNamespace(slug, "not a branch deployment")
        logger.info("Nothing deployed at /%s/, nothing to clean up", slug)
        return CleanupResult(slug=slug, noop=True)

      if (
        self.collision_policy == REJECT
        and branch_ref is not None
        and record.branch_ref is not None
        and record.branch_ref != branch_ref
      ):
        raise SlugCollision(slug, record.branch_ref, branch_ref)

      # The marker goes last so an interrupted cleanup can be retried
      marker = marker_key(slug)
      keys = [k for k in self.storage.list_keys(namespace_prefix(slug)) if k != marker]
      deleted = self.storage.delete_keys(keys, before_batch=check_deadline)
      check_deadline()
      self.storage.delete_object(marker)
      deleted += 1

    logger.info("Removed %d objects from /%s/", deleted, slug)
    invalidation_id = self.invalidator.invalidate([f"/{slug}", f"/{slug}/*"])
    return CleanupResult(slug=slug, deleted=deleted, invalidation_id=invalidation_id)
