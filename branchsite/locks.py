"""Per-slug mutual exclusion for deploys and cleanups.

Operations on the same slug are serialized; different slugs never wait on
each other. InProcessLocks covers a single worker process, S3LeaseLocks
covers CI runners that share nothing but the bucket.
"""

import json
import logging
import socket
import threading
import time
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

from .errors import DeployInProgress, StorageError
from .storage import ObjectChanged, ObjectExists, S3Storage

logger = logging.getLogger(__name__)

LOCK_PREFIX = ".branchsite/locks/"
PRIMARY_LOCK_NAME = "_root"


def lock_name(slug: str) -> str:
  """Lock identifier for a slug. "_" never appears in a slug."""
  return slug or PRIMARY_LOCK_NAME


class InProcessLocks:
  """One threading.Lock per slug, dropped once nobody holds or waits for it."""

  # No lease to expire, so holders are never time-limited
  max_hold: float | None = None

  def __init__(self) -> None:
    self._guard = threading.Lock()
    # name -> (lock, holders plus waiters)
    self._locks: dict[str, tuple[threading.Lock, int]] = {}

  def _checkout(self, name: str) -> threading.Lock:
    with self._guard:
      lock, users = self._locks.get(name, (threading.Lock(), 0))
      self._locks[name] = (lock, users + 1)
      return lock

  def _checkin(self, name: str) -> None:
    with self._guard:
      lock, users = self._locks[name]
      if users == 1:
        del self._locks[name]
      else:
        self._locks[name] = (lock, users - 1)

  @contextmanager
  def hold(self, slug: str, wait: float = 0.0) -> Iterator[None]:
    """Hold the slug's lock, queueing for up to wait seconds."""
    name = lock_name(slug)
    lock = self._checkout(name)
    try:
      acquired = lock.acquire(timeout=wait) if wait > 0 else lock.acquire(blocking=False)
      if not acquired:
        raise DeployInProgress(slug)
      try:
        yield
      finally:
        lock.release()
    finally:
      self._checkin(name)


class S3LeaseLocks:
  """Leases stored as objects created with a conditional write.

  Only one PutObject with IfNoneMatch="*" can create a key, which makes the
  lease object the mutex. An expired lease is taken over with IfMatch on the
  ETag that was read, so of several runners contending for the same stale
  lease exactly one wins. Leases expire after ttl_seconds so a crashed
  runner cannot block a slug forever; max_hold tells callers to finish
  before that happens.
  """

  def __init__(
    self,
    storage: S3Storage,
    ttl_seconds: float = 900,
    owner: str | None = None,
    poll_interval: float = 2.0,
    clock: Callable[[], float] = time.time,
    sleep: Callable[[float], None] = time.sleep,
  ) -> None:
    self.storage = storage
    self.ttl_seconds = ttl_seconds
    self.owner = owner or f"{socket.gethostname()}-{uuid.uuid4().hex[:8]}"
    self.poll_interval = poll_interval
    self.clock = clock
    self.sleep = sleep

  @property
  def max_hold(self) -> float:
    return self.ttl_seconds

  def lease_key(self, slug: str) -> str:
    return f"{LOCK_PREFIX}{lock_name(slug)}.json"

  def try_acquire(self, slug: str) -> bool:
    """Attempt to take the lease once, taking over an expired one."""
    key = self.lease_key(slug)
    body = json.dumps(
      {"owner": self.owner, "expires_at": self.clock() + self.ttl_seconds}
    ).encode("utf-8")

    for _ in range(2):
      try:
        self.storage.put_object(
          key, body, content_type="application/json", if_none_match=True
        )
        return True
      except ObjectExists:
        pass

      current = self.storage.get_object_with_etag(key)
      if current is None:
        # Released between our write and our read
        continue
      raw, etag = current
      if not self._expired(raw):
        return False
      logger.warning("Taking over expired lease %s", key)
      try:
        self.storage.put_object(
          key, body, content_type="application/json", if_match=etag
        )
        return True
      except ObjectChanged:
        # Another runner took it over first
        return False
    return False

  def _parse(self, raw: bytes) -> dict[str, Any]:
    try:
      lease = json.loads(raw)
    except ValueError:
      return {}
    return lease if isinstance(lease, dict) else {}

  def _expired(self, raw: bytes) -> bool:
    return float(self._parse(raw).get("expires_at", 0)) <= self.clock()

  def release(self, slug: str) -> None:
    """Drop the lease if this owner still holds it."""
    key = self.lease_key(slug)
    raw = self.storage.get_object(key)
    if raw is not None and self._parse(raw).get("owner") == self.owner:
      self.storage.delete_object(key)
    else:
      logger.warning("Lease %s is no longer held by %s", key, self.owner)

  @contextmanager
  def hold(self, slug: str, wait: float = 0.0) -> Iterator[None]:
    """Hold the slug's lease, polling for up to wait seconds."""
    deadline = self.clock() + wait
    while not self.try_acquire(slug):
      if self.clock() >= deadline:
        raise DeployInProgress(slug)
      self.sleep(min(self.poll_interval, max(deadline - self.clock(), 0)))
    try:
      yield
    finally:
      try:
        self.release(slug)
      except StorageError as e:
        # Expires after ttl_seconds anyway
        logger.error("Could not release lease for %r: %s", slug, e)


def bounded_timeout(
  timeout: float | None, locks: InProcessLocks | S3LeaseLocks
) -> float | None:
  """Limit an operation's timeout to how long its lock stays valid."""
  if locks.max_hold is None:
    return timeout
  if timeout is None:
    return locks.max_hold
  return min(timeout, locks.max_hold)
