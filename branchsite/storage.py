"""S3 storage boundary used by the deployer, cleaner and registry."""

import logging
from collections.abc import Callable, Iterator
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from .errors import StorageError

logger = logging.getLogger(__name__)

MISSING_CODES = {"NoSuchKey", "404", "NotFound"}
PRECONDITION_CODES = {"PreconditionFailed", "412", "ConditionalRequestConflict"}

# DeleteObjects accepts at most this many keys per request
DELETE_BATCH_SIZE = 1000


class ConditionFailed(StorageError):
  """A conditional write was refused."""


class ObjectExists(ConditionFailed):
  """A create-only write found the key already present."""


class ObjectChanged(ConditionFailed):
  """An IfMatch write found the key replaced or removed."""


def error_code(error: ClientError) -> str:
  """Extract the error code from a botocore ClientError."""
  return str(error.response.get("Error", {}).get("Code", ""))


class S3Storage:
  """Thin wrapper over an S3 client bound to one bucket."""

  def __init__(self, bucket: str, s3_client: Any) -> None:
    self.bucket = bucket
    self.s3 = s3_client

  def put_object(
    self,
    key: str,
    body: bytes,
    content_type: str | None = None,
    *,
    if_none_match: bool = False,
    if_match: str | None = None,
  ) -> None:
    """Write an object.

    if_none_match makes the write fail if the key exists; if_match makes it
    fail unless the stored object still has that ETag.
    """
    params: dict[str, Any] = {"Bucket": self.bucket, "Key": key, "Body": body}
    if content_type:
      params["ContentType"] = content_type
    if if_none_match:
      params["IfNoneMatch"] = "*"
    if if_match is not None:
      params["IfMatch"] = if_match
    try:
      self.s3.put_object(**params)
    except ClientError as e:
      code = error_code(e)
      if if_none_match and code in PRECONDITION_CODES:
        raise ObjectExists(f"s3://{self.bucket}/{key} already exists") from e
      if if_match is not None and code in PRECONDITION_CODES | MISSING_CODES:
        raise ObjectChanged(f"s3://{self.bucket}/{key} no longer matches") from e
      raise StorageError(f"PutObject s3://{self.bucket}/{key} failed: {e}") from e
    except BotoCoreError as e:
      raise StorageError(f"PutObject s3://{self.bucket}/{key} failed: {e}") from e

  def get_object(self, key: str) -> bytes | None:
    """Read an object, or None if it does not exist."""
    found = self.get_object_with_etag(key)
    return None if found is None else found[0]

  def get_object_with_etag(self, key: str) -> tuple[bytes, str] | None:
    """Read an object and its ETag, or None if it does not exist."""
    try:
      obj = self.s3.get_object(Bucket=self.bucket, Key=key)
      body: bytes = obj["Body"].read()
      return body, str(obj.get("ETag", ""))
    except ClientError as e:
      if error_code(e) in MISSING_CODES:
        return None
      raise StorageError(f"GetObject s3://{self.bucket}/{key} failed: {e}") from e
    except BotoCoreError as e:
      raise StorageError(f"GetObject s3://{self.bucket}/{key} failed: {e}") from e

  def delete_object(self, key: str) -> None:
    """Delete one object. Deleting a missing key succeeds."""
    try:
      self.s3.delete_object(Bucket=self.bucket, Key=key)
    except (ClientError, BotoCoreError) as e:
      raise StorageError(f"DeleteObject s3://{self.bucket}/{key} failed: {e}") from e

  def list_keys(self, prefix: str) -> Iterator[str]:
    """Yield every key under a prefix."""
    try:
      paginator = self.s3.get_paginator("list_objects_v2")
      for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
        for obj in page.get("Contents", []):
          yield obj["Key"]
    except (ClientError, BotoCoreError) as e:
      raise StorageError(f"ListObjects s3://{self.bucket}/{prefix} failed: {e}") from e

  def list_folders(self, prefix: str = "") -> list[str]:
    """Immediate sub-folder names below a prefix."""
    folders: list[str] = []
    try:
      paginator = self.s3.get_paginator("list_objects_v2")
      for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix, Delimiter="/"):
        for cp in page.get("CommonPrefixes", []):
          folders.append(cp["Prefix"][len(prefix) :].rstrip("/"))
    except (ClientError, BotoCoreError) as e:
      raise StorageError(f"ListObjects s3://{self.bucket}/{prefix} failed: {e}") from e
    return folders

  def has_objects(self, prefix: str) -> bool:
    """Whether anything is stored under a prefix."""
    try:
      response = self.s3.list_objects_v2(Bucket=self.bucket, Prefix=prefix, MaxKeys=1)
    except (ClientError, BotoCoreError) as e:
      raise StorageError(f"ListObjects s3://{self.bucket}/{prefix} failed: {e}") from e
    return bool(response.get("Contents"))

  def delete_objects_by_prefix(self, prefix: str) -> int:
    """Delete everything under a non-empty prefix and return the count."""
    if not prefix:
      raise ValueError("Refusing to delete by an empty prefix")
    return self.delete_keys(list(self.list_keys(prefix)))

  def delete_keys(
    self, keys: list[str], before_batch: Callable[[], None] | None = None
  ) -> int:
    """Delete keys in DeleteObjects batches. before_batch may abort by raising."""
    deleted = 0
    for start in range(0, len(keys), DELETE_BATCH_SIZE):
      if before_batch is not None:
        before_batch()
      deleted += self._delete_batch(keys[start : start + DELETE_BATCH_SIZE])
    return deleted

  def _delete_batch(self, keys: list[str]) -> int:
    try:
      response = self.s3.delete_objects(
        Bucket=self.bucket,
        Delete={"Objects": [{"Key": key} for key in keys], "Quiet": True},
      )
    except (ClientError, BotoCoreError) as e:
      raise StorageError(f"DeleteObjects s3://{self.bucket} failed: {e}") from e

    errors = response.get("Errors", [])
    if errors:
      first = errors[0]
      raise StorageError(
        f"DeleteObjects s3://{self.bucket} failed for {len(errors)} keys, "
        f"first {first.get('Key')!r}: {first.get('Code')} {first.get('Message')}"
      )
    logger.debug("Deleted %d objects from s3://%s", len(keys), self.bucket)
    return len(keys)
