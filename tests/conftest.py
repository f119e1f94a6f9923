"""Pytest fixtures: in-memory AWS clients and wired-up lifecycle objects."""

import hashlib
import io
import threading
from typing import Any

import aws_cdk as cdk
import pytest
from botocore.exceptions import ClientError

from branchsite.cleaner import Cleaner
from branchsite.deployer import Deployer
from branchsite.invalidation import CacheInvalidator
from branchsite.locks import InProcessLocks
from branchsite.registry import DeploymentRegistry
from branchsite.storage import S3Storage


def client_error(code: str, operation: str, status: int = 400) -> ClientError:
  return ClientError(
    {
      "Error": {"Code": code, "Message": code},
      "ResponseMetadata": {"HTTPStatusCode": status},
    },
    operation,
  )


class FakePaginator:
  """list_objects_v2 paginator returning everything in one page."""

  def __init__(self, client: "FakeS3Client") -> None:
    self.client = client

  def paginate(self, **kwargs: Any) -> list[dict[str, Any]]:
    return [self.client.list_objects_v2(**kwargs)]


class FakeS3Client:
  """Dictionary-backed S3 client supporting the calls branchsite makes."""

  def __init__(self) -> None:
    self.objects: dict[str, bytes] = {}
    self.content_types: dict[str, str] = {}
    self.put_log: list[str] = []
    self.fail_puts: set[str] = set()
    self._lock = threading.Lock()

  def put_object(
    self,
    Bucket: str,
    Key: str,
    Body: bytes,
    ContentType: str = "",
    IfNoneMatch: str | None = None,
    IfMatch: str | None = None,
  ) -> dict[str, Any]:
    if Key in self.fail_puts:
      raise client_error("InternalError", "PutObject", 500)
    with self._lock:
      if IfNoneMatch == "*" and Key in self.objects:
        raise client_error("PreconditionFailed", "PutObject", 412)
      if IfMatch is not None:
        if Key not in self.objects:
          raise client_error("NoSuchKey", "PutObject", 404)
        if self.etag(Key) != IfMatch:
          raise client_error("PreconditionFailed", "PutObject", 412)
      self.objects[Key] = Body
      self.content_types[Key] = ContentType
      self.put_log.append(Key)
    return {}

  def etag(self, key: str) -> str:
    """S3-style ETag: the MD5 of the current body."""
    return f'"{hashlib.md5(self.objects[key]).hexdigest()}"'

  def get_object(self, Bucket: str, Key: str) -> dict[str, Any]:
    with self._lock:
      if Key not in self.objects:
        raise client_error("NoSuchKey", "GetObject", 404)
      return {"Body": io.BytesIO(self.objects[Key]), "ETag": self.etag(Key)}

  def delete_object(self, Bucket: str, Key: str) -> dict[str, Any]:
    with self._lock:
      self.objects.pop(Key, None)
    return {}

  def delete_objects(self, Bucket: str, Delete: dict[str, Any]) -> dict[str, Any]:
    with self._lock:
      for obj in Delete["Objects"]:
        self.objects.pop(obj["Key"], None)
    return {"Errors": []}

  def list_objects_v2(
    self,
    Bucket: str,
    Prefix: str = "",
    Delimiter: str | None = None,
    MaxKeys: int = 1000,
  ) -> dict[str, Any]:
    contents: list[dict[str, Any]] = []
    prefixes: set[str] = set()
    with self._lock:
      keys = sorted(k for k in self.objects if k.startswith(Prefix))
    for key in keys:
      rest = key[len(Prefix) :]
      if Delimiter and Delimiter in rest:
        prefixes.add(Prefix + rest.split(Delimiter, 1)[0] + Delimiter)
      else:
        contents.append({"Key": key, "Size": len(self.objects.get(key, b""))})
    page: dict[str, Any] = {}
    if contents:
      page["Contents"] = contents[:MaxKeys]
    if prefixes:
      page["CommonPrefixes"] = [{"Prefix": p} for p in sorted(prefixes)]
    return page

  def get_paginator(self, name: str) -> FakePaginator:
    assert name == "list_objects_v2"
    return FakePaginator(self)

  def keys(self, prefix: str = "") -> list[str]:
    return sorted(k for k in self.objects if k.startswith(prefix))


class FakeCloudFrontClient:
  """Records invalidations; queued errors are raised first."""

  def __init__(self) -> None:
    self.invalidations: list[list[str]] = []
    self.errors: list[Exception] = []

  def create_invalidation(
    self, DistributionId: str, InvalidationBatch: dict[str, Any]
  ) -> dict[str, Any]:
    if self.errors:
      raise self.errors.pop(0)
    paths = InvalidationBatch["Paths"]["Items"]
    assert InvalidationBatch["Paths"]["Quantity"] == len(paths)
    self.invalidations.append(paths)
    return {"Invalidation": {"Id": f"I{len(self.invalidations)}"}}


@pytest.fixture
def app() -> cdk.App:
  """Create a CDK App for testing."""
  return cdk.App()


@pytest.fixture
def stack(app: cdk.App) -> cdk.Stack:
  """Create a CDK Stack for testing."""
  return cdk.Stack(app, "TestStack", env=cdk.Environment(region="us-east-1"))


@pytest.fixture
def s3() -> FakeS3Client:
  return FakeS3Client()


@pytest.fixture
def cloudfront() -> FakeCloudFrontClient:
  return FakeCloudFrontClient()


@pytest.fixture
def storage(s3: FakeS3Client) -> S3Storage:
  return S3Storage("test-bucket", s3)


@pytest.fixture
def registry(storage: S3Storage) -> DeploymentRegistry:
  return DeploymentRegistry(storage)


@pytest.fixture
def invalidator(cloudfront: FakeCloudFrontClient) -> CacheInvalidator:
  return CacheInvalidator(cloudfront, "EDIST123", sleep=lambda _: None)


@pytest.fixture
def locks() -> InProcessLocks:
  return InProcessLocks()


@pytest.fixture
def deployer(
  storage: S3Storage,
  invalidator: CacheInvalidator,
  registry: DeploymentRegistry,
  locks: InProcessLocks,
) -> Deployer:
  return Deployer(storage, invalidator, registry=registry, locks=locks)


@pytest.fixture
def cleaner(
  storage: S3Storage,
  invalidator: CacheInvalidator,
  registry: DeploymentRegistry,
  locks: InProcessLocks,
) -> Cleaner:
  return Cleaner(storage, invalidator, registry=registry, locks=locks)
