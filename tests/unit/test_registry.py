"""Tests for the storage-derived deployment registry."""

from conftest import FakeS3Client

from branchsite.models import DeploymentRecord
from branchsite.registry import DeploymentRegistry, marker_key
from branchsite.storage import S3Storage


class TestMarkerKey:
  """Tests for marker_key."""

  def test_keys(self) -> None:
    """Markers live in a reserved folder of each namespace."""
    assert marker_key("") == ".branchsite/deployment.json"
    assert marker_key("feature-x") == "feature-x/.branchsite/deployment.json"


class TestDeploymentRegistry:
  """Tests for DeploymentRegistry."""

  def test_get_missing(self, registry: DeploymentRegistry) -> None:
    assert registry.get("feature-x") is None
    assert not registry.exists("feature-x")

  def test_write_and_get(self, registry: DeploymentRegistry) -> None:
    """Records are stored and read back through the marker."""
    registry.write(DeploymentRecord(slug="feature-x", branch_ref="feature/x"))
    record = registry.get("feature-x")
    assert record is not None
    assert record.branch_ref == "feature/x"
    assert registry.exists("feature-x")

  def test_unreadable_marker(
    self, registry: DeploymentRegistry, s3: FakeS3Client
  ) -> None:
    """A corrupt marker still marks the namespace as deployed."""
    s3.objects[marker_key("feature-x")] = b"not json"
    record = registry.get("feature-x")
    assert record is not None
    assert record.status == "unknown"

  def test_occupied(self, registry: DeploymentRegistry, storage: S3Storage) -> None:
    """Any object under the prefix occupies it."""
    storage.put_object("assets/app.js", b"")
    assert registry.occupied("assets")
    assert not registry.occupied("feature-x")

  def test_list_namespaces(
    self, registry: DeploymentRegistry, storage: S3Storage
  ) -> None:
    """Only folders with a marker are deployments; primary comes first."""
    registry.write(DeploymentRecord(slug="zeta"))
    registry.write(DeploymentRecord(slug="alpha"))
    registry.write(DeploymentRecord(slug="", is_primary=True))
    storage.put_object("assets/app.js", b"")
    storage.put_object("Uploads/x/.branchsite/deployment.json", b"{}")

    slugs = [r.slug for r in registry.list_namespaces()]

    assert slugs == ["", "alpha", "zeta"]
    assert registry.live_slugs() == {"alpha", "zeta"}

  def test_list_namespaces_empty(self, registry: DeploymentRegistry) -> None:
    assert registry.list_namespaces() == []
