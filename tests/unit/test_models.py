"""Tests for artifact trees and deployment records."""

import json
from pathlib import Path

import pytest

from branchsite.models import (
  DEPLOYING,
  ArtifactTree,
  CleanupResult,
  DeploymentRecord,
  normalize_artifact_path,
)


class TestNormalizeArtifactPath:
  """Tests for normalize_artifact_path."""

  def test_plain_path(self) -> None:
    assert normalize_artifact_path("assets/app.js") == "assets/app.js"

  def test_leading_slash_and_dots(self) -> None:
    """Absolute and ./ prefixes are removed."""
    assert normalize_artifact_path("/index.html") == "index.html"
    assert normalize_artifact_path("./css/site.css") == "css/site.css"

  def test_backslashes(self) -> None:
    """Windows separators are converted."""
    assert normalize_artifact_path("img\\logo.png") == "img/logo.png"

  @pytest.mark.parametrize("path", ["", "/", ".", "../secret", "a/../../b"])
  def test_rejects_invalid(self, path: str) -> None:
    """Empty and escaping paths are rejected."""
    with pytest.raises(ValueError):
      normalize_artifact_path(path)


class TestArtifactTree:
  """Tests for ArtifactTree."""

  def test_from_directory(self, tmp_path: Path) -> None:
    """Every file below the directory is collected."""
    (tmp_path / "assets").mkdir()
    (tmp_path / "index.html").write_text("<h1>hi</h1>")
    (tmp_path / "assets" / "app.js").write_text("console.log(1)")
    (tmp_path / ".well-known").mkdir()
    (tmp_path / ".well-known" / "security.txt").write_text("x")

    tree = ArtifactTree.from_directory(tmp_path)

    assert list(tree) == [".well-known/security.txt", "assets/app.js", "index.html"]
    assert tree.read("index.html") == b"<h1>hi</h1>"

  def test_from_missing_directory(self, tmp_path: Path) -> None:
    """A missing build directory is an error."""
    with pytest.raises(ValueError):
      ArtifactTree.from_directory(tmp_path / "dist")

  def test_in_memory_content(self) -> None:
    """Bytes can be supplied directly."""
    tree = ArtifactTree({"/index.html": b"home"})
    assert len(tree) == 1
    assert tree.read("index.html") == b"home"

  def test_top_level_entries(self) -> None:
    """Directories and root files are reported separately."""
    tree = ArtifactTree(
      {"index.html": b"", "assets/a.js": b"", "assets/b.js": b"", "docs/x/y.html": b""}
    )
    assert tree.top_level_entries() == {"index.html", "assets", "docs"}
    assert tree.top_level_directories() == {"assets", "docs"}


class TestDeploymentRecord:
  """Tests for DeploymentRecord."""

  def test_json_round_trip(self) -> None:
    """Markers decode into equal records."""
    record = DeploymentRecord(
      slug="feature-x",
      is_spa=True,
      last_written_at="2026-01-01T00:00:00+00:00",
      branch_ref="feature/x",
      commit="abc123",
      status=DEPLOYING,
    )
    assert DeploymentRecord.from_json(record.to_json()) == record

  def test_from_json_defaults(self) -> None:
    """Missing optional fields take defaults."""
    record = DeploymentRecord.from_json(json.dumps({"slug": "a"}))
    assert record.status == "deployed"
    assert record.branch_ref is None

  def test_namespace(self) -> None:
    """Namespace is derived from the slug."""
    assert DeploymentRecord(slug="").namespace == "/"
    assert DeploymentRecord(slug="feature-x").namespace == "/feature-x/"
    assert CleanupResult(slug="feature-x").namespace == "/feature-x/"
