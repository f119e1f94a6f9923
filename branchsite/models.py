"""Data classes for artifacts, deployment records and operation results."""

import json
from collections.abc import Iterator, Mapping
from dataclasses import asdict, dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any

from .slug import namespace_path

DEPLOYING = "deploying"
DEPLOYED = "deployed"


def normalize_artifact_path(path: str) -> str:
  """Normalize a build-relative path into a POSIX key suffix."""
  posix = PurePosixPath(path.replace("\\", "/"))
  parts = [p for p in posix.parts if p not in ("/", ".")]
  if not parts or ".." in parts:
    raise ValueError(f"Invalid artifact path: {path!r}")
  return "/".join(parts)


class ArtifactTree(Mapping[str, Path | bytes]):
  """Build output keyed by relative POSIX path.

  Values are either a file on disk or in-memory content.
  """

  def __init__(self, files: Mapping[str, Path | bytes] | None = None) -> None:
    self._files: dict[str, Path | bytes] = {}
    for path, source in (files or {}).items():
      self._files[normalize_artifact_path(path)] = source

  @classmethod
  def from_directory(cls, root: Path | str) -> "ArtifactTree":
    """Collect every file below a build output directory."""
    root = Path(root)
    if not root.is_dir():
      raise ValueError(f"Artifact directory {root} does not exist")
    files = {
      path.relative_to(root).as_posix(): path
      for path in sorted(root.rglob("*"))
      if path.is_file()
    }
    return cls(files)

  def read(self, path: str) -> bytes:
    """Return the content of one artifact."""
    source = self._files[path]
    if isinstance(source, bytes):
      return source
    return source.read_bytes()

  def top_level_entries(self) -> set[str]:
    """First path segment of every artifact (files and directories)."""
    return {path.split("/", 1)[0] for path in self._files}

  def top_level_directories(self) -> set[str]:
    """First path segment of every nested artifact."""
    return {path.split("/", 1)[0] for path in self._files if "/" in path}

  def __getitem__(self, path: str) -> Path | bytes:
    return self._files[path]

  def __iter__(self) -> Iterator[str]:
    return iter(sorted(self._files))

  def __len__(self) -> int:
    return len(self._files)


@dataclass
class DeploymentRecord:
  """What storage knows about one deployed namespace."""

  slug: str
  is_primary: bool = False
  is_spa: bool = False
  last_written_at: str | None = None
  branch_ref: str | None = None
  commit: str | None = None
  status: str = DEPLOYED

  @property
  def namespace(self) -> str:
    return namespace_path(self.slug)

  def to_json(self) -> bytes:
    """Serialize for the namespace marker object."""
    return json.dumps(asdict(self), indent=2).encode("utf-8")

  @classmethod
  def from_json(cls, raw: bytes | str) -> "DeploymentRecord":
    data: dict[str, Any] = json.loads(raw)
    return cls(
      slug=data["slug"],
      is_primary=data.get("is_primary", False),
      is_spa=data.get("is_spa", False),
      last_written_at=data.get("last_written_at"),
      branch_ref=data.get("branch_ref"),
      commit=data.get("commit"),
      status=data.get("status", DEPLOYED),
    )


@dataclass
class DeploymentResult:
  """Outcome of a successful deploy."""

  slug: str
  record: DeploymentRecord
  uploaded: list[str] = field(default_factory=list)
  invalidation_id: str | None = None

  @property
  def namespace(self) -> str:
    return namespace_path(self.slug)


@dataclass
class CleanupResult:
  """Outcome of a cleanup. noop means the namespace was already empty."""

  slug: str
  deleted: int = 0
  noop: bool = False
  invalidation_id: str | None = None

  @property
  def namespace(self) -> str:
    return namespace_path(self.slug)
