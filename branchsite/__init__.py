"""Feature-branch preview hosting: slugs, edge routing and deploy lifecycle."""

from .errors import (
  BranchsiteError,
  DeployInProgress,
  InvalidBranchName,
  OperationTimeout,
  ProtectedNamespace,
  SlugCollision,
  StorageError,
  UploadFailure,
)
from .router import RouterConfig, resolve
from .slug import sanitize

__all__ = [
  "BranchsiteError",
  "DeployInProgress",
  "InvalidBranchName",
  "OperationTimeout",
  "ProtectedNamespace",
  "RouterConfig",
  "SlugCollision",
  "StorageError",
  "UploadFailure",
  "resolve",
  "sanitize",
]
