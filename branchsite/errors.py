"""Exceptions raised by the deployment lifecycle."""


class BranchsiteError(Exception):
  """Base class for all deployment lifecycle errors."""


class InvalidBranchName(BranchsiteError, ValueError):
  """Branch name leaves no usable characters after sanitizing."""

  def __init__(self, branch_ref: str, reason: str = "no valid slug characters") -> None:
    self.branch_ref = branch_ref
    super().__init__(f"Invalid branch name {branch_ref!r}: {reason}")


class SlugCollision(BranchsiteError):
  """Namespace is already owned by a different branch."""

  def __init__(
    self, slug: str, existing_branch: str | None, branch_ref: str | None
  ) -> None:
    self.slug = slug
    self.existing_branch = existing_branch
    self.branch_ref = branch_ref
    owner = existing_branch or "content that is not a branch deployment"
    super().__init__(
      f"Slug {slug!r} for branch {branch_ref!r} is already used by {owner}"
    )


class DeployInProgress(BranchsiteError):
  """Another deploy or cleanup holds the slug. Retry later."""

  def __init__(self, slug: str) -> None:
    self.slug = slug
    super().__init__(f"Another operation is in progress for {slug or '<primary>'!r}")


class StorageError(BranchsiteError):
  """Object storage rejected a read, write or delete."""


class UploadFailure(StorageError):
  """An object could not be written during a deploy."""

  def __init__(self, slug: str, key: str, cause: Exception | None = None) -> None:
    self.slug = slug
    self.key = key
    message = f"Upload of {key!r} failed for {slug or '<primary>'!r}"
    if cause is not None:
      message = f"{message}: {cause}"
    super().__init__(message)


class OperationTimeout(BranchsiteError):
  """Deploy or cleanup ran past its deadline and is considered failed."""

  def __init__(self, slug: str, timeout: float) -> None:
    self.slug = slug
    self.timeout = timeout
    super().__init__(
      f"Operation on {slug or '<primary>'!r} exceeded {timeout:g}s and was aborted"
    )


class ProtectedNamespace(BranchsiteError):
  """Refusing to delete content that is not a preview deployment."""

  def __init__(self, slug: str, reason: str = "primary namespace") -> None:
    self.slug = slug
    super().__init__(f"Refusing to clean up {slug or '<primary>'!r}: {reason}")
