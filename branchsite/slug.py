"""Branch name to storage namespace mapping."""

import re

from .errors import InvalidBranchName

DEFAULT_PRIMARY_BRANCHES = ("main", "master")
MAX_SLUG_LENGTH = 63

# The primary branch owns the bucket root
PRIMARY_SLUG = ""

_UNSAFE_RUN = re.compile(r"[^a-z0-9]+")
_SLUG = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


def _slugify(text: str, max_length: int) -> str:
  slug = _UNSAFE_RUN.sub("-", text.lower()).strip("-")
  return slug[:max_length].rstrip("-")


def sanitize(
  branch_ref: str,
  *,
  primary_branches: tuple[str, ...] | list[str] = DEFAULT_PRIMARY_BRANCHES,
  max_length: int = MAX_SLUG_LENGTH,
) -> str:
  """Turn a branch name into a URL and key safe slug.

  Args:
    branch_ref: Raw branch name (e.g. "feature/New-UI")
    primary_branches: Branch names deployed to the bucket root
    max_length: Upper bound on the slug length

  Returns:
    The slug, or "" for a primary branch.

  Raises:
    InvalidBranchName: If nothing usable remains after sanitizing, or the
      slug is the one a primary branch name sanitizes to ("Main", "main/").
  """
  if branch_ref in primary_branches:
    return PRIMARY_SLUG

  slug = _slugify(branch_ref, max_length)
  if not slug:
    raise InvalidBranchName(branch_ref)
  if slug in {_slugify(name, max_length) for name in primary_branches}:
    raise InvalidBranchName(branch_ref, "reserved for the primary branch")
  return slug


def is_valid_slug(text: str, max_length: int = MAX_SLUG_LENGTH) -> bool:
  """Check that text is a non-primary slug."""
  return len(text) <= max_length and _SLUG.match(text) is not None


def namespace_prefix(slug: str) -> str:
  """Storage key prefix owned by a slug."""
  return f"{slug}/" if slug else ""


def namespace_path(slug: str) -> str:
  """URL path owned by a slug."""
  return f"/{slug}/" if slug else "/"
