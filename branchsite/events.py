"""GitHub event payloads reduced to the branch lifecycle they imply."""

from dataclasses import dataclass
from typing import Any

BRANCH_REF_PREFIX = "refs/heads/"

PUSHED = "pushed"
DELETED = "deleted"


@dataclass(frozen=True)
class BranchEvent:
  """A branch was pushed to or deleted."""

  action: str
  branch_ref: str
  commit: str | None = None


def branch_from_ref(ref: str) -> str | None:
  """Branch name from a git ref, or None for tags and other refs."""
  if ref.startswith(BRANCH_REF_PREFIX):
    return ref[len(BRANCH_REF_PREFIX) :] or None
  if ref.startswith("refs/"):
    return None
  return ref or None


def parse_github_event(event_name: str, payload: dict[str, Any]) -> BranchEvent | None:
  """Translate a GitHub webhook or Actions event. Irrelevant events give None."""
  if event_name == "push":
    branch = branch_from_ref(str(payload.get("ref", "")))
    if branch is None:
      return None
    if payload.get("deleted"):
      return BranchEvent(DELETED, branch)
    return BranchEvent(PUSHED, branch, payload.get("after"))

  if event_name == "delete":
    if payload.get("ref_type") != "branch":
      return None
    # delete payloads carry the short branch name
    branch = branch_from_ref(str(payload.get("ref", "")))
    if branch is None:
      return None
    return BranchEvent(DELETED, branch)

  return None
