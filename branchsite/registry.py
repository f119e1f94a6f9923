"""Deployed namespaces, derived from what exists in the bucket."""

import logging

from .models import DeploymentRecord
from .slug import PRIMARY_SLUG, is_valid_slug, namespace_prefix
from .storage import S3Storage

logger = logging.getLogger(__name__)

# Reserved folder inside each namespace; never produced by a build
METADATA_DIR = ".branchsite"
MARKER_NAME = "deployment.json"


def marker_key(slug: str) -> str:
  """Key of the deployment marker for a slug."""
  return f"{namespace_prefix(slug)}{METADATA_DIR}/{MARKER_NAME}"


class DeploymentRegistry:
  """Answers which namespaces are deployed without a separate database.

  A namespace counts as deployed when its marker object exists. Folders at
  the bucket root without a marker belong to the primary site.
  """

  def __init__(self, storage: S3Storage, max_slug_length: int = 63) -> None:
    self.storage = storage
    self.max_slug_length = max_slug_length

  def get(self, slug: str) -> DeploymentRecord | None:
    """Load the record for a slug, if deployed."""
    raw = self.storage.get_object(marker_key(slug))
    if raw is None:
      return None
    try:
      return DeploymentRecord.from_json(raw)
    except (ValueError, KeyError) as e:
      logger.warning("Unreadable marker for %r: %s", slug, e)
      return DeploymentRecord(
        slug=slug, is_primary=slug == PRIMARY_SLUG, status="unknown"
      )

  def exists(self, slug: str) -> bool:
    return self.storage.get_object(marker_key(slug)) is not None

  def occupied(self, slug: str) -> bool:
    """Whether any object lives under the slug's prefix."""
    return self.storage.has_objects(namespace_prefix(slug))

  def write(self, record: DeploymentRecord) -> None:
    self.storage.put_object(
      marker_key(record.slug), record.to_json(), content_type="application/json"
    )

  def list_namespaces(self) -> list[DeploymentRecord]:
    """Every deployed namespace, primary first, then by slug."""
    records: list[DeploymentRecord] = []

    primary = self.get(PRIMARY_SLUG)
    if primary is not None:
      records.append(primary)

    for folder in sorted(self.storage.list_folders()):
      if not is_valid_slug(folder, self.max_slug_length):
        continue
      record = self.get(folder)
      if record is not None:
        records.append(record)
    return records

  def live_slugs(self) -> set[str]:
    """Slugs of deployed preview namespaces."""
    return {r.slug for r in self.list_namespaces() if r.slug != PRIMARY_SLUG}
