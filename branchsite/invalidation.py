"""CloudFront cache invalidation with retry."""

import logging
import time
import uuid
from collections.abc import Callable
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from .storage import error_code

logger = logging.getLogger(__name__)

RETRYABLE_CODES = {
  "Throttling",
  "ThrottlingException",
  "TooManyInvalidationsInProgress",
  "ServiceUnavailable",
  "InternalError",
  "RequestTimeout",
}


def _retryable(error: Exception) -> bool:
  if isinstance(error, BotoCoreError):
    return True
  if isinstance(error, ClientError):
    status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0)
    return error_code(error) in RETRYABLE_CODES or int(status) >= 500
  return False


class CacheInvalidator:
  """Issues invalidations for a single distribution.

  Failures are logged and swallowed: a stale cache is preferable to failing
  a deploy that already landed in storage.
  """

  def __init__(
    self,
    cloudfront_client: Any,
    distribution_id: str | None,
    max_attempts: int = 5,
    base_delay: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
  ) -> None:
    self.cloudfront = cloudfront_client
    self.distribution_id = distribution_id
    self.max_attempts = max_attempts
    self.base_delay = base_delay
    self.sleep = sleep

  def invalidate(self, paths: list[str]) -> str | None:
    """Invalidate paths and return the invalidation ID, or None on failure."""
    if not paths or not self.distribution_id:
      return None

    for attempt in range(self.max_attempts):
      try:
        response = self.cloudfront.create_invalidation(
          DistributionId=self.distribution_id,
          InvalidationBatch={
            "Paths": {"Quantity": len(paths), "Items": paths},
            "CallerReference": str(uuid.uuid4()),
          },
        )
        invalidation_id: str = response["Invalidation"]["Id"]
        logger.info("Created invalidation %s for %s", invalidation_id, paths)
        return invalidation_id
      except (ClientError, BotoCoreError) as e:
        if not _retryable(e) or attempt == self.max_attempts - 1:
          logger.error("Invalidation of %s failed: %s", paths, e)
          return None
        delay = self.base_delay * 2**attempt
        logger.warning(
          "Invalidation attempt %d failed (%s), retrying in %.1fs", attempt + 1, e, delay
        )
        self.sleep(delay)
    return None
