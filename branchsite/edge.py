"""Lambda@Edge viewer-request handler for branch routing.

Lambda@Edge functions cannot read environment variables, so the router
settings are bundled next to this package as router_config.json when the
distribution is synthesized.
"""

from pathlib import Path
from typing import Any

from .router import RouterConfig, resolve

CONFIG_FILENAME = "router_config.json"

CONFIG = RouterConfig.from_file(Path(__file__).parent.parent / CONFIG_FILENAME)


def rewrite_request(request: dict[str, Any], config: RouterConfig) -> dict[str, Any]:
  """Rewrite the uri of a CloudFront request in place."""
  uri = request.get("uri")
  if isinstance(uri, str):
    request["uri"] = resolve(uri, config)
  return request


def handler(event: dict[str, Any], context: Any) -> Any:
  """Entry point for the viewer-request trigger."""
  try:
    request = event["Records"][0]["cf"]["request"]
  except (KeyError, IndexError, TypeError):
    # Not a CloudFront event; hand it back untouched
    return event
  return rewrite_request(request, CONFIG)
