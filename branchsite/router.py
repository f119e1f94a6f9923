"""Request path to storage key rewriting for the CDN edge.

Runs once per viewer request with nothing but the URI and a frozen
RouterConfig, so every decision is made from the shape of the path:

  /                    -> /index.html
  /feature-x[/]        -> /feature-x/index.html
  /feature-x/about     -> /feature-x/about/index.html
  /feature-x/app.js    -> /feature-x/app.js
  /Dashboard (spa)     -> /index.html

A path segment without a "." is assumed to be a directory. Real files with
no extension are therefore rewritten as directories; there is no way to
tell them apart without a storage lookup.
"""

import json
import re
from dataclasses import asdict, dataclass
from pathlib import Path

_NAMESPACE = re.compile(r"^/([a-z0-9-]+)/?$")
_NAMESPACED_PATH = re.compile(r"^/([a-z0-9-]+)/(.+)$")


@dataclass(frozen=True)
class RouterConfig:
  """Build-time settings for the edge router."""

  index_document: str = "index.html"
  spa_mode: bool = False

  @classmethod
  def from_file(cls, path: Path | str) -> "RouterConfig":
    """Load settings written by to_file. Missing file means defaults."""
    path = Path(path)
    if not path.exists():
      return cls()
    with open(path) as f:
      data = json.load(f)
    return cls(
      index_document=data.get("index_document", "index.html"),
      spa_mode=bool(data.get("spa_mode", False)),
    )

  def to_file(self, path: Path | str) -> None:
    """Write settings as JSON for bundling with the edge function."""
    with open(path, "w") as f:
      json.dump(asdict(self), f, indent=2)


def resolve(uri: str, config: RouterConfig) -> str:
  """Rewrite a request URI into the path of the object to serve."""
  index = config.index_document

  if uri == "/":
    return "/" + index

  match = _NAMESPACE.match(uri)
  if match:
    return f"/{match.group(1)}/{index}"

  match = _NAMESPACED_PATH.match(uri)
  if match:
    slug, rest = match.groups()
    if "." not in rest and not rest.endswith("/"):
      return f"/{slug}/{rest}/{index}"
    return uri

  if config.spa_mode and "." not in uri:
    return "/" + index

  if "." not in uri and not uri.endswith("/"):
    return f"{uri}/{index}"
  if uri.endswith("/"):
    return uri + index
  return uri


def object_key(uri: str, config: RouterConfig) -> str:
  """Storage object key for a request URI."""
  return resolve(uri, config).lstrip("/")
