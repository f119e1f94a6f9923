"""Configuration loader for preview-hosted sites."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .router import RouterConfig
from .slug import DEFAULT_PRIMARY_BRANCHES, MAX_SLUG_LENGTH

REJECT = "reject"
OVERWRITE = "overwrite"
COLLISION_POLICIES = (REJECT, OVERWRITE)

REMOVAL_POLICIES = ("retain", "destroy")


@dataclass
class SiteConfig:
  """Configuration for a single site and its branch previews."""

  name: str
  bucket: str
  distribution_id: str | None = None
  region: str = "us-east-1"
  primary_branches: list[str] = field(
    default_factory=lambda: list(DEFAULT_PRIMARY_BRANCHES)
  )
  index_document: str = "index.html"
  spa_mode: bool = False
  max_slug_length: int = MAX_SLUG_LENGTH
  collision_policy: str = REJECT
  lock_ttl_seconds: int = 900
  invalidation_attempts: int = 5
  domain_name: str | None = None
  certificate_arn: str | None = None
  removal_policy: str = "retain"

  def __post_init__(self) -> None:
    if self.collision_policy not in COLLISION_POLICIES:
      raise ValueError(
        f"collision_policy must be one of {COLLISION_POLICIES}, "
        f"got {self.collision_policy!r}"
      )
    if self.removal_policy not in REMOVAL_POLICIES:
      raise ValueError(
        f"removal_policy must be one of {REMOVAL_POLICIES}, got {self.removal_policy!r}"
      )
    if not 1 <= self.max_slug_length <= MAX_SLUG_LENGTH:
      raise ValueError(f"max_slug_length must be between 1 and {MAX_SLUG_LENGTH}")

  def router_config(self) -> RouterConfig:
    """Settings baked into the edge router."""
    return RouterConfig(index_document=self.index_document, spa_mode=self.spa_mode)


@dataclass
class Config:
  """Multi-site configuration."""

  sites: list[SiteConfig] = field(default_factory=list)

  @classmethod
  def from_yaml(cls, path: Path | str = "sites.yaml") -> "Config":
    """Load configuration from YAML file."""
    with open(path) as f:
      data = yaml.safe_load(f) or {}

    defaults = data.get("defaults", {})
    sites: list[SiteConfig] = []

    for site_data in data.get("sites", []):
      # Merge defaults with site-specific config
      merged: dict[str, Any] = {**defaults, **site_data}

      primary = merged.get("primary_branches", list(DEFAULT_PRIMARY_BRANCHES))
      if isinstance(primary, str):
        primary = [primary]

      sites.append(
        SiteConfig(
          name=merged["name"],
          bucket=merged["bucket"],
          distribution_id=merged.get("distribution_id"),
          region=merged.get("region", "us-east-1"),
          primary_branches=[str(b) for b in primary],
          index_document=merged.get("index_document", "index.html"),
          spa_mode=bool(merged.get("spa_mode", False)),
          max_slug_length=int(merged.get("max_slug_length", MAX_SLUG_LENGTH)),
          collision_policy=str(merged.get("collision_policy", REJECT)).lower(),
          lock_ttl_seconds=int(merged.get("lock_ttl_seconds", 900)),
          invalidation_attempts=int(merged.get("invalidation_attempts", 5)),
          domain_name=merged.get("domain_name"),
          certificate_arn=merged.get("certificate_arn"),
          removal_policy=str(merged.get("removal_policy", "retain")).lower(),
        )
      )

    return cls(sites=sites)

  def site(self, name: str | None = None) -> SiteConfig:
    """Look up a site by name. Without a name, the only site is returned."""
    if name is None:
      if len(self.sites) != 1:
        raise KeyError(f"Specify a site; {len(self.sites)} sites are configured")
      return self.sites[0]
    for site in self.sites:
      if site.name == name:
        return site
    raise KeyError(f"Site {name!r} is not configured")
