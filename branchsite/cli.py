"""Command line entry point used by CI workflows."""

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from .config import Config, SiteConfig
from .errors import BranchsiteError, DeployInProgress
from .events import DELETED, parse_github_event
from .models import ArtifactTree
from .router import RouterConfig, resolve
from .site import PreviewSite
from .slug import DEFAULT_PRIMARY_BRANCHES, MAX_SLUG_LENGTH, sanitize

logger = logging.getLogger(__name__)

# sysexits.h EX_TEMPFAIL, tells CI the deploy can be retried
EXIT_RETRY = 75


def setup_logging(verbosity: int = 0) -> None:
  level = logging.DEBUG if verbosity >= 1 else logging.INFO
  logging.basicConfig(
    level=level,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    stream=sys.stderr,
  )


def _load_site(args: argparse.Namespace) -> SiteConfig:
  config = Config.from_yaml(Path(args.config))
  return config.site(args.site)


def _optional_site(args: argparse.Namespace) -> SiteConfig | None:
  if not Path(args.config).exists():
    return None
  return _load_site(args)


def cmd_slug(args: argparse.Namespace) -> int:
  """Print the slug for a branch."""
  site = _optional_site(args)
  primary = args.primary or (
    site.primary_branches if site else list(DEFAULT_PRIMARY_BRANCHES)
  )
  max_length = site.max_slug_length if site else MAX_SLUG_LENGTH
  print(sanitize(args.branch, primary_branches=primary, max_length=max_length))
  return 0


def cmd_resolve(args: argparse.Namespace) -> int:
  """Print the object path a request URI is served from."""
  site = _optional_site(args)
  config = site.router_config() if site else RouterConfig()
  if args.index_document:
    config = RouterConfig(index_document=args.index_document, spa_mode=config.spa_mode)
  if args.spa:
    config = RouterConfig(index_document=config.index_document, spa_mode=True)
  print(resolve(args.uri, config))
  return 0


def cmd_deploy(args: argparse.Namespace) -> int:
  """Deploy a build directory for a branch."""
  site = PreviewSite.from_config(_load_site(args))
  artifacts = ArtifactTree.from_directory(args.directory)
  result = site.deploy_branch(
    args.branch,
    artifacts,
    commit=args.commit,
    is_spa=args.spa,
    timeout=args.timeout,
    wait=args.wait,
  )
  print(f"✓ Deployed {args.branch} to {result.namespace}")
  print(f"  Files: {len(result.uploaded)}")
  if result.invalidation_id:
    print(f"  Invalidation: {result.invalidation_id}")
  return 0


def cmd_cleanup(args: argparse.Namespace) -> int:
  """Remove the preview of a deleted branch."""
  site = PreviewSite.from_config(_load_site(args))
  result = site.cleanup_branch(args.branch, timeout=args.timeout, wait=args.wait)
  if result.noop:
    print(f"✓ Nothing deployed for {args.branch}")
  else:
    print(f"✓ Removed {result.deleted} objects from {result.namespace}")
  return 0


def cmd_list(args: argparse.Namespace) -> int:
  """List deployed namespaces."""
  site = PreviewSite.from_config(_load_site(args))
  records = site.deployments()
  if args.json:
    print(
      json.dumps(
        [json.loads(r.to_json()) | {"namespace": r.namespace} for r in records],
        indent=2,
      )
    )
    return 0
  if not records:
    print("No deployments found.")
  for record in records:
    print(
      f"{record.namespace:<40} {record.branch_ref or '-':<30} "
      f"{record.status:<10} {record.last_written_at or '-'}"
    )
  return 0


def cmd_handle_event(args: argparse.Namespace) -> int:
  """Deploy or clean up according to a GitHub Actions event."""
  event_name = args.event_name or os.environ.get("GITHUB_EVENT_NAME", "")
  event_path = args.event_path or os.environ.get("GITHUB_EVENT_PATH")
  if not event_path:
    print("Error: no event payload (set GITHUB_EVENT_PATH)", file=sys.stderr)
    return 2
  with open(event_path) as f:
    payload = json.load(f)

  event = parse_github_event(event_name, payload)
  if event is None:
    print(f"Ignoring {event_name or 'unknown'} event")
    return 0

  if event.action == DELETED:
    args.branch = event.branch_ref
    return cmd_cleanup(args)

  if not args.directory:
    print("Error: --directory is required for push events", file=sys.stderr)
    return 2
  args.branch = event.branch_ref
  args.commit = args.commit or event.commit
  return cmd_deploy(args)


def build_parser() -> argparse.ArgumentParser:
  parser = argparse.ArgumentParser(
    prog="branchsite", description="Branch preview deployments for static sites"
  )
  parser.add_argument(
    "--config", default="sites.yaml", help="Sites configuration (default: sites.yaml)"
  )
  parser.add_argument("--site", help="Site name when several are configured")
  parser.add_argument(
    "-v", "--verbose", action="count", default=0, help="Enable debug logging"
  )
  sub = parser.add_subparsers(dest="command", required=True)

  slug = sub.add_parser("slug", help="Print the slug for a branch")
  slug.add_argument("branch")
  slug.add_argument(
    "--primary", action="append", help="Primary branch name (repeatable)"
  )
  slug.set_defaults(func=cmd_slug)

  res = sub.add_parser("resolve", help="Show how a request URI is rewritten")
  res.add_argument("uri")
  res.add_argument("--index-document")
  res.add_argument("--spa", action="store_true", help="Enable SPA fallback")
  res.set_defaults(func=cmd_resolve)

  def lifecycle_options(p: argparse.ArgumentParser) -> None:
    p.add_argument("--timeout", type=float, help="Abort after this many seconds")
    p.add_argument(
      "--wait",
      type=float,
      default=0.0,
      help="Seconds to wait for a running operation on the same branch",
    )

  deploy = sub.add_parser("deploy", help="Deploy a build directory for a branch")
  deploy.add_argument("branch")
  deploy.add_argument("directory")
  deploy.add_argument("--commit")
  deploy.add_argument(
    "--spa", action=argparse.BooleanOptionalAction, default=None, help="SPA build"
  )
  lifecycle_options(deploy)
  deploy.set_defaults(func=cmd_deploy)

  cleanup = sub.add_parser("cleanup", help="Remove a deleted branch's preview")
  cleanup.add_argument("branch")
  lifecycle_options(cleanup)
  cleanup.set_defaults(func=cmd_cleanup)

  lst = sub.add_parser("list", help="List deployed branches")
  lst.add_argument("--json", action="store_true")
  lst.set_defaults(func=cmd_list)

  event = sub.add_parser("handle-event", help="Act on a GitHub Actions event")
  event.add_argument("--event-name")
  event.add_argument("--event-path")
  event.add_argument("--directory", help="Build output for push events")
  event.add_argument("--commit")
  event.add_argument("--spa", action=argparse.BooleanOptionalAction, default=None)
  lifecycle_options(event)
  event.set_defaults(func=cmd_handle_event)

  return parser


def main(argv: list[str] | None = None) -> int:
  """Run the CLI and return an exit code."""
  parser = build_parser()
  args = parser.parse_args(argv)
  setup_logging(args.verbose)

  try:
    return int(args.func(args))
  except DeployInProgress as e:
    print(f"Busy: {e}", file=sys.stderr)
    return EXIT_RETRY
  except BranchsiteError as e:
    print(f"Error: {e}", file=sys.stderr)
    return 1
  except (KeyError, ValueError, FileNotFoundError) as e:
    print(f"Error: {e}", file=sys.stderr)
    return 2


if __name__ == "__main__":
  sys.exit(main())
