"""Flask receiver for GitHub branch deletion webhooks.

Pushes are deployed from CI where the build output lives; this endpoint only
reacts to branch deletion so previews disappear even if no workflow runs.
"""

import hashlib
import hmac
import logging
import os
from typing import Any

from flask import Flask, jsonify, request

from .errors import (
  BranchsiteError,
  DeployInProgress,
  InvalidBranchName,
  ProtectedNamespace,
  SlugCollision,
)
from .events import DELETED, parse_github_event
from .site import PreviewSite

logger = logging.getLogger(__name__)


def verify_signature(secret: str, body: bytes, signature: str | None) -> bool:
  """Check an X-Hub-Signature-256 header against the raw request body."""
  if not signature or not signature.startswith("sha256="):
    return False
  expected = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
  return hmac.compare_digest(expected, signature.removeprefix("sha256="))


def create_app(site: PreviewSite, secret: str | None = None) -> Flask:
  """Create the webhook app for one site."""
  app = Flask(__name__)
  webhook_secret = secret if secret is not None else os.environ.get(
    "GITHUB_WEBHOOK_SECRET"
  )

  @app.route("/health")
  def health() -> Any:
    """Liveness probe."""
    return jsonify({"status": "ok", "site": site.config.name})

  @app.route("/webhooks/github", methods=["POST"])
  def github_webhook() -> Any:
    """Clean up previews of deleted branches."""
    body = request.get_data()
    if webhook_secret and not verify_signature(
      webhook_secret, body, request.headers.get("X-Hub-Signature-256")
    ):
      return jsonify({"error": "Invalid signature"}), 401

    event_name = request.headers.get("X-GitHub-Event", "")
    if event_name == "ping":
      return jsonify({"message": "pong"})

    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
      return jsonify({"error": "Expected a JSON payload"}), 400

    event = parse_github_event(event_name, payload)
    if event is None or event.action != DELETED:
      return jsonify({"message": f"Ignored {event_name or 'unknown'} event"}), 202

    try:
      result = site.cleanup_branch(event.branch_ref)
    except InvalidBranchName as e:
      return jsonify({"error": str(e)}), 400
    except (ProtectedNamespace, SlugCollision, DeployInProgress) as e:
      logger.warning("Cleanup of %s refused: %s", event.branch_ref, e)
      return jsonify({"error": str(e)}), 409
    except BranchsiteError as e:
      logger.error("Cleanup of %s failed: %s", event.branch_ref, e)
      return jsonify({"error": "Cleanup failed"}), 500

    return jsonify(
      {
        "success": True,
        "branch": event.branch_ref,
        "slug": result.slug,
        "deleted": result.deleted,
        "noop": result.noop,
      }
    )

  return app
