"""Web service for block visibility checks.

The editor posts a block's visibility attributes together with the
request facts it simulates to /preview. Pages post their blocks to
/render, which evaluates them against the real incoming request.
"""

import logging
import os
from functools import wraps

from flask import Flask, jsonify, request

from block_visibility.adapters import context_from_preview, context_from_request, render_blocks
from block_visibility.config import get_settings
from block_visibility.controls import registry
from block_visibility.engine import explain_block_visibility

app = Flask(__name__)

# Configuration via environment variables
AUTH_TOKEN = os.environ.get("PREVIEW_AUTH_TOKEN", "")
ROLES_HEADER = "X-User-Roles"

logger = logging.getLogger(__name__)
logging.basicConfig(format="%(asctime)s - %(levelname)s - %(message)s")

settings = get_settings()


def require_auth(f):
    """Decorator to require auth token for editor endpoints."""
    @wraps(f)
    def decorated(*args, **kwargs):
        if AUTH_TOKEN:
            token = request.headers.get("Authorization", "").replace("Bearer ", "")
            if token != AUTH_TOKEN:
                logger.warning(f"Rejected unauthorized request to {request.path}")
                return jsonify({"error": "Unauthorized"}), 401
        return f(*args, **kwargs)
    return decorated


def request_data() -> dict:
    """JSON body of the current request, {} unless it is an object."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        if data is not None:
            logger.warning(f"Ignoring non-object JSON body on {request.path}")
        return {}
    return data


def request_roles() -> list[str]:
    """Roles of the current user, as set by the upstream auth layer."""
    header = request.headers.get(ROLES_HEADER, "")
    return [role.strip() for role in header.split(",") if role.strip()]


@app.route("/preview", methods=["POST"])
@require_auth
def preview():
    """Evaluate a block against facts simulated by the editor."""
    data = request_data()
    attributes = data.get("attributes") or {}
    context = context_from_preview(data.get("context") or {}, data.get("integrations"))

    visible, results = explain_block_visibility(attributes, context, settings)
    return jsonify({
        "visible": visible,
        "controls": [
            {
                "control": result.identifier,
                "state": result.state.value,
                "description": result.description,
                "source": result.source,
            }
            for result in results
        ],
    })


@app.route("/render", methods=["POST"])
def render():
    """Render the visible blocks of a page for the current request."""
    data = request_data()
    blocks = data.get("blocks") or []
    if not isinstance(blocks, list):
        return jsonify({"error": "blocks must be a list"}), 400

    context = context_from_request(
        request,
        user_roles=request_roles(),
        integrations=data.get("integrations"),
        metadata=data.get("metadata"),
        location=data.get("location"),
        timezone=data.get("timezone", "UTC"),
    )
    html = render_blocks(
        [block for block in blocks if isinstance(block, dict)], context, settings
    )
    return html, 200, {"Content-Type": "text/html; charset=utf-8"}


@app.route("/controls")
def controls():
    """List registered controls and whether they are enabled."""
    return jsonify({
        "controls": [
            {
                "identifier": definition.identifier,
                "label": definition.label,
                "enabled": settings.is_control_enabled(definition.slug),
                "requires_integration": definition.requires_integration,
            }
            for definition in registry.definitions()
        ]
    })


if __name__ == "__main__":
    # For development only
    app.run(host="127.0.0.1", port=8080, debug=True)
