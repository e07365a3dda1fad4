"""
IdeaFlow
Blueprint helpers shared by the ideas and passport APIs.

- Service lookup from the app extension registry.
- Identity headers set by the auth layer in front of the app:
    X-User        actor display name
    X-Units       comma-separated unit ids the session may act for
    X-University  tenant the session belongs to
  A request without X-Units is a trusted system call.
- JSON body parsing, list pagination, taxonomy error handlers.
"""

import logging

from flask import current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from ideaflow.core.actor import UnitMembership
from ideaflow.core.exceptions import DomainError, StoreError
from ideaflow.utils.errors import E, api_error, exception_response

logger = logging.getLogger(__name__)


class BadRequestBody(Exception):
    """Raised when a mutating request has no JSON object body."""


def services():
    """Return the ``{"pipeline", "passport", "events", "feed", "store"}`` registry."""
    return current_app.extensions["ideaflow"]


def current_actor(default="System"):
    """Best-effort actor name (no auth enforcement)."""
    return (
        request.headers.get("X-User", "").strip()
        or request.headers.get("X-Forwarded-User", "").strip()
        or default
    )


def current_membership():
    """UnitMembership from the identity headers, or None for trusted calls."""
    units = request.headers.get("X-Units")
    if units is None:
        return None
    return UnitMembership.from_values(units, request.headers.get("X-University"))


def json_body():
    """Return the request's JSON object. Raises BadRequestBody otherwise."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise BadRequestBody("Request body must be a JSON object")
    return data


def paginate_items(items, default_limit=200, max_limit=1000):
    """Apply limit/offset pagination to an in-memory list.

    Query params:
        limit  — max items (default 200, capped at max_limit; negative means default)
        offset — starting position (default 0)

    Returns:
        (items_page, total_count)
    """
    total = len(items)
    try:
        limit = int(request.args.get("limit", default_limit))
    except (ValueError, TypeError):
        limit = default_limit
    if limit < 0:
        limit = default_limit
    limit = min(limit, max_limit)
    try:
        offset = max(int(request.args.get("offset", 0)), 0)
    except (ValueError, TypeError):
        offset = 0
    return items[offset:offset + limit], total


def register_error_handlers(bp):
    """Map the exception taxonomy to standard JSON error responses on ``bp``."""

    @bp.errorhandler(BadRequestBody)
    def _handle_bad_body(error):
        return api_error(E.VALIDATION_REQUIRED, str(error), status=400)

    @bp.errorhandler(DomainError)
    def _handle_domain(error):
        return exception_response(error)

    @bp.errorhandler(StoreError)
    def _handle_store(error):
        logger.warning("Store error on %s: %s", request.endpoint, error)
        return exception_response(error)

    @bp.errorhandler(Exception)
    def _handle_unexpected(error):
        if isinstance(error, HTTPException):
            return jsonify({"error": error.description}), error.code
        logger.exception("Unexpected error in %s endpoint=%s", bp.name, request.endpoint)
        return api_error(E.INTERNAL, "Internal server error", status=500)
