"""Standardised API error responses.

Usage
-----
    from ideaflow.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Idea not found")
    return api_error(E.VALIDATION_REQUIRED, "reason is required")
"""

from __future__ import annotations

from flask import jsonify

from ideaflow.core.exceptions import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDenied,
    StaleWriteError,
    StoreUnavailableError,
    ValidationError,
)


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants.

    Convention: ERR_ prefix for every code. A UI layer maps each code to
    its own message/toast.
    """

    # Validation – HTTP 400 (malformed request) / 422 (business rule)
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Conflict – HTTP 409
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"
    CONFLICT_STATE = "ERR_CONFLICT_STATE"
    CONFLICT_STALE = "ERR_CONFLICT_STALE"

    # Permissions – HTTP 403
    FORBIDDEN = "ERR_FORBIDDEN"

    # Server – HTTP 5xx
    STORE_UNAVAILABLE = "ERR_STORE_UNAVAILABLE"
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 422,
    E.NOT_FOUND: 404,
    E.CONFLICT_DUPLICATE: 409,
    E.CONFLICT_STATE: 409,
    E.CONFLICT_STALE: 409,
    E.FORBIDDEN: 403,
    E.STORE_UNAVAILABLE: 503,
    E.INTERNAL: 500,
}

# Exception type → error code. Order matters: first isinstance match wins.
_EXCEPTION_CODES: tuple[tuple[type[Exception], str], ...] = (
    (ValidationError, E.VALIDATION_INVALID),
    (PermissionDenied, E.FORBIDDEN),
    (NotFoundError, E.NOT_FOUND),
    (InvalidTransitionError, E.CONFLICT_STATE),
    (ConflictError, E.CONFLICT_DUPLICATE),
    (StaleWriteError, E.CONFLICT_STALE),
    (StoreUnavailableError, E.STORE_UNAVAILABLE),
)


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
    retryable: bool = False,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for developers / UI.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra structured payload (field errors, transition info, ...).
    retryable : bool
        Whether repeating the same request may succeed.

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """

    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "code": code,
        "retryable": retryable,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status


def code_for_exception(exc: Exception) -> str:
    """Return the ``E.*`` code for a domain or store exception."""
    for exc_type, code in _EXCEPTION_CODES:
        if isinstance(exc, exc_type):
            return code
    return E.INTERNAL


def error_details(exc: Exception) -> dict | None:
    """Structured details for the error body, per exception type."""
    if isinstance(exc, ValidationError):
        return exc.details or None
    if isinstance(exc, InvalidTransitionError):
        return {"action": exc.action, "current_status": exc.current_status}
    if isinstance(exc, PermissionDenied):
        return {"unit": exc.unit_id, "capability": exc.capability}
    return None


def exception_response(exc: Exception):
    """Map a taxonomy exception to its standard JSON error response."""
    return api_error(
        code_for_exception(exc),
        str(exc),
        details=error_details(exc),
        retryable=bool(getattr(exc, "retryable", False)),
    )
