"""JSON error envelope used by every blueprint.

    {"error": "Winner is invalid", "code": "ERR_VALIDATION_INVALID",
     "details": {"name": "required"}}
"""

from __future__ import annotations

from flask import jsonify

from pitchboard.core.exceptions import NotFoundError, ValidationError


class E:
    """Machine-readable error codes."""

    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"
    NOT_FOUND = "ERR_NOT_FOUND"
    INTERNAL = "ERR_INTERNAL"


_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.NOT_FOUND: 404,
    E.INTERNAL: 500,
}


def api_error(code: str, message: str, *, status: int | None = None, details: dict | None = None):
    """``(response, status)`` tuple carrying the error envelope."""
    body: dict = {"error": message, "code": code}
    if details:
        body["details"] = details
    return jsonify(body), status or _STATUS.get(code, 400)


def error_from_exception(exc: Exception):
    """Map a service exception onto the envelope."""
    if isinstance(exc, ValidationError):
        return api_error(E.VALIDATION_INVALID, str(exc), details=exc.details)
    if isinstance(exc, NotFoundError):
        return api_error(E.NOT_FOUND, str(exc))
    return api_error(E.INTERNAL, "Internal server error")
