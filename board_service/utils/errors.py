"""Standardised API error responses.

Usage
-----
    from board_service.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Story not found")
    return api_error(E.UNAUTHENTICATED, "Bearer token required")
"""

from __future__ import annotations

from flask import jsonify


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error ``type`` values returned to clients.

    CRITICAL_DEPENDENCY and REASSIGNMENT_NEEDED are the exact strings the
    user-management screen switches on.
    """

    VALIDATION = "ERR_VALIDATION"
    NOT_FOUND = "ERR_NOT_FOUND"
    FORBIDDEN = "ERR_FORBIDDEN"
    UNAUTHENTICATED = "ERR_UNAUTHENTICATED"
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"
    CRITICAL_DEPENDENCY = "CRITICAL_DEPENDENCY"
    REASSIGNMENT_NEEDED = "REASSIGNMENT_NEEDED"
    TRANSIENT = "ERR_TRANSIENT"
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION: 422,
    E.NOT_FOUND: 404,
    E.FORBIDDEN: 403,
    E.UNAUTHENTICATED: 401,
    E.CONFLICT_DUPLICATE: 409,
    E.CRITICAL_DEPENDENCY: 409,
    E.REASSIGNMENT_NEEDED: 409,
    E.TRANSIENT: 503,
    E.INTERNAL: 500,
}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation.
    status : int, optional
        HTTP status override. Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra structured payload (field errors, blocking issue ids, ...).

    Returns
    -------
    tuple[Response, int]
    """

    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "message": message,
        "type": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status
