"""
Blueprint registry and shared request helpers.
"""

from flask import g, request

from board_service.core.context import Actor
from board_service.core.exceptions import AuthenticationError, AuthorizationError, ValidationError
from board_service.models import db
from board_service.models.auth import User


def load_actor():
    """before_request hook: resolve the token's user into an Actor on ``g.actor``.

    Roles are resolved here once per request; views receive the Actor and
    never look at raw role tags.
    """
    g.actor = None
    user_id = getattr(g, "jwt_user_id", None)
    if user_id is None:
        raise AuthenticationError("Bearer token required")
    user = db.session.get(User, user_id)
    if user is None:
        raise AuthenticationError("Token refers to an unknown user")
    if not user.is_active:
        raise AuthorizationError("User account is inactive")
    g.actor = Actor.from_user(user)


def current_actor() -> Actor:
    actor = getattr(g, "actor", None)
    if actor is None:
        load_actor()
        actor = g.actor
    return actor


def json_body() -> dict:
    """The request's JSON object body; {} when absent."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def paginate_list(items, default_limit=200, max_limit=1000):
    """Apply limit/offset pagination to an already-ordered list.

    Query params:
        limit  — max items (default 200, capped at max_limit)
        offset — starting position (default 0)

    Returns:
        (items_page, total_count)
    """
    total = len(items)
    try:
        limit = min(int(request.args.get("limit", default_limit)), max_limit)
    except (ValueError, TypeError):
        limit = default_limit
    try:
        offset = max(int(request.args.get("offset", 0)), 0)
    except (ValueError, TypeError):
        offset = 0
    return items[offset:offset + max(limit, 0)], total
