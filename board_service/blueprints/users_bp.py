"""
Users Blueprint — user administration and the caller's own profile.

Endpoints:
    GET    /api/v1/users                         — List users (?active=, ?role=)
    POST   /api/v1/users                         — Create user (OWNER/ADMIN)
    GET    /api/v1/users/<id>                    — Detail
    PUT    /api/v1/users/<id>                    — Edit name / email / roles (OWNER/ADMIN; own name / email for anyone)
    DELETE /api/v1/users/<id>                    — Deactivate (?replacement_user_id=)
    PUT    /api/v1/users/<id>/activate           — Re-activate (OWNER/ADMIN)
    GET    /api/v1/me                            — The authenticated user
    PUT    /api/v1/me                            — Edit own name / email
"""

import logging

from flask import Blueprint, jsonify, request

from board_service.blueprints import current_actor, json_body, load_actor, paginate_list
from board_service.services import user_service

logger = logging.getLogger(__name__)

users_bp = Blueprint("users", __name__, url_prefix="/api/v1")
users_bp.before_request(load_actor)


def _bool_arg(name):
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    return raw.strip().lower() in ("1", "true", "yes")


@users_bp.route("/users", methods=["GET"])
def list_users():
    users = user_service.list_users(active=_bool_arg("active"), role=request.args.get("role") or None)
    page, total = paginate_list(users)
    return jsonify({"items": [u.to_dict() for u in page], "total": total})


@users_bp.route("/users", methods=["POST"])
def create_user():
    user = user_service.create_user(json_body(), current_actor())
    return jsonify(user.to_dict()), 201


@users_bp.route("/users/<int:user_id>", methods=["GET"])
def get_user(user_id):
    return jsonify(user_service.get_user(user_id).to_dict())


@users_bp.route("/users/<int:user_id>", methods=["PUT"])
def update_user(user_id):
    user = user_service.update_user(user_id, json_body(), current_actor())
    return jsonify(user.to_dict())


@users_bp.route("/users/<int:user_id>", methods=["DELETE"])
def deactivate_user(user_id):
    """Deactivate a user.

    409 CRITICAL_DEPENDENCY    — PO/SM of an active project
    409 REASSIGNMENT_NEEDED    — unfinished issues; retry with ?replacement_user_id=
    """
    replacement = request.args.get("replacement_user_id")
    if replacement is None:
        replacement = json_body().get("replacement_user_id")
    user = user_service.deactivate_user(user_id, current_actor(), replacement_user_id=replacement)
    return jsonify(user.to_dict())


@users_bp.route("/users/<int:user_id>/activate", methods=["PUT"])
def activate_user(user_id):
    user = user_service.activate_user(user_id, current_actor())
    return jsonify(user.to_dict())


@users_bp.route("/me", methods=["GET"])
def me():
    actor = current_actor()
    return jsonify(user_service.get_user(actor.user_id).to_dict())


@users_bp.route("/me", methods=["PUT"])
def update_me():
    actor = current_actor()
    return jsonify(user_service.update_user(actor.user_id, json_body(), actor).to_dict())
