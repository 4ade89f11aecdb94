"""
Projects Blueprint — project CRUD and developer membership.

Endpoints:
    GET    /api/v1/projects                          — List (?status=, ?mine=true)
    POST   /api/v1/projects                          — Create (OWNER/ADMIN/PO)
    GET    /api/v1/projects/<pid>                    — Detail with members
    PUT    /api/v1/projects/<pid>                    — Edit (OWNER/ADMIN, owning PO)
    POST   /api/v1/projects/<pid>/members            — Add developer {user_id} (SM)
    DELETE /api/v1/projects/<pid>/members/<uid>      — Remove developer (SM)
"""

import logging

from flask import Blueprint, jsonify, request

from board_service.blueprints import current_actor, json_body, load_actor
from board_service.services import project_service

logger = logging.getLogger(__name__)

projects_bp = Blueprint("projects", __name__, url_prefix="/api/v1")
projects_bp.before_request(load_actor)


@projects_bp.route("/projects", methods=["GET"])
def list_projects():
    """List projects.

    Query params:
        status — ACTIVE | COMPLETED | ARCHIVED
        mine   — true: only projects the caller owns, runs or is a member of
    """
    member_id = None
    if (request.args.get("mine") or "").lower() in ("1", "true", "yes"):
        member_id = current_actor().user_id
    projects = project_service.list_projects(status=request.args.get("status"), member_id=member_id)
    return jsonify([p.to_dict() for p in projects])


@projects_bp.route("/projects", methods=["POST"])
def create_project():
    project = project_service.create_project(json_body(), current_actor())
    return jsonify(project.to_dict(include_members=True)), 201


@projects_bp.route("/projects/<int:project_id>", methods=["GET"])
def get_project(project_id):
    return jsonify(project_service.get_project(project_id).to_dict(include_members=True))


@projects_bp.route("/projects/<int:project_id>", methods=["PUT"])
def update_project(project_id):
    project = project_service.update_project(project_id, json_body(), current_actor())
    return jsonify(project.to_dict(include_members=True))


@projects_bp.route("/projects/<int:project_id>/members", methods=["POST"])
def add_member(project_id):
    data = json_body()
    project = project_service.add_member(project_id, data.get("user_id"), current_actor())
    return jsonify(project.to_dict(include_members=True))


@projects_bp.route("/projects/<int:project_id>/members/<int:user_id>", methods=["DELETE"])
def remove_member(project_id, user_id):
    project = project_service.remove_member(project_id, user_id, current_actor())
    return jsonify(project.to_dict(include_members=True))
