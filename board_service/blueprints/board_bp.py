"""
Board Blueprint — issues, the kanban state machine and sprints.

Endpoints:
    Issues:
        GET    /api/v1/stories/<sid>/issues              — Issues of a story
        POST   /api/v1/stories/<sid>/issues              — Create (SM)
        GET    /api/v1/stories/<sid>/assignees           — Users assigned across the story
        GET    /api/v1/projects/<pid>/issues             — Filter ?status= ?sprint_id= ?assignee_id=
        GET    /api/v1/issues/<id>                       — Detail
        PUT    /api/v1/issues/<id>                       — Update (SM)
        DELETE /api/v1/issues/<id>                       — Delete (SM)
        PATCH  /api/v1/issues/<id>/status                — Move column {status, board_order?}
        PATCH  /api/v1/issues/<id>/sprint                — {sprint_id | null}
        POST   /api/v1/issues/<id>/unblock               — Back to the column it was blocked from

    Sprints:
        GET    /api/v1/projects/<pid>/sprints            — List
        POST   /api/v1/projects/<pid>/sprints            — Create (SM)
        GET    /api/v1/sprints/<id>                      — Detail (+ issues)
        PUT    /api/v1/sprints/<id>                      — Update (SM)
        DELETE /api/v1/sprints/<id>                      — Delete, issues back to pool (SM)

    Boards:
        GET    /api/v1/projects/<pid>/board              — Kanban (?sprint_id=)
        GET    /api/v1/sprints/<id>/board                — Kanban of one sprint
"""

import logging

from flask import Blueprint, jsonify, request

from board_service.blueprints import current_actor, json_body, load_actor, paginate_list
from board_service.core.exceptions import ValidationError
from board_service.services import board_service, sprint_service

logger = logging.getLogger(__name__)

board_bp = Blueprint("board", __name__, url_prefix="/api/v1")
board_bp.before_request(load_actor)


# ═════════════════════════════════════════════════════════════════════════════
# ISSUES
# ═════════════════════════════════════════════════════════════════════════════

@board_bp.route("/stories/<int:story_id>/issues", methods=["GET"])
def list_story_issues(story_id):
    return jsonify([i.to_dict() for i in board_service.list_issues_for_story(story_id)])


@board_bp.route("/stories/<int:story_id>/issues", methods=["POST"])
def create_issue(story_id):
    issue = board_service.create_issue(story_id, json_body(), current_actor())
    return jsonify(issue.to_dict()), 201


@board_bp.route("/stories/<int:story_id>/assignees", methods=["GET"])
def list_story_assignees(story_id):
    return jsonify([u.to_dict(include_roles=False) for u in board_service.list_story_assignees(story_id)])


@board_bp.route("/projects/<int:project_id>/issues", methods=["GET"])
def list_project_issues(project_id):
    """List issues of a project.

    Query params:
        status      — board column
        sprint_id   — sprint (use 0 for unassigned)
        assignee_id — user id
    """
    issues = board_service.list_issues_for_project(
        project_id,
        status=request.args.get("status"),
        sprint_id=request.args.get("sprint_id", type=int),
        assignee_id=request.args.get("assignee_id", type=int),
    )
    page, total = paginate_list(issues)
    return jsonify({"items": [i.to_dict() for i in page], "total": total})


@board_bp.route("/issues/<int:issue_id>", methods=["GET"])
def get_issue(issue_id):
    return jsonify(board_service.get_issue(issue_id).to_dict())


@board_bp.route("/issues/<int:issue_id>", methods=["PUT"])
def update_issue(issue_id):
    issue = board_service.update_issue(issue_id, json_body(), current_actor())
    return jsonify(issue.to_dict())


@board_bp.route("/issues/<int:issue_id>", methods=["DELETE"])
def delete_issue(issue_id):
    board_service.delete_issue(issue_id, current_actor())
    return jsonify({"message": "Issue deleted"})


@board_bp.route("/issues/<int:issue_id>/status", methods=["PATCH"])
def move_issue(issue_id):
    """Drop an issue onto another board column."""
    data = json_body()
    if "status" not in data:
        raise ValidationError("status is required", details={"status": "required"})
    issue = board_service.move_issue(
        issue_id, data["status"], current_actor(), board_order=data.get("board_order"),
    )
    return jsonify(issue.to_dict())


@board_bp.route("/issues/<int:issue_id>/sprint", methods=["PATCH"])
def assign_sprint(issue_id):
    data = json_body()
    if "sprint_id" not in data:
        raise ValidationError("sprint_id is required (null to unassign)", details={"sprint_id": "required"})
    issue = board_service.assign_to_sprint(issue_id, data["sprint_id"], current_actor())
    return jsonify(issue.to_dict())


@board_bp.route("/issues/<int:issue_id>/unblock", methods=["POST"])
def unblock_issue(issue_id):
    issue = board_service.unblock_issue(issue_id, current_actor())
    return jsonify(issue.to_dict())


# ═════════════════════════════════════════════════════════════════════════════
# SPRINTS
# ═════════════════════════════════════════════════════════════════════════════

@board_bp.route("/projects/<int:project_id>/sprints", methods=["GET"])
def list_sprints(project_id):
    return jsonify([s.to_dict() for s in sprint_service.list_sprints(project_id)])


@board_bp.route("/projects/<int:project_id>/sprints", methods=["POST"])
def create_sprint(project_id):
    sprint = sprint_service.create_sprint(project_id, json_body(), current_actor())
    return jsonify(sprint.to_dict()), 201


@board_bp.route("/sprints/<int:sprint_id>", methods=["GET"])
def get_sprint(sprint_id):
    return jsonify(sprint_service.get_sprint(sprint_id).to_dict(include_issues=True))


@board_bp.route("/sprints/<int:sprint_id>", methods=["PUT"])
def update_sprint(sprint_id):
    sprint = sprint_service.update_sprint(sprint_id, json_body(), current_actor())
    return jsonify(sprint.to_dict())


@board_bp.route("/sprints/<int:sprint_id>", methods=["DELETE"])
def delete_sprint(sprint_id):
    released = sprint_service.delete_sprint(sprint_id, current_actor())
    return jsonify({"message": "Sprint deleted", "unassigned_issues": released})


# ═════════════════════════════════════════════════════════════════════════════
# BOARDS
# ═════════════════════════════════════════════════════════════════════════════

@board_bp.route("/projects/<int:project_id>/board", methods=["GET"])
def project_board(project_id):
    sprint_id = request.args.get("sprint_id", type=int)
    return jsonify(board_service.compute_board(project_id, sprint_id=sprint_id))


@board_bp.route("/sprints/<int:sprint_id>/board", methods=["GET"])
def sprint_board(sprint_id):
    sprint = sprint_service.get_sprint(sprint_id)
    return jsonify(board_service.compute_board(sprint.project_id, sprint_id=sprint.id))
