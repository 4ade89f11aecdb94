"""
Backlog Blueprint — epics, stories (priority-ranked) and story comments.

Endpoints:
    Epics:
        GET    /api/v1/projects/<pid>/epics              — List by epic_number
        POST   /api/v1/projects/<pid>/epics              — Create (owning PO)
        GET    /api/v1/epics/<id>                        — Detail (+ stories)
        PUT    /api/v1/epics/<id>                        — Update
        DELETE /api/v1/epics/<id>                        — Delete with its stories

    Stories:
        GET    /api/v1/projects/<pid>/stories            — All, ranked (?epic_id=, ?status=)
        GET    /api/v1/projects/<pid>/backlog            — Incomplete only, ranked
        POST   /api/v1/projects/<pid>/stories            — Create (owning PO)
        GET    /api/v1/stories/<id>                      — Detail (+ issues)
        PUT    /api/v1/stories/<id>                      — Update
        DELETE /api/v1/stories/<id>                      — Delete

    Comments:
        GET    /api/v1/stories/<id>/comments             — Thread, oldest first
        POST   /api/v1/stories/<id>/comments             — Add {content}
"""

import logging

from flask import Blueprint, jsonify, request

from board_service.blueprints import current_actor, json_body, load_actor
from board_service.services import backlog_service

logger = logging.getLogger(__name__)

backlog_bp = Blueprint("backlog", __name__, url_prefix="/api/v1")
backlog_bp.before_request(load_actor)


# ═════════════════════════════════════════════════════════════════════════════
# EPICS
# ═════════════════════════════════════════════════════════════════════════════

@backlog_bp.route("/projects/<int:project_id>/epics", methods=["GET"])
def list_epics(project_id):
    return jsonify([e.to_dict() for e in backlog_service.list_epics(project_id)])


@backlog_bp.route("/projects/<int:project_id>/epics", methods=["POST"])
def create_epic(project_id):
    epic = backlog_service.create_epic(project_id, json_body(), current_actor())
    return jsonify(epic.to_dict()), 201


@backlog_bp.route("/epics/<int:epic_id>", methods=["GET"])
def get_epic(epic_id):
    epic = backlog_service.get_epic(epic_id)
    result = epic.to_dict()
    result["stories"] = [s.to_dict() for s in epic.stories]
    return jsonify(result)


@backlog_bp.route("/epics/<int:epic_id>", methods=["PUT"])
def update_epic(epic_id):
    epic = backlog_service.update_epic(epic_id, json_body(), current_actor())
    return jsonify(epic.to_dict())


@backlog_bp.route("/epics/<int:epic_id>", methods=["DELETE"])
def delete_epic(epic_id):
    deleted = backlog_service.delete_epic(epic_id, current_actor())
    return jsonify({"message": "Epic deleted", "deleted_stories": deleted})


# ═════════════════════════════════════════════════════════════════════════════
# STORIES
# ═════════════════════════════════════════════════════════════════════════════

@backlog_bp.route("/projects/<int:project_id>/stories", methods=["GET"])
def list_stories(project_id):
    """List stories in priority order.

    Query params:
        epic_id — filter by epic
        status  — filter by story status
    """
    epic_id = request.args.get("epic_id", type=int)
    stories = backlog_service.list_stories(project_id, epic_id=epic_id, status=request.args.get("status"))
    return jsonify([s.to_dict() for s in stories])


@backlog_bp.route("/projects/<int:project_id>/backlog", methods=["GET"])
def list_backlog(project_id):
    return jsonify([s.to_dict() for s in backlog_service.list_backlog(project_id)])


@backlog_bp.route("/projects/<int:project_id>/stories", methods=["POST"])
def create_story(project_id):
    story = backlog_service.create_story(project_id, json_body(), current_actor())
    return jsonify(story.to_dict()), 201


@backlog_bp.route("/stories/<int:story_id>", methods=["GET"])
def get_story(story_id):
    return jsonify(backlog_service.get_story(story_id).to_dict(include_issues=True))


@backlog_bp.route("/stories/<int:story_id>", methods=["PUT"])
def update_story(story_id):
    story = backlog_service.update_story(story_id, json_body(), current_actor())
    return jsonify(story.to_dict())


@backlog_bp.route("/stories/<int:story_id>", methods=["DELETE"])
def delete_story(story_id):
    backlog_service.delete_story(story_id, current_actor())
    return jsonify({"message": "Story deleted"})


# ═════════════════════════════════════════════════════════════════════════════
# COMMENTS
# ═════════════════════════════════════════════════════════════════════════════

@backlog_bp.route("/stories/<int:story_id>/comments", methods=["GET"])
def list_comments(story_id):
    return jsonify([c.to_dict() for c in backlog_service.list_comments(story_id)])


@backlog_bp.route("/stories/<int:story_id>/comments", methods=["POST"])
def add_comment(story_id):
    comment = backlog_service.add_comment(story_id, json_body(), current_actor())
    return jsonify(comment.to_dict()), 201
