"""
Reporting Blueprint — per-project rollups and the cross-project portfolio.

Endpoints:
    GET /api/v1/projects/<pid>/reports/progress                — hours & percent done
    GET /api/v1/projects/<pid>/reports/backlog-health          — % of active stories estimated
    GET /api/v1/projects/<pid>/reports/top-stories             — ?n= (default 5)
    GET /api/v1/projects/<pid>/reports/stories-without-issues
    GET /api/v1/projects/<pid>/reports/sprints                 — per-sprint counts & hours
    GET /api/v1/projects/<pid>/reports/status-distribution     — issues per column
    GET /api/v1/projects/<pid>/reports/dashboard               — all of the above
    GET /api/v1/reports/portfolio                              — ?project_ids=1,2,3 (fail-soft)
"""

import logging

from flask import Blueprint, jsonify, request

from board_service.blueprints import load_actor
from board_service.core.exceptions import ValidationError
from board_service.services import reporting_service

logger = logging.getLogger(__name__)

reporting_bp = Blueprint("reporting", __name__, url_prefix="/api/v1")
reporting_bp.before_request(load_actor)


@reporting_bp.route("/projects/<int:project_id>/reports/progress", methods=["GET"])
def progress(project_id):
    return jsonify(reporting_service.project_progress(project_id))


@reporting_bp.route("/projects/<int:project_id>/reports/backlog-health", methods=["GET"])
def backlog_health(project_id):
    return jsonify({"percent": reporting_service.backlog_health(project_id)})


@reporting_bp.route("/projects/<int:project_id>/reports/top-stories", methods=["GET"])
def top_stories(project_id):
    n = request.args.get("n", 5, type=int)
    return jsonify([s.to_dict() for s in reporting_service.top_stories(project_id, n=n)])


@reporting_bp.route("/projects/<int:project_id>/reports/stories-without-issues", methods=["GET"])
def stories_without_issues(project_id):
    return jsonify([s.to_dict() for s in reporting_service.stories_without_issues(project_id)])


@reporting_bp.route("/projects/<int:project_id>/reports/sprints", methods=["GET"])
def sprints(project_id):
    return jsonify(reporting_service.sprint_summary(project_id))


@reporting_bp.route("/projects/<int:project_id>/reports/status-distribution", methods=["GET"])
def status_distribution(project_id):
    return jsonify(reporting_service.status_distribution(project_id))


@reporting_bp.route("/projects/<int:project_id>/reports/dashboard", methods=["GET"])
def dashboard(project_id):
    return jsonify(reporting_service.project_dashboard(project_id))


@reporting_bp.route("/reports/portfolio", methods=["GET"])
def portfolio():
    raw = request.args.get("project_ids")
    project_ids = None
    if raw:
        try:
            project_ids = [int(p) for p in raw.split(",") if p.strip()]
        except ValueError:
            raise ValidationError("project_ids must be a comma-separated list of ids",
                                  details={"project_ids": raw})
    return jsonify(reporting_service.portfolio_overview(project_ids))
