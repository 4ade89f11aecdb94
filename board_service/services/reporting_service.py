"""
Per-project rollups consumed by dashboards.

Every figure is computed fresh from the store on each call. Within one
project a failure propagates; ``portfolio_overview`` is the only fail-soft
entry point and reports each project it could not compute.
"""

import logging

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from board_service.core.exceptions import ServiceError
from board_service.models import db
from board_service.models.backlog import ISSUE_STATUSES, Issue, Sprint, Story
from board_service.models.project import Project
from board_service.services import priority_engine
from board_service.services.helpers.scoped_queries import get_or_raise
from board_service.utils.helpers import percent

logger = logging.getLogger(__name__)


def _project_issues(project_id):
    return (
        Issue.query.join(Story, Story.id == Issue.story_id)
        .filter(Story.project_id == project_id)
        .all()
    )


def _active_stories(project_id):
    """Stories not yet complete (own status DONE, or every issue DONE)."""
    stories = Story.query.filter_by(project_id=project_id).all()
    return [s for s in stories if not s.is_complete]


# ── Single-project metrics ─────────────────────────────────────────────────

def project_progress(project_id: int) -> dict:
    """Hours rollup. percent is 0 when no hours are estimated."""
    get_or_raise(Project, project_id)
    issues = _project_issues(project_id)
    total = sum(i.time_estimate or 0.0 for i in issues)
    completed = sum(i.time_estimate or 0.0 for i in issues if i.status == "DONE")
    return {
        "total_hours": round(total, 2),
        "completed_hours": round(completed, 2),
        "percent": percent(completed, total),
    }


def backlog_health(project_id: int) -> int:
    """Percent of active stories carrying an estimate (story_points > 0)."""
    get_or_raise(Project, project_id)
    active = _active_stories(project_id)
    estimated = [s for s in active if (s.story_points or 0) > 0]
    return percent(len(estimated), len(active))


def top_stories(project_id: int, n: int = 5) -> list:
    get_or_raise(Project, project_id)
    if n < 0:
        n = 0
    return priority_engine.rank(_active_stories(project_id))[:n]


def stories_without_issues(project_id: int) -> list:
    """Active stories with no issues yet, in story_number order."""
    get_or_raise(Project, project_id)
    return sorted(
        (s for s in _active_stories(project_id) if not s.issues),
        key=lambda s: s.story_number,
    )


def sprint_summary(project_id: int) -> list:
    """Each sprint with issue count and hours; active sprints first, then newest end date."""
    get_or_raise(Project, project_id)
    sprints = Sprint.query.filter_by(project_id=project_id).all()
    rows = []
    for sprint in sprints:
        issues = sprint.issues
        done = [i for i in issues if i.status == "DONE"]
        rows.append({
            "id": sprint.id,
            "name": sprint.name,
            "start_date": sprint.start_date.isoformat(),
            "end_date": sprint.end_date.isoformat(),
            "is_active": sprint.is_active,
            "issue_count": len(issues),
            "done_count": len(done),
            "total_hours": round(sum(i.time_estimate or 0.0 for i in issues), 2),
        })
    rows.sort(key=lambda r: r["end_date"], reverse=True)
    rows.sort(key=lambda r: not r["is_active"])
    return rows


def status_distribution(project_id: int) -> dict:
    """Issue count per board column, every column present."""
    get_or_raise(Project, project_id)
    counts = dict(
        db.session.query(Issue.status, func.count(Issue.id))
        .join(Story, Story.id == Issue.story_id)
        .filter(Story.project_id == project_id)
        .group_by(Issue.status)
        .all()
    )
    return {status: counts.get(status, 0) for status in ISSUE_STATUSES}


def project_dashboard(project_id: int) -> dict:
    project = get_or_raise(Project, project_id)
    return {
        "project": project.to_dict(),
        "progress": project_progress(project_id),
        "backlog_health": backlog_health(project_id),
        "top_stories": [s.to_dict() for s in top_stories(project_id)],
        "stories_without_issues": [s.to_dict() for s in stories_without_issues(project_id)],
        "sprints": sprint_summary(project_id),
        "status_distribution": status_distribution(project_id),
    }


# ── Cross-project ─────────────────────────────────────────────────────────

def _project_rollup(project_id):
    project = get_or_raise(Project, project_id)
    active = _active_stories(project_id)
    return {
        "project": {"id": project.id, "name": project.name, "status": project.status},
        "progress": project_progress(project_id),
        "backlog_health": backlog_health(project_id),
        "active_stories": len(active),
        "stories_without_issues": sum(1 for s in active if not s.issues),
    }


def portfolio_overview(project_ids=None) -> dict:
    """Rollups for many projects at once.

    A project whose computation fails is listed under ``failed`` with its
    error type; the other projects are still returned.
    """
    if project_ids is None:
        project_ids = [pid for (pid,) in db.session.query(Project.id).order_by(Project.id).all()]

    projects = []
    failed = []
    for pid in project_ids:
        try:
            projects.append(_project_rollup(pid))
        except ServiceError as exc:
            logger.warning("Portfolio rollup failed for project %s: %s", pid, exc.message)
            failed.append({"project_id": pid, "type": exc.error_type, "error": exc.message})
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.exception("Portfolio rollup failed for project %s", pid)
            failed.append({"project_id": pid, "type": "ERR_TRANSIENT", "error": str(exc.__class__.__name__)})
    return {"projects": projects, "failed": failed}
