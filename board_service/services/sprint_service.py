"""Sprint service — sprint CRUD within a project.

Deleting a sprint returns its issues to the unassigned backlog pool; the
issues themselves are kept.
"""
import logging

from board_service.core.exceptions import ValidationError
from board_service.models import db
from board_service.models.backlog import Issue, Sprint
from board_service.models.project import Project
from board_service.services.access_policy import ensure_can_manage_sprints
from board_service.services.helpers.scoped_queries import get_or_raise
from board_service.utils.helpers import commit_or_raise, parse_date

logger = logging.getLogger(__name__)


def _check_window(start_date, end_date):
    if start_date is None or end_date is None:
        raise ValidationError(
            "start_date and end_date are required",
            details={"start_date": start_date and start_date.isoformat(),
                     "end_date": end_date and end_date.isoformat()},
        )
    if start_date > end_date:
        raise ValidationError(
            "start_date must not be after end_date",
            details={"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
        )


def list_sprints(project_id):
    get_or_raise(Project, project_id)
    return (
        Sprint.query.filter_by(project_id=project_id)
        .order_by(Sprint.start_date, Sprint.id)
        .all()
    )


def get_sprint(sprint_id):
    return get_or_raise(Sprint, sprint_id)


def create_sprint(project_id, data, actor):
    """Create a sprint under a project.

    Raises:
        ValidationError: missing name, missing dates, or start after end.
    """
    ensure_can_manage_sprints(actor)
    project = get_or_raise(Project, project_id)

    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("Sprint name is required", details={"name": "required"})
    start_date = parse_date(data.get("start_date"), "start_date")
    end_date = parse_date(data.get("end_date"), "end_date")
    _check_window(start_date, end_date)

    sprint = Sprint(
        project_id=project.id,
        name=name,
        goal=(data.get("goal") or "").strip(),
        start_date=start_date,
        end_date=end_date,
    )
    db.session.add(sprint)
    commit_or_raise()
    logger.info("Sprint %s '%s' created in project %s by user=%s", sprint.id, name, project.id, actor.user_id)
    return sprint


def update_sprint(sprint_id, data, actor):
    ensure_can_manage_sprints(actor)
    sprint = get_or_raise(Sprint, sprint_id)

    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("Sprint name cannot be empty", details={"name": "required"})
        sprint.name = name
    if "goal" in data:
        sprint.goal = (data.get("goal") or "").strip()

    start_date = parse_date(data["start_date"], "start_date") if "start_date" in data else sprint.start_date
    end_date = parse_date(data["end_date"], "end_date") if "end_date" in data else sprint.end_date
    _check_window(start_date, end_date)
    sprint.start_date, sprint.end_date = start_date, end_date

    commit_or_raise()
    logger.info("Sprint %s updated by user=%s", sprint.id, actor.user_id)
    return sprint


def delete_sprint(sprint_id, actor):
    """Delete a sprint and unassign its issues."""
    ensure_can_manage_sprints(actor)
    sprint = get_or_raise(Sprint, sprint_id)
    released = Issue.query.filter_by(sprint_id=sprint.id).update({"sprint_id": None})
    db.session.delete(sprint)
    commit_or_raise()
    logger.info("Sprint %s deleted (%d issues unassigned) by user=%s", sprint_id, released, actor.user_id)
    return released
