"""Project service — project CRUD and developer membership.

Transaction policy: every mutating function commits exactly once through
commit_or_raise(). A ServiceError raised part-way is rolled back by the
app-level error handler, so nothing half-validated is ever committed.
"""
import logging

from board_service.core.context import Role
from board_service.core.exceptions import ConflictError, ValidationError
from board_service.models.auth import User
from board_service.models.project import PROJECT_STATUSES, Project
from board_service.models import db
from board_service.services.access_policy import (
    ensure_can_create_project,
    ensure_can_edit_project,
    ensure_can_manage_members,
)
from board_service.services.helpers.scoped_queries import get_or_raise
from board_service.utils.helpers import commit_or_raise, parse_date, parse_int

logger = logging.getLogger(__name__)


def _user_with_role(user_id, role, field):
    user = get_or_raise(User, parse_int(user_id, field), "User")
    if not user.is_active:
        raise ValidationError(f"{field}: user {user.id} is inactive", details={field: user.id})
    if role not in user.roles:
        raise ValidationError(
            f"{field}: user {user.id} does not hold role {role.value}",
            details={field: user.id},
        )
    return user


def _check_name_free(name, exclude_id=None):
    q = Project.query.filter(Project.name == name)
    if exclude_id is not None:
        q = q.filter(Project.id != exclude_id)
    if q.first():
        raise ConflictError(
            f"Project '{name}' already exists",
            reason=ConflictError.DUPLICATE,
            details={"name": name},
        )


def _apply_fields(project, data):
    """Validate and copy the editable scalar fields from ``data`` onto ``project``."""
    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("Project name is required", details={"name": "required"})
        _check_name_free(name, exclude_id=project.id)
        project.name = name

    for field in ("description", "icon"):
        if field in data:
            setattr(project, field, (data.get(field) or "").strip())

    if "status" in data:
        status = str(data.get("status") or "").upper()
        if status not in PROJECT_STATUSES:
            raise ValidationError(
                f"status must be one of: {', '.join(PROJECT_STATUSES)}",
                details={"status": data.get("status")},
            )
        project.status = status

    if "scrum_master_id" in data:
        sm_id = data.get("scrum_master_id")
        project.scrum_master = _user_with_role(sm_id, Role.SM, "scrum_master_id") if sm_id else None

    for date_field in ("start_date", "end_date"):
        if date_field in data:
            setattr(project, date_field, parse_date(data.get(date_field), date_field))

    if project.start_date and project.end_date and project.start_date > project.end_date:
        raise ValidationError(
            "start_date must not be after end_date",
            details={"start_date": project.start_date.isoformat(), "end_date": project.end_date.isoformat()},
        )


# ═════════════════════════════════════════════════════════════════════════════
# Queries
# ═════════════════════════════════════════════════════════════════════════════

def list_projects(status=None, member_id=None):
    q = Project.query
    if status:
        q = q.filter(Project.status == str(status).upper())
    projects = q.order_by(Project.id).all()
    if member_id is not None:
        projects = [
            p for p in projects
            if member_id in (p.owner_id, p.scrum_master_id) or any(m.id == member_id for m in p.members)
        ]
    return projects


def get_project(project_id):
    return get_or_raise(Project, project_id)


# ═════════════════════════════════════════════════════════════════════════════
# Mutations
# ═════════════════════════════════════════════════════════════════════════════

def create_project(data, actor):
    """Create a project.

    A PO creating a project becomes its owner; OWNER/ADMIN may name any
    active PO via ``owner_id``. ``member_ids`` seeds the developer list.
    """
    ensure_can_create_project(actor)

    if not (data.get("name") or "").strip():
        raise ValidationError("Project name is required", details={"name": "required"})

    project = Project(status="ACTIVE", description="", icon="")
    _apply_fields(project, data)

    if data.get("owner_id") and actor.is_superuser:
        project.owner = _user_with_role(data["owner_id"], Role.PO, "owner_id")
    elif actor.has_role(Role.PO):
        project.owner = get_or_raise(User, actor.user_id)

    for uid in data.get("member_ids") or []:
        dev = _user_with_role(uid, Role.DEV, "member_ids")
        if dev not in project.members:
            project.members.append(dev)

    db.session.add(project)
    commit_or_raise()
    logger.info("Project %s '%s' created by user=%s", project.id, project.name, actor.user_id)
    return project


def update_project(project_id, data, actor):
    project = get_or_raise(Project, project_id)
    ensure_can_edit_project(actor, project)

    _apply_fields(project, data)
    if "owner_id" in data:
        owner_id = data.get("owner_id")
        project.owner = _user_with_role(owner_id, Role.PO, "owner_id") if owner_id else None

    commit_or_raise()
    logger.info("Project %s updated by user=%s", project.id, actor.user_id)
    return project


def add_member(project_id, user_id, actor):
    """Assign an active developer to the project (no-op if already a member)."""
    ensure_can_manage_members(actor)
    project = get_or_raise(Project, project_id)
    dev = _user_with_role(user_id, Role.DEV, "user_id")
    if dev not in project.members:
        project.members.append(dev)
        commit_or_raise()
        logger.info("User %s added to project %s by user=%s", dev.id, project.id, actor.user_id)
    return project


def remove_member(project_id, user_id, actor):
    ensure_can_manage_members(actor)
    project = get_or_raise(Project, project_id)
    user = get_or_raise(User, user_id)
    if user in project.members:
        project.members.remove(user)
        commit_or_raise()
        logger.info("User %s removed from project %s by user=%s", user.id, project.id, actor.user_id)
    return project
