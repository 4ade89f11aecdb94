"""
User Service — user CRUD, role assignment and the ACTIVE ⇄ INACTIVE lifecycle.

Deactivation is dependency-checked:
  - PO or SM of an ACTIVE project        → ConflictError(CRITICAL_DEPENDENCY)
  - unfinished issue assignments, no
    valid replacement supplied           → ConflictError(REASSIGNMENT_NEEDED)
  - unfinished issue assignments with a
    replacement (another active DEV)     → assignments moved, user deactivated
"""

import logging

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import or_

from board_service.core.context import Role
from board_service.core.exceptions import ConflictError, ValidationError
from board_service.models import db
from board_service.models.auth import User
from board_service.models.backlog import Issue, issue_assignees
from board_service.models.project import Project
from board_service.services.access_policy import ensure_can_edit_user, ensure_can_manage_users
from board_service.services.helpers.scoped_queries import get_or_raise
from board_service.utils.helpers import commit_or_raise, parse_int

logger = logging.getLogger(__name__)


def _normalize_email(email):
    if not email or not str(email).strip():
        raise ValidationError("email is required", details={"email": "required"})
    try:
        return validate_email(str(email).strip(), check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid email: {e}", details={"email": email})


def _check_email_free(email, exclude_id=None):
    q = User.query.filter(db.func.lower(User.email) == email.lower())
    if exclude_id is not None:
        q = q.filter(User.id != exclude_id)
    if q.first():
        raise ConflictError(
            f"User with email {email} already exists",
            reason=ConflictError.DUPLICATE,
            details={"email": email},
        )


def _full_name(value):
    name = (value or "").strip() if isinstance(value, str) else ""
    if not name:
        raise ValidationError("full_name is required", details={"full_name": "required"})
    return name


# ═══════════════════════════════════════════════════════════════
# Queries
# ═══════════════════════════════════════════════════════════════
def list_users(active=None, role=None):
    """All users ordered by id, optionally filtered by active flag and role."""
    q = User.query
    if active is not None:
        q = q.filter(User.is_active.is_(bool(active)))
    users = q.order_by(User.id).all()
    if role is not None:
        wanted = Role.parse(role)
        users = [u for u in users if wanted in u.roles]
    return users


def get_user(user_id):
    return get_or_raise(User, user_id)


# ═══════════════════════════════════════════════════════════════
# CRUD
# ═══════════════════════════════════════════════════════════════
def create_user(data, actor):
    ensure_can_manage_users(actor)

    email = _normalize_email(data.get("email"))
    full_name = _full_name(data.get("full_name"))
    roles = Role.parse_many(data.get("roles"))
    _check_email_free(email)

    user = User(email=email, full_name=full_name, is_active=bool(data.get("is_active", True)))
    user.set_roles(roles)
    db.session.add(user)
    commit_or_raise()
    logger.info("User %s created (%s) by user=%s", user.id, email, actor.user_id)
    return user


def update_user(user_id, data, actor):
    """Edit name, email and roles. ``is_active`` changes go through
    deactivate_user / activate_user so the dependency checks always run.

    Any user may edit the name and email of their own account; every other
    change needs OWNER/ADMIN.
    """
    ensure_can_edit_user(actor, user_id, data.keys())
    user = get_or_raise(User, user_id)

    if "email" in data:
        email = _normalize_email(data["email"])
        _check_email_free(email, exclude_id=user.id)
        user.email = email
    if "full_name" in data:
        user.full_name = _full_name(data["full_name"])
    if "roles" in data:
        user.set_roles(Role.parse_many(data["roles"]))

    commit_or_raise()
    logger.info("User %s updated by user=%s", user.id, actor.user_id)
    return user


# ═══════════════════════════════════════════════════════════════
# Lifecycle
# ═══════════════════════════════════════════════════════════════
def _critical_projects(user_id):
    return (
        Project.query.filter(
            Project.status == "ACTIVE",
            or_(Project.owner_id == user_id, Project.scrum_master_id == user_id),
        )
        .order_by(Project.id)
        .all()
    )


def unfinished_assignments(user_id):
    """Issues not yet DONE that list ``user_id`` among their assignees."""
    return (
        Issue.query.join(issue_assignees, issue_assignees.c.issue_id == Issue.id)
        .filter(issue_assignees.c.user_id == user_id, Issue.status != "DONE")
        .order_by(Issue.id)
        .all()
    )


def _resolve_replacement(user, replacement_user_id):
    replacement = get_or_raise(User, parse_int(replacement_user_id, "replacement_user_id"), "Replacement user")
    if replacement.id == user.id:
        raise ValidationError(
            "A user cannot replace themselves",
            details={"replacement_user_id": replacement.id},
        )
    if not replacement.is_active or Role.DEV not in replacement.roles:
        raise ValidationError(
            "Replacement must be an active developer (DEV)",
            details={"replacement_user_id": replacement.id},
        )
    return replacement


def deactivate_user(user_id, actor, replacement_user_id=None):
    """Set a user INACTIVE after the dependency checks.

    Raises:
        AuthorizationError: actor is not OWNER/ADMIN.
        ConflictError: CRITICAL_DEPENDENCY when the user is the PO or SM of an
            active project; REASSIGNMENT_NEEDED when unfinished issues are
            assigned and no replacement is supplied.
        ValidationError: the replacement is not another active DEV.
    """
    ensure_can_manage_users(actor)
    user = get_or_raise(User, user_id)
    if not user.is_active:
        return user

    critical = _critical_projects(user.id)
    if critical:
        projects = [
            {
                "id": p.id,
                "name": p.name,
                "role": "PO" if p.owner_id == user.id else "SM",
            }
            for p in critical
        ]
        logger.warning("Deactivation of user=%s blocked by active projects %s", user.id, [p.id for p in critical])
        raise ConflictError(
            f"{user.full_name} is the Product Owner or Scrum Master of an active project; "
            "assign a new one before deactivating",
            reason=ConflictError.CRITICAL,
            details={"projects": projects},
        )

    blocking = unfinished_assignments(user.id)
    if blocking:
        if replacement_user_id in (None, ""):
            raise ConflictError(
                f"{user.full_name} has {len(blocking)} unfinished issue(s); "
                "supply a replacement developer",
                reason=ConflictError.REASSIGNMENT_NEEDED,
                details={
                    "issue_ids": [i.id for i in blocking],
                    "issues": [{"id": i.id, "title": i.title, "status": i.status} for i in blocking],
                },
            )
        replacement = _resolve_replacement(user, replacement_user_id)
        for issue in blocking:
            issue.assignees = [u for u in issue.assignees if u.id != user.id]
            if not issue.is_assigned_to(replacement.id):
                issue.assignees.append(replacement)
            project = issue.story.project
            if replacement not in project.members:
                project.members.append(replacement)
        logger.info(
            "Reassigned %d issue(s) from user=%s to user=%s",
            len(blocking), user.id, replacement.id,
        )

    user.is_active = False
    commit_or_raise()
    logger.info("User %s deactivated by user=%s", user.id, actor.user_id)
    return user


def activate_user(user_id, actor):
    ensure_can_manage_users(actor)
    user = get_or_raise(User, user_id)
    if not user.is_active:
        user.is_active = True
        commit_or_raise()
        logger.info("User %s activated by user=%s", user.id, actor.user_id)
    return user
