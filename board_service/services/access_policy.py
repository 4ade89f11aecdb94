"""
Access policy — role gating of every mutating service operation.

Each ``ensure_*`` helper either returns silently or raises
AuthorizationError. Services call them before touching the session, so a
denied operation never partially applies.

Role matrix:
    OWNER / ADMIN  users, projects; superuser for everything below
    self           own full_name and email
    PO             create projects; edit own projects; epics & stories in own projects
    SM             sprints, issues, project membership, board moves, sprint assignment
    DEV            board moves of issues assigned to themselves
    any active     read, comment
"""

import logging

from board_service.core.context import Role
from board_service.core.exceptions import AuthorizationError

logger = logging.getLogger(__name__)


def _deny(actor, action, required):
    logger.warning(
        "Permission denied: user=%s roles=%s action=%s",
        actor.user_id, sorted(r.value for r in actor.roles), action,
    )
    raise AuthorizationError(
        f"Not allowed to {action}",
        required=[r.value for r in required],
    )


def require_roles(actor, action, *roles):
    """Pass if the actor is a superuser or holds any of ``roles``."""
    if actor.is_superuser or actor.has_role(*roles):
        return
    _deny(actor, action, (Role.OWNER, Role.ADMIN) + roles)


# ── Users ────────────────────────────────────────────────────────────────

def ensure_can_manage_users(actor):
    require_roles(actor, "manage users")


SELF_EDITABLE_FIELDS = frozenset({"full_name", "email"})


def ensure_can_edit_user(actor, user_id, fields):
    """Superusers edit any account. Anyone else may change the name and
    email of their own account only; roles stay with the superusers."""
    if actor.is_superuser:
        return
    if actor.user_id == user_id and SELF_EDITABLE_FIELDS.issuperset(fields):
        return
    if actor.user_id == user_id:
        action = "edit own " + ", ".join(sorted(set(fields) - SELF_EDITABLE_FIELDS))
    else:
        action = "manage users"
    _deny(actor, action, (Role.OWNER, Role.ADMIN))


# ── Projects ─────────────────────────────────────────────────────────────

def ensure_can_create_project(actor):
    require_roles(actor, "create projects", Role.PO)


def ensure_can_edit_project(actor, project):
    """Superusers edit any project; a PO only the projects they own."""
    if actor.is_superuser:
        return
    if actor.has_role(Role.PO) and project.owner_id == actor.user_id:
        return
    _deny(actor, f"edit project {project.id}", (Role.OWNER, Role.ADMIN, Role.PO))


def ensure_can_manage_members(actor):
    require_roles(actor, "assign developers to projects", Role.SM)


# ── Epics & stories ──────────────────────────────────────────────────────

def ensure_can_manage_backlog(actor, project):
    """Epic/story create, edit and delete: the owning PO (or a superuser)."""
    if actor.is_superuser:
        return
    if actor.has_role(Role.PO) and project.owner_id == actor.user_id:
        return
    _deny(actor, f"change the backlog of project {project.id}", (Role.OWNER, Role.ADMIN, Role.PO))


# ── Sprints & issues ─────────────────────────────────────────────────────

def ensure_can_manage_sprints(actor):
    require_roles(actor, "manage sprints", Role.SM)


def ensure_can_manage_issues(actor):
    require_roles(actor, "manage issues", Role.SM)


def ensure_can_assign_sprint(actor):
    require_roles(actor, "assign issues to sprints", Role.SM)


def ensure_can_move_issue(actor, issue):
    """SM moves any issue; DEV only issues assigned to themselves."""
    if actor.is_superuser or actor.has_role(Role.SM):
        return
    if actor.has_role(Role.DEV) and issue.is_assigned_to(actor.user_id):
        return
    _deny(actor, f"move issue {issue.id}", (Role.OWNER, Role.ADMIN, Role.SM, Role.DEV))
