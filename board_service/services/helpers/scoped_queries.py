"""
Project-scoped query helpers.

Every lookup of a child entity (Epic, Story, Sprint, Issue, Comment) goes
through these helpers so that a reference crossing a project boundary is
reported exactly like a missing row: NotFoundError → HTTP 404.

Usage:
    # Root entities (Project, User) have no parent scope
    project = get_or_raise(Project, project_id)

    # Scope by a parent column on the model
    sprint = get_scoped(Sprint, sprint_id, project_id=issue.project_id)
    issue = get_scoped(Issue, issue_id, story_id=story.id)

Scope field resolution:
    Each keyword argument maps directly to a column name on the model.
    If the model does not have that column, a ValueError is raised at
    call time so the bug surfaces during development instead of silently
    performing an unscoped lookup.
"""

import logging

from sqlalchemy import select

from board_service.core.exceptions import NotFoundError
from board_service.models import db

logger = logging.getLogger(__name__)

_SCOPE_KWARGS = ("project_id", "story_id")


def get_or_raise(model, pk, label=None):
    """Fetch a root entity by primary key or raise NotFoundError."""
    obj = db.session.get(model, pk) if pk is not None else None
    if obj is None:
        raise NotFoundError(resource=label or model.__name__, resource_id=pk)
    return obj


def get_scoped(model, pk, *, project_id=None, story_id=None):
    """Fetch a single entity by PK with a mandatory parent filter.

    Args:
        model: SQLAlchemy model class with an ``id`` PK and the scope column.
        pk: Primary key value to look up.
        project_id: Scope by project_id column.
        story_id: Scope by story_id column.

    Raises:
        ValueError: No scope given, or the scope column is missing on the model.
        NotFoundError: Entity missing OR belonging to a different parent.
    """
    provided = {"project_id": project_id, "story_id": story_id}
    provided = {k: v for k, v in provided.items() if v is not None}

    if not provided:
        raise ValueError(
            f"{model.__name__} id={pk} requires a scope filter "
            f"({', '.join(_SCOPE_KWARGS)})."
        )

    missing = [f for f in provided if f not in model.__table__.c]
    if missing:
        raise ValueError(
            f"{model.__name__} has no scope column(s) {sorted(missing)}; "
            "refusing to perform an unscoped lookup."
        )

    stmt = select(model).where(model.id == pk)
    for field, value in provided.items():
        stmt = stmt.where(getattr(model, field) == value)

    result = db.session.execute(stmt).scalar_one_or_none()
    if result is None:
        logger.debug("get_scoped: %s id=%s not found in scope %s", model.__name__, pk, provided)
        scope = ", ".join(f"{k}={v}" for k, v in provided.items())
        raise NotFoundError(resource=model.__name__, resource_id=pk, scope=scope)
    return result

