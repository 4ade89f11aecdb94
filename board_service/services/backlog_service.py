"""Backlog service — epics, stories and story comments.

Transaction policy: one commit per operation through commit_or_raise().

Operations:
- Epic create / update / delete (delete cascades to stories, issues, comments)
- Story create / update / delete with field validation and priority recompute
- Ranked story lists (all stories, incomplete backlog)
- Comment thread on a story

Numbering:
    epic_number / story_number come from counters on the Project row, read
    with SELECT ... FOR UPDATE (ignored on SQLite). Counters are never
    decremented, so a deleted story's number is never handed out again.
"""
import logging

from board_service.core.exceptions import NotFoundError, ValidationError
from board_service.models import db
from board_service.models.backlog import (
    EPIC_STATUSES, STORY_POINTS, STORY_STATUSES,
    Comment, Epic, Story,
)
from board_service.models.project import Project
from board_service.services import priority_engine
from board_service.services.access_policy import ensure_can_manage_backlog
from board_service.services.helpers.scoped_queries import get_or_raise, get_scoped
from board_service.utils.helpers import commit_or_raise, parse_int

logger = logging.getLogger(__name__)

PRIORITY_FIELDS = ("business_value", "urgency", "story_points")


def _lock_project(project_id):
    """Load the project row for update so counter allocation is serialized.

    populate_existing() overwrites the identity-map copy loaded earlier in the
    request; otherwise the counters read here would be the unlocked ones.
    """
    project = (
        db.session.query(Project)
        .filter(Project.id == project_id)
        .with_for_update()
        .populate_existing()
        .one_or_none()
    )
    if project is None:
        raise NotFoundError(resource="Project", resource_id=project_id)
    return project


def _title(data, label):
    title = data.get("title")
    title = title.strip() if isinstance(title, str) else ""
    if not title:
        raise ValidationError(f"{label} title is required", details={"title": "required"})
    return title


def _choice(value, allowed, field):
    value = str(value or "").upper()
    if value not in allowed:
        raise ValidationError(
            f"{field} must be one of: {', '.join(allowed)}",
            details={field: value},
        )
    return value


def _percent_field(data, field):
    """0-100 integer; missing counts as 0."""
    value = parse_int(data.get(field), field)
    if value is None:
        return 0
    if not 0 <= value <= 100:
        raise ValidationError(f"{field} must be between 0 and 100", details={field: value})
    return value


def _story_points(value):
    """Planning-poker value, or None/0 for an unestimated story."""
    points = parse_int(value, "story_points")
    if points is None:
        return None
    if points not in STORY_POINTS:
        raise ValidationError(
            f"story_points must be one of: {', '.join(str(p) for p in STORY_POINTS)}",
            details={"story_points": points},
        )
    return points


def _acceptance_criteria(value):
    if value is None:
        return []
    if isinstance(value, str):
        value = value.splitlines()
    if not isinstance(value, (list, tuple)) or not all(isinstance(c, str) for c in value):
        raise ValidationError(
            "acceptance_criteria must be a list of strings",
            details={"acceptance_criteria": "invalid"},
        )
    return [c.strip() for c in value if c.strip()]


# ═════════════════════════════════════════════════════════════════════════════
# EPICS
# ═════════════════════════════════════════════════════════════════════════════

def list_epics(project_id):
    get_or_raise(Project, project_id)
    return Epic.query.filter_by(project_id=project_id).order_by(Epic.epic_number).all()


def get_epic(epic_id):
    return get_or_raise(Epic, epic_id)


def create_epic(project_id, data, actor):
    project = get_or_raise(Project, project_id)
    ensure_can_manage_backlog(actor, project)

    title = _title(data, "Epic")
    status = _choice(data.get("status") or "OPEN", EPIC_STATUSES, "status")

    project = _lock_project(project_id)
    epic = Epic(
        project_id=project.id,
        epic_number=project.allocate_epic_number(),
        title=title,
        description=(data.get("description") or "").strip(),
        status=status,
    )
    db.session.add(epic)
    commit_or_raise()
    logger.info("Epic %s (#%s) created in project %s by user=%s",
                epic.id, epic.epic_number, project.id, actor.user_id)
    return epic


def update_epic(epic_id, data, actor):
    epic = get_or_raise(Epic, epic_id)
    ensure_can_manage_backlog(actor, epic.project)

    if "title" in data:
        epic.title = _title(data, "Epic")
    if "description" in data:
        epic.description = (data.get("description") or "").strip()
    if "status" in data:
        epic.status = _choice(data["status"], EPIC_STATUSES, "status")

    commit_or_raise()
    logger.info("Epic %s updated by user=%s", epic.id, actor.user_id)
    return epic


def delete_epic(epic_id, actor):
    """Delete an epic together with every story under it."""
    epic = get_or_raise(Epic, epic_id)
    ensure_can_manage_backlog(actor, epic.project)

    story_count = len(epic.stories)
    db.session.delete(epic)
    commit_or_raise()
    logger.info("Epic %s deleted with %d stories by user=%s", epic_id, story_count, actor.user_id)
    return story_count


# ═════════════════════════════════════════════════════════════════════════════
# STORIES
# ═════════════════════════════════════════════════════════════════════════════

def list_stories(project_id, epic_id=None, status=None):
    """All stories of a project in priority order."""
    get_or_raise(Project, project_id)
    q = Story.query.filter_by(project_id=project_id)
    if epic_id is not None:
        q = q.filter_by(epic_id=epic_id)
    if status:
        q = q.filter_by(status=str(status).upper())
    return priority_engine.rank(q.all())


def list_backlog(project_id):
    """Incomplete stories only, in priority order."""
    return [s for s in list_stories(project_id) if not s.is_complete]


def get_story(story_id):
    return get_or_raise(Story, story_id)


def create_story(project_id, data, actor):
    """Create a story, allocating the next story_number of the project.

    Raises:
        ValidationError: missing title or out-of-range fields.
        NotFoundError: epic_id given but not an epic of this project.
    """
    project = get_or_raise(Project, project_id)
    ensure_can_manage_backlog(actor, project)

    title = _title(data, "Story")
    epic_id = parse_int(data.get("epic_id"), "epic_id")
    if epic_id is not None:
        get_scoped(Epic, epic_id, project_id=project.id)

    story = Story(
        project_id=project.id,
        epic_id=epic_id,
        title=title,
        description=(data.get("description") or "").strip(),
        acceptance_criteria=_acceptance_criteria(data.get("acceptance_criteria")),
        business_value=_percent_field(data, "business_value"),
        urgency=_percent_field(data, "urgency"),
        story_points=_story_points(data.get("story_points")),
        status=_choice(data.get("status") or "BACKLOG", STORY_STATUSES, "status"),
    )
    story.recompute_priority()

    project = _lock_project(project_id)
    story.story_number = project.allocate_story_number()
    db.session.add(story)
    commit_or_raise()
    logger.info("Story %s (#%s) created in project %s by user=%s",
                story.id, story.story_number, project.id, actor.user_id)
    return story


def update_story(story_id, data, actor):
    story = get_or_raise(Story, story_id)
    ensure_can_manage_backlog(actor, story.project)

    if "title" in data:
        story.title = _title(data, "Story")
    if "description" in data:
        story.description = (data.get("description") or "").strip()
    if "acceptance_criteria" in data:
        story.acceptance_criteria = _acceptance_criteria(data["acceptance_criteria"])
    if "status" in data:
        story.status = _choice(data["status"], STORY_STATUSES, "status")
    if "epic_id" in data:
        epic_id = parse_int(data["epic_id"], "epic_id")
        if epic_id is not None:
            get_scoped(Epic, epic_id, project_id=story.project_id)
        story.epic_id = epic_id

    if "business_value" in data:
        story.business_value = _percent_field(data, "business_value")
    if "urgency" in data:
        story.urgency = _percent_field(data, "urgency")
    if "story_points" in data:
        story.story_points = _story_points(data["story_points"])
    if any(f in data for f in PRIORITY_FIELDS):
        story.recompute_priority()

    commit_or_raise()
    logger.info("Story %s updated by user=%s", story.id, actor.user_id)
    return story


def delete_story(story_id, actor):
    story = get_or_raise(Story, story_id)
    ensure_can_manage_backlog(actor, story.project)
    db.session.delete(story)
    commit_or_raise()
    logger.info("Story %s deleted by user=%s", story_id, actor.user_id)


# ═════════════════════════════════════════════════════════════════════════════
# COMMENTS
# ═════════════════════════════════════════════════════════════════════════════

def list_comments(story_id):
    return get_or_raise(Story, story_id).comments


def add_comment(story_id, data, actor):
    """Any active user may comment on any story."""
    story = get_or_raise(Story, story_id)
    content = data.get("content")
    content = content.strip() if isinstance(content, str) else ""
    if not content:
        raise ValidationError("Comment content is required", details={"content": "required"})

    comment = Comment(story_id=story.id, author_id=actor.user_id, content=content)
    db.session.add(comment)
    commit_or_raise()
    logger.info("Comment %s added to story %s by user=%s", comment.id, story.id, actor.user_id)
    return comment
