"""Board service — issue CRUD, the column state machine and sprint membership.

Column lifecycle:
    TO_DO → IN_PROGRESS → CODE_REVIEW → QA → DONE
    BLOCKED reachable from every column except DONE

Any column may be dropped onto any other (ISSUE_TRANSITIONS); only a DONE
issue cannot be blocked. Entering BLOCKED records ``blocked_from_status``,
leaving it clears the field, and ``unblock_issue`` returns the issue to the
recorded column. Moves never touch assignees, estimates or sprint.

Writes are last-writer-wins. A failed commit rolls the session back, so the
issue seen through the same session reverts to its previous column and the
caller gets a TransientError.
"""
import logging

from sqlalchemy import func

from board_service.core.exceptions import ValidationError
from board_service.models import db
from board_service.models.auth import User
from board_service.models.backlog import (
    ISSUE_CATEGORIES, ISSUE_PRIORITIES, ISSUE_STATUSES, ISSUE_TRANSITIONS,
    Issue, Sprint, Story,
)
from board_service.models.project import Project
from board_service.services.access_policy import (
    ensure_can_assign_sprint,
    ensure_can_manage_issues,
    ensure_can_move_issue,
)
from board_service.services.helpers.scoped_queries import get_or_raise, get_scoped
from board_service.utils.helpers import commit_or_raise, parse_int, percent

logger = logging.getLogger(__name__)


# ── validation helpers ───────────────────────────────────────────────────────

def _status(value):
    status = str(value or "").upper()
    if status not in ISSUE_STATUSES:
        raise ValidationError(
            f"status must be one of: {', '.join(ISSUE_STATUSES)}",
            details={"status": value},
        )
    return status


def _choice(value, allowed, field):
    value = str(value or "").upper()
    if value not in allowed:
        raise ValidationError(f"{field} must be one of: {', '.join(allowed)}", details={field: value})
    return value


def _time_estimate(value):
    if value is None or value == "":
        return 0.0
    if isinstance(value, bool):
        raise ValidationError("time_estimate must be a number", details={"time_estimate": value})
    try:
        hours = float(value)
    except (ValueError, TypeError):
        raise ValidationError("time_estimate must be a number", details={"time_estimate": value})
    if hours < 0:
        raise ValidationError("time_estimate must not be negative", details={"time_estimate": hours})
    return hours


def _assignees(user_ids):
    if user_ids is None:
        return []
    if not isinstance(user_ids, (list, tuple)):
        raise ValidationError("assignee_ids must be a list of user ids", details={"assignee_ids": user_ids})
    users = []
    for raw in user_ids:
        user = get_or_raise(User, parse_int(raw, "assignee_ids"), "User")
        if not user.is_active:
            raise ValidationError(f"User {user.id} is inactive", details={"assignee_ids": user.id})
        if user not in users:
            users.append(user)
    return users


def _sprint_for(project_id, sprint_id):
    sprint_id = parse_int(sprint_id, "sprint_id")
    if sprint_id is None:
        return None
    return get_scoped(Sprint, sprint_id, project_id=project_id)


def _next_board_order(project_id, status):
    current = (
        db.session.query(func.max(Issue.board_order))
        .join(Story, Story.id == Issue.story_id)
        .filter(Story.project_id == project_id, Issue.status == status)
        .scalar()
    )
    return (current or 0) + 1


def _apply_status(issue, target):
    """Apply a column change in memory. Returns the previous status."""
    old = issue.status
    if target == old:
        return old
    allowed = ISSUE_TRANSITIONS.get(old, set())
    if target not in allowed:
        raise ValidationError(
            f"Invalid transition: {old} → {target}. "
            f"Allowed: {', '.join(sorted(allowed)) or 'none'}",
            details={"from": old, "to": target},
        )
    issue.blocked_from_status = old if target == "BLOCKED" else None
    issue.status = target
    return old


# ═════════════════════════════════════════════════════════════════════════════
# ISSUE CRUD
# ═════════════════════════════════════════════════════════════════════════════

def get_issue(issue_id):
    return get_or_raise(Issue, issue_id)


def list_issues_for_story(story_id):
    return get_or_raise(Story, story_id).issues


def list_issues_for_project(project_id, status=None, sprint_id=None, assignee_id=None):
    """Issues of every story in the project.

    ``sprint_id=0`` selects issues outside any sprint (the backlog pool).
    """
    get_or_raise(Project, project_id)
    q = Issue.query.join(Story, Story.id == Issue.story_id).filter(Story.project_id == project_id)
    if status:
        q = q.filter(Issue.status == _status(status))
    if sprint_id is not None:
        q = q.filter(Issue.sprint_id.is_(None) if sprint_id == 0 else Issue.sprint_id == sprint_id)
    issues = q.order_by(Issue.board_order, Issue.id).all()
    if assignee_id is not None:
        issues = [i for i in issues if i.is_assigned_to(assignee_id)]
    return issues


def list_story_assignees(story_id):
    """Distinct users assigned to any issue of the story, by id."""
    story = get_or_raise(Story, story_id)
    users = {u.id: u for issue in story.issues for u in issue.assignees}
    return [users[uid] for uid in sorted(users)]


def create_issue(story_id, data, actor):
    """Create an issue under a story.

    Raises:
        ValidationError: missing title, unknown category/priority/status,
            negative estimate, inactive assignee.
        NotFoundError: story, assignee or sprint (of this project) missing.
    """
    ensure_can_manage_issues(actor)
    story = get_or_raise(Story, story_id)

    title = data.get("title")
    title = title.strip() if isinstance(title, str) else ""
    if not title:
        raise ValidationError("Issue title is required", details={"title": "required"})

    status = _status(data.get("status") or "TO_DO")
    board_order = parse_int(data.get("board_order"), "board_order")
    if board_order is None:
        board_order = _next_board_order(story.project_id, status)

    issue = Issue(
        story_id=story.id,
        title=title,
        description=(data.get("description") or "").strip(),
        category=_choice(data.get("category") or "BACKEND", ISSUE_CATEGORIES, "category"),
        priority=_choice(data.get("priority") or "MEDIUM", ISSUE_PRIORITIES, "priority"),
        status=status,
        time_estimate=_time_estimate(data.get("time_estimate")),
        board_order=board_order,
        sprint=_sprint_for(story.project_id, data.get("sprint_id")),
        assignees=_assignees(data.get("assignee_ids")),
    )
    if status == "BLOCKED":
        issue.blocked_from_status = "TO_DO"

    db.session.add(issue)
    commit_or_raise()
    logger.info("Issue %s created under story %s by user=%s", issue.id, story.id, actor.user_id)
    return issue


def update_issue(issue_id, data, actor):
    """Edit issue fields. A ``status`` key goes through the same transition
    rules as move_issue."""
    ensure_can_manage_issues(actor)
    issue = get_or_raise(Issue, issue_id)

    if "title" in data:
        title = data.get("title")
        title = title.strip() if isinstance(title, str) else ""
        if not title:
            raise ValidationError("Issue title cannot be empty", details={"title": "required"})
        issue.title = title
    if "description" in data:
        issue.description = (data.get("description") or "").strip()
    if "category" in data:
        issue.category = _choice(data["category"], ISSUE_CATEGORIES, "category")
    if "priority" in data:
        issue.priority = _choice(data["priority"], ISSUE_PRIORITIES, "priority")
    if "time_estimate" in data:
        issue.time_estimate = _time_estimate(data["time_estimate"])
    if "assignee_ids" in data:
        issue.assignees = _assignees(data["assignee_ids"])
    if "sprint_id" in data:
        issue.sprint = _sprint_for(issue.project_id, data["sprint_id"])
    if "board_order" in data:
        issue.board_order = parse_int(data["board_order"], "board_order", allow_none=False)
    if "status" in data:
        _apply_status(issue, _status(data["status"]))

    commit_or_raise()
    logger.info("Issue %s updated by user=%s", issue.id, actor.user_id)
    return issue


def delete_issue(issue_id, actor):
    ensure_can_manage_issues(actor)
    issue = get_or_raise(Issue, issue_id)
    db.session.delete(issue)
    commit_or_raise()
    logger.info("Issue %s deleted by user=%s", issue_id, actor.user_id)


# ═════════════════════════════════════════════════════════════════════════════
# STATE MACHINE
# ═════════════════════════════════════════════════════════════════════════════

def move_issue(issue_id, target_status, actor, board_order=None):
    """Move an issue to another board column.

    Raises:
        NotFoundError: unknown issue.
        ValidationError: unknown column, or DONE → BLOCKED.
        AuthorizationError: actor is neither SM nor an assigned DEV.
        TransientError: the store failed; the issue keeps its old column.
    """
    issue = get_or_raise(Issue, issue_id)
    target = _status(target_status)
    ensure_can_move_issue(actor, issue)

    old = _apply_status(issue, target)
    if board_order is not None:
        issue.board_order = parse_int(board_order, "board_order", allow_none=False)
    if old == issue.status and board_order is None:
        return issue

    commit_or_raise()
    logger.info("Issue %s moved %s → %s by user=%s", issue.id, old, issue.status, actor.user_id)
    return issue


def unblock_issue(issue_id, actor):
    """Return a BLOCKED issue to the column it was blocked from (TO_DO if unknown)."""
    issue = get_or_raise(Issue, issue_id)
    if issue.status != "BLOCKED":
        raise ValidationError(
            f"Issue {issue.id} is not blocked (status {issue.status})",
            details={"status": issue.status},
        )
    return move_issue(issue.id, issue.blocked_from_status or "TO_DO", actor)


def assign_to_sprint(issue_id, sprint_id, actor):
    """Put an issue in a sprint of the same project, or back in the pool with None.

    Raises:
        NotFoundError: issue missing, or sprint missing / in another project.
    """
    ensure_can_assign_sprint(actor)
    issue = get_or_raise(Issue, issue_id)
    sprint = _sprint_for(issue.project_id, sprint_id)

    old_sprint_id = issue.sprint_id
    issue.sprint = sprint
    commit_or_raise()
    logger.info(
        "Issue %s sprint %s → %s by user=%s",
        issue.id, old_sprint_id, sprint.id if sprint else None, actor.user_id,
    )
    return issue


# ═════════════════════════════════════════════════════════════════════════════
# KANBAN BOARD
# ═════════════════════════════════════════════════════════════════════════════

def compute_board(project_id, sprint_id=None):
    """Kanban board view — issues grouped by column with an hours summary.

    Returns:
        dict with 'columns', 'summary' and (when scoped) 'sprint' keys.
    """
    get_or_raise(Project, project_id)
    sprint = get_scoped(Sprint, sprint_id, project_id=project_id) if sprint_id is not None else None

    q = Issue.query.join(Story, Story.id == Issue.story_id).filter(Story.project_id == project_id)
    if sprint is not None:
        q = q.filter(Issue.sprint_id == sprint.id)
    issues = q.order_by(Issue.board_order, Issue.id).all()

    columns = {s: [] for s in ISSUE_STATUSES}
    total_hours = 0.0
    done_hours = 0.0
    for i in issues:
        columns[i.status].append(i.to_dict())
        total_hours += i.time_estimate or 0.0
        if i.status == "DONE":
            done_hours += i.time_estimate or 0.0

    board = {
        "columns": columns,
        "summary": {
            "total_issues": len(issues),
            "blocked_issues": len(columns["BLOCKED"]),
            "total_hours": round(total_hours, 2),
            "done_hours": round(done_hours, 2),
            "completion_pct": percent(done_hours, total_hours),
        },
    }
    if sprint is not None:
        board["sprint"] = sprint.to_dict()
    return board
