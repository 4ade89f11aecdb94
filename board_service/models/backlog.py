"""
Backlog & board domain models.

Models:
    - Epic: large unit of work grouping stories, numbered per project
    - Story: backlog unit the priority score is computed against
    - Issue: execution-level task under a story, tracked on the board
    - Sprint: time-boxed container of issues
    - Comment: discussion thread entry on a story
"""

from datetime import datetime, timezone

from board_service.models import db
from board_service.services.priority_engine import classify, compute_score

# ── Shared constants ─────────────────────────────────────────────────────

EPIC_STATUSES = ("OPEN", "IN_PROGRESS", "DONE")

STORY_STATUSES = ("BACKLOG", "TODO", "DOING", "TESTING", "DONE")

# 0 marks an unestimated story; the rest is the planning-poker scale.
STORY_POINTS = (0, 1, 2, 3, 5, 8, 13, 21)

ISSUE_CATEGORIES = ("BACKEND", "FRONTEND", "DATABASE", "QA", "DESIGN", "BUG", "DEVOPS")

ISSUE_PRIORITIES = ("LOW", "MEDIUM", "HIGH")

# Board columns in workflow order: TO_DO → IN_PROGRESS → CODE_REVIEW → QA → DONE
ISSUE_STATUSES = ("TO_DO", "IN_PROGRESS", "CODE_REVIEW", "QA", "BLOCKED", "DONE")

# Any column may be dropped onto any other; only DONE work cannot be blocked.
ISSUE_TRANSITIONS = {
    status: {s for s in ISSUE_STATUSES if s != status} - ({"BLOCKED"} if status == "DONE" else set())
    for status in ISSUE_STATUSES
}

issue_assignees = db.Table(
    "issue_assignees",
    db.Column(
        "issue_id", db.Integer,
        db.ForeignKey("issues.id", ondelete="CASCADE"), primary_key=True,
    ),
    db.Column(
        "user_id", db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True,
    ),
)


def _utcnow():
    return datetime.now(timezone.utc)


class Epic(db.Model):
    """Groups stories. Deleting an epic deletes its stories."""

    __tablename__ = "epics"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    epic_number = db.Column(db.Integer, nullable=False)
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, default="")
    status = db.Column(db.String(20), nullable=False, default="OPEN", comment="OPEN | IN_PROGRESS | DONE")

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        db.UniqueConstraint("project_id", "epic_number", name="uq_epics_project_number"),
    )

    project = db.relationship("Project", back_populates="epics")
    stories = db.relationship(
        "Story", back_populates="epic", cascade="all, delete-orphan",
        order_by="Story.story_number",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "epic_number": self.epic_number,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "story_count": len(self.stories),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Epic {self.id}: #{self.epic_number} {self.title}>"


class Story(db.Model):
    """
    User-facing backlog item.

    ``priority_score`` is stored for sorting in SQL but is always rewritten by
    ``recompute_priority()`` when business_value, urgency or story_points change.
    """

    __tablename__ = "stories"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    epic_id = db.Column(
        db.Integer, db.ForeignKey("epics.id", ondelete="CASCADE"), nullable=True, index=True,
    )
    story_number = db.Column(db.Integer, nullable=False)
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, default="")
    acceptance_criteria = db.Column(db.JSON, default=list, comment="Ordered list of strings")

    business_value = db.Column(db.Integer, nullable=False, default=0, comment="0-100")
    urgency = db.Column(db.Integer, nullable=False, default=0, comment="0-100")
    story_points = db.Column(db.Integer, nullable=True, comment="Fibonacci: 1,2,3,5,8,13,21")
    priority_score = db.Column(db.Float, nullable=False, default=0.0)

    status = db.Column(
        db.String(20), nullable=False, default="BACKLOG",
        comment="BACKLOG | TODO | DOING | TESTING | DONE",
    )

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        db.UniqueConstraint("project_id", "story_number", name="uq_stories_project_number"),
    )

    project = db.relationship("Project", back_populates="stories")
    epic = db.relationship("Epic", back_populates="stories")
    issues = db.relationship(
        "Issue", back_populates="story", cascade="all, delete-orphan",
        order_by="Issue.board_order, Issue.id",
    )
    comments = db.relationship(
        "Comment", back_populates="story", cascade="all, delete-orphan",
        order_by="Comment.created_at, Comment.id",
    )

    def recompute_priority(self) -> float:
        self.priority_score = compute_score(self.business_value, self.urgency, self.story_points)
        return self.priority_score

    @property
    def is_complete(self) -> bool:
        if self.status == "DONE":
            return True
        return bool(self.issues) and all(i.status == "DONE" for i in self.issues)

    def to_dict(self, include_issues=False):
        score = compute_score(self.business_value, self.urgency, self.story_points)
        tier = classify(score)
        result = {
            "id": self.id,
            "project_id": self.project_id,
            "epic_id": self.epic_id,
            "story_number": self.story_number,
            "title": self.title,
            "description": self.description,
            "acceptance_criteria": list(self.acceptance_criteria or []),
            "business_value": self.business_value,
            "urgency": self.urgency,
            "story_points": self.story_points,
            "priority_score": round(score, 2),
            "priority_tier": tier.value,
            "priority_label": tier.label,
            "status": self.status,
            "is_complete": self.is_complete,
            "issue_count": len(self.issues),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_issues:
            result["issues"] = [i.to_dict() for i in self.issues]
        return result

    def __repr__(self):
        return f"<Story {self.id}: #{self.story_number} {self.title}>"


class Issue(db.Model):
    """
    Board card under a story.

    Lifecycle: TO_DO → IN_PROGRESS → CODE_REVIEW → QA → DONE, with BLOCKED
    reachable from any non-DONE column. ``blocked_from_status`` remembers the
    column an issue was blocked from so it can be put back.
    """

    __tablename__ = "issues"

    id = db.Column(db.Integer, primary_key=True)
    story_id = db.Column(
        db.Integer, db.ForeignKey("stories.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    sprint_id = db.Column(
        db.Integer, db.ForeignKey("sprints.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, default="")
    category = db.Column(
        db.String(20), nullable=False, default="BACKEND",
        comment="BACKEND | FRONTEND | DATABASE | QA | DESIGN | BUG | DEVOPS",
    )
    status = db.Column(
        db.String(20), nullable=False, default="TO_DO",
        comment="TO_DO | IN_PROGRESS | CODE_REVIEW | QA | BLOCKED | DONE",
    )
    blocked_from_status = db.Column(db.String(20), nullable=True)
    priority = db.Column(db.String(10), nullable=False, default="MEDIUM", comment="LOW | MEDIUM | HIGH")
    time_estimate = db.Column(db.Float, nullable=False, default=0.0, comment="Hours")
    board_order = db.Column(
        db.Integer, default=0,
        comment="Display order within the same status column on the kanban board",
    )

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    story = db.relationship("Story", back_populates="issues")
    sprint = db.relationship("Sprint", back_populates="issues")
    assignees = db.relationship(
        "User", secondary=issue_assignees, lazy="selectin", order_by="User.id",
    )

    @property
    def project_id(self):
        return self.story.project_id if self.story else None

    def is_assigned_to(self, user_id) -> bool:
        return any(u.id == user_id for u in self.assignees)

    def to_dict(self):
        return {
            "id": self.id,
            "story_id": self.story_id,
            "story": {"id": self.story.id, "title": self.story.title} if self.story else None,
            "project_id": self.project_id,
            "sprint_id": self.sprint_id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "status": self.status,
            "blocked_from_status": self.blocked_from_status,
            "priority": self.priority,
            "time_estimate": self.time_estimate,
            "board_order": self.board_order,
            "assignees": [u.to_brief() for u in self.assignees],
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Issue {self.id}: {self.title} [{self.status}]>"


class Sprint(db.Model):
    """Time-boxed container of issues. Active while start_date ≤ today ≤ end_date."""

    __tablename__ = "sprints"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    name = db.Column(db.String(100), nullable=False, comment="e.g. Sprint 1")
    goal = db.Column(db.Text, default="")
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    project = db.relationship("Project", back_populates="sprints")
    issues = db.relationship("Issue", back_populates="sprint", order_by="Issue.board_order, Issue.id")

    def is_active_on(self, day) -> bool:
        return self.start_date <= day <= self.end_date

    @property
    def is_active(self) -> bool:
        return self.is_active_on(_utcnow().date())

    def to_dict(self, include_issues=False):
        result = {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "goal": self.goal,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_issues:
            result["issues"] = [i.to_dict() for i in self.issues]
        return result

    def __repr__(self):
        return f"<Sprint {self.id}: {self.name}>"


class Comment(db.Model):
    __tablename__ = "comments"

    id = db.Column(db.Integer, primary_key=True)
    story_id = db.Column(
        db.Integer, db.ForeignKey("stories.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    author_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    content = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    story = db.relationship("Story", back_populates="comments")
    author = db.relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "story_id": self.story_id,
            "content": self.content,
            "author": self.author.to_brief() if self.author else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
