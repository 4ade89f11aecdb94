"""Project model — the root every backlog entity hangs off."""

from datetime import datetime, timezone

from board_service.models import db

PROJECT_STATUSES = ("ACTIVE", "COMPLETED", "ARCHIVED")

project_members = db.Table(
    "project_members",
    db.Column(
        "project_id", db.Integer,
        db.ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True,
    ),
    db.Column(
        "user_id", db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True,
    ),
)


class Project(db.Model):
    """A product being built: owner (PO), scrum master and developer members."""

    __tablename__ = "projects"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False, unique=True)
    description = db.Column(db.Text, default="")
    icon = db.Column(db.String(100), default="", comment="Icon key shown by the client")
    status = db.Column(
        db.String(20), nullable=False, default="ACTIVE",
        comment="ACTIVE | COMPLETED | ARCHIVED",
    )
    owner_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
        comment="Product Owner",
    )
    scrum_master_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    start_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)

    # Numbering counters — only ever incremented, never reused.
    next_epic_number = db.Column(db.Integer, nullable=False, default=1)
    next_story_number = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    owner = db.relationship("User", foreign_keys=[owner_id])
    scrum_master = db.relationship("User", foreign_keys=[scrum_master_id])
    members = db.relationship(
        "User", secondary=project_members, lazy="selectin", order_by="User.id",
    )
    epics = db.relationship(
        "Epic", back_populates="project", lazy="dynamic",
        cascade="all, delete-orphan", passive_deletes=True,
    )
    stories = db.relationship(
        "Story", back_populates="project", lazy="dynamic",
        cascade="all, delete-orphan", passive_deletes=True,
    )
    sprints = db.relationship(
        "Sprint", back_populates="project", lazy="dynamic",
        cascade="all, delete-orphan", passive_deletes=True,
    )

    def allocate_epic_number(self) -> int:
        number = self.next_epic_number or 1
        self.next_epic_number = number + 1
        return number

    def allocate_story_number(self) -> int:
        number = self.next_story_number or 1
        self.next_story_number = number + 1
        return number

    @property
    def is_active(self) -> bool:
        return self.status == "ACTIVE"

    def to_dict(self, include_members=False):
        result = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "icon": self.icon,
            "status": self.status,
            "owner_id": self.owner_id,
            "owner": self.owner.to_brief() if self.owner else None,
            "scrum_master_id": self.scrum_master_id,
            "scrum_master": self.scrum_master.to_brief() if self.scrum_master else None,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_members:
            result["members"] = [m.to_brief() for m in self.members]
        return result

    def __repr__(self):
        return f"<Project {self.id}: {self.name}>"
