"""
Auth models — users and their role tags.

Authentication itself is external; these tables only record who a bearer
token's ``sub`` refers to, which roles they hold and whether they are active.
"""

from datetime import datetime, timezone

from board_service.core.context import Role
from board_service.models import db


# ═══════════════════════════════════════════════════════════════
# USERS
# ═══════════════════════════════════════════════════════════════
class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(200), nullable=False, unique=True, index=True)
    full_name = db.Column(db.String(200), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    user_roles = db.relationship(
        "UserRole", back_populates="user", lazy="selectin",
        cascade="all, delete-orphan",
    )

    @property
    def roles(self) -> set:
        """Resolved Role members for this user."""
        return {Role(ur.role) for ur in self.user_roles}

    def set_roles(self, roles) -> None:
        """Replace the role set (``roles`` already resolved to Role members)."""
        wanted = {Role(r) for r in roles}
        for ur in list(self.user_roles):
            if Role(ur.role) not in wanted:
                self.user_roles.remove(ur)
        have = self.roles
        for r in sorted(wanted - have, key=lambda x: x.value):
            self.user_roles.append(UserRole(role=r.value))

    def has_role(self, role: Role) -> bool:
        return role in self.roles

    def to_dict(self, include_roles=True):
        d = {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if include_roles:
            d["roles"] = sorted(r.value for r in self.roles)
        return d

    def to_brief(self):
        return {"id": self.id, "full_name": self.full_name}

    def __repr__(self):
        return f"<User {self.id}: {self.email}>"


class UserRole(db.Model):
    """One role tag held by a user. Values are ``Role`` members."""

    __tablename__ = "user_roles"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    role = db.Column(db.String(20), nullable=False, comment="OWNER | ADMIN | PO | SM | DEV")

    __table_args__ = (
        db.UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),
    )

    user = db.relationship("User", back_populates="user_roles")

    def __repr__(self):
        return f"<UserRole user={self.user_id} {self.role}>"
