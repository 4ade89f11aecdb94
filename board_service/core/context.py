"""
Request context passed explicitly to every service operation.

Role tags arrive in several spellings ("PO", "PRODUCT_OWNER", "ROLE_PO").
They are resolved once, here, into the closed ``Role`` enum; nothing past
this module compares raw role strings.
"""

from dataclasses import dataclass, field
from enum import Enum

from board_service.core.exceptions import ValidationError


class Role(str, Enum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    PO = "PO"
    SM = "SM"
    DEV = "DEV"

    @classmethod
    def parse(cls, tag: str) -> "Role":
        """Resolve a raw role tag (any known synonym, any case) to a Role."""
        if not isinstance(tag, str) or not tag.strip():
            raise ValidationError("role must be a non-empty string", details={"role": tag})
        key = tag.strip().upper()
        if key.startswith("ROLE_"):
            key = key[len("ROLE_"):]
        role = _ROLE_SYNONYMS.get(key)
        if role is None:
            raise ValidationError(
                f"Unknown role '{tag}'. Allowed: {', '.join(r.value for r in cls)}",
                details={"role": tag},
            )
        return role

    @classmethod
    def parse_many(cls, tags) -> frozenset:
        return frozenset(cls.parse(t) for t in (tags or []))


_ROLE_SYNONYMS = {
    "OWNER": Role.OWNER,
    "ADMIN": Role.ADMIN,
    "ADMINISTRATOR": Role.ADMIN,
    "PO": Role.PO,
    "PRODUCT_OWNER": Role.PO,
    "SM": Role.SM,
    "SCRUM_MASTER": Role.SM,
    "DEV": Role.DEV,
    "DEVELOPER": Role.DEV,
}

SUPERUSER_ROLES = frozenset({Role.OWNER, Role.ADMIN})


@dataclass(frozen=True)
class Actor:
    """The authenticated caller of a service operation."""

    user_id: int
    roles: frozenset = field(default_factory=frozenset)

    @classmethod
    def from_user(cls, user) -> "Actor":
        return cls(user_id=user.id, roles=frozenset(user.roles))

    def has_role(self, *roles: Role) -> bool:
        return any(r in self.roles for r in roles)

    @property
    def is_superuser(self) -> bool:
        return bool(self.roles & SUPERUSER_ROLES)
