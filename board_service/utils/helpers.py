"""Shared utility functions used by services and blueprints.

parse_date:        returns None on empty input, raises ValidationError on garbage
parse_int:         strict int coercion for ids / counts from JSON or query strings
percent:           whole-number percentage, halves rounded up
commit_or_raise:   single commit point for every mutating service call
"""
import logging
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from board_service.core.exceptions import ConflictError, TransientError, ValidationError
from board_service.models import db

logger = logging.getLogger(__name__)


def parse_date(value, field="date"):
    """Parse a date string (ISO or DD.MM.YYYY) to a date object.

    Supports:
    - YYYY-MM-DD (ISO format)
    - YYYY-MM-DDTHH:MM:SS (datetime ISO → .date())
    - DD.MM.YYYY

    Returns None for empty input; raises ValidationError for anything else
    that does not parse.
    """
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except (ValueError, TypeError):
        pass
    try:
        return datetime.fromisoformat(str(value)).date()
    except (ValueError, TypeError):
        pass
    try:
        return datetime.strptime(str(value), "%d.%m.%Y").date()
    except (ValueError, TypeError):
        raise ValidationError(
            f"{field} must be a date (YYYY-MM-DD or DD.MM.YYYY)",
            details={field: value},
        )


def parse_int(value, field, *, allow_none=True):
    """Coerce ``value`` to int or raise ValidationError naming ``field``."""
    if value is None or value == "":
        if allow_none:
            return None
        raise ValidationError(f"{field} is required", details={field: "required"})
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", details={field: value})
    try:
        return int(value)
    except (ValueError, TypeError):
        raise ValidationError(f"{field} must be an integer", details={field: value})


def percent(part, whole) -> int:
    """Whole-number percentage of ``part`` in ``whole``; halves round up, so 1 of 8 is 13."""
    if not whole:
        return 0
    ratio = Decimal(str(part)) * 100 / Decimal(str(whole))
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# ── Database commit helper ───────────────────────────────────────────────────

def commit_or_raise():
    """Commit the current session; on failure roll back and raise.

    IntegrityError → ConflictError(DUPLICATE)
    Any other SQLAlchemyError → TransientError (nothing applied, safe to retry)

    The rollback expires every instance in the session, so objects the
    caller still holds reload their last committed state on next access.
    """
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error on commit: %s", exc.orig)
        raise ConflictError(
            "Duplicate or constraint violation", reason=ConflictError.DUPLICATE,
        ) from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Database error on commit")
        raise TransientError("Entity store unavailable; nothing was saved, retry the request") from exc
