"""Phone line lookups and call bookkeeping."""

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from callflow.models.phone_line import PhoneLine
from callflow.services.routing.exceptions import PhoneLineNotFoundError

logger = logging.getLogger(__name__)


def get_phone_line(db: Session, phone_line_id: uuid.UUID) -> PhoneLine:
    line = db.get(PhoneLine, phone_line_id)
    if line is None:
        raise PhoneLineNotFoundError(phone_line_id)
    return line


def get_phone_line_by_number(db: Session, phone_number: str) -> PhoneLine | None:
    """Resolve the active line for a dialed number."""
    return db.execute(
        select(PhoneLine).where(
            PhoneLine.phone_number == phone_number,
            PhoneLine.is_active.is_(True),
        )
    ).scalar_one_or_none()


def get_default_line_for_user(db: Session, user_id: uuid.UUID) -> PhoneLine | None:
    """Return the user's default active line, or their oldest active line."""
    return (
        db.execute(
            select(PhoneLine)
            .where(PhoneLine.user_id == user_id, PhoneLine.is_active.is_(True))
            .order_by(PhoneLine.is_default.desc(), PhoneLine.created_at)
            .limit(1)
        )
        .scalars()
        .first()
    )


def clear_other_defaults(db: Session, line: PhoneLine) -> None:
    """Keep a single default line per user."""
    db.execute(
        update(PhoneLine)
        .where(PhoneLine.user_id == line.user_id, PhoneLine.id != line.id, PhoneLine.is_default.is_(True))
        .values(is_default=False)
        .execution_options(synchronize_session=False)
    )


def record_inbound_call(db: Session, phone_line_id: uuid.UUID, now: datetime | None = None) -> None:
    """Atomically bump the line's inbound call counter."""
    if now is None:
        now = datetime.now(timezone.utc)

    db.execute(
        update(PhoneLine)
        .where(PhoneLine.id == phone_line_id)
        .values(
            total_inbound_calls=PhoneLine.total_inbound_calls + 1,
            last_inbound_call=now,
        )
        .execution_options(synchronize_session=False)
    )
    db.commit()


def delete_phone_line(db: Session, phone_line_id: uuid.UUID) -> None:
    """Delete a line together with its routing rules."""
    line = get_phone_line(db, phone_line_id)
    rule_count = len(line.routing_rules)
    db.delete(line)
    db.commit()
    logger.info("Deleted phone line %s and %d routing rules", phone_line_id, rule_count)
