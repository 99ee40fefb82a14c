"""Call routing rules.

Priority-ordered rules bound to a phone line, evaluated when an inbound call
event arrives from the telephony provider. A rule matches on the call
disposition (busy, no answer, offline, or always) and an optional weekly
schedule, and carries the action to perform on match.

Rules are evaluated highest-priority-first; equal priorities fall back to
``position`` (creation order until the line is reordered), then ``created_at``.
The first matching rule wins. If no rule matches, the webhook handler rings
the line owner or takes a voicemail.

``condition``, ``schedule`` and ``action`` are stored as plain strings / JSON
documents and validated when the matcher reads them, so corrupted rows surface
as configuration errors instead of being skipped.
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Index, Integer, String, func, true
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from callflow.core.database import Base


class CallRoutingRule(Base):
    __tablename__ = "call_routing_rules"
    __table_args__ = (
        Index("ix_call_routing_rules_phone_line_id", "phone_line_id"),
        Index("ix_call_routing_rules_line_active_priority", "phone_line_id", "is_active", "priority"),
        Index("ix_call_routing_rules_line_condition", "phone_line_id", "condition"),
        CheckConstraint("priority >= 0 AND priority <= 100", name="ck_call_routing_rules_priority_range"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    phone_line_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("phone_lines.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    priority: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0", doc="0-100, higher values are evaluated first."
    )
    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
        doc="Per-line sequence used to break priority ties. Rewritten by reorder.",
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
    condition: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        doc="Trigger condition: always, busy, no_answer, offline, working_hours, after_hours, schedule.",
    )
    schedule: Mapped[dict | None] = mapped_column(
        JSONB,
        nullable=True,
        doc="Weekly window {timezone, working_days, start_time, end_time, holidays}. NULL matches any time.",
    )
    no_answer_rings: Mapped[int] = mapped_column(Integer, nullable=False, default=3, server_default="3")
    action: Mapped[dict] = mapped_column(JSONB, nullable=False, doc="Tagged action document keyed by 'type'.")
    triggered_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    last_triggered: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(server_default=func.now(), onupdate=func.now())

    phone_line: Mapped["PhoneLine"] = relationship(back_populates="routing_rules")

    def __repr__(self) -> str:
        return f"<CallRoutingRule '{self.name}' condition={self.condition} priority={self.priority}>"
