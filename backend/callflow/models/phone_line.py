import uuid
from datetime import datetime

from sqlalchemy import Boolean, Index, Integer, String, false, func, true
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from callflow.core.database import Base


class PhoneLine(Base):
    """A provisioned telephone number assigned to a user.

    Inbound calls are resolved to a line by the dialed number; the line is the
    scope under which call routing rules are evaluated.
    """

    __tablename__ = "phone_lines"
    __table_args__ = (
        Index("ix_phone_lines_phone_number", "phone_number", unique=True),
        Index("ix_phone_lines_user_id", "user_id"),
        Index("ix_phone_lines_user_default", "user_id", "is_default"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    phone_number: Mapped[str] = mapped_column(String(20), nullable=False)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
    forward_to: Mapped[str | None] = mapped_column(
        String(20), nullable=True, doc="Device number that rings the owner when no rule takes the call."
    )
    forward_after_rings: Mapped[int] = mapped_column(Integer, nullable=False, default=3, server_default="3")
    total_inbound_calls: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    last_inbound_call: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(server_default=func.now(), onupdate=func.now())

    routing_rules: Mapped[list["CallRoutingRule"]] = relationship(
        back_populates="phone_line",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<PhoneLine {self.phone_number} ({self.display_name})>"
