from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, Enum, DateTime, Boolean, Index, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from decimal import Decimal
from app.core.db import Base
from app.models.base.mixins import TimestampMixin, AuditMixin
from app.models.enums.ticket_status import InternalStatus


def _status_column_type():
    # Persist the kebab-case value, not the member name
    return Enum(
        InternalStatus,
        values_callable=lambda e: [m.value for m in e],
        native_enum=False,
        length=40,
        validate_strings=True,
    )


class Ticket(Base, TimestampMixin, AuditMixin):
    __tablename__ = "tickets"

    id = Column(Integer, primary_key=True)
    ticket_number = Column(String(50), nullable=False, unique=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(String, nullable=True)
    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=True, index=True)

    status = Column(_status_column_type(), nullable=False, default=InternalStatus.PENDING, index=True)

    # ---- financials (gated by, but independent of, status) ----
    deposit_amount = Column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    final_amount = Column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    deposit_invoice_sent_at = Column(DateTime(timezone=True), nullable=True)
    deposit_received_at = Column(DateTime(timezone=True), nullable=True)
    final_invoice_sent_at = Column(DateTime(timezone=True), nullable=True)
    final_payment_received_at = Column(DateTime(timezone=True), nullable=True)

    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(String, nullable=True)
    on_hold_reason = Column(String, nullable=True)

    version = Column(Integer, nullable=False, default=1)

    status_history = relationship(
        "TicketStatusHistory",
        back_populates="ticket",
        order_by="TicketStatusHistory.id",
        lazy="noload",
    )

    __table_args__ = (
        CheckConstraint("deposit_amount >= 0 AND final_amount >= 0", name="ck_ticket_amounts_non_negative"),
    )

    def __repr__(self):
        return f"<Ticket {self.ticket_number} status={self.status}>"


class TicketStatusHistory(Base):
    """APPEND-ONLY. One row per accepted transition (plus the creation entry)."""

    __tablename__ = "ticket_status_history"

    id = Column(Integer, primary_key=True)
    ticket_id = Column(Integer, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(_status_column_type(), nullable=False)
    from_status = Column(_status_column_type(), nullable=True)
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    changed_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    changed_by = Column(String(150), nullable=False)
    reason = Column(String, nullable=True)
    notes = Column(String, nullable=True)
    is_override = Column(Boolean, nullable=False, default=False)

    ticket = relationship("Ticket", back_populates="status_history", lazy="noload")

    __table_args__ = (Index("ix_ticket_history_ticket_id_id", "ticket_id", "id"),)

    def __repr__(self):
        return f"<TicketStatusHistory ticket={self.ticket_id} {self.from_status}->{self.status}>"
