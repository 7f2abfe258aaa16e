from pydantic import BaseModel, Field
from typing import List, Optional, Dict
from decimal import Decimal
from datetime import datetime

from app.models.enums.ticket_status import InternalStatus, ClientStatus, StatusPhase

# =====================================================
# PAYLOADS
# =====================================================

class TicketCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    customer_name: str = Field(..., min_length=1, max_length=255)
    customer_email: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    deposit_amount: Decimal = Field(Decimal("0.00"), ge=0)
    final_amount: Decimal = Field(Decimal("0.00"), ge=0)


class TicketTransitionRequest(BaseModel):
    status: InternalStatus
    reason: Optional[str] = None
    notes: Optional[str] = None
    # Optimistic guard: reject if the ticket is no longer in this status
    expected_status: Optional[InternalStatus] = None


class TicketReopenRequest(BaseModel):
    status: InternalStatus
    reason: str = Field(..., min_length=1)
    notes: Optional[str] = None


# =====================================================
# RESPONSES
# =====================================================

class StatusHistoryEntryOut(BaseModel):
    id: int
    status: InternalStatus
    from_status: Optional[InternalStatus]
    timestamp: datetime
    changed_by_id: Optional[int]
    changed_by: str
    reason: Optional[str]
    notes: Optional[str]
    is_override: bool

    class Config:
        from_attributes = True


class TicketOut(BaseModel):
    id: int
    ticket_number: str
    title: str
    description: Optional[str]
    customer_name: str
    customer_email: Optional[str]

    status: InternalStatus
    phase: StatusPhase
    client_status: ClientStatus

    deposit_amount: Decimal
    final_amount: Decimal
    deposit_invoice_sent_at: Optional[datetime]
    deposit_received_at: Optional[datetime]
    final_invoice_sent_at: Optional[datetime]
    final_payment_received_at: Optional[datetime]

    completed_at: Optional[datetime]
    cancelled_at: Optional[datetime]
    cancellation_reason: Optional[str]
    on_hold_reason: Optional[str]

    version: int
    created_by: Optional[int]
    updated_by: Optional[int]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]


class TicketTransitionOut(BaseModel):
    ticket_id: int
    ticket_number: str
    status: InternalStatus
    client_status: ClientStatus
    version: int
    status_history_entry: StatusHistoryEntryOut


class NextStatusOut(BaseModel):
    status: InternalStatus
    phase: StatusPhase
    client_status: ClientStatus
    # Set when the move is legal but a financial precondition is not met yet
    blocked_reason: Optional[str] = None


class TicketStatusStats(BaseModel):
    total: int
    by_status: Dict[str, int]
    by_client_status: Dict[str, int]


class TicketHistoryData(BaseModel):
    ticket_id: int
    items: List[StatusHistoryEntryOut]
