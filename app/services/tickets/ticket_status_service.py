from datetime import datetime, timezone
import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func

from app.models.tickets.ticket_models import Ticket, TicketStatusHistory
from app.models.enums.ticket_status import InternalStatus

from app.schemas.tickets.ticket_schemas import (
    TicketCreate,
    TicketTransitionRequest,
    TicketReopenRequest,
    TicketOut,
    TicketTransitionOut,
    StatusHistoryEntryOut,
    NextStatusOut,
    TicketStatusStats,
    TicketHistoryData,
)

from app.services.tickets.status_workflow import (
    STATUS_PHASE,
    FINANCIAL_MARKERS,
    REQUIRES_DEPOSIT,
    REQUIRES_FINAL_PAYMENT,
    FORBIDDEN_AFTER_DEPOSIT,
    can_transition,
    next_statuses,
    is_terminal,
    client_status,
    financial_gate_violation,
)
from app.services.notifications.transition_events import (
    TicketTransitionEvent,
    dispatch_transition_event,
)

from app.core.db import commit_or_raise
from app.core.exceptions import NotFound, InvalidTransition, InvalidState, PermissionDenied
from app.constants.error_codes import ErrorCode
from app.constants.activity_codes import ActivityCode
from app.constants.roles import PRIVILEGED_ROLES
from app.utils.activity_helpers import emit_user_activity

logger = logging.getLogger(__name__)


# =====================================================
# READ HELPERS
# =====================================================

async def _get_ticket(db: AsyncSession, ticket_id: int) -> Ticket:
    result = await db.execute(
        select(Ticket)
        .where(Ticket.id == ticket_id)
        .execution_options(populate_existing=True)
    )
    ticket = result.scalar_one_or_none()
    if not ticket:
        raise NotFound("Ticket not found", ErrorCode.TICKET_NOT_FOUND)
    return ticket


def _map_ticket(t: Ticket) -> TicketOut:
    return TicketOut(
        id=t.id,
        ticket_number=t.ticket_number,
        title=t.title,
        description=t.description,
        customer_name=t.customer_name,
        customer_email=t.customer_email,
        status=t.status,
        phase=STATUS_PHASE[t.status],
        client_status=client_status(t.status),
        deposit_amount=t.deposit_amount,
        final_amount=t.final_amount,
        deposit_invoice_sent_at=t.deposit_invoice_sent_at,
        deposit_received_at=t.deposit_received_at,
        final_invoice_sent_at=t.final_invoice_sent_at,
        final_payment_received_at=t.final_payment_received_at,
        completed_at=t.completed_at,
        cancelled_at=t.cancelled_at,
        cancellation_reason=t.cancellation_reason,
        on_hold_reason=t.on_hold_reason,
        version=t.version,
        created_by=t.created_by_id,
        updated_by=t.updated_by_id,
        created_at=t.created_at,
        updated_at=t.updated_at,
    )


def _gate_reason(ticket: Ticket, target: InternalStatus) -> str | None:
    return financial_gate_violation(
        to_status=target,
        deposit_received=ticket.deposit_received_at is not None,
        final_payment_received=ticket.final_payment_received_at is not None,
    )


def _gate_conditions(target: InternalStatus) -> list:
    # Same gates, re-asserted against the row being written
    conditions = []
    if target in REQUIRES_DEPOSIT:
        conditions.append(Ticket.deposit_received_at.is_not(None))
    if target in REQUIRES_FINAL_PAYMENT:
        conditions.append(Ticket.final_payment_received_at.is_not(None))
    if target in FORBIDDEN_AFTER_DEPOSIT:
        conditions.append(Ticket.deposit_received_at.is_(None))
    return conditions


def _status_values(
    current: InternalStatus,
    target: InternalStatus,
    now: datetime,
    reason: str | None,
    user,
) -> dict:
    values = {
        "status": target,
        "version": Ticket.version + 1,
        "updated_by_id": user.id,
    }

    marker = FINANCIAL_MARKERS.get(target)
    if marker:
        # first stamp wins when a resumed ticket re-enters the status
        column = getattr(Ticket, marker)
        values[marker] = func.coalesce(column, now)

    if target == InternalStatus.COMPLETED:
        values["completed_at"] = now
    elif target in (InternalStatus.CANCELLED, InternalStatus.DEAD_LEAD):
        values["cancelled_at"] = now
        values["cancellation_reason"] = reason
    elif target == InternalStatus.ON_HOLD:
        values["on_hold_reason"] = reason

    if current == InternalStatus.ON_HOLD and target != InternalStatus.ON_HOLD:
        values["on_hold_reason"] = None

    return values


async def _apply_status_change(
    db: AsyncSession,
    *,
    ticket: Ticket,
    target: InternalStatus,
    user,
    reason: str | None,
    notes: str | None,
    is_override: bool,
    extra_values: dict | None = None,
) -> TicketStatusHistory:
    """
    ONE conditional UPDATE guarded by the status that was read, plus the
    history row, in the caller's transaction. Zero matched rows means the
    ticket moved underneath us (or its gates changed): nothing is written.
    """
    # rollback expires the instance; only locals are safe after it
    ticket_id = ticket.id
    current = ticket.status
    now = datetime.now(timezone.utc)

    values = _status_values(current, target, now, reason, user)
    if extra_values:
        values.update(extra_values)

    result = await db.execute(
        update(Ticket)
        .where(
            Ticket.id == ticket_id,
            Ticket.status == current,
            *_gate_conditions(target),
        )
        .values(**values)
        .returning(Ticket.id)
    )

    updated_id = result.scalar_one_or_none()
    if not updated_id:
        await db.rollback()
        logger.warning(
            "Ticket %s transition %s -> %s lost a race",
            ticket_id,
            current.value,
            target.value,
        )
        raise InvalidTransition(
            current,
            target,
            "Ticket state changed concurrently; re-read the ticket and retry",
        )

    entry = TicketStatusHistory(
        ticket_id=updated_id,
        status=target,
        from_status=current,
        timestamp=now,
        changed_by_id=user.id,
        changed_by=user.username,
        reason=reason,
        notes=notes,
        is_override=is_override,
    )
    db.add(entry)
    await db.flush()
    return entry


def _notify(ticket: Ticket, entry: TicketStatusHistory) -> None:
    dispatch_transition_event(
        TicketTransitionEvent(
            ticket_id=ticket.id,
            ticket_number=ticket.ticket_number,
            from_status=entry.from_status,
            to_status=entry.status,
            actor=entry.changed_by,
            timestamp=entry.timestamp,
            is_override=entry.is_override,
        )
    )


# =====================================================
# CREATE / READ
# =====================================================

async def create_ticket(
    db: AsyncSession,
    payload: TicketCreate,
    user,
) -> TicketOut:
    t = Ticket(
        ticket_number="TEMP",
        title=payload.title.strip(),
        description=payload.description,
        customer_name=payload.customer_name.strip(),
        customer_email=payload.customer_email,
        status=InternalStatus.PENDING,
        deposit_amount=payload.deposit_amount,
        final_amount=payload.final_amount,
        version=1,
        created_by_id=user.id,
        updated_by_id=user.id,
    )

    db.add(t)
    await db.flush()

    t.ticket_number = f"CT-{t.id:06d}"

    db.add(
        TicketStatusHistory(
            ticket_id=t.id,
            status=InternalStatus.PENDING,
            from_status=None,
            timestamp=datetime.now(timezone.utc),
            changed_by_id=user.id,
            changed_by=user.username,
            reason="Ticket created",
            is_override=False,
        )
    )

    await emit_user_activity(
        db,
        user,
        ActivityCode.CREATE_TICKET,
        target_name=t.ticket_number,
    )

    await commit_or_raise(db)
    logger.info("Ticket %s created (%s)", t.id, t.ticket_number)

    return _map_ticket(await _get_ticket(db, t.id))


async def get_ticket(db: AsyncSession, ticket_id: int) -> TicketOut:
    return _map_ticket(await _get_ticket(db, ticket_id))


async def get_ticket_status_history(
    db: AsyncSession,
    ticket_id: int,
) -> TicketHistoryData:
    await _get_ticket(db, ticket_id)

    result = await db.execute(
        select(TicketStatusHistory)
        .where(TicketStatusHistory.ticket_id == ticket_id)
        .order_by(TicketStatusHistory.id.asc())
    )

    return TicketHistoryData(
        ticket_id=ticket_id,
        items=[StatusHistoryEntryOut.model_validate(h) for h in result.scalars()],
    )


async def get_next_statuses(
    db: AsyncSession,
    ticket_id: int,
) -> list[NextStatusOut]:
    ticket = await _get_ticket(db, ticket_id)

    return [
        NextStatusOut(
            status=s,
            phase=STATUS_PHASE[s],
            client_status=client_status(s),
            blocked_reason=_gate_reason(ticket, s),
        )
        for s in next_statuses(ticket.status)
    ]


async def get_status_statistics(db: AsyncSession) -> TicketStatusStats:
    result = await db.execute(
        select(Ticket.status, func.count(Ticket.id)).group_by(Ticket.status)
    )

    by_status: dict[str, int] = {}
    by_client: dict[str, int] = {}
    for status, count in result.all():
        by_status[status.value] = count
        key = client_status(status).value
        by_client[key] = by_client.get(key, 0) + count

    return TicketStatusStats(
        total=sum(by_status.values()),
        by_status=by_status,
        by_client_status=by_client,
    )


# =====================================================
# TRANSITION
# =====================================================

async def transition_ticket(
    db: AsyncSession,
    ticket_id: int,
    payload: TicketTransitionRequest,
    user,
) -> TicketTransitionOut:
    ticket = await _get_ticket(db, ticket_id)
    current = ticket.status
    target = payload.status

    if payload.expected_status is not None and payload.expected_status != current:
        raise InvalidTransition(
            current,
            target,
            f"Ticket is '{current.value}', not '{payload.expected_status.value}'",
        )

    if not can_transition(from_status=current, to_status=target):
        raise InvalidTransition(current, target)

    gate = _gate_reason(ticket, target)
    if gate:
        raise InvalidState(
            gate,
            ErrorCode.TICKET_INVALID_STATE,
            {"current_status": current.value, "requested_status": target.value},
        )

    entry = await _apply_status_change(
        db,
        ticket=ticket,
        target=target,
        user=user,
        reason=payload.reason,
        notes=payload.notes,
        is_override=False,
    )

    await emit_user_activity(
        db,
        user,
        ActivityCode.TRANSITION_TICKET,
        target_name=ticket.ticket_number,
        old_status=current.value,
        new_status=target.value,
    )

    await commit_or_raise(db)

    ticket = await _get_ticket(db, ticket_id)
    logger.info("Ticket %s transitioned %s -> %s", ticket.id, current.value, target.value)
    _notify(ticket, entry)

    return TicketTransitionOut(
        ticket_id=ticket.id,
        ticket_number=ticket.ticket_number,
        status=ticket.status,
        client_status=client_status(ticket.status),
        version=ticket.version,
        status_history_entry=StatusHistoryEntryOut.model_validate(entry),
    )


async def reopen_ticket(
    db: AsyncSession,
    ticket_id: int,
    payload: TicketReopenRequest,
    user,
) -> TicketTransitionOut:
    if user.role.lower() not in PRIVILEGED_ROLES:
        raise PermissionDenied("Only administrators can reopen closed tickets")

    reason = payload.reason.strip()
    if not reason:
        raise InvalidState("A reason is required to reopen a ticket", ErrorCode.TICKET_INVALID_STATE)

    ticket = await _get_ticket(db, ticket_id)
    current = ticket.status
    target = payload.status

    if not is_terminal(current):
        raise InvalidState(
            f"Only closed tickets can be reopened (ticket is '{current.value}')",
            ErrorCode.TICKET_INVALID_STATE,
        )

    if is_terminal(target):
        raise InvalidTransition(current, target, "A ticket must be reopened into an open status")

    gate = _gate_reason(ticket, target)
    if gate:
        raise InvalidState(
            gate,
            ErrorCode.TICKET_INVALID_STATE,
            {"current_status": current.value, "requested_status": target.value},
        )

    entry = await _apply_status_change(
        db,
        ticket=ticket,
        target=target,
        user=user,
        reason=reason,
        notes=payload.notes,
        is_override=True,
        extra_values={"completed_at": None, "cancelled_at": None, "cancellation_reason": None},
    )

    await emit_user_activity(
        db,
        user,
        ActivityCode.REOPEN_TICKET,
        target_name=ticket.ticket_number,
        old_status=current.value,
        new_status=target.value,
        reason=reason,
    )

    await commit_or_raise(db)

    ticket = await _get_ticket(db, ticket_id)
    logger.warning(
        "Ticket %s reopened by override %s -> %s (by %s)",
        ticket.id,
        current.value,
        target.value,
        user.username,
    )
    _notify(ticket, entry)

    return TicketTransitionOut(
        ticket_id=ticket.id,
        ticket_number=ticket.ticket_number,
        status=ticket.status,
        client_status=client_status(ticket.status),
        version=ticket.version,
        status_history_entry=StatusHistoryEntryOut.model_validate(entry),
    )
