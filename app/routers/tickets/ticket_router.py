from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.utils.check_roles import require_role
from app.constants.roles import ADMIN, STAFF
from app.utils.response import success_response, APIResponse, ERROR_RESPONSES

from app.schemas.tickets.ticket_schemas import (
    TicketCreate,
    TicketTransitionRequest,
    TicketReopenRequest,
    TicketOut,
    TicketTransitionOut,
    NextStatusOut,
    TicketStatusStats,
    TicketHistoryData,
)

from app.services.tickets.ticket_status_service import (
    create_ticket,
    get_ticket,
    get_ticket_status_history,
    get_next_statuses,
    get_status_statistics,
    transition_ticket,
    reopen_ticket,
)

router = APIRouter(
    prefix="/tickets",
    tags=["Tickets"],
    responses=ERROR_RESPONSES,
)


@router.post(
    "",
    response_model=APIResponse[TicketOut],
)
async def create_ticket_api(
    payload: TicketCreate,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role([ADMIN, STAFF])),
):
    ticket = await create_ticket(db, payload, user)
    return success_response("Ticket created successfully", ticket)


@router.get(
    "/stats",
    response_model=APIResponse[TicketStatusStats],
)
async def ticket_status_stats_api(
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role([ADMIN, STAFF])),
):
    stats = await get_status_statistics(db)
    return success_response("Ticket status statistics fetched successfully", stats)


@router.get(
    "/{ticket_id}",
    response_model=APIResponse[TicketOut],
)
async def get_ticket_api(
    ticket_id: int,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role([ADMIN, STAFF])),
):
    ticket = await get_ticket(db, ticket_id)
    return success_response("Ticket fetched successfully", ticket)


@router.get(
    "/{ticket_id}/history",
    response_model=APIResponse[TicketHistoryData],
)
async def get_ticket_history_api(
    ticket_id: int,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role([ADMIN, STAFF])),
):
    history = await get_ticket_status_history(db, ticket_id)
    return success_response("Ticket status history fetched successfully", history)


@router.get(
    "/{ticket_id}/next-statuses",
    response_model=APIResponse[List[NextStatusOut]],
)
async def get_next_statuses_api(
    ticket_id: int,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role([ADMIN, STAFF])),
):
    statuses = await get_next_statuses(db, ticket_id)
    return success_response("Next statuses fetched successfully", statuses)


@router.post(
    "/{ticket_id}/transition",
    response_model=APIResponse[TicketTransitionOut],
)
async def transition_ticket_api(
    ticket_id: int,
    payload: TicketTransitionRequest,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role([ADMIN, STAFF])),
):
    result = await transition_ticket(db, ticket_id, payload, user)
    return success_response("Ticket status updated successfully", result)


@router.post(
    "/{ticket_id}/reopen",
    response_model=APIResponse[TicketTransitionOut],
)
async def reopen_ticket_api(
    ticket_id: int,
    payload: TicketReopenRequest,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role([ADMIN])),
):
    result = await reopen_ticket(db, ticket_id, payload, user)
    return success_response("Ticket reopened successfully", result)
