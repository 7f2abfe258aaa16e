import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable

from app.models.enums.ticket_status import InternalStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TicketTransitionEvent:
    ticket_id: int
    ticket_number: str
    from_status: InternalStatus
    to_status: InternalStatus
    actor: str
    timestamp: datetime
    is_override: bool = False


TransitionHandler = Callable[[TicketTransitionEvent], Awaitable[None]]

_handlers: list[TransitionHandler] = []

# Strong refs so pending deliveries are not garbage collected mid-flight
_pending: set[asyncio.Task] = set()


def register_transition_handler(handler: TransitionHandler) -> None:
    if handler not in _handlers:
        _handlers.append(handler)


def unregister_transition_handler(handler: TransitionHandler) -> None:
    if handler in _handlers:
        _handlers.remove(handler)


async def _deliver(handler: TransitionHandler, event: TicketTransitionEvent) -> None:
    try:
        await handler(event)
    except Exception:
        logger.exception(
            "Transition notification failed for ticket %s -> %s (handler %s)",
            event.ticket_id,
            event.to_status.value,
            getattr(handler, "__name__", repr(handler)),
        )


def dispatch_transition_event(event: TicketTransitionEvent) -> list[asyncio.Task]:
    """
    Fire-and-forget delivery to every registered handler.
    Called only after the transition is committed; a failing or slow
    handler never affects the caller.
    """
    tasks = []
    for handler in list(_handlers):
        task = asyncio.create_task(_deliver(handler, event))
        _pending.add(task)
        task.add_done_callback(_pending.discard)
        tasks.append(task)
    return tasks


async def drain_pending_notifications() -> None:
    if _pending:
        await asyncio.gather(*list(_pending), return_exceptions=True)


async def log_transition(event: TicketTransitionEvent) -> None:
    logger.info(
        "Ticket %s moved %s -> %s by %s",
        event.ticket_number,
        event.from_status.value,
        event.to_status.value,
        event.actor,
    )


register_transition_handler(log_transition)
