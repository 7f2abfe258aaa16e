"""
TICKET LIFECYCLE RULES

The only allowed lifecycle transitions for custom tickets, the financial
gates that sit on top of them, and the internal → client status projection.

- No database access
- No side effects
"""

from app.models.enums.ticket_status import InternalStatus as S, ClientStatus, StatusPhase


# ============================================================
# PHASES
# ============================================================

STATUS_PHASE = {
    S.PENDING: StatusPhase.intake,
    S.REVIEWING_REQUEST: StatusPhase.intake,
    S.IN_CONSULTATION: StatusPhase.intake,

    S.SKETCHING: StatusPhase.design,
    S.SKETCH_REVIEW: StatusPhase.design,
    S.SKETCH_APPROVED: StatusPhase.design,
    S.GENERATING_IMAGE: StatusPhase.design,
    S.IMAGE_REVIEW: StatusPhase.design,
    S.IMAGE_APPROVED: StatusPhase.design,
    S.IN_CAD: StatusPhase.design,
    S.CAD_REVIEW: StatusPhase.design,
    S.CAD_REVISION: StatusPhase.design,
    S.CAD_APPROVED: StatusPhase.design,

    S.PREPARING_QUOTE: StatusPhase.quoting,
    S.QUOTE_SENT: StatusPhase.quoting,
    S.QUOTE_REVISION: StatusPhase.quoting,
    S.QUOTE_APPROVED: StatusPhase.quoting,

    S.DEPOSIT_INVOICE_SENT: StatusPhase.payment,
    S.DEPOSIT_RECEIVED: StatusPhase.payment,

    S.ORDERING_PARTS: StatusPhase.preparation,
    S.PARTS_ORDERED: StatusPhase.preparation,
    S.PARTS_RECEIVED: StatusPhase.preparation,

    S.IN_PRODUCTION: StatusPhase.production,
    S.CASTING: StatusPhase.production,
    S.SETTING_STONES: StatusPhase.production,
    S.FINISHING: StatusPhase.production,
    S.QUALITY_CONTROL: StatusPhase.production,

    S.FINAL_INVOICE_SENT: StatusPhase.completion,
    S.FINAL_PAYMENT_RECEIVED: StatusPhase.completion,
    S.READY_FOR_PICKUP: StatusPhase.completion,
    S.SHIPPED: StatusPhase.completion,
    S.COMPLETED: StatusPhase.completion,

    S.ON_HOLD: StatusPhase.special,
    S.WAITING_FOR_CLIENT: StatusPhase.special,
    S.CANCELLED: StatusPhase.special,
    S.DEAD_LEAD: StatusPhase.special,
}

TERMINAL_STATES = frozenset({S.COMPLETED, S.CANCELLED, S.DEAD_LEAD})

# Reachable from every non-terminal status
SIDE_STATES = frozenset({S.ON_HOLD, S.WAITING_FOR_CLIENT, S.CANCELLED})

PRE_PAYMENT_PHASES = frozenset({StatusPhase.intake, StatusPhase.design, StatusPhase.quoting})

# Where a paused ticket may pick up again
RESUME_POINTS = frozenset({
    S.REVIEWING_REQUEST,
    S.IN_CONSULTATION,
    S.SKETCHING,
    S.IN_CAD,
    S.PREPARING_QUOTE,
    S.QUOTE_SENT,
    S.DEPOSIT_INVOICE_SENT,
    S.ORDERING_PARTS,
    S.IN_PRODUCTION,
    S.QUALITY_CONTROL,
    S.FINAL_INVOICE_SENT,
    S.READY_FOR_PICKUP,
})


# ============================================================
# TRANSITION TABLE
# ============================================================

PIPELINE_TRANSITIONS = {
    S.PENDING: {S.REVIEWING_REQUEST, S.IN_CONSULTATION},
    S.REVIEWING_REQUEST: {S.IN_CONSULTATION, S.SKETCHING, S.PREPARING_QUOTE},
    S.IN_CONSULTATION: {S.SKETCHING, S.IN_CAD, S.PREPARING_QUOTE},

    S.SKETCHING: {S.SKETCH_REVIEW},
    S.SKETCH_REVIEW: {S.SKETCH_APPROVED, S.SKETCHING},
    S.SKETCH_APPROVED: {S.GENERATING_IMAGE, S.IN_CAD, S.PREPARING_QUOTE},
    S.GENERATING_IMAGE: {S.IMAGE_REVIEW},
    S.IMAGE_REVIEW: {S.IMAGE_APPROVED, S.GENERATING_IMAGE},
    S.IMAGE_APPROVED: {S.IN_CAD, S.PREPARING_QUOTE},
    S.IN_CAD: {S.CAD_REVIEW},
    S.CAD_REVIEW: {S.CAD_APPROVED, S.CAD_REVISION},
    S.CAD_REVISION: {S.CAD_REVIEW},
    S.CAD_APPROVED: {S.PREPARING_QUOTE},

    S.PREPARING_QUOTE: {S.QUOTE_SENT},
    S.QUOTE_SENT: {S.QUOTE_APPROVED, S.QUOTE_REVISION},
    S.QUOTE_REVISION: {S.QUOTE_SENT},
    S.QUOTE_APPROVED: {S.DEPOSIT_INVOICE_SENT},

    S.DEPOSIT_INVOICE_SENT: {S.DEPOSIT_RECEIVED},
    S.DEPOSIT_RECEIVED: {S.ORDERING_PARTS, S.IN_PRODUCTION},

    S.ORDERING_PARTS: {S.PARTS_ORDERED},
    S.PARTS_ORDERED: {S.PARTS_RECEIVED},
    S.PARTS_RECEIVED: {S.IN_PRODUCTION},

    S.IN_PRODUCTION: {S.CASTING, S.SETTING_STONES, S.FINISHING, S.QUALITY_CONTROL},
    S.CASTING: {S.SETTING_STONES, S.FINISHING, S.QUALITY_CONTROL},
    S.SETTING_STONES: {S.FINISHING, S.QUALITY_CONTROL},
    S.FINISHING: {S.QUALITY_CONTROL},
    S.QUALITY_CONTROL: {S.FINAL_INVOICE_SENT, S.FINISHING},

    S.FINAL_INVOICE_SENT: {S.FINAL_PAYMENT_RECEIVED},
    S.FINAL_PAYMENT_RECEIVED: {S.READY_FOR_PICKUP, S.SHIPPED},
    S.READY_FOR_PICKUP: {S.COMPLETED},
    S.SHIPPED: {S.COMPLETED},

    S.ON_HOLD: set(RESUME_POINTS),
    S.WAITING_FOR_CLIENT: set(RESUME_POINTS),

    S.COMPLETED: set(),
    S.CANCELLED: set(),
    S.DEAD_LEAD: set(),
}


def _build_allowed_transitions() -> dict[S, frozenset]:
    allowed = {}
    for status in S:
        if status in TERMINAL_STATES:
            allowed[status] = frozenset()
            continue

        successors = set(PIPELINE_TRANSITIONS[status]) | SIDE_STATES
        if STATUS_PHASE[status] in PRE_PAYMENT_PHASES or status in {S.ON_HOLD, S.WAITING_FOR_CLIENT}:
            successors.add(S.DEAD_LEAD)

        successors.discard(status)
        allowed[status] = frozenset(successors)
    return allowed


ALLOWED_TRANSITIONS = _build_allowed_transitions()


def can_transition(*, from_status: S, to_status: S) -> bool:
    if from_status in TERMINAL_STATES:
        return False

    return to_status in ALLOWED_TRANSITIONS.get(from_status, frozenset())


def next_statuses(status: S) -> list[S]:
    """Allowed successors in enum (pipeline) order."""
    allowed = ALLOWED_TRANSITIONS.get(status, frozenset())
    return [s for s in S if s in allowed]


def is_terminal(status: S) -> bool:
    return status in TERMINAL_STATES


# ============================================================
# FINANCIAL GATES
# ============================================================

REQUIRES_DEPOSIT = frozenset({
    S.ORDERING_PARTS,
    S.PARTS_ORDERED,
    S.PARTS_RECEIVED,
    S.IN_PRODUCTION,
    S.CASTING,
    S.SETTING_STONES,
    S.FINISHING,
    S.QUALITY_CONTROL,
    S.FINAL_INVOICE_SENT,
})

REQUIRES_FINAL_PAYMENT = frozenset({S.READY_FOR_PICKUP, S.SHIPPED, S.COMPLETED})

FORBIDDEN_AFTER_DEPOSIT = frozenset({S.DEAD_LEAD})

# Marker column stamped when a ticket enters the status
FINANCIAL_MARKERS = {
    S.DEPOSIT_INVOICE_SENT: "deposit_invoice_sent_at",
    S.DEPOSIT_RECEIVED: "deposit_received_at",
    S.FINAL_INVOICE_SENT: "final_invoice_sent_at",
    S.FINAL_PAYMENT_RECEIVED: "final_payment_received_at",
}


def financial_gate_violation(
    *,
    to_status: S,
    deposit_received: bool,
    final_payment_received: bool,
) -> str | None:
    """Return a human-readable reason when the ticket's money state blocks `to_status`."""
    if to_status in REQUIRES_DEPOSIT and not deposit_received:
        return f"Deposit must be received before moving to '{to_status.value}'"
    if to_status in REQUIRES_FINAL_PAYMENT and not final_payment_received:
        return f"Final payment must be received before moving to '{to_status.value}'"
    if to_status in FORBIDDEN_AFTER_DEPOSIT and deposit_received:
        return "A ticket with a received deposit cannot be marked as a dead lead"
    return None


# ============================================================
# CLIENT STATUS PROJECTION
# ============================================================

_AWAITING_CLIENT = {
    S.SKETCH_REVIEW,
    S.IMAGE_REVIEW,
    S.CAD_REVIEW,
    S.QUOTE_SENT,
    S.DEPOSIT_INVOICE_SENT,
    S.FINAL_INVOICE_SENT,
    S.WAITING_FOR_CLIENT,
}

_SPECIFIC_CLIENT_STATUS = {
    S.PENDING: ClientStatus.PENDING_REVIEW,
    S.REVIEWING_REQUEST: ClientStatus.PENDING_REVIEW,
    S.READY_FOR_PICKUP: ClientStatus.READY_FOR_PICKUP,
    S.SHIPPED: ClientStatus.READY_FOR_PICKUP,
    S.COMPLETED: ClientStatus.COMPLETED,
    S.ON_HOLD: ClientStatus.ON_HOLD,
    S.CANCELLED: ClientStatus.CANCELLED_NO_RESPONSE,
    S.DEAD_LEAD: ClientStatus.CANCELLED_NO_RESPONSE,
}


def _build_client_mapping() -> dict[S, ClientStatus]:
    mapping = {}
    for status in S:
        if status in _SPECIFIC_CLIENT_STATUS:
            mapping[status] = _SPECIFIC_CLIENT_STATUS[status]
        elif status in _AWAITING_CLIENT:
            mapping[status] = ClientStatus.AWAITING_YOUR_RESPONSE
        elif STATUS_PHASE[status] is not StatusPhase.special:
            mapping[status] = ClientStatus.IN_PROGRESS
    return mapping


INTERNAL_TO_CLIENT_STATUS = _build_client_mapping()


def client_status(status: S) -> ClientStatus:
    return INTERNAL_TO_CLIENT_STATUS[status]


# ============================================================
# TABLE CONSISTENCY (re-checked whenever InternalStatus grows)
# ============================================================

def _verify_tables() -> None:
    missing_phase = set(S) - set(STATUS_PHASE)
    missing_pipeline = set(S) - set(PIPELINE_TRANSITIONS)
    missing_client = set(S) - set(INTERNAL_TO_CLIENT_STATUS)
    if missing_phase or missing_pipeline or missing_client:
        raise RuntimeError(
            "Ticket status tables out of sync: "
            f"phase={sorted(s.value for s in missing_phase)} "
            f"transitions={sorted(s.value for s in missing_pipeline)} "
            f"client={sorted(s.value for s in missing_client)}"
        )


_verify_tables()
