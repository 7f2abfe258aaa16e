# app/models/enums/ticket_status.py
import enum


class StatusPhase(str, enum.Enum):
    intake = "intake"
    design = "design"
    quoting = "quoting"
    payment = "payment"
    preparation = "preparation"
    production = "production"
    completion = "completion"
    special = "special"


class InternalStatus(str, enum.Enum):
    # intake
    PENDING = "pending"
    REVIEWING_REQUEST = "reviewing-request"
    IN_CONSULTATION = "in-consultation"

    # design
    SKETCHING = "sketching"
    SKETCH_REVIEW = "sketch-review"
    SKETCH_APPROVED = "sketch-approved"
    GENERATING_IMAGE = "generating-image"
    IMAGE_REVIEW = "image-review"
    IMAGE_APPROVED = "image-approved"
    IN_CAD = "in-cad"
    CAD_REVIEW = "cad-review"
    CAD_REVISION = "cad-revision"
    CAD_APPROVED = "cad-approved"

    # quoting
    PREPARING_QUOTE = "preparing-quote"
    QUOTE_SENT = "quote-sent"
    QUOTE_REVISION = "quote-revision"
    QUOTE_APPROVED = "quote-approved"

    # payment
    DEPOSIT_INVOICE_SENT = "deposit-invoice-sent"
    DEPOSIT_RECEIVED = "deposit-received"

    # preparation
    ORDERING_PARTS = "ordering-parts"
    PARTS_ORDERED = "parts-ordered"
    PARTS_RECEIVED = "parts-received"

    # production
    IN_PRODUCTION = "in-production"
    CASTING = "casting"
    SETTING_STONES = "setting-stones"
    FINISHING = "finishing"
    QUALITY_CONTROL = "quality-control"

    # completion
    FINAL_INVOICE_SENT = "final-invoice-sent"
    FINAL_PAYMENT_RECEIVED = "final-payment-received"
    READY_FOR_PICKUP = "ready-for-pickup"
    SHIPPED = "shipped"
    COMPLETED = "completed"

    # special
    ON_HOLD = "on-hold"
    WAITING_FOR_CLIENT = "waiting-for-client"
    CANCELLED = "cancelled"
    DEAD_LEAD = "dead-lead"


class ClientStatus(str, enum.Enum):
    PENDING_REVIEW = "pending-review"
    AWAITING_YOUR_RESPONSE = "awaiting-your-response"
    IN_PROGRESS = "in-progress"
    READY_FOR_PICKUP = "ready-for-pickup"
    COMPLETED = "completed"
    ON_HOLD = "on-hold"
    CANCELLED_NO_RESPONSE = "cancelled-no-response"
