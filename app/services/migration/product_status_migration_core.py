from sqlalchemy import update

from app.models.products.product_models import Product
from app.models.enums.product_status import ProductStatus
from app.services.products.approval_state import ApprovalState
from app.core.exceptions import InvalidState
from app.constants.error_codes import ErrorCode


# Old combined status -> (status, is_approved)
LEGACY_STATUS_MAP = {
    "draft": ApprovalState(ProductStatus.draft, False),
    "pending": ApprovalState(ProductStatus.pending_approval, False),
    "pending-approval": ApprovalState(ProductStatus.pending_approval, False),
    "approved": ApprovalState(ProductStatus.published, True),
    "published": ApprovalState(ProductStatus.published, True),
    "rejected": ApprovalState(ProductStatus.draft, False),
    "revision-requested": ApprovalState(ProductStatus.draft, False),
    "archived": ApprovalState(ProductStatus.archived, False),
}

DEFAULT_LEGACY_STATE = ApprovalState(ProductStatus.draft, False)


def needs_migration():
    return Product.is_approved.is_(None)


def normalize_legacy_status(value: str | None) -> str:
    return (value or "").strip().lower().replace("_", "-")


def resolve_legacy_status(value: str | None) -> ApprovalState:
    key = normalize_legacy_status(value)
    if not key:
        return DEFAULT_LEGACY_STATE

    state = LEGACY_STATUS_MAP.get(key)
    if state is None:
        raise InvalidState(
            f"Unknown legacy product status '{value}'",
            ErrorCode.UNKNOWN_LEGACY_STATUS,
            {"legacy_status": value},
        )
    return state


def build_migration_update(product_id: int, legacy_status: str | None, state: ApprovalState):
    # is_approved IS NULL guard: a record is converted at most once
    return (
        update(Product)
        .where(
            Product.id == product_id,
            needs_migration(),
        )
        .values(
            status=state.status.value,
            is_approved=state.is_approved,
            legacy_status=legacy_status,
            version=Product.version + 1,
        )
        .returning(Product.id)
    )
