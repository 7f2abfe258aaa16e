from datetime import datetime, timezone
import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update

from app.models.products.product_models import Product
from app.models.enums.product_status import ProductStatus

from app.schemas.products.product_schemas import (
    ProductCreate,
    ProductOut,
)

from app.services.products.approval_state import (
    ApprovalState,
    DRAFT,
    PENDING_APPROVAL,
    PUBLISHED,
)

from app.core.db import commit_or_raise
from app.core.exceptions import NotFound, InvalidState, NotOwner
from app.constants.error_codes import ErrorCode
from app.constants.activity_codes import ActivityCode
from app.constants.roles import ADMIN
from app.utils.activity_helpers import emit_user_activity

logger = logging.getLogger(__name__)


# =====================================================
# HELPERS
# =====================================================

async def _get_product(db: AsyncSession, product_id: int) -> Product:
    result = await db.execute(
        select(Product)
        .where(Product.id == product_id)
        .execution_options(populate_existing=True)
    )
    product = result.scalar_one_or_none()
    if not product:
        raise NotFound("Product not found", ErrorCode.PRODUCT_NOT_FOUND)
    return product


def _ensure_owner(product: Product, user) -> None:
    if product.artisan_id != user.id:
        raise NotOwner()


def _map_product(p: Product) -> ProductOut:
    state = ApprovalState.of(p)
    return ProductOut(
        id=p.id,
        artisan_id=p.artisan_id,
        title=p.title,
        description=p.description,
        status=state.status,
        is_approved=state.is_approved,
        is_visible=state.is_visible,
        submitted_at=p.submitted_at,
        approved_at=p.approved_at,
        approved_by=p.approved_by_id,
        approval_notes=p.approval_notes,
        declined_at=p.declined_at,
        declined_by=p.declined_by_id,
        decline_reason=p.decline_reason,
        archived_at=p.archived_at,
        version=p.version,
        created_at=p.created_at,
        updated_at=p.updated_at,
    )


async def _write_state(
    db: AsyncSession,
    product: Product,
    expected: ApprovalState,
    new: ApprovalState,
    **values,
) -> int:
    """
    Conditional update on the (status, is_approved) pair that was read.
    The new pair is built as an ApprovalState first, so an approved draft
    can never reach the store.
    """
    result = await db.execute(
        update(Product)
        .where(
            Product.id == product.id,
            Product.status == expected.status.value,
            Product.is_approved.is_(expected.is_approved),
        )
        .values(
            status=new.status.value,
            is_approved=new.is_approved,
            version=Product.version + 1,
            **values,
        )
        .returning(Product.id)
    )

    updated_id = result.scalar_one_or_none()
    if not updated_id:
        await db.rollback()
        raise InvalidState(
            "Product changed concurrently; re-read it and retry",
            ErrorCode.PRODUCT_INVALID_STATE,
        )
    return updated_id


# =====================================================
# CREATE / READ
# =====================================================

async def create_product(
    db: AsyncSession,
    payload: ProductCreate,
    user,
) -> ProductOut:
    p = Product(
        artisan_id=user.id,
        title=payload.title.strip(),
        description=payload.description,
        status=DRAFT.status.value,
        is_approved=DRAFT.is_approved,
        version=1,
    )

    db.add(p)
    await db.flush()

    await emit_user_activity(
        db,
        user,
        ActivityCode.CREATE_PRODUCT,
        target_name=p.title,
    )

    await commit_or_raise(db)

    return _map_product(await _get_product(db, p.id))


async def get_product(db: AsyncSession, product_id: int, user) -> ProductOut:
    p = await _get_product(db, product_id)
    if user.role.lower() != ADMIN:
        _ensure_owner(p, user)
    return _map_product(p)


# =====================================================
# ARTISAN ACTIONS
# =====================================================

async def submit_product(db: AsyncSession, product_id: int, user) -> ProductOut:
    p = await _get_product(db, product_id)
    _ensure_owner(p, user)

    state = ApprovalState.of(p)
    if state.status != ProductStatus.draft:
        raise InvalidState(
            f"Only draft products can be submitted (product is '{state.status.value}')",
            ErrorCode.PRODUCT_INVALID_STATE,
        )

    await _write_state(
        db,
        p,
        state,
        PENDING_APPROVAL,
        submitted_at=datetime.now(timezone.utc),
        submitted_by_id=user.id,
    )

    await emit_user_activity(db, user, ActivityCode.SUBMIT_PRODUCT, target_name=p.title)
    await commit_or_raise(db)

    logger.info("Product %s submitted for approval", product_id)
    return _map_product(await _get_product(db, product_id))


async def unpublish_product(
    db: AsyncSession,
    product_id: int,
    target: ProductStatus,
    user,
) -> ProductOut:
    p = await _get_product(db, product_id)
    _ensure_owner(p, user)

    state = ApprovalState.of(p)
    if state.status != ProductStatus.published:
        raise InvalidState(
            "Only published products can be unpublished",
            ErrorCode.PRODUCT_INVALID_STATE,
        )

    now = datetime.now(timezone.utc)
    if target == ProductStatus.archived:
        # archiving keeps approval so the product can be restored as-is
        await _write_state(db, p, state, ApprovalState(ProductStatus.archived, state.is_approved), archived_at=now)
    elif target == ProductStatus.draft:
        await _write_state(db, p, state, DRAFT, approved_at=None, approved_by_id=None)
    else:
        raise InvalidState(
            f"Cannot unpublish to '{target.value}'",
            ErrorCode.PRODUCT_INVALID_STATE,
        )

    await emit_user_activity(
        db,
        user,
        ActivityCode.UNPUBLISH_PRODUCT,
        target_name=p.title,
        new_status=target.value,
    )
    await commit_or_raise(db)

    return _map_product(await _get_product(db, product_id))


async def restore_product(db: AsyncSession, product_id: int, user) -> ProductOut:
    p = await _get_product(db, product_id)
    _ensure_owner(p, user)

    state = ApprovalState.of(p)
    if state.status != ProductStatus.archived:
        raise InvalidState("Only archived products can be restored", ErrorCode.PRODUCT_INVALID_STATE)
    if not state.is_approved:
        raise InvalidState(
            "Archived product is not approved; move it to draft and resubmit",
            ErrorCode.PRODUCT_INVALID_STATE,
        )

    await _write_state(db, p, state, PUBLISHED, archived_at=None)

    await emit_user_activity(db, user, ActivityCode.RESTORE_PRODUCT, target_name=p.title)
    await commit_or_raise(db)

    return _map_product(await _get_product(db, product_id))


# =====================================================
# ADMIN ACTIONS
# =====================================================

async def approve_product(
    db: AsyncSession,
    product_id: int,
    user,
    notes: str | None = None,
) -> ProductOut:
    p = await _get_product(db, product_id)
    state = ApprovalState.of(p)

    if state == PUBLISHED:
        # repeat approval is a no-op
        return _map_product(p)

    if state.status != ProductStatus.pending_approval:
        raise InvalidState(
            f"Only products pending approval can be approved (product is '{state.status.value}')",
            ErrorCode.PRODUCT_INVALID_STATE,
        )

    await _write_state(
        db,
        p,
        state,
        PUBLISHED,
        approved_at=datetime.now(timezone.utc),
        approved_by_id=user.id,
        approval_notes=notes,
    )

    await emit_user_activity(db, user, ActivityCode.APPROVE_PRODUCT, target_name=p.title)
    await commit_or_raise(db)

    logger.info("Product %s approved by %s", product_id, user.username)
    return _map_product(await _get_product(db, product_id))


async def decline_product(
    db: AsyncSession,
    product_id: int,
    reason: str | None,
    user,
) -> ProductOut:
    reason = (reason or "").strip()
    if not reason:
        raise InvalidState("A decline reason is required", ErrorCode.PRODUCT_INVALID_STATE)

    p = await _get_product(db, product_id)
    state = ApprovalState.of(p)

    if state.status not in (ProductStatus.pending_approval, ProductStatus.published):
        raise InvalidState(
            f"Only pending or published products can be declined (product is '{state.status.value}')",
            ErrorCode.PRODUCT_INVALID_STATE,
        )

    await _write_state(
        db,
        p,
        state,
        DRAFT,
        declined_at=datetime.now(timezone.utc),
        declined_by_id=user.id,
        decline_reason=reason,
        approved_at=None,
        approved_by_id=None,
    )

    await emit_user_activity(
        db,
        user,
        ActivityCode.DECLINE_PRODUCT,
        target_name=p.title,
        reason=reason,
    )
    await commit_or_raise(db)

    logger.info("Product %s declined by %s", product_id, user.username)
    return _map_product(await _get_product(db, product_id))
