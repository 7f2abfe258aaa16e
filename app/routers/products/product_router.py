from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.utils.check_roles import require_role
from app.constants.roles import ADMIN, ARTISAN
from app.utils.response import success_response, APIResponse, ERROR_RESPONSES

from app.schemas.products.product_schemas import (
    ProductCreate,
    ProductApproveRequest,
    ProductDeclineRequest,
    ProductUnpublishRequest,
    ProductOut,
)

from app.services.products.product_approval_service import (
    create_product,
    get_product,
    submit_product,
    approve_product,
    decline_product,
    unpublish_product,
    restore_product,
)

router = APIRouter(
    prefix="/products",
    tags=["Products"],
    responses=ERROR_RESPONSES,
)


@router.post(
    "",
    response_model=APIResponse[ProductOut],
)
async def create_product_api(
    payload: ProductCreate,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role([ARTISAN])),
):
    product = await create_product(db, payload, user)
    return success_response("Product created successfully", product)


@router.get(
    "/{product_id}",
    response_model=APIResponse[ProductOut],
)
async def get_product_api(
    product_id: int,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role([ADMIN, ARTISAN])),
):
    product = await get_product(db, product_id, user)
    return success_response("Product fetched successfully", product)


@router.post(
    "/{product_id}/submit",
    response_model=APIResponse[ProductOut],
)
async def submit_product_api(
    product_id: int,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role([ARTISAN])),
):
    product = await submit_product(db, product_id, user)
    return success_response("Product submitted for approval", product)


@router.post(
    "/{product_id}/approve",
    response_model=APIResponse[ProductOut],
)
async def approve_product_api(
    product_id: int,
    payload: ProductApproveRequest,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role([ADMIN])),
):
    product = await approve_product(db, product_id, user, payload.notes)
    return success_response("Product approved successfully", product)


@router.post(
    "/{product_id}/decline",
    response_model=APIResponse[ProductOut],
)
async def decline_product_api(
    product_id: int,
    payload: ProductDeclineRequest,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role([ADMIN])),
):
    product = await decline_product(db, product_id, payload.reason, user)
    return success_response("Product declined", product)


@router.post(
    "/{product_id}/unpublish",
    response_model=APIResponse[ProductOut],
)
async def unpublish_product_api(
    product_id: int,
    payload: ProductUnpublishRequest,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role([ARTISAN])),
):
    product = await unpublish_product(db, product_id, payload.status, user)
    return success_response("Product unpublished", product)


@router.post(
    "/{product_id}/restore",
    response_model=APIResponse[ProductOut],
)
async def restore_product_api(
    product_id: int,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role([ARTISAN])),
):
    product = await restore_product(db, product_id, user)
    return success_response("Product published again", product)
