from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.utils.check_roles import require_role
from app.constants.roles import ADMIN, STAFF
from app.utils.response import success_response, APIResponse, ERROR_RESPONSES

from app.schemas.pricing.pricing_schemas import (
    PricingComponents,
    PricingSettingsOut,
    PricingSettingsUpdate,
    PricingSettingsUpdateOut,
    PricingImpactOut,
    BatchResultOut,
    MaterialCreate,
    MaterialOut,
    ProcessCreate,
    ProcessOut,
)

from app.services.pricing.pricing_service import (
    get_pricing_settings,
    update_pricing_settings,
    preview_pricing_impact,
    recompute_all_pricing,
    create_material,
    create_process,
    quote_material,
    quote_process,
)

router = APIRouter(
    prefix="/pricing",
    tags=["Pricing"],
    responses=ERROR_RESPONSES,
)


# =====================================================
# SETTINGS
# =====================================================

@router.get(
    "/settings",
    response_model=APIResponse[PricingSettingsOut],
)
async def get_pricing_settings_api(
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role([ADMIN])),
):
    settings = await get_pricing_settings(db)
    return success_response("Pricing settings fetched successfully", settings)


@router.put(
    "/settings",
    response_model=APIResponse[PricingSettingsUpdateOut],
)
async def update_pricing_settings_api(
    payload: PricingSettingsUpdate,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role([ADMIN])),
):
    result = await update_pricing_settings(db, payload, user)
    return success_response("Pricing settings updated successfully", result)


@router.post(
    "/settings/impact",
    response_model=APIResponse[PricingImpactOut],
)
async def preview_pricing_impact_api(
    payload: PricingSettingsUpdate,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role([ADMIN])),
):
    impact = await preview_pricing_impact(db, payload)
    return success_response("Pricing impact calculated", impact)


@router.post(
    "/recompute",
    response_model=APIResponse[BatchResultOut],
)
async def recompute_pricing_api(
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role([ADMIN])),
):
    batch = await recompute_all_pricing(db, user=user)
    message = (
        "Pricing recomputed with failures"
        if batch.failed
        else "Pricing recomputed successfully"
    )
    return success_response(message, batch.to_out())


# =====================================================
# MATERIALS / PROCESSES
# =====================================================

@router.post(
    "/materials",
    response_model=APIResponse[MaterialOut],
)
async def create_material_api(
    payload: MaterialCreate,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role([ADMIN])),
):
    material = await create_material(db, payload, user)
    return success_response("Material created successfully", material)


@router.get(
    "/materials/{material_id}/quote",
    response_model=APIResponse[PricingComponents],
)
async def quote_material_api(
    material_id: int,
    quantity: Optional[Decimal] = Query(None, ge=0),
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role([ADMIN, STAFF])),
):
    components = await quote_material(db, material_id, quantity)
    return success_response("Material priced successfully", components)


@router.post(
    "/processes",
    response_model=APIResponse[ProcessOut],
)
async def create_process_api(
    payload: ProcessCreate,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role([ADMIN])),
):
    process = await create_process(db, payload, user)
    return success_response("Process created successfully", process)


@router.get(
    "/processes/{process_id}/quote",
    response_model=APIResponse[PricingComponents],
)
async def quote_process_api(
    process_id: int,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role([ADMIN, STAFF])),
):
    components = await quote_process(db, process_id)
    return success_response("Process priced successfully", components)
