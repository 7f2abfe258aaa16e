from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.utils.check_roles import require_role
from app.constants.roles import ADMIN
from app.utils.response import success_response, APIResponse, ERROR_RESPONSES

from app.schemas.migration.migration_schemas import (
    MigrationStatusOut,
    MigrationRunOut,
)
from app.services.migration.product_status_migration_service import (
    migration_status,
    run_migration,
)

router = APIRouter(
    prefix="/admin/migrations",
    tags=["Admin Migrations"],
    responses=ERROR_RESPONSES,
)


@router.get(
    "/product-status",
    response_model=APIResponse[MigrationStatusOut],
)
async def product_status_migration_status_api(
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role([ADMIN])),
):
    status = await migration_status(db)
    return success_response("Migration status fetched successfully", status)


@router.post(
    "/product-status",
    response_model=APIResponse[MigrationRunOut],
)
async def run_product_status_migration_api(
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role([ADMIN])),
):
    result = await run_migration(db, user=user)
    message = (
        "Migration completed with failures"
        if result.failed
        else "Migration completed successfully"
    )
    return success_response(message, result)
