from decimal import Decimal
import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError

from app.models.products.product_models import Product
from app.schemas.migration.migration_schemas import (
    MigrationStatusOut,
    MigrationRunOut,
    MigrationErrorOut,
)
from app.services.migration.product_status_migration_core import (
    needs_migration,
    resolve_legacy_status,
    build_migration_update,
)

from app.core.config import MIGRATION_BATCH_SIZE
from app.core.db import commit_or_raise
from app.core.exceptions import AppException
from app.constants.error_codes import ErrorCode
from app.constants.activity_codes import ActivityCode
from app.utils.activity_helpers import emit_user_activity, emit_system_activity
from app.utils.decimal_utils import to_decimal

logger = logging.getLogger(__name__)


async def migration_status(db: AsyncSession) -> MigrationStatusOut:
    total = await db.scalar(select(func.count(Product.id))) or 0
    pending = await db.scalar(select(func.count(Product.id)).where(needs_migration())) or 0
    migrated = total - pending

    percent = to_decimal(Decimal(migrated) * 100 / Decimal(total)) if total else Decimal("100.00")

    return MigrationStatusOut(
        total=total,
        migrated=migrated,
        needs_migration=pending,
        percent_complete=percent,
    )


async def run_migration(
    db: AsyncSession,
    *,
    user=None,
    batch_size: int = MIGRATION_BATCH_SIZE,
) -> MigrationRunOut:
    """
    Convert every product still on the combined status model.
    Re-runnable: only rows with is_approved IS NULL are read or written,
    and every row is written in its own savepoint.
    """
    total = await db.scalar(select(func.count(Product.id))) or 0
    pending_at_start = await db.scalar(select(func.count(Product.id)).where(needs_migration())) or 0

    migrated = 0
    raced = 0
    errors: list[MigrationErrorOut] = []
    last_id = 0

    while True:
        rows = (
            await db.execute(
                select(Product.id, Product.status)
                .where(needs_migration(), Product.id > last_id)
                .order_by(Product.id)
                .limit(batch_size)
            )
        ).all()

        if not rows:
            break

        for product_id, legacy_status in rows:
            last_id = product_id

            try:
                state = resolve_legacy_status(legacy_status)
            except AppException as exc:
                logger.warning(
                    "Product %s has unknown legacy status %r",
                    product_id,
                    legacy_status,
                )
                errors.append(
                    MigrationErrorOut(
                        product_id=product_id,
                        legacy_status=legacy_status,
                        error_code=exc.error_code.value,
                        message=exc.message,
                    )
                )
                continue

            try:
                async with db.begin_nested():
                    result = await db.execute(
                        build_migration_update(product_id, legacy_status, state)
                    )
                    updated_id = result.scalar_one_or_none()
            except SQLAlchemyError as exc:
                logger.warning("Migrating product %s failed", product_id, exc_info=exc)
                errors.append(
                    MigrationErrorOut(
                        product_id=product_id,
                        legacy_status=legacy_status,
                        error_code=ErrorCode.STORAGE_FAILURE.value,
                        message="Product could not be migrated",
                    )
                )
                continue

            if updated_id:
                migrated += 1
            else:
                # converted by a concurrent run between read and write
                raced += 1

        await commit_or_raise(db)

    if migrated or errors:
        counts = {"migrated": migrated, "failed": len(errors)}
        if user:
            await emit_user_activity(db, user, ActivityCode.MIGRATE_PRODUCT_STATUS, **counts)
        else:
            await emit_system_activity(db, ActivityCode.MIGRATE_PRODUCT_STATUS, **counts)
        await commit_or_raise(db)

    logger.info(
        "Product status migration finished: %s total, %s migrated, %s failed",
        total,
        migrated,
        len(errors),
    )

    return MigrationRunOut(
        total=total,
        migrated=migrated,
        already_migrated=total - pending_at_start + raced,
        failed=len(errors),
        errors=errors,
    )
