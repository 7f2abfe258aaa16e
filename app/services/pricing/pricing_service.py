from decimal import Decimal
from datetime import datetime, timezone
import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from app.models.pricing.pricing_models import AdminPricingSettings, Material, Process

from app.schemas.pricing.pricing_schemas import (
    PricingComponents,
    PricingSettingsOut,
    PricingSettingsUpdate,
    PricingSettingsUpdateOut,
    MaterialCreate,
    MaterialOut,
    ProcessCreate,
    ProcessOut,
    PriceChangeOut,
    PricingImpactOut,
)

from app.services.pricing.pricing_engine import PricingSettings, price_material, price_process
from app.services.pricing.pricing_recompute_core import (
    MATERIAL,
    PROCESS,
    BatchResult,
    PricingRecord,
    bulk_recompute,
    is_stale,
)

from app.core.db import commit_or_raise
from app.core.exceptions import NotFound, InvalidState, AppException
from app.constants.error_codes import ErrorCode
from app.constants.activity_codes import ActivityCode
from app.constants.pricing import (
    PRICING_SETTINGS_ID,
    DEFAULT_MATERIAL_MARKUP,
    DEFAULT_ADMINISTRATIVE_FEE,
    DEFAULT_BUSINESS_FEE,
    DEFAULT_CONSUMABLES_FEE,
    DEFAULT_BUSINESS_MULTIPLIER,
    build_labor_rates,
    calculate_business_multiplier,
)
from app.utils.activity_helpers import emit_user_activity, emit_system_activity
from app.utils.decimal_utils import to_decimal

logger = logging.getLogger(__name__)

# Price moves smaller than this count as unchanged in impact previews
CHANGE_THRESHOLD = Decimal("0.01")


# =====================================================
# SETTINGS
# =====================================================

def _rates_to_json(rates) -> dict:
    return {str(level).lower(): str(to_decimal(rate)) for level, rate in rates.items()}


async def _get_settings_row(db: AsyncSession) -> AdminPricingSettings:
    result = await db.execute(
        select(AdminPricingSettings)
        .where(AdminPricingSettings.id == PRICING_SETTINGS_ID)
        .execution_options(populate_existing=True)
    )
    row = result.scalar_one_or_none()
    if row:
        return row

    # First use: seed the defaults
    row = AdminPricingSettings(
        id=PRICING_SETTINGS_ID,
        labor_rates=_rates_to_json(build_labor_rates()),
        material_markup=DEFAULT_MATERIAL_MARKUP,
        business_multiplier=DEFAULT_BUSINESS_MULTIPLIER,
        administrative_fee=DEFAULT_ADMINISTRATIVE_FEE,
        business_fee=DEFAULT_BUSINESS_FEE,
        consumables_fee=DEFAULT_CONSUMABLES_FEE,
        version=1,
        updated_at=datetime.now(timezone.utc),
    )
    db.add(row)
    await db.flush()
    logger.info("Seeded default pricing settings")
    return row


async def load_pricing_settings(db: AsyncSession) -> PricingSettings:
    return PricingSettings.from_model(await _get_settings_row(db))


def _map_settings(row: AdminPricingSettings) -> PricingSettingsOut:
    return PricingSettingsOut(
        labor_rates=row.labor_rates or {},
        material_markup=row.material_markup,
        business_multiplier=row.business_multiplier,
        administrative_fee=row.administrative_fee,
        business_fee=row.business_fee,
        consumables_fee=row.consumables_fee,
        version=row.version,
        updated_at=row.updated_at,
        updated_by=row.updated_by_id,
    )


async def get_pricing_settings(db: AsyncSession) -> PricingSettingsOut:
    row = await _get_settings_row(db)
    await commit_or_raise(db)
    return _map_settings(row)


def _merge_settings(row: AdminPricingSettings, payload: PricingSettingsUpdate) -> tuple[dict, list[str]]:
    """Proposed column values and the names of the fields that change."""
    values: dict = {}

    if payload.labor_rates is not None:
        values["labor_rates"] = _rates_to_json(payload.labor_rates)
    elif payload.base_wage is not None:
        values["labor_rates"] = _rates_to_json(build_labor_rates(payload.base_wage))

    if payload.material_markup is not None:
        values["material_markup"] = payload.material_markup

    fees = {
        "administrative_fee": payload.administrative_fee,
        "business_fee": payload.business_fee,
        "consumables_fee": payload.consumables_fee,
    }
    for name, fee in fees.items():
        if fee is not None:
            values[name] = fee

    if payload.business_multiplier is not None:
        values["business_multiplier"] = payload.business_multiplier
    elif any(fee is not None for fee in fees.values()):
        values["business_multiplier"] = calculate_business_multiplier(
            *(
                Decimal(str(values.get(name, getattr(row, name)) or 0))
                for name in fees
            )
        )

    changes = []
    for name, value in values.items():
        current = getattr(row, name)
        if name == "labor_rates":
            if value != _rates_to_json(current or {}):
                changes.append(name)
        elif current is None or Decimal(str(current)) != Decimal(str(value)):
            changes.append(name)

    return {k: v for k, v in values.items() if k in changes}, changes


def _proposed_settings(row: AdminPricingSettings, values: dict) -> PricingSettings:
    return PricingSettings(
        labor_rates=values.get("labor_rates", row.labor_rates or {}),
        material_markup=values.get("material_markup", row.material_markup),
        business_multiplier=values.get("business_multiplier", row.business_multiplier),
        version=row.version + 1,
    )


async def update_pricing_settings(
    db: AsyncSession,
    payload: PricingSettingsUpdate,
    user,
) -> PricingSettingsUpdateOut:
    row = await _get_settings_row(db)
    values, changes = _merge_settings(row, payload)

    if not changes:
        await commit_or_raise(db)
        return PricingSettingsUpdateOut(
            settings=_map_settings(row),
            recompute=BatchResult().to_out(),
        )

    result = await db.execute(
        update(AdminPricingSettings)
        .where(
            AdminPricingSettings.id == row.id,
            AdminPricingSettings.version == row.version,
        )
        .values(
            **values,
            version=AdminPricingSettings.version + 1,
            updated_at=datetime.now(timezone.utc),
            updated_by_id=user.id,
        )
        .returning(AdminPricingSettings.id)
    )

    if not result.scalar_one_or_none():
        await db.rollback()
        raise InvalidState("Pricing settings changed concurrently; reload and retry")

    await emit_user_activity(
        db,
        user,
        ActivityCode.UPDATE_PRICING_SETTINGS,
        changes=", ".join(changes),
    )
    await commit_or_raise(db)

    row = await _get_settings_row(db)
    logger.info("Pricing settings updated to version %s (%s)", row.version, ", ".join(changes))

    batch = await recompute_all_pricing(db, PricingSettings.from_model(row), user=user)

    return PricingSettingsUpdateOut(
        settings=_map_settings(row),
        recompute=batch.to_out(),
    )


# =====================================================
# SNAPSHOT / STORE
# =====================================================

async def _load_snapshot(db: AsyncSession) -> list[tuple[PricingRecord, dict | None]]:
    materials = (await db.execute(select(Material).order_by(Material.id))).scalars().all()
    processes = (await db.execute(select(Process).order_by(Process.id))).scalars().all()

    snapshot = [
        (PricingRecord(MATERIAL, m.id, m, m.quantity), m.pricing)
        for m in materials
    ]
    snapshot.extend(
        (PricingRecord(PROCESS, p.id, p), p.pricing)
        for p in processes
    )
    return snapshot


async def _store_pricing(db: AsyncSession, kind: str, record_id: int, components: PricingComponents) -> None:
    model = Material if kind == MATERIAL else Process
    await db.execute(
        update(model)
        .where(model.id == record_id)
        .values(pricing=components.model_dump(mode="json"))
    )


async def _persist_batch(db: AsyncSession, batch: BatchResult) -> None:
    """One savepoint per record; a rejected write leaves that record's old pricing in place."""
    for priced in list(batch.updated):
        try:
            async with db.begin_nested():
                await _store_pricing(db, priced.kind, priced.record_id, priced.components)
        except SQLAlchemyError as exc:
            logger.warning(
                "Storing pricing failed for %s %s",
                priced.kind,
                priced.record_id,
                exc_info=exc,
            )
            batch.mark_failed(
                priced.kind,
                priced.record_id,
                ErrorCode.STORAGE_FAILURE,
                "Pricing could not be stored",
            )


async def recompute_all_pricing(
    db: AsyncSession,
    settings: PricingSettings | None = None,
    *,
    user=None,
    stale_only: bool = False,
) -> BatchResult:
    if settings is None:
        settings = await load_pricing_settings(db)

    snapshot = await _load_snapshot(db)

    records = []
    skipped = 0
    for record, pricing in snapshot:
        if stale_only and not is_stale(pricing, settings.updated_at):
            skipped += 1
            continue
        records.append(record)

    batch = bulk_recompute(records, settings)
    batch.skipped = skipped

    await _persist_batch(db, batch)

    if user is not None:
        await emit_user_activity(
            db,
            user,
            ActivityCode.RECOMPUTE_PRICING,
            updated=len(batch.updated),
            failed=len(batch.failed),
        )
    elif batch.total:
        await emit_system_activity(
            db,
            ActivityCode.RECOMPUTE_PRICING,
            updated=len(batch.updated),
            failed=len(batch.failed),
        )

    await commit_or_raise(db)

    log = logger.warning if batch.failed else logger.info
    log(
        "Pricing recompute finished: %s total, %s updated, %s failed, %s skipped",
        batch.total,
        len(batch.updated),
        len(batch.failed),
        batch.skipped,
    )
    return batch


async def recompute_stale_pricing(db: AsyncSession) -> BatchResult:
    """Sweep for records priced before the latest settings change. Safe to re-run."""
    return await recompute_all_pricing(db, stale_only=True)


# =====================================================
# IMPACT PREVIEW (no writes)
# =====================================================

def _stored_total(pricing: dict | None) -> Decimal | None:
    if not pricing or pricing.get("total_cost") is None:
        return None
    return to_decimal(pricing["total_cost"])


async def preview_pricing_impact(
    db: AsyncSession,
    payload: PricingSettingsUpdate,
) -> PricingImpactOut:
    row = await _get_settings_row(db)
    values, _ = _merge_settings(row, payload)
    proposed = _proposed_settings(row, values)

    snapshot = await _load_snapshot(db)
    batch = bulk_recompute([record for record, _ in snapshot], proposed)

    new_totals = {(p.kind, p.record_id): p.components.total_cost for p in batch.updated}
    failures = {(f.kind, f.record_id): f.error_code.value for f in batch.failed}

    changes: list[PriceChangeOut] = []
    increased = decreased = unchanged = 0
    current_sum = new_sum = Decimal("0")
    compared = 0

    for record, pricing in snapshot:
        key = (record.kind, record.record_id)
        current = _stored_total(pricing)
        new = new_totals.get(key)
        change = None

        if current is not None and new is not None:
            change = new - current
            compared += 1
            current_sum += current
            new_sum += new
            if change > CHANGE_THRESHOLD:
                increased += 1
            elif change < -CHANGE_THRESHOLD:
                decreased += 1
            else:
                unchanged += 1

        changes.append(
            PriceChangeOut(
                kind=record.kind,
                record_id=record.record_id,
                name=record.entity.name,
                current_total=current,
                new_total=new,
                change=change,
                error_code=failures.get(key),
            )
        )

    current_average = to_decimal(current_sum / compared) if compared else Decimal("0.00")
    new_average = to_decimal(new_sum / compared) if compared else Decimal("0.00")
    average_change = new_average - current_average
    percent_change = (
        to_decimal(average_change / current_average * 100)
        if current_average > 0
        else Decimal("0.00")
    )

    # read-only: release the snapshot transaction (and any seeded settings row)
    await commit_or_raise(db)

    return PricingImpactOut(
        total=len(snapshot),
        increased=increased,
        decreased=decreased,
        unchanged=unchanged,
        failed=len(batch.failed),
        current_average=current_average,
        new_average=new_average,
        average_change=average_change,
        percent_change=percent_change,
        changes=changes,
    )


# =====================================================
# MATERIALS / PROCESSES
# =====================================================

def _components(pricing: dict | None) -> PricingComponents | None:
    return PricingComponents.model_validate(pricing) if pricing else None


def _map_material(m: Material) -> MaterialOut:
    return MaterialOut(
        id=m.id,
        sku=m.sku,
        name=m.name,
        unit=m.unit,
        unit_cost=m.unit_cost,
        quantity=m.quantity,
        pricing=_components(m.pricing),
        created_at=m.created_at,
        updated_at=m.updated_at,
    )


def _map_process(p: Process) -> ProcessOut:
    return ProcessOut(
        id=p.id,
        name=p.name,
        skill_level=p.skill_level,
        labor_hours=p.labor_hours,
        base_materials_cost=p.base_materials_cost,
        pricing=_components(p.pricing),
        created_at=p.created_at,
        updated_at=p.updated_at,
    )


async def _get_material(db: AsyncSession, material_id: int) -> Material:
    result = await db.execute(
        select(Material)
        .where(Material.id == material_id)
        .execution_options(populate_existing=True)
    )
    m = result.scalar_one_or_none()
    if not m:
        raise NotFound("Material not found", ErrorCode.MATERIAL_NOT_FOUND)
    return m


async def _get_process(db: AsyncSession, process_id: int) -> Process:
    result = await db.execute(
        select(Process)
        .where(Process.id == process_id)
        .execution_options(populate_existing=True)
    )
    p = result.scalar_one_or_none()
    if not p:
        raise NotFound("Process not found", ErrorCode.PROCESS_NOT_FOUND)
    return p


async def create_material(
    db: AsyncSession,
    payload: MaterialCreate,
    user,
) -> MaterialOut:
    exists = await db.scalar(select(Material.id).where(Material.sku == payload.sku.strip()))
    if exists:
        raise AppException(409, "Material SKU already exists", ErrorCode.CONFLICT)

    settings = await load_pricing_settings(db)

    m = Material(
        sku=payload.sku.strip(),
        name=payload.name.strip(),
        unit=payload.unit,
        unit_cost=payload.unit_cost,
        quantity=payload.quantity,
        created_by_id=user.id,
        updated_by_id=user.id,
    )
    m.pricing = price_material(m, payload.quantity, settings).model_dump(mode="json")

    db.add(m)
    await db.flush()

    await emit_user_activity(db, user, ActivityCode.CREATE_MATERIAL, target_name=m.sku)
    await commit_or_raise(db)

    return _map_material(await _get_material(db, m.id))


async def create_process(
    db: AsyncSession,
    payload: ProcessCreate,
    user,
) -> ProcessOut:
    exists = await db.scalar(select(Process.id).where(Process.name == payload.name.strip()))
    if exists:
        raise AppException(409, "Process name already exists", ErrorCode.CONFLICT)

    settings = await load_pricing_settings(db)

    p = Process(
        name=payload.name.strip(),
        skill_level=payload.skill_level.strip().lower(),
        labor_hours=payload.labor_hours,
        base_materials_cost=payload.base_materials_cost,
        created_by_id=user.id,
        updated_by_id=user.id,
    )
    p.pricing = price_process(p, settings).model_dump(mode="json")

    db.add(p)
    await db.flush()

    await emit_user_activity(db, user, ActivityCode.CREATE_PROCESS, target_name=p.name)
    await commit_or_raise(db)

    return _map_process(await _get_process(db, p.id))


async def quote_material(
    db: AsyncSession,
    material_id: int,
    quantity: Decimal | None = None,
) -> PricingComponents:
    m = await _get_material(db, material_id)
    settings = await load_pricing_settings(db)
    components = price_material(m, m.quantity if quantity is None else quantity, settings)
    await commit_or_raise(db)
    return components


async def quote_process(db: AsyncSession, process_id: int) -> PricingComponents:
    p = await _get_process(db, process_id)
    settings = await load_pricing_settings(db)
    components = price_process(p, settings)
    await commit_or_raise(db)
    return components
