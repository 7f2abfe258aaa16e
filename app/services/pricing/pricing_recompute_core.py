from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable
import logging

from app.schemas.pricing.pricing_schemas import (
    PricingComponents,
    BatchResultOut,
    RecordFailureOut,
)
from app.services.pricing.pricing_engine import PricingSettings, price_material, price_process
from app.core.exceptions import AppException
from app.constants.error_codes import ErrorCode
from app.utils.decimal_utils import ensure_aware

logger = logging.getLogger(__name__)

MATERIAL = "material"
PROCESS = "process"


@dataclass(frozen=True)
class PricingRecord:
    kind: str
    record_id: int
    entity: Any
    quantity: Any = None


@dataclass(frozen=True)
class PricedRecord:
    kind: str
    record_id: int
    components: PricingComponents


@dataclass(frozen=True)
class RecordFailure:
    kind: str
    record_id: int
    error_code: ErrorCode
    message: str


@dataclass
class BatchResult:
    total: int = 0
    updated: list[PricedRecord] = field(default_factory=list)
    failed: list[RecordFailure] = field(default_factory=list)
    skipped: int = 0

    @property
    def error_code(self) -> ErrorCode | None:
        return ErrorCode.PARTIAL_BATCH_FAILURE if self.failed else None

    def mark_failed(self, kind: str, record_id: int, error_code: ErrorCode, message: str) -> None:
        """Move a record from updated to failed (store write rejected after pricing succeeded)."""
        self.updated = [
            r for r in self.updated
            if not (r.kind == kind and r.record_id == record_id)
        ]
        self.failed.append(RecordFailure(kind, record_id, error_code, message))

    def to_out(self) -> BatchResultOut:
        return BatchResultOut(
            total=self.total,
            updated=len(self.updated),
            failed=len(self.failed),
            skipped=self.skipped,
            error_code=self.error_code.value if self.error_code else None,
            failures=[
                RecordFailureOut(
                    kind=f.kind,
                    record_id=f.record_id,
                    error_code=f.error_code.value,
                    message=f.message,
                )
                for f in self.failed
            ],
        )


def price_record(record: PricingRecord, settings: PricingSettings, now: datetime) -> PricingComponents:
    if record.kind == MATERIAL:
        return price_material(record.entity, record.quantity, settings, now=now)
    if record.kind == PROCESS:
        return price_process(record.entity, settings, now=now)
    raise ValueError(f"Unknown costable kind '{record.kind}'")


def bulk_recompute(
    snapshot: Iterable[PricingRecord],
    settings: PricingSettings,
    *,
    now: datetime | None = None,
) -> BatchResult:
    """
    Price every record against one settings value.
    A failing record is reported and the batch moves on; nothing is aborted.
    """
    now = now or datetime.now(timezone.utc)
    batch = BatchResult()

    for record in snapshot:
        batch.total += 1
        try:
            components = price_record(record, settings, now)
        except AppException as exc:
            logger.warning(
                "Pricing failed for %s %s: %s",
                record.kind,
                record.record_id,
                exc.message,
            )
            batch.failed.append(
                RecordFailure(record.kind, record.record_id, exc.error_code, exc.message)
            )
            continue
        except Exception as exc:
            # malformed snapshot entry: report it, keep pricing the rest
            logger.exception("Pricing crashed for %s %s", record.kind, record.record_id)
            batch.failed.append(
                RecordFailure(
                    record.kind,
                    record.record_id,
                    ErrorCode.INVALID_PRICING_INPUT,
                    f"Record could not be priced: {exc}",
                )
            )
            continue

        batch.updated.append(PricedRecord(record.kind, record.record_id, components))

    return batch


def is_stale(pricing: dict | None, settings_updated_at: datetime | None) -> bool:
    """Stored components older than the settings (or absent / unreadable) need recomputing."""
    if not pricing:
        return True

    calculated_at = pricing.get("calculated_at")
    if not calculated_at:
        return True

    try:
        calculated_at = ensure_aware(datetime.fromisoformat(str(calculated_at)))
    except ValueError:
        return True

    if settings_updated_at is None:
        return False

    return calculated_at < ensure_aware(settings_updated_at)
