"""
PRICING ENGINE

Pure functions: (costable entity, explicit settings) -> PricingComponents.

- No database access
- No ambient settings; callers pass a PricingSettings value
- Money is Decimal, quantized to 2 places (ROUND_HALF_UP) on output only
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping
import hashlib
import json

from app.schemas.pricing.pricing_schemas import PricingComponents
from app.core.exceptions import UnknownSkillLevel, MissingRate, InvalidPricingInput
from app.constants.pricing import MATERIAL_FORMULA, PROCESS_FORMULA
from app.utils.decimal_utils import to_decimal, as_decimal


@dataclass(frozen=True)
class PricingSettings:
    labor_rates: Mapping[str, Decimal]
    material_markup: Decimal
    business_multiplier: Decimal
    version: int = 1
    updated_at: datetime | None = field(default=None, compare=False)

    def __post_init__(self):
        rates = {str(k).lower(): _number(v, f"labor_rates.{k}") for k, v in dict(self.labor_rates).items()}
        object.__setattr__(self, "labor_rates", MappingProxyType(rates))
        object.__setattr__(self, "material_markup", _number(self.material_markup, "material_markup"))
        object.__setattr__(self, "business_multiplier", _number(self.business_multiplier, "business_multiplier"))

    @classmethod
    def from_model(cls, row) -> "PricingSettings":
        return cls(
            labor_rates=row.labor_rates or {},
            material_markup=row.material_markup,
            business_multiplier=row.business_multiplier,
            version=row.version,
            updated_at=row.updated_at,
        )


def _number(value, name: str) -> Decimal:
    try:
        return as_decimal(value, name)
    except ValueError as e:
        raise InvalidPricingInput(str(e), {"field": name})


def _non_negative(value, name: str) -> Decimal:
    number = _number(value, name)
    if number < 0:
        raise InvalidPricingInput(f"{name} cannot be negative", {"field": name, "value": str(number)})
    return number


def _positive_rate(value: Decimal, name: str) -> Decimal:
    if value <= 0:
        raise MissingRate(name)
    return value


# =====================================================
# MATERIAL
# =====================================================

def price_material(
    material,
    quantity,
    settings: PricingSettings,
    *,
    now: datetime | None = None,
) -> PricingComponents:
    unit_cost = _non_negative(material.unit_cost, "unit_cost")
    qty = _non_negative(quantity, "quantity")
    markup = _positive_rate(settings.material_markup, "material_markup")

    base_cost = unit_cost * qty
    marked_up_cost = base_cost * markup

    return PricingComponents(
        kind="material",
        quantity=qty,
        unit_cost=to_decimal(unit_cost),
        base_cost=to_decimal(base_cost),
        marked_up_cost=to_decimal(marked_up_cost),
        material_markup=markup,
        total_cost=to_decimal(marked_up_cost),
        formula=MATERIAL_FORMULA,
        settings_version=settings.version,
        calculated_at=now or datetime.now(timezone.utc),
    )


# =====================================================
# PROCESS
# =====================================================

def price_process(
    process,
    settings: PricingSettings,
    *,
    now: datetime | None = None,
) -> PricingComponents:
    skill_level = (process.skill_level or "").strip().lower()
    if skill_level not in settings.labor_rates:
        raise UnknownSkillLevel(process.skill_level)

    hourly_rate = _positive_rate(settings.labor_rates[skill_level], f"labor_rates.{skill_level}")
    markup = _positive_rate(settings.material_markup, "material_markup")
    multiplier = _positive_rate(settings.business_multiplier, "business_multiplier")

    labor_hours = _non_negative(process.labor_hours, "labor_hours")
    base_materials_cost = _non_negative(process.base_materials_cost, "base_materials_cost")

    labor_cost = labor_hours * hourly_rate
    materials_cost = base_materials_cost * markup
    total_cost = (labor_cost + materials_cost) * multiplier

    return PricingComponents(
        kind="process",
        labor_hours=labor_hours,
        skill_level=skill_level,
        hourly_rate=to_decimal(hourly_rate),
        labor_cost=to_decimal(labor_cost),
        base_materials_cost=to_decimal(base_materials_cost),
        materials_cost=to_decimal(materials_cost),
        material_markup=markup,
        business_multiplier=multiplier,
        total_cost=to_decimal(total_cost),
        formula=PROCESS_FORMULA,
        settings_version=settings.version,
        calculated_at=now or datetime.now(timezone.utc),
    )


# =====================================================
# DRIFT DETECTION
# =====================================================

def pricing_signature(components: PricingComponents) -> str:
    """Stable hash of everything except calculated_at."""
    payload = components.model_dump(mode="json", exclude={"calculated_at"})
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(encoded.encode()).hexdigest()
