from pydantic import BaseModel, Field, model_validator
from typing import Dict, List, Literal, Optional
from decimal import Decimal
from datetime import datetime

# =====================================================
# PRICING COMPONENTS (embedded JSON on materials / processes)
# =====================================================

class PricingComponents(BaseModel):
    kind: Literal["material", "process"]

    # material
    quantity: Optional[Decimal] = None
    unit_cost: Optional[Decimal] = None
    base_cost: Optional[Decimal] = None
    marked_up_cost: Optional[Decimal] = None

    # process
    labor_hours: Optional[Decimal] = None
    skill_level: Optional[str] = None
    hourly_rate: Optional[Decimal] = None
    labor_cost: Optional[Decimal] = None
    base_materials_cost: Optional[Decimal] = None
    materials_cost: Optional[Decimal] = None

    material_markup: Decimal
    business_multiplier: Optional[Decimal] = None
    total_cost: Decimal

    formula: str
    settings_version: int
    calculated_at: datetime


# =====================================================
# ADMIN SETTINGS
# =====================================================

class PricingSettingsOut(BaseModel):
    labor_rates: Dict[str, Decimal]
    material_markup: Decimal
    business_multiplier: Decimal
    administrative_fee: Optional[Decimal]
    business_fee: Optional[Decimal]
    consumables_fee: Optional[Decimal]
    version: int
    updated_at: datetime
    updated_by: Optional[int]


class PricingSettingsUpdate(BaseModel):
    """
    Partial update. `business_multiplier` may be given directly or derived
    from the three fees (1 + administrative + business + consumables).
    `base_wage` rebuilds every skill-level rate from the standard multipliers.
    """

    labor_rates: Optional[Dict[str, Decimal]] = None
    base_wage: Optional[Decimal] = Field(None, gt=0)
    material_markup: Optional[Decimal] = Field(None, gt=0)
    business_multiplier: Optional[Decimal] = Field(None, gt=0)
    administrative_fee: Optional[Decimal] = Field(None, ge=0, le=1)
    business_fee: Optional[Decimal] = Field(None, ge=0, le=1)
    consumables_fee: Optional[Decimal] = Field(None, ge=0, le=1)

    @model_validator(mode="after")
    def check_rates(self):
        if self.labor_rates is not None and self.base_wage is not None:
            raise ValueError("Provide either labor_rates or base_wage, not both")
        if self.labor_rates is not None:
            for level, rate in self.labor_rates.items():
                if rate <= 0:
                    raise ValueError(f"Labor rate for '{level}' must be positive")
        return self


# =====================================================
# COSTABLE ENTITIES
# =====================================================

class MaterialCreate(BaseModel):
    sku: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=255)
    unit: str = Field("unit", max_length=30)
    unit_cost: Decimal = Field(..., ge=0)
    quantity: Decimal = Field(Decimal("1"), ge=0)


class MaterialOut(BaseModel):
    id: int
    sku: str
    name: str
    unit: str
    unit_cost: Decimal
    quantity: Decimal
    pricing: Optional[PricingComponents]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]


class ProcessCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    skill_level: str = Field("standard", min_length=1, max_length=30)
    labor_hours: Decimal = Field(Decimal("0"), ge=0)
    base_materials_cost: Decimal = Field(Decimal("0.00"), ge=0)


class ProcessOut(BaseModel):
    id: int
    name: str
    skill_level: str
    labor_hours: Decimal
    base_materials_cost: Decimal
    pricing: Optional[PricingComponents]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]


# =====================================================
# BATCH RESULTS
# =====================================================

class RecordFailureOut(BaseModel):
    kind: str
    record_id: int
    error_code: str
    message: str


class BatchResultOut(BaseModel):
    total: int
    updated: int
    failed: int
    skipped: int = 0
    error_code: Optional[str] = None
    failures: List[RecordFailureOut]


class PricingSettingsUpdateOut(BaseModel):
    settings: PricingSettingsOut
    recompute: BatchResultOut


class PriceChangeOut(BaseModel):
    kind: str
    record_id: int
    name: str
    current_total: Optional[Decimal]
    new_total: Optional[Decimal]
    change: Optional[Decimal]
    error_code: Optional[str] = None


class PricingImpactOut(BaseModel):
    total: int
    increased: int
    decreased: int
    unchanged: int
    failed: int
    current_average: Decimal
    new_average: Decimal
    average_change: Decimal
    percent_change: Decimal
    changes: List[PriceChangeOut]
