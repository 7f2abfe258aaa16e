# app/constants/pricing.py

from decimal import Decimal

# Formula identifiers stamped on every PricingComponents value.
# Bump when the computation changes so stored breakdowns stay auditable.
MATERIAL_FORMULA = "material.v2"
PROCESS_FORMULA = "process.v2"

DEFAULT_BASE_WAGE = Decimal("50.00")
DEFAULT_MATERIAL_MARKUP = Decimal("2.0")

DEFAULT_ADMINISTRATIVE_FEE = Decimal("0.10")
DEFAULT_BUSINESS_FEE = Decimal("0.15")
DEFAULT_CONSUMABLES_FEE = Decimal("0.05")

SKILL_LEVEL_MULTIPLIERS = {
    "basic": Decimal("0.75"),
    "standard": Decimal("1.0"),
    "advanced": Decimal("1.25"),
    "expert": Decimal("1.5"),
}

# Singleton row holding the admin pricing configuration
PRICING_SETTINGS_ID = 1


def calculate_business_multiplier(
    administrative_fee: Decimal,
    business_fee: Decimal,
    consumables_fee: Decimal,
) -> Decimal:
    return Decimal("1") + administrative_fee + business_fee + consumables_fee


def build_labor_rates(base_wage: Decimal = DEFAULT_BASE_WAGE) -> dict[str, Decimal]:
    return {
        level: base_wage * multiplier
        for level, multiplier in SKILL_LEVEL_MULTIPLIERS.items()
    }


DEFAULT_BUSINESS_MULTIPLIER = calculate_business_multiplier(
    DEFAULT_ADMINISTRATIVE_FEE,
    DEFAULT_BUSINESS_FEE,
    DEFAULT_CONSUMABLES_FEE,
)
