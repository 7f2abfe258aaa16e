from sqlalchemy import Column, Integer, String, Numeric, JSON, DateTime, CheckConstraint
from decimal import Decimal
from app.core.db import Base
from app.models.base.mixins import TimestampMixin, AuditMixin


class AdminPricingSettings(Base):
    """Single-row admin configuration read by the pricing engine."""

    __tablename__ = "admin_pricing_settings"

    id = Column(Integer, primary_key=True)
    labor_rates = Column(JSON, nullable=False, default=dict)
    material_markup = Column(Numeric(8, 4), nullable=False)
    business_multiplier = Column(Numeric(8, 4), nullable=False)
    administrative_fee = Column(Numeric(6, 4), nullable=True)
    business_fee = Column(Numeric(6, 4), nullable=True)
    consumables_fee = Column(Numeric(6, 4), nullable=True)

    version = Column(Integer, nullable=False, default=1)
    updated_at = Column(DateTime(timezone=True), nullable=False)
    updated_by_id = Column(Integer, nullable=True)

    __table_args__ = (
        CheckConstraint("material_markup > 0 AND business_multiplier > 0", name="ck_pricing_settings_positive"),
    )

    def __repr__(self):
        return f"<AdminPricingSettings v{self.version} markup={self.material_markup}>"


class Material(Base, TimestampMixin, AuditMixin):
    __tablename__ = "materials"

    id = Column(Integer, primary_key=True)
    sku = Column(String(50), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False)
    unit = Column(String(30), nullable=False, default="unit")
    unit_cost = Column(Numeric(12, 2), nullable=False)
    quantity = Column(Numeric(12, 3), nullable=False, default=Decimal("1"))
    pricing = Column(JSON, nullable=True)

    def __repr__(self):
        return f"<Material id={self.id} sku={self.sku}>"


class Process(Base, TimestampMixin, AuditMixin):
    __tablename__ = "processes"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False, unique=True, index=True)
    skill_level = Column(String(30), nullable=False, default="standard")
    labor_hours = Column(Numeric(8, 2), nullable=False, default=Decimal("0"))
    base_materials_cost = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    pricing = Column(JSON, nullable=True)

    def __repr__(self):
        return f"<Process id={self.id} name={self.name}>"
