from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index
from app.core.db import Base
from app.models.base.mixins import TimestampMixin


class Product(Base, TimestampMixin):
    """
    Artisan product under admin review.

    `status` and `is_approved` are independent dimensions; a product is
    customer-visible only when status is published AND is_approved is true.
    `status` is a plain string because rows written by the old combined model
    (approved, rejected, revision-requested, ...) live here until migrated.
    `is_approved IS NULL` marks such a row.
    """

    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    artisan_id = Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(String, nullable=True)

    status = Column(String(40), nullable=True, index=True)
    is_approved = Column(Boolean, nullable=True, index=True)

    submitted_at = Column(DateTime(timezone=True), nullable=True)
    submitted_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    approved_at = Column(DateTime(timezone=True), nullable=True)
    approved_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approval_notes = Column(String, nullable=True)

    declined_at = Column(DateTime(timezone=True), nullable=True)
    declined_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    decline_reason = Column(String, nullable=True)

    archived_at = Column(DateTime(timezone=True), nullable=True)
    legacy_status = Column(String(40), nullable=True)

    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (Index("ix_product_status_approved", "status", "is_approved"),)

    def __repr__(self):
        return f"<Product id={self.id} status={self.status} approved={self.is_approved}>"
