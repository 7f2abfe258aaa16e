from pydantic import BaseModel, Field
from typing import Optional, Literal
from datetime import datetime

from app.models.enums.product_status import ProductStatus

# =====================================================
# PAYLOADS
# =====================================================

class ProductCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None


class ProductApproveRequest(BaseModel):
    notes: Optional[str] = None


class ProductDeclineRequest(BaseModel):
    reason: str


class ProductUnpublishRequest(BaseModel):
    status: Literal[ProductStatus.archived, ProductStatus.draft] = ProductStatus.archived


# =====================================================
# RESPONSES
# =====================================================

class ProductOut(BaseModel):
    id: int
    artisan_id: int
    title: str
    description: Optional[str]

    status: ProductStatus
    is_approved: bool
    is_visible: bool

    submitted_at: Optional[datetime]
    approved_at: Optional[datetime]
    approved_by: Optional[int]
    approval_notes: Optional[str]
    declined_at: Optional[datetime]
    declined_by: Optional[int]
    decline_reason: Optional[str]
    archived_at: Optional[datetime]

    version: int
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
