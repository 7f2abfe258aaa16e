# app/models/enums/product_status.py
import enum


class ProductStatus(str, enum.Enum):
    draft = "draft"
    pending_approval = "pending-approval"
    published = "published"
    archived = "archived"
