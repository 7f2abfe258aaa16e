from pydantic import BaseModel
from typing import List, Optional
from decimal import Decimal


class MigrationStatusOut(BaseModel):
    total: int
    migrated: int
    needs_migration: int
    percent_complete: Decimal


class MigrationErrorOut(BaseModel):
    product_id: int
    legacy_status: Optional[str]
    error_code: str
    message: str


class MigrationRunOut(BaseModel):
    total: int
    migrated: int
    already_migrated: int
    failed: int
    errors: List[MigrationErrorOut]
