# app/constants/error_codes.py

from enum import Enum


class ErrorCode(str, Enum):
    # ---------------- GENERIC ----------------
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    STORAGE_FAILURE = "STORAGE_FAILURE"

    # ---------------- TICKETS ----------------
    TICKET_NOT_FOUND = "TICKET_NOT_FOUND"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    TICKET_INVALID_STATE = "TICKET_INVALID_STATE"

    # ---------------- PRODUCTS ----------------
    PRODUCT_NOT_FOUND = "PRODUCT_NOT_FOUND"
    PRODUCT_INVALID_STATE = "PRODUCT_INVALID_STATE"
    NOT_OWNER = "NOT_OWNER"

    # ---------------- PRICING ----------------
    MATERIAL_NOT_FOUND = "MATERIAL_NOT_FOUND"
    PROCESS_NOT_FOUND = "PROCESS_NOT_FOUND"
    UNKNOWN_SKILL_LEVEL = "UNKNOWN_SKILL_LEVEL"
    MISSING_RATE = "MISSING_RATE"
    INVALID_PRICING_INPUT = "INVALID_PRICING_INPUT"
    PARTIAL_BATCH_FAILURE = "PARTIAL_BATCH_FAILURE"

    # ---------------- MIGRATION ----------------
    UNKNOWN_LEGACY_STATUS = "UNKNOWN_LEGACY_STATUS"
