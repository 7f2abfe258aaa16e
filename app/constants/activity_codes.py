# app/constants/activity_codes.py

from enum import Enum


class ActivityCode(str, Enum):
    # ---------------- TICKETS ----------------
    CREATE_TICKET = "CREATE_TICKET"
    TRANSITION_TICKET = "TRANSITION_TICKET"
    REOPEN_TICKET = "REOPEN_TICKET"

    # ---------------- PRODUCTS ----------------
    CREATE_PRODUCT = "CREATE_PRODUCT"
    SUBMIT_PRODUCT = "SUBMIT_PRODUCT"
    APPROVE_PRODUCT = "APPROVE_PRODUCT"
    DECLINE_PRODUCT = "DECLINE_PRODUCT"
    UNPUBLISH_PRODUCT = "UNPUBLISH_PRODUCT"
    RESTORE_PRODUCT = "RESTORE_PRODUCT"

    # ---------------- PRICING ----------------
    CREATE_MATERIAL = "CREATE_MATERIAL"
    CREATE_PROCESS = "CREATE_PROCESS"
    UPDATE_PRICING_SETTINGS = "UPDATE_PRICING_SETTINGS"
    RECOMPUTE_PRICING = "RECOMPUTE_PRICING"

    # ---------------- MIGRATION ----------------
    MIGRATE_PRODUCT_STATUS = "MIGRATE_PRODUCT_STATUS"
