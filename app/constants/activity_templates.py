from app.constants.activity_codes import ActivityCode


ACTIVITY_TEMPLATES = {
    # ---------------- TICKETS ----------------
    ActivityCode.CREATE_TICKET:
        "{actor_role} ({actor_email}) created ticket {target_name}",

    ActivityCode.TRANSITION_TICKET:
        "{actor_role} ({actor_email}) moved ticket {target_name} "
        "from {old_status} → {new_status}",

    ActivityCode.REOPEN_TICKET:
        "{actor_role} ({actor_email}) reopened ticket {target_name} "
        "from {old_status} → {new_status} (override: {reason})",

    # ---------------- PRODUCTS ----------------
    ActivityCode.CREATE_PRODUCT:
        "{actor_role} ({actor_email}) created product {target_name}",

    ActivityCode.SUBMIT_PRODUCT:
        "{actor_role} ({actor_email}) submitted product {target_name} for approval",

    ActivityCode.APPROVE_PRODUCT:
        "{actor_role} ({actor_email}) approved product {target_name}",

    ActivityCode.DECLINE_PRODUCT:
        "{actor_role} ({actor_email}) declined product {target_name}: {reason}",

    ActivityCode.UNPUBLISH_PRODUCT:
        "{actor_role} ({actor_email}) moved product {target_name} to {new_status}",

    ActivityCode.RESTORE_PRODUCT:
        "{actor_role} ({actor_email}) republished product {target_name}",

    # ---------------- PRICING ----------------
    ActivityCode.CREATE_MATERIAL:
        "{actor_role} ({actor_email}) created material {target_name}",

    ActivityCode.CREATE_PROCESS:
        "{actor_role} ({actor_email}) created process {target_name}",

    ActivityCode.UPDATE_PRICING_SETTINGS:
        "{actor_role} ({actor_email}) updated pricing settings: {changes}",

    ActivityCode.RECOMPUTE_PRICING:
        "{actor_role} ({actor_email}) recomputed pricing: "
        "{updated} updated, {failed} failed",

    # ---------------- MIGRATION ----------------
    ActivityCode.MIGRATE_PRODUCT_STATUS:
        "{actor_role} ({actor_email}) migrated product status model: "
        "{migrated} migrated, {failed} failed",
}
