# app/constants/roles.py

ADMIN = "admin"
STAFF = "staff"
ARTISAN = "artisan"

# Roles allowed to override terminal ticket states
PRIVILEGED_ROLES = {ADMIN}

ALL_ROLES = {ADMIN, STAFF, ARTISAN}
