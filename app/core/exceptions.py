from fastapi import HTTPException
from app.constants.error_codes import ErrorCode


class AppException(HTTPException):
    def __init__(
        self,
        status_code: int,
        message: str,
        error_code: ErrorCode,
        details: dict | None = None,
    ):
        super().__init__(status_code=status_code, detail=message)
        self.error_code = error_code
        self.details = details

    @property
    def message(self) -> str:
        return self.detail


# =====================================================
# DOMAIN ERROR KINDS
# =====================================================

class Unauthorized(AppException):
    def __init__(self, message: str = "Not authenticated"):
        super().__init__(401, message, ErrorCode.UNAUTHORIZED)


class NotFound(AppException):
    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.NOT_FOUND):
        super().__init__(404, message, error_code)


class InvalidTransition(AppException):
    def __init__(self, current_status, requested_status, message: str | None = None):
        current = getattr(current_status, "value", current_status)
        requested = getattr(requested_status, "value", requested_status)
        super().__init__(
            409,
            message or f"Cannot transition from '{current}' to '{requested}'",
            ErrorCode.INVALID_TRANSITION,
            {"current_status": current, "requested_status": requested},
        )
        self.current_status = current
        self.requested_status = requested


class InvalidState(AppException):
    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.CONFLICT,
        details: dict | None = None,
    ):
        super().__init__(409, message, error_code, details)


class NotOwner(AppException):
    def __init__(self, message: str = "You can only manage your own products"):
        super().__init__(403, message, ErrorCode.NOT_OWNER)


class PermissionDenied(AppException):
    def __init__(self, message: str = "Permission denied"):
        super().__init__(403, message, ErrorCode.PERMISSION_DENIED)


class UnknownSkillLevel(AppException):
    def __init__(self, skill_level: str):
        super().__init__(
            422,
            f"No labor rate configured for skill level '{skill_level}'",
            ErrorCode.UNKNOWN_SKILL_LEVEL,
            {"skill_level": skill_level},
        )
        self.skill_level = skill_level


class MissingRate(AppException):
    def __init__(self, rate_name: str):
        super().__init__(
            422,
            f"Pricing rate '{rate_name}' is missing or not positive",
            ErrorCode.MISSING_RATE,
            {"rate": rate_name},
        )


class InvalidPricingInput(AppException):
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(422, message, ErrorCode.INVALID_PRICING_INPUT, details)


class StorageFailure(AppException):
    def __init__(self, message: str = "Storage failure"):
        super().__init__(503, message, ErrorCode.STORAGE_FAILURE)
