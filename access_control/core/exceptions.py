from typing import Any, Optional
from fastapi import HTTPException, status


class BaseAppException(HTTPException):
    """HTTP-mappable error carrying a machine-readable reason code.

    ``detail`` is always a dict with ``code`` and ``message`` plus any extra
    context the caller needs (offending key, existing entity, current roles).
    """

    def __init__(self, status_code: int, code: str, message: str, **context: Any):
        self.code = code
        self.message = message
        self.context = context
        super().__init__(
            status_code=status_code,
            detail={"code": code, "message": message, **context},
        )


class NotFoundError(BaseAppException):
    def __init__(self, code: str, message: str = "Resource not found", **context: Any):
        super().__init__(status.HTTP_404_NOT_FOUND, code, message, **context)


class InvalidStateError(BaseAppException):
    def __init__(self, code: str, message: str, **context: Any):
        super().__init__(status.HTTP_409_CONFLICT, code, message, **context)


class ConflictError(BaseAppException):
    def __init__(self, code: str, message: str, existing_id: Optional[int] = None, **context: Any):
        super().__init__(status.HTTP_409_CONFLICT, code, message, existing_id=existing_id, **context)


class StoreError(BaseAppException):
    """Datastore failure; never to be read as an authorization denial."""

    def __init__(self, message: str = "Datastore error"):
        super().__init__(status.HTTP_500_INTERNAL_SERVER_ERROR, "STORE_ERROR", message)


class PermissionDeniedError(BaseAppException):
    def __init__(self, module: str, action: str):
        super().__init__(
            status.HTTP_403_FORBIDDEN,
            "FORBIDDEN",
            f"Insufficient permissions to {action} {module}",
            module=module,
            action=action,
        )


# Reason codes
ROLE_NOT_FOUND = "ROLE_NOT_FOUND"
PERMISSION_NOT_FOUND = "PERMISSION_NOT_FOUND"
MODULE_NOT_FOUND = "MODULE_NOT_FOUND"
USER_NOT_FOUND = "USER_NOT_FOUND"
ASSIGNMENT_NOT_FOUND = "ASSIGNMENT_NOT_FOUND"

SYSTEM_ROLE_RESTRICTED = "SYSTEM_ROLE_RESTRICTED"
SYSTEM_ROLE_IMMUTABLE = "SYSTEM_ROLE_IMMUTABLE"
USER_ALREADY_HAS_ROLE = "USER_ALREADY_HAS_ROLE"
ROLE_ALREADY_ASSIGNED = "ROLE_ALREADY_ASSIGNED"
USER_NOT_IN_ROLE = "USER_NOT_IN_ROLE"
ROLE_INACTIVE = "ROLE_INACTIVE"

ROLE_NAME_CONFLICT = "ROLE_NAME_CONFLICT"
PERMISSION_CONFLICT = "PERMISSION_CONFLICT"
