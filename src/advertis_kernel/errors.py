"""
Error taxonomy for the strategy kernel.

Parse problems never surface as exceptions; everything else a caller can
act on is one of the classes below:
- Not-found / ownership failures
- Rejected phase transitions
- Schema validation failures
- Optimistic concurrency conflicts
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Stable error codes for programmatic handling."""

    # Lookup / ownership (1xxx)
    NOT_FOUND = "ERR_1000"
    ENTITY_NOT_FOUND = "ERR_1001"
    SLOT_NOT_FOUND = "ERR_1002"
    MODULE_NOT_FOUND = "ERR_1003"
    RUN_NOT_FOUND = "ERR_1004"
    OWNERSHIP = "ERR_1100"

    # Phase transitions (2xxx)
    INVALID_TRANSITION = "ERR_2000"
    UNKNOWN_PHASE = "ERR_2001"
    WRONG_SOURCE_PHASE = "ERR_2002"

    # Schema validation (3xxx)
    SCHEMA_VALIDATION = "ERR_3000"
    INPUT_VALIDATION = "ERR_3001"
    OUTPUT_VALIDATION = "ERR_3002"
    SLOT_VALIDATION = "ERR_3003"
    MODULE_REGISTRATION = "ERR_3100"

    # Concurrency (4xxx)
    SLOT_WRITE_CONFLICT = "ERR_4000"
    PHASE_CONFLICT = "ERR_4001"

    # Internal (9xxx)
    INTERNAL_ERROR = "ERR_9000"


class KernelError(Exception):
    """
    Base exception for kernel errors.

    Attributes:
        code: Stable error code
        message: Human-readable reason
        retryable: Whether repeating the same call may succeed
        details: Extra structured context
    """

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode | None = None,
        retryable: bool | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if retryable is not None:
            self.retryable = retryable
        self.details = dict(details or {})

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": type(self).__name__,
            "code": self.code.value,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"


class NotFoundError(KernelError):
    code = ErrorCode.NOT_FOUND


class OwnershipError(KernelError):
    code = ErrorCode.OWNERSHIP


class InvalidTransitionError(KernelError):
    code = ErrorCode.INVALID_TRANSITION

    def __init__(
        self,
        message: str,
        *,
        current: str | None = None,
        target: str | None = None,
        code: ErrorCode | None = None,
        retryable: bool | None = None,
    ) -> None:
        super().__init__(
            message,
            code=code,
            retryable=retryable,
            details={"current": current, "target": target},
        )
        self.current = current
        self.target = target


class SchemaValidationError(KernelError):
    code = ErrorCode.SCHEMA_VALIDATION

    def __init__(
        self,
        message: str,
        *,
        errors: list[str] | None = None,
        code: ErrorCode | None = None,
    ) -> None:
        self.errors = list(errors or [])
        super().__init__(message, code=code, details={"errors": self.errors})


class ModuleRegistrationError(KernelError):
    code = ErrorCode.MODULE_REGISTRATION


class SlotWriteConflict(KernelError):
    code = ErrorCode.SLOT_WRITE_CONFLICT
    retryable = True


__all__ = [
    "ErrorCode",
    "KernelError",
    "NotFoundError",
    "OwnershipError",
    "InvalidTransitionError",
    "SchemaValidationError",
    "ModuleRegistrationError",
    "SlotWriteConflict",
]
