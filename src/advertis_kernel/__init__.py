"""Strategy pipeline kernel: slot schemas, content parsing, analysis modules and phases."""

from .errors import (
    ErrorCode,
    InvalidTransitionError,
    KernelError,
    ModuleRegistrationError,
    NotFoundError,
    OwnershipError,
    SchemaValidationError,
    SlotWriteConflict,
)
from .modules import ModuleExecutor, ModuleRegistry, build_default_registry
from .phases import Phase, PhaseStateMachine
from .slots import ContentParser, ParseResult, SchemaRegistry, SlotService, SlotType

__all__ = [
    "ContentParser",
    "ErrorCode",
    "InvalidTransitionError",
    "KernelError",
    "ModuleExecutor",
    "ModuleRegistrationError",
    "ModuleRegistry",
    "NotFoundError",
    "OwnershipError",
    "ParseResult",
    "Phase",
    "PhaseStateMachine",
    "SchemaRegistry",
    "SchemaValidationError",
    "SlotService",
    "SlotType",
    "SlotWriteConflict",
    "build_default_registry",
]
