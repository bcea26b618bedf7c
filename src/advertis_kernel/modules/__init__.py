from .applier import OutputApplier, combine, merge_append, merge_objects, merge_replace
from .base import Module
from .catalog import build_default_registry
from .executor import ModuleExecutor
from .registry import ModuleRegistry
from .resolver import InputResolver
from .store import ModuleRunStore
from .types import (
    AnswersSource,
    EntitySource,
    ExecutionOutcome,
    MergeStrategy,
    ModuleCategory,
    ModuleContext,
    ModuleDescriptor,
    ModuleOutputSource,
    ModuleResult,
    ModuleRun,
    OutputTarget,
    RunStatus,
    SlotSource,
    StudySource,
    TriggeredBy,
)

__all__ = [
    "AnswersSource",
    "EntitySource",
    "ExecutionOutcome",
    "InputResolver",
    "MergeStrategy",
    "Module",
    "ModuleCategory",
    "ModuleContext",
    "ModuleDescriptor",
    "ModuleExecutor",
    "ModuleOutputSource",
    "ModuleRegistry",
    "ModuleResult",
    "ModuleRun",
    "ModuleRunStore",
    "OutputApplier",
    "OutputTarget",
    "RunStatus",
    "SlotSource",
    "StudySource",
    "TriggeredBy",
    "build_default_registry",
    "combine",
    "merge_append",
    "merge_objects",
    "merge_replace",
]
