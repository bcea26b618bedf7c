from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Union

from ..slots.types import SlotType


class ModuleCategory(str, Enum):
    COLLECT = "collect"
    DEDUCE = "deduce"
    REFINE = "refine"
    COMPUTE = "compute"


class MergeStrategy(str, Enum):
    REPLACE = "replace"
    APPEND = "append"
    MERGE = "merge"


class RunStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETE = "complete"
    ERROR = "error"


class TriggeredBy(str, Enum):
    MANUAL = "manual"
    AUTO = "auto"
    WEBHOOK = "webhook"


@dataclass(frozen=True)
class SlotSource:
    slot_type: SlotType
    path: str | None = None

    @property
    def key(self) -> str:
        if self.path:
            return f"slot_{self.slot_type.value}_{self.path.replace('.', '_')}"
        return f"slot_{self.slot_type.value}"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"source": "slot", "slotType": self.slot_type.value}
        if self.path:
            data["path"] = self.path
        return data


@dataclass(frozen=True)
class AnswersSource:
    variable_ids: tuple[str, ...]
    key = "answers"

    def to_dict(self) -> dict[str, Any]:
        return {"source": "answers", "variableIds": list(self.variable_ids)}


@dataclass(frozen=True)
class EntitySource:
    fields: tuple[str, ...]
    key = "entity"

    def to_dict(self) -> dict[str, Any]:
        return {"source": "entity", "fields": list(self.fields)}


@dataclass(frozen=True)
class StudySource:
    fields: tuple[str, ...] | None = None
    key = "study"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"source": "study"}
        if self.fields:
            data["fields"] = list(self.fields)
        return data


@dataclass(frozen=True)
class ModuleOutputSource:
    module_id: str

    @property
    def key(self) -> str:
        return f"module_{self.module_id}"

    def to_dict(self) -> dict[str, Any]:
        return {"source": "moduleOutput", "moduleId": self.module_id}


InputSource = Union[SlotSource, AnswersSource, EntitySource, StudySource, ModuleOutputSource]


@dataclass(frozen=True)
class OutputTarget:
    slot_type: SlotType
    path: str
    strategy: MergeStrategy = MergeStrategy.REPLACE

    def to_dict(self) -> dict[str, Any]:
        return {"slotType": self.slot_type.value, "path": self.path, "mergeStrategy": self.strategy.value}


@dataclass(frozen=True)
class ModuleDescriptor:
    id: str
    name: str
    description: str
    category: ModuleCategory
    inputs: tuple[InputSource, ...] = ()
    outputs: tuple[OutputTarget, ...] = ()
    auto_trigger: bool = False
    input_schema: dict[str, Any] = field(default_factory=dict)
    output_schema: dict[str, Any] = field(default_factory=dict)

    @property
    def read_only(self) -> bool:
        return not self.outputs

    def reads_slot(self, slot_type: SlotType) -> bool:
        return any(isinstance(source, SlotSource) and source.slot_type is slot_type for source in self.inputs)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category.value,
            "inputs": [source.to_dict() for source in self.inputs],
            "outputs": [target.to_dict() for target in self.outputs],
            "autoTrigger": self.auto_trigger,
            "inputSchema": self.input_schema,
            "outputSchema": self.output_schema,
        }


@dataclass(frozen=True)
class ModuleContext:
    entity_id: str
    user_id: str
    run_id: str
    inputs: dict[str, Any]


@dataclass(frozen=True)
class ModuleResult:
    success: bool
    data: dict[str, Any] | None = None
    error: str | None = None


@dataclass(frozen=True)
class ModuleRun:
    run_id: str
    module_id: str
    entity_id: str
    user_id: str
    status: RunStatus
    triggered_by: TriggeredBy = TriggeredBy.MANUAL
    input_snapshot: dict[str, Any] | None = None
    input_hash: bytes | None = None
    output_data: dict[str, Any] | None = None
    error_message: str | None = None
    duration_ms: int | None = None
    created_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def finished(self) -> bool:
        return self.status in (RunStatus.COMPLETE, RunStatus.ERROR)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.run_id,
            "moduleId": self.module_id,
            "entityId": self.entity_id,
            "userId": self.user_id,
            "status": self.status.value,
            "triggeredBy": self.triggered_by.value,
            "inputSnapshot": self.input_snapshot,
            "inputHash": self.input_hash.hex() if self.input_hash else None,
            "outputData": self.output_data,
            "errorMessage": self.error_message,
            "durationMs": self.duration_ms,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "completedAt": self.completed_at.isoformat() if self.completed_at else None,
        }


@dataclass(frozen=True)
class ExecutionOutcome:
    success: bool
    run_id: str
    data: dict[str, Any] | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"success": self.success, "runId": self.run_id}
        if self.data is not None:
            data["data"] = self.data
        if self.error is not None:
            data["error"] = self.error
        return data
