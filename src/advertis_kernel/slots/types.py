from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class SlotType(str, Enum):
    """The eight content slots every entity carries, in pipeline order."""

    A = "A"
    D = "D"
    V = "V"
    E = "E"
    R = "R"
    T = "T"
    I = "I"  # noqa: E741
    S = "S"

    @property
    def label(self) -> str:
        return SLOT_TITLES[self]


class SlotStatus(str, Enum):
    PENDING = "pending"
    GENERATING = "generating"
    COMPLETE = "complete"
    ERROR = "error"


SLOT_TITLES: dict[SlotType, str] = {
    SlotType.A: "Authenticité",
    SlotType.D: "Distinction",
    SlotType.V: "Valeur",
    SlotType.E: "Engagement",
    SlotType.R: "Risk",
    SlotType.T: "Track",
    SlotType.I: "Implementation",
    SlotType.S: "Synthèse",
}


def parse_slot_type(raw: str | SlotType) -> SlotType | None:
    if isinstance(raw, SlotType):
        return raw
    try:
        return SlotType(str(raw).strip().upper())
    except ValueError:
        return None


@dataclass(frozen=True)
class SlotRecord:
    entity_id: str
    slot_type: SlotType
    status: SlotStatus
    content: Any
    version: int = 1
    title: str = ""
    error_message: str | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "entityId": self.entity_id,
            "type": self.slot_type.value,
            "title": self.title or self.slot_type.label,
            "status": self.status.value,
            "content": self.content,
            "version": self.version,
            "errorMessage": self.error_message,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass(frozen=True)
class SlotVersion:
    entity_id: str
    slot_type: SlotType
    version: int
    content: Any
    change_note: str | None = None
    created_by: str | None = None
    created_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "entityId": self.entity_id,
            "type": self.slot_type.value,
            "version": self.version,
            "content": self.content,
            "changeNote": self.change_note,
            "createdBy": self.created_by,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
