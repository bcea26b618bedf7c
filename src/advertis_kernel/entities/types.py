from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

# Interview variables collected on the brand fiche.
ANSWER_KEYS: tuple[str, ...] = (
    *(f"A{i}" for i in range(0, 7)),
    *(f"D{i}" for i in range(1, 8)),
    *(f"V{i}" for i in range(1, 7)),
    *(f"E{i}" for i in range(1, 7)),
)

ENTITY_STATUSES = ("draft", "generating", "complete", "error")


@dataclass(frozen=True)
class EntityRecord:
    entity_id: str
    user_id: str
    name: str
    phase: str
    status: str
    answers: dict[str, str] = field(default_factory=dict)
    sector: str | None = None
    description: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def fields(self) -> dict[str, Any]:
        """Plain entity attributes, as exposed to module input resolution."""
        return {
            "id": self.entity_id,
            "userId": self.user_id,
            "name": self.name,
            "sector": self.sector,
            "description": self.description,
            "phase": self.phase,
            "status": self.status,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.fields(),
            "answers": dict(self.answers),
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


def clean_answers(answers: dict[str, Any]) -> dict[str, str]:
    return {str(key): value for key, value in answers.items() if isinstance(value, str)}
