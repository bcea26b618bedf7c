from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..errors import ErrorCode, InvalidTransitionError
from ..slots.types import SlotType


class Phase(str, Enum):
    FICHE = "fiche"
    FICHE_REVIEW = "fiche-review"
    AUDIT_R = "audit-r"
    MARKET_STUDY = "market-study"
    AUDIT_T = "audit-t"
    AUDIT_REVIEW = "audit-review"
    IMPLEMENTATION = "implementation"
    COCKPIT = "cockpit"
    COMPLETE = "complete"


PHASE_ORDER: tuple[Phase, ...] = tuple(Phase)

# Phases that ``advance`` may jump over without completing them.
SKIPPABLE_PHASES: frozenset[Phase] = frozenset({Phase.MARKET_STUDY})

LEGACY_PHASE_MAP: dict[str, Phase] = {
    "audit": Phase.AUDIT_R,
}

PHASE_SLOTS: dict[Phase, tuple[SlotType, ...]] = {
    Phase.FICHE: (SlotType.A, SlotType.D, SlotType.V, SlotType.E),
    Phase.FICHE_REVIEW: (),
    Phase.AUDIT_R: (SlotType.R,),
    Phase.MARKET_STUDY: (),
    Phase.AUDIT_T: (SlotType.T,),
    Phase.AUDIT_REVIEW: (SlotType.R, SlotType.T),
    Phase.IMPLEMENTATION: (SlotType.I,),
    Phase.COCKPIT: (SlotType.S,),
    Phase.COMPLETE: (),
}

# Phase the pipeline moves to once a slot of this type has been generated.
POST_GENERATION_PHASE: dict[SlotType, Phase] = {
    SlotType.R: Phase.MARKET_STUDY,
    SlotType.T: Phase.AUDIT_REVIEW,
    SlotType.I: Phase.COCKPIT,
    SlotType.S: Phase.COMPLETE,
}


def normalize_phase(raw: str | Phase) -> Phase:
    if isinstance(raw, Phase):
        return raw
    value = str(raw).strip()
    legacy = LEGACY_PHASE_MAP.get(value)
    if legacy is not None:
        return legacy
    try:
        return Phase(value)
    except ValueError:
        raise InvalidTransitionError(
            f"Unknown phase: {raw}",
            current=value,
            code=ErrorCode.UNKNOWN_PHASE,
        ) from None


def phase_index(phase: Phase) -> int:
    return PHASE_ORDER.index(phase)


def slots_after(phase: Phase) -> tuple[SlotType, ...]:
    """Slot types first produced by phases strictly after ``phase``."""
    reached: set[SlotType] = set()
    for earlier in PHASE_ORDER[: phase_index(phase) + 1]:
        reached.update(PHASE_SLOTS[earlier])
    later: list[SlotType] = []
    for later_phase in PHASE_ORDER[phase_index(phase) + 1 :]:
        for slot_type in PHASE_SLOTS[later_phase]:
            if slot_type not in reached and slot_type not in later:
                later.append(slot_type)
    return tuple(later)


def status_for(phase: Phase) -> str:
    return "complete" if phase is Phase.COMPLETE else "generating"


@dataclass(frozen=True)
class PhaseTransition:
    entity_id: str
    from_phase: Phase
    to_phase: Phase
    status: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "entityId": self.entity_id,
            "from": self.from_phase.value,
            "to": self.to_phase.value,
            "status": self.status,
        }
