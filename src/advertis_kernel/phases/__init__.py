from .machine import PhaseStateMachine, can_advance, can_revert
from .types import (
    LEGACY_PHASE_MAP,
    PHASE_ORDER,
    PHASE_SLOTS,
    POST_GENERATION_PHASE,
    SKIPPABLE_PHASES,
    Phase,
    PhaseTransition,
    normalize_phase,
    slots_after,
)

__all__ = [
    "LEGACY_PHASE_MAP",
    "PHASE_ORDER",
    "PHASE_SLOTS",
    "POST_GENERATION_PHASE",
    "SKIPPABLE_PHASES",
    "Phase",
    "PhaseStateMachine",
    "PhaseTransition",
    "can_advance",
    "can_revert",
    "normalize_phase",
    "slots_after",
]
