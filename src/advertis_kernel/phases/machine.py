"""
Phase state machine for the strategy pipeline.

Transitions are validated against the ordered phase list, then applied with
a compare-and-set on the stored phase so a concurrent transition on the same
entity is rejected instead of silently overwritten.
"""

from __future__ import annotations

import logging
from typing import Any, NoReturn

from ..entities.store import EntityStore
from ..errors import ErrorCode, InvalidTransitionError
from ..slots.parser import ContentParser, default_content_parser
from ..slots.types import SlotType
from .types import (
    PHASE_ORDER,
    POST_GENERATION_PHASE,
    SKIPPABLE_PHASES,
    Phase,
    PhaseTransition,
    normalize_phase,
    phase_index,
    status_for,
)

logger = logging.getLogger(__name__)


def can_advance(current: Phase, target: Phase) -> tuple[bool, str | None]:
    current_index = phase_index(current)
    target_index = phase_index(target)
    if target_index <= current_index:
        return False, f"Cannot advance from {current.value} to {target.value}: target is not ahead"
    blocked = [
        phase.value
        for phase in PHASE_ORDER[current_index + 1 : target_index]
        if phase not in SKIPPABLE_PHASES
    ]
    if blocked:
        return False, (
            f"Cannot advance from {current.value} to {target.value}: "
            f"non-skippable phases in between ({', '.join(blocked)})"
        )
    return True, None


def can_revert(current: Phase, target: Phase) -> tuple[bool, str | None]:
    if phase_index(target) >= phase_index(current):
        return False, f"Cannot revert from {current.value} to {target.value}: target is not behind"
    return True, None


class PhaseStateMachine:
    def __init__(
        self,
        *,
        entities: EntityStore,
        parser: ContentParser | None = None,
    ) -> None:
        self._entities = entities
        self._parser = parser or default_content_parser

    async def advance(self, entity_id: str, user_id: str, target: str | Phase) -> PhaseTransition:
        entity = await self._entities.require_owned(entity_id, user_id)
        current = normalize_phase(entity.phase)
        target_phase = normalize_phase(target)
        ok, reason = can_advance(current, target_phase)
        if not ok:
            self._reject(entity_id, current, target_phase, reason)

        status = status_for(target_phase)
        await self._entities.update_phase(
            entity_id,
            expected_phase=entity.phase,
            phase=target_phase.value,
            status=status,
        )
        return self._applied(entity_id, current, target_phase, status)

    async def revert(self, entity_id: str, user_id: str, target: str | Phase) -> PhaseTransition:
        entity = await self._entities.require_owned(entity_id, user_id)
        current = normalize_phase(entity.phase)
        target_phase = normalize_phase(target)
        ok, reason = can_revert(current, target_phase)
        if not ok:
            self._reject(entity_id, current, target_phase, reason)

        # Only the phase pointer moves; later slots keep their content.
        status = "generating"
        await self._entities.update_phase(
            entity_id,
            expected_phase=entity.phase,
            phase=target_phase.value,
            status=status,
        )
        return self._applied(entity_id, current, target_phase, status)

    async def advance_after_generation(
        self,
        entity_id: str,
        user_id: str,
        slot_type: SlotType,
    ) -> PhaseTransition | None:
        """Move the pipeline on once a generated slot completes its phase.

        Returns ``None`` when the slot type has no follow-up phase, or when the
        entity is not positioned for a valid advance to it (a slot regenerated
        from a later phase never moves the pipeline back).
        """
        target = POST_GENERATION_PHASE.get(SlotType(slot_type))
        if target is None:
            return None
        entity = await self._entities.require_owned(entity_id, user_id)
        current = normalize_phase(entity.phase)
        ok, reason = can_advance(current, target)
        if not ok:
            logger.info(
                "post-generation advance skipped",
                extra={"entity_id": entity_id, "slot_type": SlotType(slot_type).value, "reason": reason},
            )
            return None
        return await self.advance(entity_id, user_id, target)

    async def validate_fiche_review(
        self,
        entity_id: str,
        user_id: str,
        answers: dict[str, Any],
    ) -> PhaseTransition:
        entity = await self._entities.require_owned(entity_id, user_id)
        current = normalize_phase(entity.phase)
        target = Phase.AUDIT_R
        self._require_source(entity_id, current, Phase.FICHE_REVIEW, target)

        status = status_for(target)
        await self._entities.save_answers_and_advance(
            entity_id,
            answers=answers,
            expected_phase=entity.phase,
            phase=target.value,
            status=status,
        )
        return self._applied(entity_id, current, target, status)

    async def validate_audit_review(
        self,
        entity_id: str,
        user_id: str,
        *,
        risk_content: Any,
        track_content: Any,
    ) -> PhaseTransition:
        entity = await self._entities.require_owned(entity_id, user_id)
        current = normalize_phase(entity.phase)
        target = Phase.IMPLEMENTATION
        self._require_source(entity_id, current, Phase.AUDIT_REVIEW, target)

        contents = {SlotType.R: risk_content, SlotType.T: track_content}
        for slot_type, content in contents.items():
            check = self._parser.validate_for_save(slot_type, content)
            if not check.success:
                logger.warning(
                    "audit review content saved with schema issues",
                    extra={"entity_id": entity_id, "slot_type": slot_type.value, "issues": check.errors},
                )

        status = status_for(target)
        await self._entities.save_slots_and_advance(
            entity_id,
            contents=contents,
            user_id=user_id,
            expected_phase=entity.phase,
            phase=target.value,
            status=status,
            change_note="audit review",
        )
        return self._applied(entity_id, current, target, status)

    def _require_source(self, entity_id: str, current: Phase, expected: Phase, target: Phase) -> None:
        if current is not expected:
            self._reject(
                entity_id,
                current,
                target,
                f"Entity must be in phase {expected.value} (currently {current.value})",
                code=ErrorCode.WRONG_SOURCE_PHASE,
            )

    def _reject(
        self,
        entity_id: str,
        current: Phase,
        target: Phase,
        reason: str | None,
        *,
        code: ErrorCode = ErrorCode.INVALID_TRANSITION,
    ) -> NoReturn:
        logger.info(
            "phase transition rejected",
            extra={"entity_id": entity_id, "from_phase": current.value, "to_phase": target.value},
        )
        raise InvalidTransitionError(
            reason or "Invalid phase transition",
            current=current.value,
            target=target.value,
            code=code,
        )

    def _applied(self, entity_id: str, current: Phase, target: Phase, status: str) -> PhaseTransition:
        logger.info(
            "phase transition applied",
            extra={"entity_id": entity_id, "from_phase": current.value, "to_phase": target.value},
        )
        return PhaseTransition(entity_id=entity_id, from_phase=current, to_phase=target, status=status)
