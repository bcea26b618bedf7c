from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from ..errors import ErrorCode, InvalidTransitionError, KernelError, NotFoundError
from .parser import ContentParser, ParseResult, default_content_parser
from .types import SlotRecord, SlotStatus, SlotType

if TYPE_CHECKING:
    from ..phases.machine import PhaseStateMachine
    from ..phases.types import PhaseTransition

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    """Opaque text-generation collaborator; returns raw text that should hold JSON."""

    async def generate(self, slot_type: SlotType, context: dict[str, Any]) -> str: ...


class AutoTrigger(Protocol):
    async def run_auto_triggered(self, *, entity_id: str, user_id: str, slot_type: SlotType) -> Any: ...


@dataclass(frozen=True)
class SlotSaveResult:
    slot: SlotRecord
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class SlotGenerationResult:
    slot: SlotRecord
    parse: ParseResult | None = None
    error: str | None = None
    transition: PhaseTransition | None = None


class SlotService:
    def __init__(
        self,
        *,
        slots,
        entities,
        parser: ContentParser | None = None,
        auto_trigger: AutoTrigger | None = None,
        phases: PhaseStateMachine | None = None,
    ) -> None:
        self._slots = slots
        self._entities = entities
        self._parser = parser or default_content_parser
        self._auto_trigger = auto_trigger
        self._phases = phases

    async def read(self, entity_id: str, user_id: str, slot_type: SlotType) -> tuple[SlotRecord, ParseResult]:
        await self._entities.require_owned(entity_id, user_id)
        record = await self._require_slot(entity_id, slot_type)
        return record, self._parser.parse_stored(slot_type, record.content)

    async def save(
        self,
        entity_id: str,
        user_id: str,
        slot_type: SlotType,
        content: Any,
        *,
        change_note: str | None = None,
    ) -> SlotSaveResult:
        await self._entities.require_owned(entity_id, user_id)
        current = await self._require_slot(entity_id, slot_type)

        check = self._parser.validate_for_save(slot_type, content)
        if not check.success:
            logger.warning(
                "slot saved with schema issues",
                extra={"entity_id": entity_id, "slot_type": slot_type.value, "issues": check.errors},
            )

        record = await self._slots.write_content(
            entity_id,
            slot_type,
            content,
            expected_version=current.version,
            status=SlotStatus.COMPLETE,
            user_id=user_id,
            change_note=change_note,
        )
        if self._auto_trigger is not None and record.version != current.version:
            await self._auto_trigger.run_auto_triggered(entity_id=entity_id, user_id=user_id, slot_type=slot_type)
        return SlotSaveResult(slot=record, warnings=list(check.errors))

    async def generate(
        self,
        entity_id: str,
        user_id: str,
        slot_type: SlotType,
        generator: TextGenerator,
        *,
        context: dict[str, Any] | None = None,
    ) -> SlotGenerationResult:
        entity = await self._entities.require_owned(entity_id, user_id)
        current = await self._require_slot(entity_id, slot_type)
        await self._slots.set_status(entity_id, slot_type, SlotStatus.GENERATING, error_message=None)

        prompt_context = {"entity": entity.fields(), "answers": dict(entity.answers), **(context or {})}
        try:
            text = await generator.generate(slot_type, prompt_context)
            parsed = self._parser.parse_generated(slot_type, text)
            record = await self._slots.write_content(
                entity_id,
                slot_type,
                parsed.data,
                expected_version=current.version,
                status=SlotStatus.COMPLETE,
                user_id=user_id,
                change_note="generated",
            )
        except Exception as exc:
            message = exc.message if isinstance(exc, KernelError) else (str(exc) or type(exc).__name__)
            logger.warning(
                "slot generation failed",
                extra={"entity_id": entity_id, "slot_type": slot_type.value, "error": message},
            )
            await self._slots.set_status(entity_id, slot_type, SlotStatus.ERROR, error_message=message)
            failed = await self._require_slot(entity_id, slot_type)
            return SlotGenerationResult(slot=failed, error=message)

        transition = await self._advance_pipeline(entity_id, user_id, slot_type)
        await self._mark_entity_complete(entity_id)
        if self._auto_trigger is not None:
            await self._auto_trigger.run_auto_triggered(entity_id=entity_id, user_id=user_id, slot_type=slot_type)
        return SlotGenerationResult(slot=record, parse=parsed, transition=transition)

    async def _advance_pipeline(self, entity_id: str, user_id: str, slot_type: SlotType) -> PhaseTransition | None:
        if self._phases is None:
            return None
        try:
            return await self._phases.advance_after_generation(entity_id, user_id, slot_type)
        except InvalidTransitionError as exc:
            # Content is already persisted; only the automatic advance is lost.
            logger.warning(
                "post-generation advance rejected",
                extra={"entity_id": entity_id, "slot_type": slot_type.value, "error": exc.message},
            )
            return None

    async def _mark_entity_complete(self, entity_id: str) -> None:
        records = await self._slots.list_for_entity(entity_id)
        if records and all(record.status is SlotStatus.COMPLETE for record in records):
            await self._entities.set_status(entity_id, "complete")

    async def versions(self, entity_id: str, user_id: str, slot_type: SlotType):
        await self._entities.require_owned(entity_id, user_id)
        return await self._slots.list_versions(entity_id, slot_type)

    async def _require_slot(self, entity_id: str, slot_type: SlotType) -> SlotRecord:
        record = await self._slots.get(entity_id, slot_type)
        if record is None:
            raise NotFoundError(
                f"slot {SlotType(slot_type).value} not found for entity {entity_id}",
                code=ErrorCode.SLOT_NOT_FOUND,
            )
        return record
