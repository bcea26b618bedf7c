"""
Writes validated module output back into slot documents.

Targets are grouped per slot so each slot is read, transformed and written
once. Every read goes through the content parser, so the merge always starts
from a complete document. Writes carry the version that was read; a
concurrent change makes the whole slot be re-read and re-applied.
"""

from __future__ import annotations

import copy
import logging
from typing import Any

from ..errors import ErrorCode, SchemaValidationError, SlotWriteConflict
from ..slots.parser import ContentParser, default_content_parser
from ..slots.types import SlotRecord, SlotStatus, SlotType
from .paths import deep_get, deep_set, split_path
from .types import MergeStrategy, OutputTarget

logger = logging.getLogger(__name__)

_MISSING = object()


def merge_replace(_current: Any, incoming: Any) -> Any:
    return incoming


def merge_append(current: Any, incoming: Any) -> Any:
    if isinstance(current, list) and isinstance(incoming, list):
        return [*current, *incoming]
    if isinstance(current, str) and isinstance(incoming, str):
        return f"{current}\n{incoming}"
    return incoming


def merge_objects(current: Any, incoming: Any) -> Any:
    if isinstance(current, dict) and isinstance(incoming, dict):
        return {**current, **incoming}
    return incoming


MERGE_FUNCTIONS = {
    MergeStrategy.REPLACE: merge_replace,
    MergeStrategy.APPEND: merge_append,
    MergeStrategy.MERGE: merge_objects,
}


def combine(strategy: MergeStrategy, current: Any, incoming: Any) -> Any:
    return MERGE_FUNCTIONS[MergeStrategy(strategy)](current, incoming)


def incoming_value(output: dict[str, Any], path: str) -> Any:
    """Module output is keyed by the target's last path segment, or by the full path.

    A ``None`` value counts as absent, so the target is left untouched.
    """
    parts = split_path(path)
    if parts and output.get(parts[-1]) is not None:
        return output[parts[-1]]
    if output.get(path) is not None:
        return output[path]
    return _MISSING


def apply_targets(document: dict[str, Any], targets: list[OutputTarget], output: dict[str, Any]) -> dict[str, Any]:
    updated = copy.deepcopy(document)
    for target in targets:
        value = incoming_value(output, target.path)
        if value is _MISSING:
            continue
        current = deep_get(updated, target.path)
        deep_set(updated, target.path, combine(target.strategy, current, copy.deepcopy(value)))
    return updated


class OutputApplier:
    def __init__(
        self,
        *,
        slots,
        parser: ContentParser | None = None,
        strict_revalidation: bool = False,
        max_write_attempts: int = 3,
    ) -> None:
        self._slots = slots
        self._parser = parser or default_content_parser
        self._strict_revalidation = bool(strict_revalidation)
        self._max_write_attempts = max(1, int(max_write_attempts))

    async def apply(
        self,
        *,
        entity_id: str,
        targets: tuple[OutputTarget, ...] | list[OutputTarget],
        output: dict[str, Any],
        user_id: str | None = None,
        change_note: str | None = None,
    ) -> list[SlotRecord]:
        grouped: dict[SlotType, list[OutputTarget]] = {}
        for target in targets:
            grouped.setdefault(target.slot_type, []).append(target)

        written: list[SlotRecord] = []
        for slot_type, slot_targets in grouped.items():
            record = await self._apply_slot(
                entity_id=entity_id,
                slot_type=slot_type,
                targets=slot_targets,
                output=output,
                user_id=user_id,
                change_note=change_note,
            )
            if record is not None:
                written.append(record)
        return written

    async def _apply_slot(
        self,
        *,
        entity_id: str,
        slot_type: SlotType,
        targets: list[OutputTarget],
        output: dict[str, Any],
        user_id: str | None,
        change_note: str | None,
    ) -> SlotRecord | None:
        for attempt in range(1, self._max_write_attempts + 1):
            current = await self._slots.get(entity_id, slot_type)
            if current is None:
                logger.warning(
                    "target slot missing; skipping output",
                    extra={"entity_id": entity_id, "slot_type": slot_type.value},
                )
                return None

            base = self._parser.parse_stored(slot_type, current.content).data
            updated = apply_targets(base, targets, output)
            self._revalidate(entity_id, slot_type, updated)

            try:
                return await self._slots.write_content(
                    entity_id,
                    slot_type,
                    updated,
                    expected_version=current.version,
                    status=SlotStatus.COMPLETE,
                    user_id=user_id,
                    change_note=change_note,
                )
            except SlotWriteConflict:
                if attempt >= self._max_write_attempts:
                    raise
                logger.info(
                    "slot changed during output application; retrying",
                    extra={"entity_id": entity_id, "slot_type": slot_type.value, "attempt": attempt},
                )
        return None

    def _revalidate(self, entity_id: str, slot_type: SlotType, document: dict[str, Any]) -> None:
        check = self._parser.schemas.validate(slot_type, document)
        if check.ok:
            return
        if self._strict_revalidation:
            raise SchemaValidationError(
                f"Slot {slot_type.value} failed validation after applying output",
                errors=check.errors,
                code=ErrorCode.SLOT_VALIDATION,
            )
        logger.warning(
            "slot document has schema issues after applying output; persisting anyway",
            extra={"entity_id": entity_id, "slot_type": slot_type.value, "issues": check.errors},
        )
