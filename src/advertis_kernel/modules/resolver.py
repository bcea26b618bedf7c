from __future__ import annotations

import asyncio
from typing import Any

from ..slots.parser import ContentParser, default_content_parser
from .paths import deep_get
from .types import (
    AnswersSource,
    EntitySource,
    InputSource,
    ModuleOutputSource,
    SlotSource,
    StudySource,
)


class InputResolver:
    """Gathers a module's declared inputs into a flat ``key -> value`` map."""

    def __init__(
        self,
        *,
        slots,
        entities,
        studies,
        runs,
        parser: ContentParser | None = None,
    ) -> None:
        self._slots = slots
        self._entities = entities
        self._studies = studies
        self._runs = runs
        self._parser = parser or default_content_parser

    async def resolve(self, inputs: tuple[InputSource, ...] | list[InputSource], entity_id: str) -> dict[str, Any]:
        resolved = await asyncio.gather(*(self._resolve_one(source, entity_id) for source in inputs))

        result: dict[str, Any] = {}
        for source, value in zip(inputs, resolved):
            result[source.key] = value
            if isinstance(source, EntitySource) and isinstance(value, dict):
                result.update(value)
        return result

    async def _resolve_one(self, source: InputSource, entity_id: str) -> Any:
        if isinstance(source, SlotSource):
            return await self._resolve_slot(source, entity_id)
        if isinstance(source, AnswersSource):
            answers = await self._entities.get_answers(entity_id)
            return {variable_id: answers.get(variable_id, "") for variable_id in source.variable_ids}
        if isinstance(source, EntitySource):
            entity = await self._entities.get(entity_id)
            attributes = entity.fields() if entity else {}
            return {name: attributes.get(name) for name in source.fields}
        if isinstance(source, StudySource):
            study = await self._studies.get(entity_id)
            if study is None:
                return None
            if source.fields:
                return {name: study.get(name) for name in source.fields}
            return study
        if isinstance(source, ModuleOutputSource):
            run = await self._runs.latest_complete(entity_id, source.module_id)
            return run.output_data if run is not None else None
        raise TypeError(f"unsupported input source: {type(source).__name__}")

    async def _resolve_slot(self, source: SlotSource, entity_id: str) -> Any:
        record = await self._slots.get(entity_id, source.slot_type)
        parsed = self._parser.parse_stored(source.slot_type, record.content if record else None)
        if source.path:
            return deep_get(parsed.data, source.path)
        return parsed.data
