"""
Tiered content parser for slot documents.

Every entry point is total: callers always receive a complete document for
the slot type plus a diagnostic list, never an exception.

Fallback chain shared by stored and generated content:
    1. strict: the value is already valid
    2. coerce: loose scalars repaired, issues reported
    3. salvage: raw object deep-merged onto the default skeleton
    4. defaults: the bare skeleton
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any

from ..errors import SchemaValidationError
from ..logging import truncate_for_log
from .registry import SchemaRegistry, default_schema_registry
from .types import SlotType, parse_slot_type

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")

CONTENT_NULL = "Content is null"
LEGACY_STRING = "Content is a legacy string, not structured JSON"
LEGACY_STRING_SKIPPED = "Content is a legacy string, structural validation skipped"
JSON_PARSE_FAILED = "JSON parse failed"
VALIDATION_FAILED = "Content could not be validated"


@dataclass(frozen=True)
class ParseResult:
    success: bool
    data: dict[str, Any]
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"success": self.success, "data": self.data, "errors": list(self.errors)}


@dataclass(frozen=True)
class SaveCheck:
    success: bool
    errors: list[str] = field(default_factory=list)


def deep_merge(defaults: dict[str, Any], raw: dict[str, Any]) -> dict[str, Any]:
    """Overlay ``raw`` on ``defaults``; nested objects merge, null raw values keep the default."""
    result = dict(defaults)
    for key, raw_value in raw.items():
        default_value = result.get(key)
        if isinstance(raw_value, dict) and isinstance(default_value, dict):
            result[key] = deep_merge(default_value, raw_value)
        elif raw_value is not None:
            result[key] = raw_value
    return result


def strip_code_fence(text: str) -> str:
    stripped = text.strip()
    match = _FENCE_RE.search(stripped)
    if match and match.group(1):
        return match.group(1).strip()
    return stripped


class ContentParser:
    def __init__(self, schemas: SchemaRegistry | None = None) -> None:
        self._schemas = schemas or default_schema_registry

    @property
    def schemas(self) -> SchemaRegistry:
        return self._schemas

    def parse_stored(self, slot_type: SlotType | str, raw: Any) -> ParseResult:
        resolved_type = parse_slot_type(slot_type)
        if resolved_type is None:
            return _unknown_type(slot_type)
        defaults = self._schemas.defaults_for(resolved_type)

        if raw is None:
            return ParseResult(success=False, data=defaults, errors=[CONTENT_NULL])

        value = raw
        if isinstance(raw, str):
            try:
                value = json.loads(raw)
            except (ValueError, RecursionError):
                return ParseResult(success=False, data=defaults, errors=[LEGACY_STRING])

        return self._run_chain(resolved_type, value, defaults, log_level=logging.DEBUG)

    def parse_generated(self, slot_type: SlotType | str, text: str) -> ParseResult:
        resolved_type = parse_slot_type(slot_type)
        if resolved_type is None:
            return _unknown_type(slot_type)
        defaults = self._schemas.defaults_for(resolved_type)

        try:
            value = json.loads(strip_code_fence(text or ""))
        except (ValueError, RecursionError):
            logger.error(
                "generated content is not valid JSON",
                extra={"slot_type": resolved_type.value, "preview": truncate_for_log(text or "")},
            )
            return ParseResult(success=False, data=defaults, errors=[JSON_PARSE_FAILED])

        return self._run_chain(resolved_type, value, defaults, log_level=logging.WARNING)

    def validate_for_save(self, slot_type: SlotType | str, content: Any) -> SaveCheck:
        resolved_type = parse_slot_type(slot_type)
        if resolved_type is None:
            return SaveCheck(success=False, errors=[f"Unknown slot type: {slot_type}"])
        if isinstance(content, str):
            return SaveCheck(success=True, errors=[LEGACY_STRING_SKIPPED])
        check = self._schemas.validate(resolved_type, content)
        if check.ok:
            return SaveCheck(success=True)
        return SaveCheck(success=False, errors=list(check.errors))

    def _run_chain(
        self,
        slot_type: SlotType,
        value: Any,
        defaults: dict[str, Any],
        *,
        log_level: int,
    ) -> ParseResult:
        try:
            return self._salvage(slot_type, value, defaults, log_level=log_level)
        except Exception:
            logger.exception(
                "slot content validation crashed; using defaults",
                extra={"slot_type": slot_type.value},
            )
            return ParseResult(success=False, data=self._schemas.defaults_for(slot_type), errors=[VALIDATION_FAILED])

    def _salvage(
        self,
        slot_type: SlotType,
        value: Any,
        defaults: dict[str, Any],
        *,
        log_level: int,
    ) -> ParseResult:
        strict = self._schemas.validate(slot_type, value)
        if strict.ok and strict.value is not None:
            return ParseResult(success=True, data=strict.value)
        issues = list(strict.errors)

        try:
            coerced = self._schemas.coerce(slot_type, value)
        except SchemaValidationError:
            coerced = None
        if coerced is not None:
            logger.log(
                log_level,
                "slot content repaired by coercion",
                extra={"slot_type": slot_type.value, "issues": issues},
            )
            return ParseResult(success=False, data=coerced, errors=issues)

        if isinstance(value, dict):
            logger.log(
                log_level,
                "slot content salvaged by merging onto defaults",
                extra={"slot_type": slot_type.value, "issues": issues},
            )
            return ParseResult(success=False, data=deep_merge(defaults, value), errors=issues)

        logger.log(
            log_level,
            "slot content replaced by defaults",
            extra={"slot_type": slot_type.value, "issues": issues},
        )
        return ParseResult(success=False, data=defaults, errors=issues)


def _unknown_type(slot_type: Any) -> ParseResult:
    return ParseResult(success=False, data={}, errors=[f"Unknown slot type: {slot_type}"])


default_content_parser = ContentParser()
