from __future__ import annotations

import copy
import types
import typing
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ValidationError

from ..errors import SchemaValidationError
from .schemas import (
    AuthenticiteDocument,
    DistinctionDocument,
    EngagementDocument,
    ImplementationDocument,
    RiskAuditDocument,
    SlotDocument,
    SyntheseDocument,
    TrackAuditDocument,
    ValeurDocument,
)
from .types import SlotType


SLOT_SCHEMAS: dict[SlotType, type[SlotDocument]] = {
    SlotType.A: AuthenticiteDocument,
    SlotType.D: DistinctionDocument,
    SlotType.V: ValeurDocument,
    SlotType.E: EngagementDocument,
    SlotType.R: RiskAuditDocument,
    SlotType.T: TrackAuditDocument,
    SlotType.I: ImplementationDocument,
    SlotType.S: SyntheseDocument,
}

_missing = [slot_type.value for slot_type in SlotType if slot_type not in SLOT_SCHEMAS]
if _missing:
    raise RuntimeError(f"slot types without a schema: {', '.join(_missing)}")


@dataclass(frozen=True)
class SchemaCheck:
    ok: bool
    value: dict[str, Any] | None = None
    errors: list[str] = field(default_factory=list)


def format_issues(exc: ValidationError) -> list[str]:
    """Render pydantic issues as ``dot.path: message`` strings."""
    issues: list[str] = []
    for error in exc.errors():
        path = ".".join(str(part) for part in error.get("loc", ()))
        issues.append(f"{path}: {error.get('msg', 'invalid value')}")
    return issues


def dump_document(document: BaseModel) -> dict[str, Any]:
    return document.model_dump(by_alias=True, exclude_none=True)


class SchemaRegistry:
    """Per-slot-type document schemas: defaults, strict validation and coercion."""

    def __init__(self, schemas: dict[SlotType, type[SlotDocument]] | None = None) -> None:
        self._schemas = dict(schemas or SLOT_SCHEMAS)
        self._defaults: dict[SlotType, dict[str, Any]] = {}
        for slot_type in SlotType:
            if slot_type not in self._schemas:
                raise ValueError(f"no schema registered for slot type {slot_type.value}")

    def schema_for(self, slot_type: SlotType) -> type[SlotDocument]:
        return self._schemas[SlotType(slot_type)]

    def defaults_for(self, slot_type: SlotType) -> dict[str, Any]:
        slot_type = SlotType(slot_type)
        cached = self._defaults.get(slot_type)
        if cached is None:
            cached = dump_document(self._schemas[slot_type]())
            self._defaults[slot_type] = cached
        return copy.deepcopy(cached)

    def validate(self, slot_type: SlotType, value: Any) -> SchemaCheck:
        """Strict check: any value that would need repairing is reported."""
        schema = self.schema_for(slot_type)
        try:
            document = schema.model_validate(value, context={"strict": True})
        except ValidationError as exc:
            return SchemaCheck(ok=False, errors=format_issues(exc))
        return SchemaCheck(ok=True, value=dump_document(document))

    def coerce(self, slot_type: SlotType, value: Any) -> dict[str, Any]:
        """Repair loose scalars; raises when the shape itself is wrong."""
        schema = self.schema_for(slot_type)
        try:
            document = schema.model_validate(value)
        except ValidationError as exc:
            issues = format_issues(exc)
            raise SchemaValidationError(
                f"slot {SlotType(slot_type).value} content cannot be coerced", errors=issues
            ) from exc
        return dump_document(document)

    def has_path(self, slot_type: SlotType, dot_path: str) -> bool:
        """Whether ``dot_path`` names a field of the slot document tree (wire keys)."""
        model: type[BaseModel] | None = self.schema_for(slot_type)
        parts = [part for part in dot_path.split(".") if part]
        if not parts:
            return False
        for index, part in enumerate(parts):
            if model is None:
                return False
            field_info = _field_by_wire_key(model, part)
            if field_info is None:
                return False
            is_last = index == len(parts) - 1
            model = None if is_last else _nested_model(field_info.annotation)
        return True


def _field_by_wire_key(model: type[BaseModel], key: str):
    for name, info in model.model_fields.items():
        if info.alias == key or name == key:
            return info
    return None


def _nested_model(annotation: Any) -> type[BaseModel] | None:
    if isinstance(annotation, type) and issubclass(annotation, BaseModel):
        return annotation
    origin = typing.get_origin(annotation)
    if origin in (typing.Union, types.UnionType):
        for arg in typing.get_args(annotation):
            if isinstance(arg, type) and issubclass(arg, BaseModel):
                return arg
    return None


default_schema_registry = SchemaRegistry()
