from __future__ import annotations

from ..slots.registry import SchemaRegistry
from .implementations import AuditSynthesis, DataQualityScorer
from .registry import ModuleRegistry


def build_default_registry(*, schemas: SchemaRegistry | None = None) -> ModuleRegistry:
    registry = ModuleRegistry(schemas=schemas)
    registry.register(DataQualityScorer())
    registry.register(AuditSynthesis())
    return registry
