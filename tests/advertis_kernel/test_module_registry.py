from __future__ import annotations

import logging

import pytest

from advertis_kernel.errors import ModuleRegistrationError, NotFoundError
from advertis_kernel.modules import (
    MergeStrategy,
    Module,
    ModuleCategory,
    ModuleContext,
    ModuleDescriptor,
    ModuleRegistry,
    ModuleResult,
    OutputTarget,
    SlotSource,
    build_default_registry,
)
from advertis_kernel.slots import SlotType


class _StaticModule(Module):
    def __init__(self, descriptor: ModuleDescriptor, data: dict | None = None) -> None:
        self.descriptor = descriptor
        self._data = data or {}

    async def execute(self, ctx: ModuleContext) -> ModuleResult:
        return ModuleResult(success=True, data=dict(self._data))


def _descriptor(module_id: str = "tagline-writer", **overrides) -> ModuleDescriptor:
    fields = {
        "id": module_id,
        "name": "Tagline",
        "description": "",
        "category": ModuleCategory.REFINE,
        "inputs": (SlotSource(SlotType.A),),
        "outputs": (OutputTarget(SlotType.I, "brandPlatform.tagline", MergeStrategy.REPLACE),),
    }
    fields.update(overrides)
    return ModuleDescriptor(**fields)


def test_default_registry_lookups() -> None:
    registry = build_default_registry()

    assert len(registry) == 2
    assert "data-quality-scorer" in registry
    assert [d.id for d in registry.for_slot(SlotType.I)] == ["audit-synthesis"]
    assert [d.id for d in registry.by_category("compute")] == ["data-quality-scorer"]
    assert [d.id for d in registry.auto_triggered_for(SlotType.A)] == ["data-quality-scorer"]
    assert registry.auto_triggered_for(SlotType.R) == []
    assert registry.get("nope") is None


def test_require_unknown_module_raises() -> None:
    with pytest.raises(NotFoundError):
        build_default_registry().require("nope")


def test_duplicate_registration_replaces_and_warns(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING, logger="advertis_kernel.modules.registry")
    registry = ModuleRegistry()
    first = _StaticModule(_descriptor())
    second = _StaticModule(_descriptor(name="Tagline v2"))

    registry.register(first)
    registry.register(second)

    assert len(registry) == 1
    assert registry.require("tagline-writer") is second
    assert "registered twice" in caplog.text


def test_unknown_output_path_is_rejected() -> None:
    registry = ModuleRegistry()
    bad = _descriptor(outputs=(OutputTarget(SlotType.I, "brandPlatform.slogan"),))

    with pytest.raises(ModuleRegistrationError) as excinfo:
        registry.register(_StaticModule(bad))
    assert "I.brandPlatform.slogan" in excinfo.value.message
    assert len(registry) == 0


def test_invalid_json_schema_is_rejected() -> None:
    registry = ModuleRegistry()
    with pytest.raises(ModuleRegistrationError):
        registry.register(_StaticModule(_descriptor(output_schema={"type": 12})))


def test_descriptor_wire_shape() -> None:
    descriptor = build_default_registry().require("audit-synthesis").descriptor
    wire = descriptor.to_dict()

    assert wire["category"] == "deduce"
    assert wire["autoTrigger"] is False
    assert wire["inputs"] == [{"source": "slot", "slotType": "R"}, {"source": "slot", "slotType": "T"}]
    assert {"slotType": "I", "path": "strategicRoadmap.year1Priorities", "mergeStrategy": "append"} in wire["outputs"]
    assert descriptor.read_only is False
