from __future__ import annotations

import json
from typing import Any

import pytest

from advertis_kernel.errors import OwnershipError
from advertis_kernel.modules import TriggeredBy
from advertis_kernel.slots import SlotStatus, SlotType
from advertis_kernel.slots.parser import LEGACY_STRING_SKIPPED
from tests.advertis_kernel._kernel_testkit import OWNER, STRANGER, build_harness, track_audit_document


class _FakeGenerator:
    def __init__(self, text: str = "", error: Exception | None = None) -> None:
        self.text = text
        self.error = error
        self.calls: list[tuple[SlotType, dict[str, Any]]] = []

    async def generate(self, slot_type: SlotType, context: dict[str, Any]) -> str:
        self.calls.append((slot_type, context))
        if self.error is not None:
            raise self.error
        return self.text


@pytest.mark.asyncio
async def test_save_snapshots_previous_content_and_bumps_version() -> None:
    harness = build_harness()
    entity = harness.entities.add()
    harness.slots.seed(entity.entity_id, SlotType.T, {"summary": "v1"})

    result = await harness.service.save(entity.entity_id, OWNER, SlotType.T, track_audit_document(), change_note="édition")

    assert result.warnings == []
    assert result.slot.version == 2
    assert result.slot.status is SlotStatus.COMPLETE
    versions = await harness.service.versions(entity.entity_id, OWNER, SlotType.T)
    assert [(v.version, v.content, v.change_note) for v in versions] == [(1, {"summary": "v1"}, "édition")]


@pytest.mark.asyncio
async def test_saving_identical_content_keeps_version() -> None:
    harness = build_harness()
    entity = harness.entities.add()
    harness.slots.seed(entity.entity_id, SlotType.T, track_audit_document(), version=4)

    result = await harness.service.save(entity.entity_id, OWNER, SlotType.T, track_audit_document())

    assert result.slot.version == 4
    assert harness.slots.versions == []


@pytest.mark.asyncio
async def test_save_returns_schema_warnings_without_blocking() -> None:
    harness = build_harness()
    entity = harness.entities.add()

    result = await harness.service.save(entity.entity_id, OWNER, SlotType.R, {"riskScore": "45"})
    assert result.warnings
    assert harness.slots.rows[(entity.entity_id, SlotType.R)].content == {"riskScore": "45"}

    legacy = await harness.service.save(entity.entity_id, OWNER, SlotType.S, "Synthèse rédigée à la main")
    assert legacy.warnings == [LEGACY_STRING_SKIPPED]


@pytest.mark.asyncio
async def test_save_triggers_auto_modules_reading_the_slot() -> None:
    harness = build_harness()
    entity = harness.entities.add()

    await harness.service.save(entity.entity_id, OWNER, SlotType.A, {"identite": {"archetype": "Le Sage"}})
    await harness.service.save(entity.entity_id, OWNER, SlotType.R, {"summary": "rien"})

    runs = list(harness.runs.rows.values())
    assert [(run.module_id, run.triggered_by) for run in runs] == [("data-quality-scorer", TriggeredBy.AUTO)]


@pytest.mark.asyncio
async def test_save_without_auto_trigger() -> None:
    harness = build_harness(auto_trigger=False)
    entity = harness.entities.add()

    await harness.service.save(entity.entity_id, OWNER, SlotType.A, {"identite": {"archetype": "Le Sage"}})

    assert harness.runs.rows == {}


@pytest.mark.asyncio
async def test_save_requires_ownership() -> None:
    harness = build_harness()
    entity = harness.entities.add()

    with pytest.raises(OwnershipError):
        await harness.service.save(entity.entity_id, STRANGER, SlotType.A, {})
    assert harness.slots.writes == []


@pytest.mark.asyncio
async def test_read_parses_stored_content() -> None:
    harness = build_harness()
    entity = harness.entities.add()

    record, parsed = await harness.service.read(entity.entity_id, OWNER, SlotType.V)

    assert record.content is None
    assert parsed.success is False
    assert parsed.data["unitEconomics"]["cac"] == ""


@pytest.mark.asyncio
async def test_generate_parses_fenced_output() -> None:
    harness = build_harness(auto_trigger=False)
    entity = harness.entities.add(answers={"A1": "Fondée en 2019"})
    generator = _FakeGenerator('```json\n{"identite": {"archetype": "L\'Explorateur"}}\n```')

    result = await harness.service.generate(entity.entity_id, OWNER, SlotType.A, generator)

    assert result.error is None
    assert result.parse.success is True
    assert result.slot.status is SlotStatus.COMPLETE
    assert result.slot.content["identite"]["archetype"] == "L'Explorateur"
    assert harness.slots.status_changes == [(entity.entity_id, SlotType.A, SlotStatus.GENERATING)]
    slot_type, context = generator.calls[0]
    assert slot_type is SlotType.A
    assert context["answers"] == {"A1": "Fondée en 2019"}
    assert context["entity"]["name"] == entity.name


@pytest.mark.asyncio
async def test_generate_failure_marks_slot_error() -> None:
    harness = build_harness()
    entity = harness.entities.add()

    result = await harness.service.generate(
        entity.entity_id,
        OWNER,
        SlotType.D,
        _FakeGenerator(error=TimeoutError("délai dépassé")),
    )

    assert result.error == "délai dépassé"
    assert result.slot.status is SlotStatus.ERROR
    assert result.slot.error_message == "délai dépassé"
    assert harness.slots.writes == []
    assert harness.runs.rows == {}


@pytest.mark.asyncio
async def test_generate_write_conflict_marks_slot_error() -> None:
    harness = build_harness(auto_trigger=False)
    entity = harness.entities.add(phase="audit-t")
    harness.slots.pending_conflicts = 1

    result = await harness.service.generate(
        entity.entity_id,
        OWNER,
        SlotType.T,
        _FakeGenerator(json.dumps(track_audit_document())),
    )

    assert result.error == "slot changed concurrently"
    assert result.transition is None
    assert result.slot.status is SlotStatus.ERROR
    assert result.slot.error_message == "slot changed concurrently"
    assert harness.entities.rows[entity.entity_id].phase == "audit-t"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("phase", "slot_type", "expected"),
    [
        ("audit-r", SlotType.R, "market-study"),
        ("audit-t", SlotType.T, "audit-review"),
        ("implementation", SlotType.I, "cockpit"),
        ("cockpit", SlotType.S, "complete"),
    ],
)
async def test_generate_advances_phase_after_completing_slot(phase: str, slot_type: SlotType, expected: str) -> None:
    harness = build_harness(auto_trigger=False)
    entity = harness.entities.add(phase=phase, status="generating")

    result = await harness.service.generate(entity.entity_id, OWNER, slot_type, _FakeGenerator("{}"))

    assert result.error is None
    assert result.transition is not None
    assert result.transition.to_phase.value == expected
    stored = harness.entities.rows[entity.entity_id]
    assert stored.phase == expected
    assert stored.status == ("complete" if expected == "complete" else "generating")


@pytest.mark.asyncio
async def test_generate_does_not_move_phase_for_fiche_slots() -> None:
    harness = build_harness(auto_trigger=False)
    entity = harness.entities.add(phase="fiche")

    result = await harness.service.generate(entity.entity_id, OWNER, SlotType.E, _FakeGenerator("{}"))

    assert result.transition is None
    assert harness.entities.rows[entity.entity_id].phase == "fiche"


@pytest.mark.asyncio
async def test_regenerating_earlier_slot_never_moves_phase_back() -> None:
    harness = build_harness(auto_trigger=False)
    entity = harness.entities.add(phase="cockpit", status="generating")

    result = await harness.service.generate(entity.entity_id, OWNER, SlotType.R, _FakeGenerator("{}"))

    assert result.error is None
    assert result.transition is None
    assert harness.entities.rows[entity.entity_id].phase == "cockpit"


@pytest.mark.asyncio
async def test_generating_last_pending_slot_marks_entity_complete() -> None:
    harness = build_harness(auto_trigger=False)
    entity = harness.entities.add(phase="fiche", status="generating")
    for slot_type in SlotType:
        if slot_type is not SlotType.V:
            harness.slots.seed(entity.entity_id, slot_type, {})

    await harness.service.generate(entity.entity_id, OWNER, SlotType.V, _FakeGenerator("{}"))

    stored = harness.entities.rows[entity.entity_id]
    assert stored.status == "complete"
    assert stored.phase == "fiche"


@pytest.mark.asyncio
async def test_entity_status_untouched_while_slots_remain_pending() -> None:
    harness = build_harness(auto_trigger=False)
    entity = harness.entities.add(phase="fiche", status="generating")

    await harness.service.generate(entity.entity_id, OWNER, SlotType.A, _FakeGenerator("{}"))

    assert harness.entities.rows[entity.entity_id].status == "generating"
