from __future__ import annotations

import pytest

from advertis_kernel.modules import (
    AnswersSource,
    EntitySource,
    ModuleOutputSource,
    SlotSource,
    StudySource,
)
from advertis_kernel.slots import SlotType, default_schema_registry
from tests.advertis_kernel._kernel_testkit import build_harness


@pytest.mark.asyncio
async def test_slot_inputs_are_parsed_and_keyed() -> None:
    harness = build_harness()
    entity = harness.entities.add()
    harness.slots.seed(entity.entity_id, SlotType.A, {"identite": {"archetype": "Le Sage"}})

    inputs = await harness.resolver.resolve(
        [SlotSource(SlotType.A), SlotSource(SlotType.A, "identite.archetype"), SlotSource(SlotType.D)],
        entity.entity_id,
    )

    assert inputs["slot_A"]["identite"]["archetype"] == "Le Sage"
    assert inputs["slot_A"]["herosJourney"]["acte1Origines"] == ""
    assert inputs["slot_A_identite_archetype"] == "Le Sage"
    # Null content still resolves to a complete skeleton.
    assert inputs["slot_D"] == default_schema_registry.defaults_for(SlotType.D)


@pytest.mark.asyncio
async def test_answers_default_to_empty_string() -> None:
    harness = build_harness()
    entity = harness.entities.add(answers={"A1": "Fondée en 2019", "D2": 3})

    inputs = await harness.resolver.resolve([AnswersSource(("A1", "D2", "E6"))], entity.entity_id)

    assert inputs["answers"] == {"A1": "Fondée en 2019", "D2": "", "E6": ""}


@pytest.mark.asyncio
async def test_entity_fields_are_also_flattened_to_top_level() -> None:
    harness = build_harness()
    entity = harness.entities.add(name="Atelier Lune", sector="mode")

    inputs = await harness.resolver.resolve([EntitySource(("name", "sector"))], entity.entity_id)

    assert inputs["entity"] == {"name": "Atelier Lune", "sector": "mode"}
    assert inputs["name"] == "Atelier Lune"
    assert inputs["sector"] == "mode"


@pytest.mark.asyncio
async def test_study_is_none_when_absent_and_projected_when_present() -> None:
    harness = build_harness()
    entity = harness.entities.add()

    missing = await harness.resolver.resolve([StudySource()], entity.entity_id)
    assert missing == {"study": None}

    harness.studies.rows[entity.entity_id] = {"status": "complete", "trends": ["bio"], "sources": 4}
    projected = await harness.resolver.resolve([StudySource(("trends",))], entity.entity_id)
    assert projected == {"study": {"trends": ["bio"]}}


@pytest.mark.asyncio
async def test_module_output_uses_latest_complete_run() -> None:
    harness = build_harness()
    entity = harness.entities.add()
    source = ModuleOutputSource("data-quality-scorer")

    before = await harness.resolver.resolve([source], entity.entity_id)
    assert before == {"module_data-quality-scorer": None}

    outcome = await harness.executor.execute("data-quality-scorer", entity_id=entity.entity_id, user_id=entity.user_id)
    assert outcome.success

    after = await harness.resolver.resolve([source], entity.entity_id)
    assert after["module_data-quality-scorer"]["globalScore"] == 0
