from __future__ import annotations

import logging

import pytest

from advertis_kernel.errors import SchemaValidationError, SlotWriteConflict
from advertis_kernel.modules import MergeStrategy, OutputTarget
from advertis_kernel.slots import SlotType
from tests.advertis_kernel._kernel_testkit import OWNER, build_harness

ROADMAP_TARGETS = (
    OutputTarget(SlotType.I, "riskSynthesis", MergeStrategy.MERGE),
    OutputTarget(SlotType.I, "strategicRoadmap.year1Priorities", MergeStrategy.APPEND),
)


@pytest.mark.asyncio
async def test_apply_merges_onto_parsed_document_and_bumps_version() -> None:
    harness = build_harness()
    entity = harness.entities.add()
    harness.slots.seed(
        entity.entity_id,
        SlotType.I,
        {"riskSynthesis": {"riskScore": 10, "topRisks": []}, "strategicRoadmap": {"year1Priorities": ["Recruter"]}},
    )

    written = await harness.applier.apply(
        entity_id=entity.entity_id,
        targets=ROADMAP_TARGETS,
        output={"riskSynthesis": {"riskScore": 35}, "year1Priorities": ["Ouvrir une boutique"]},
        user_id=OWNER,
        change_note="test",
    )

    assert len(written) == 1
    record = written[0]
    assert record.version == 2
    assert record.content["riskSynthesis"]["riskScore"] == 35
    assert record.content["riskSynthesis"]["topRisks"] == []
    assert record.content["strategicRoadmap"]["year1Priorities"] == ["Recruter", "Ouvrir une boutique"]
    # Parsed from defaults, so untouched sections are complete.
    assert record.content["brandIdentity"]["archetype"] == ""
    assert harness.slots.versions[0].version == 1


@pytest.mark.asyncio
async def test_targets_on_one_slot_are_written_once() -> None:
    harness = build_harness()
    entity = harness.entities.add()

    await harness.applier.apply(
        entity_id=entity.entity_id,
        targets=ROADMAP_TARGETS,
        output={"riskSynthesis": {"riskScore": 35}, "year1Priorities": ["a"]},
    )

    assert [write[1] for write in harness.slots.writes] == [SlotType.I]


@pytest.mark.asyncio
async def test_missing_target_slot_is_skipped_with_warning(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING, logger="advertis_kernel.modules.applier")
    harness = build_harness()

    written = await harness.applier.apply(
        entity_id="no-such-entity",
        targets=ROADMAP_TARGETS,
        output={"riskSynthesis": {"riskScore": 35}},
    )

    assert written == []
    assert harness.slots.writes == []
    assert "target slot missing" in caplog.text


@pytest.mark.asyncio
async def test_soft_revalidation_persists_with_warning(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING, logger="advertis_kernel.modules.applier")
    harness = build_harness(strict_revalidation=False)
    entity = harness.entities.add()

    written = await harness.applier.apply(
        entity_id=entity.entity_id,
        targets=(OutputTarget(SlotType.I, "riskSynthesis", MergeStrategy.MERGE),),
        output={"riskSynthesis": {"riskScore": "élevé"}},
    )

    assert written[0].content["riskSynthesis"]["riskScore"] == "élevé"
    assert "schema issues after applying output" in caplog.text


@pytest.mark.asyncio
async def test_strict_revalidation_raises_without_writing() -> None:
    harness = build_harness(strict_revalidation=True)
    entity = harness.entities.add()

    with pytest.raises(SchemaValidationError):
        await harness.applier.apply(
            entity_id=entity.entity_id,
            targets=(OutputTarget(SlotType.I, "riskSynthesis", MergeStrategy.MERGE),),
            output={"riskSynthesis": {"riskScore": "élevé"}},
        )
    assert harness.slots.writes == []


@pytest.mark.asyncio
async def test_version_conflict_is_retried_on_fresh_read() -> None:
    harness = build_harness(max_write_attempts=3)
    entity = harness.entities.add()
    harness.slots.pending_conflicts = 2

    written = await harness.applier.apply(
        entity_id=entity.entity_id,
        targets=ROADMAP_TARGETS,
        output={"year1Priorities": ["a"]},
    )

    assert written[0].content["strategicRoadmap"]["year1Priorities"] == ["a"]
    assert len(harness.slots.writes) == 1


@pytest.mark.asyncio
async def test_version_conflict_gives_up_after_max_attempts() -> None:
    harness = build_harness(max_write_attempts=2)
    entity = harness.entities.add()
    harness.slots.pending_conflicts = 5

    with pytest.raises(SlotWriteConflict):
        await harness.applier.apply(
            entity_id=entity.entity_id,
            targets=ROADMAP_TARGETS,
            output={"year1Priorities": ["a"]},
        )
    assert harness.slots.writes == []
