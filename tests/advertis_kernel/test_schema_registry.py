from __future__ import annotations

import pytest

from advertis_kernel.errors import SchemaValidationError
from advertis_kernel.slots import SLOT_SCHEMAS, SchemaRegistry, SlotType

registry = SchemaRegistry()


def test_every_slot_type_has_a_schema() -> None:
    assert set(SLOT_SCHEMAS) == set(SlotType)


def test_registry_rejects_incomplete_schema_table() -> None:
    partial = {slot_type: schema for slot_type, schema in SLOT_SCHEMAS.items() if slot_type is not SlotType.S}
    with pytest.raises(ValueError):
        SchemaRegistry(partial)


def test_defaults_use_wire_keys() -> None:
    assert set(registry.defaults_for(SlotType.A)) == {
        "identite",
        "herosJourney",
        "ikigai",
        "valeurs",
        "hierarchieCommunautaire",
        "timelineNarrative",
    }
    assert registry.defaults_for(SlotType.A)["herosJourney"]["acte1Origines"] == ""
    assert registry.defaults_for(SlotType.R)["riskScore"] == 50
    assert registry.defaults_for(SlotType.T)["brandMarketFitScore"] == 50


def test_defaults_are_fresh_copies() -> None:
    first = registry.defaults_for(SlotType.D)
    first["personas"].append({"nom": "mutated"})
    assert registry.defaults_for(SlotType.D)["personas"] == []


def test_implementation_enrichment_sections_are_absent_by_default() -> None:
    defaults = registry.defaults_for(SlotType.I)
    assert "campaigns" not in defaults
    assert "governance" not in defaults
    assert defaults["strategicRoadmap"]["year1Priorities"] == []
    assert defaults["coherenceScore"] == 0


def test_supplied_enrichment_section_is_filled_in() -> None:
    check = registry.validate(SlotType.I, {"campaigns": {"templates": [{"nom": "Lancement printemps"}]}})
    assert check.ok
    assert check.value["campaigns"]["templates"][0]["type"] == "lancement"
    assert check.value["campaigns"]["annualCalendar"] == []


def test_validate_is_strict_and_coerce_repairs() -> None:
    check = registry.validate(SlotType.R, {"mitigationPriorities": [{"urgency": "someday"}]})
    assert not check.ok
    assert any("mitigationPriorities.0.urgency" in error for error in check.errors)

    repaired = registry.coerce(SlotType.R, {"mitigationPriorities": [{"urgency": "someday"}]})
    assert repaired["mitigationPriorities"][0]["urgency"] == "medium_term"


def test_coerce_raises_on_wrong_shape() -> None:
    with pytest.raises(SchemaValidationError) as excinfo:
        registry.coerce(SlotType.A, {"identite": "Le Sage"})
    assert excinfo.value.errors


def test_loose_numbers_accept_booleans_and_null_in_lax_mode() -> None:
    repaired = registry.coerce(SlotType.D, {"personas": [{"nom": "Léa", "priorite": None}, {"priorite": True}]})
    assert [persona["priorite"] for persona in repaired["personas"]] == [0, 1]


@pytest.mark.parametrize(
    ("slot_type", "path", "expected"),
    [
        (SlotType.I, "strategicRoadmap.year1Priorities", True),
        (SlotType.I, "riskSynthesis", True),
        (SlotType.I, "campaigns.templates", True),
        (SlotType.I, "strategicRoadmap.unknown", False),
        (SlotType.A, "identite.archetype", True),
        (SlotType.A, "identite.archetype.deeper", False),
        (SlotType.A, "", False),
    ],
)
def test_has_path(slot_type: SlotType, path: str, expected: bool) -> None:
    assert registry.has_path(slot_type, path) is expected
