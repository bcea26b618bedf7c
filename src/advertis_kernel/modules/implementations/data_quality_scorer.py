from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any

from ...slots.types import SlotType
from ..base import Module
from ..paths import deep_get
from ..types import ModuleCategory, ModuleContext, ModuleDescriptor, ModuleResult, SlotSource

MIN_STRING_LENGTH = 10
TOO_SHORT_PENALTY = 2
PLACEHOLDER_PENALTY = 5
MAX_TOP_GAPS = 20

PLACEHOLDER_PATTERNS = (
    re.compile(r"lorem ipsum", re.IGNORECASE),
    re.compile(r"^todo$", re.IGNORECASE),
    re.compile(r"^tbd$", re.IGNORECASE),
    re.compile(r"^à définir$", re.IGNORECASE),
    re.compile(r"^a definir$", re.IGNORECASE),
    re.compile(r"^\.{3,}$"),
    re.compile(r"^-+$"),
    re.compile(r"^n/a$", re.IGNORECASE),
)


@dataclass(frozen=True)
class FieldSpec:
    path: str
    label: str
    kind: str = "string"
    min_length: int | None = None


def _text(path: str, label: str) -> FieldSpec:
    return FieldSpec(path=path, label=label)


def _items(path: str, label: str, min_length: int | None = None) -> FieldSpec:
    return FieldSpec(path=path, label=label, kind="array", min_length=min_length)


SCORED_FIELDS: dict[SlotType, tuple[FieldSpec, ...]] = {
    SlotType.A: (
        _text("identite.archetype", "Archétype"),
        _text("identite.citationFondatrice", "Citation fondatrice"),
        _text("identite.noyauIdentitaire", "Noyau identitaire"),
        _text("herosJourney.acte1Origines", "Origines"),
        _text("herosJourney.acte2Appel", "Appel"),
        _text("herosJourney.acte3Epreuves", "Épreuves"),
        _text("herosJourney.acte4Transformation", "Transformation"),
        _text("herosJourney.acte5Revelation", "Révélation"),
        _text("ikigai.aimer", "Ikigai : Aimer"),
        _text("ikigai.competence", "Ikigai : Compétence"),
        _text("ikigai.besoinMonde", "Ikigai : Besoin du monde"),
        _text("ikigai.remuneration", "Ikigai : Rémunération"),
        _items("valeurs", "Valeurs", 3),
        _items("hierarchieCommunautaire", "Hiérarchie communautaire", 2),
        _text("timelineNarrative.origines", "Timeline : Origines"),
        _text("timelineNarrative.futur", "Timeline : Futur"),
    ),
    SlotType.D: (
        _items("personas", "Personas", 2),
        _items("paysageConcurrentiel.concurrents", "Concurrents", 2),
        _items("paysageConcurrentiel.avantagesCompetitifs", "Avantages compétitifs", 2),
        _text("promessesDeMarque.promesseMaitre", "Promesse maître"),
        _text("positionnement", "Positionnement"),
        _text("tonDeVoix.personnalite", "Personnalité de voix"),
        _items("tonDeVoix.onDit", "On dit", 3),
        _items("tonDeVoix.onNeditPas", "On ne dit pas", 2),
        _text("identiteVisuelle.directionArtistique", "Direction artistique"),
        _items("identiteVisuelle.paletteCouleurs", "Palette couleurs", 3),
        _text("identiteVisuelle.mood", "Mood"),
        _items("assetsLinguistiques.mantras", "Mantras", 2),
        _items("assetsLinguistiques.vocabulaireProprietaire", "Vocabulaire propriétaire", 3),
    ),
    SlotType.V: (
        _items("productLadder", "Product ladder", 2),
        _items("valeurMarque.tangible", "Valeur tangible"),
        _items("valeurMarque.intangible", "Valeur intangible"),
        _items("valeurClient.fonctionnels", "Bénéfices fonctionnels"),
        _items("valeurClient.emotionnels", "Bénéfices émotionnels"),
        _items("valeurClient.sociaux", "Bénéfices sociaux"),
        _text("coutMarque.capex", "CAPEX"),
        _text("coutMarque.opex", "OPEX"),
        _items("coutClient.frictions", "Frictions client", 1),
        _text("unitEconomics.cac", "CAC"),
        _text("unitEconomics.ltv", "LTV"),
        _text("unitEconomics.ratio", "Ratio LTV/CAC"),
        _text("unitEconomics.pointMort", "Point mort"),
        _text("unitEconomics.marges", "Marges"),
    ),
    SlotType.E: (
        _items("touchpoints", "Touchpoints", 3),
        _items("rituels", "Rituels", 2),
        _items("principesCommunautaires.principes", "Principes communautaires", 2),
        _items("principesCommunautaires.tabous", "Tabous"),
        _items("gamification", "Gamification", 2),
        _text("aarrr.acquisition", "AARRR : Acquisition"),
        _text("aarrr.activation", "AARRR : Activation"),
        _text("aarrr.retention", "AARRR : Rétention"),
        _text("aarrr.revenue", "AARRR : Revenue"),
        _text("aarrr.referral", "AARRR : Referral"),
        _items("kpis", "KPIs", 3),
    ),
}

_GAP_LABELS = {"empty": "Non renseigné", "placeholder": "Placeholder détecté"}

_ISSUE_SCHEMA = {
    "type": "object",
    "required": ["field", "issue", "severity"],
    "properties": {
        "field": {"type": "string"},
        "issue": {"enum": ["empty", "too_short", "placeholder"]},
        "severity": {"enum": ["low", "medium", "high"]},
    },
}

OUTPUT_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["globalScore", "perPillar", "topGaps"],
    "properties": {
        "globalScore": {"type": "number", "minimum": 0, "maximum": 100},
        "perPillar": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "required": ["score", "totalFields", "filledFields", "emptyFields", "qualityIssues"],
                "properties": {
                    "score": {"type": "number"},
                    "totalFields": {"type": "integer"},
                    "filledFields": {"type": "integer"},
                    "emptyFields": {"type": "array", "items": {"type": "string"}},
                    "qualityIssues": {"type": "array", "items": _ISSUE_SCHEMA},
                },
            },
        },
        "topGaps": {
            "type": "array",
            "maxItems": MAX_TOP_GAPS,
            "items": {
                "type": "object",
                "required": ["slotType", "field", "issue"],
                "properties": {
                    "slotType": {"type": "string"},
                    "field": {"type": "string"},
                    "issue": {"type": "string"},
                },
            },
        },
    },
}

INPUT_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "properties": {f"slot_{slot_type.value}": {"type": ["object", "null"]} for slot_type in SCORED_FIELDS},
}


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def is_placeholder(value: str) -> bool:
    trimmed = value.strip()
    return any(pattern.search(trimmed) for pattern in PLACEHOLDER_PATTERNS)


def assess_field(spec: FieldSpec, value: Any) -> tuple[bool, list[dict[str, str]]]:
    """Return ``(filled, issues)`` for one field value."""
    if spec.kind == "array":
        if not isinstance(value, list) or not value:
            return False, [_issue(spec, "empty", "high")]
        if spec.min_length and len(value) < spec.min_length:
            return True, [_issue(spec, "too_short", "low")]
        return True, []

    if value is None or (isinstance(value, str) and not value.strip()):
        return False, [_issue(spec, "empty", "high")]
    if isinstance(value, str):
        # Placeholders are checked first; most of them are also short.
        if is_placeholder(value):
            return False, [_issue(spec, "placeholder", "high")]
        if len(value.strip()) < MIN_STRING_LENGTH:
            return True, [_issue(spec, "too_short", "medium")]
    return True, []


def score_pillar(document: Any, fields: tuple[FieldSpec, ...]) -> dict[str, Any]:
    filled_count = 0
    empty_fields: list[str] = []
    issues: list[dict[str, str]] = []
    for spec in fields:
        filled, field_issues = assess_field(spec, deep_get(document, spec.path))
        if filled:
            filled_count += 1
        else:
            empty_fields.append(spec.label)
        issues.extend(field_issues)

    total = len(fields)
    fill_ratio = filled_count / total if total else 0
    penalty = sum(TOO_SHORT_PENALTY for issue in issues if issue["issue"] == "too_short") + sum(
        PLACEHOLDER_PENALTY for issue in issues if issue["issue"] == "placeholder"
    )
    return {
        "score": max(0, round_half_up(fill_ratio * 100) - penalty),
        "totalFields": total,
        "filledFields": filled_count,
        "emptyFields": empty_fields,
        "qualityIssues": issues,
    }


def score_documents(documents: dict[SlotType, Any]) -> dict[str, Any]:
    per_pillar: dict[str, dict[str, Any]] = {}
    top_gaps: list[dict[str, str]] = []
    for slot_type, fields in SCORED_FIELDS.items():
        pillar = score_pillar(documents.get(slot_type), fields)
        per_pillar[slot_type.value] = pillar
        for issue in pillar["qualityIssues"]:
            if issue["severity"] != "high":
                continue
            top_gaps.append(
                {
                    "slotType": slot_type.value,
                    "field": issue["field"],
                    "issue": _GAP_LABELS.get(issue["issue"], issue["issue"]),
                }
            )

    scores = [pillar["score"] for pillar in per_pillar.values()]
    global_score = round_half_up(sum(scores) / len(scores)) if scores else 0
    return {
        "globalScore": global_score,
        "perPillar": per_pillar,
        "topGaps": top_gaps[:MAX_TOP_GAPS],
    }


class DataQualityScorer(Module):
    descriptor = ModuleDescriptor(
        id="data-quality-scorer",
        name="Score de qualité des données",
        description="Calcule un score de qualité et de complétude par champ pour les piliers A, D, V et E",
        category=ModuleCategory.COMPUTE,
        inputs=tuple(SlotSource(slot_type) for slot_type in SCORED_FIELDS),
        outputs=(),
        auto_trigger=True,
        input_schema=INPUT_SCHEMA,
        output_schema=OUTPUT_SCHEMA,
    )

    async def execute(self, ctx: ModuleContext) -> ModuleResult:
        documents = {slot_type: ctx.inputs.get(f"slot_{slot_type.value}") for slot_type in SCORED_FIELDS}
        return ModuleResult(success=True, data=score_documents(documents))


def _issue(spec: FieldSpec, issue: str, severity: str) -> dict[str, str]:
    return {"field": spec.label, "issue": issue, "severity": severity}
