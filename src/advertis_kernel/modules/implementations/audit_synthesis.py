from __future__ import annotations

from typing import Any

from ...slots.types import SlotType
from ..base import Module
from ..paths import deep_get
from ..types import (
    MergeStrategy,
    ModuleCategory,
    ModuleContext,
    ModuleDescriptor,
    ModuleResult,
    OutputTarget,
    SlotSource,
)

MAX_TOP_RISKS = 5
_LEVEL_WEIGHT = {"low": 1, "medium": 2, "high": 3}
_URGENT = ("immediate", "short_term")

OUTPUT_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["riskSynthesis", "marketValidation", "year1Priorities"],
    "properties": {
        "riskSynthesis": {
            "type": "object",
            "required": ["riskScore", "globalSwot", "topRisks"],
            "properties": {
                "riskScore": {"type": "number"},
                "globalSwot": {"type": "object"},
                "topRisks": {
                    "type": "array",
                    "maxItems": MAX_TOP_RISKS,
                    "items": {
                        "type": "object",
                        "required": ["risk", "impact", "mitigation"],
                        "properties": {
                            "risk": {"type": "string"},
                            "impact": {"type": "string"},
                            "mitigation": {"type": "string"},
                        },
                    },
                },
            },
        },
        "marketValidation": {
            "type": "object",
            "required": ["brandMarketFitScore", "tam", "sam", "som", "trends", "recommendations"],
            "properties": {
                "brandMarketFitScore": {"type": "number"},
                "tam": {"type": "string"},
                "sam": {"type": "string"},
                "som": {"type": "string"},
                "trends": {"type": "array", "items": {"type": "string"}},
                "recommendations": {"type": "array", "items": {"type": "string"}},
            },
        },
        "year1Priorities": {"type": "array", "items": {"type": "string"}},
    },
}

INPUT_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["slot_R", "slot_T"],
    "properties": {
        "slot_R": {"type": "object", "required": ["riskScore", "globalSwot"]},
        "slot_T": {"type": "object", "required": ["brandMarketFitScore", "tamSamSom"]},
    },
}


def rank_risks(risk_audit: dict[str, Any]) -> list[dict[str, str]]:
    """Highest-priority risks from the probability/impact matrix, with their mitigation."""
    mitigations = {
        str(item.get("risk", "")).strip().lower(): str(item.get("action", ""))
        for item in risk_audit.get("mitigationPriorities") or []
        if isinstance(item, dict)
    }
    entries = [item for item in risk_audit.get("probabilityImpactMatrix") or [] if isinstance(item, dict)]
    entries.sort(
        key=lambda item: (
            -_as_number(item.get("priority")),
            -_LEVEL_WEIGHT.get(str(item.get("impact")), 0),
        )
    )
    ranked: list[dict[str, str]] = []
    for item in entries[:MAX_TOP_RISKS]:
        risk = str(item.get("risk", ""))
        ranked.append(
            {
                "risk": risk,
                "impact": str(item.get("impact", "")),
                "mitigation": mitigations.get(risk.strip().lower(), ""),
            }
        )
    return ranked


def urgent_actions(risk_audit: dict[str, Any]) -> list[str]:
    actions: list[str] = []
    for item in risk_audit.get("mitigationPriorities") or []:
        if not isinstance(item, dict) or item.get("urgency") not in _URGENT:
            continue
        action = str(item.get("action", "")).strip()
        if action and action not in actions:
            actions.append(action)
    return actions


def synthesize(risk_audit: dict[str, Any], track_audit: dict[str, Any]) -> dict[str, Any]:
    return {
        "riskSynthesis": {
            "riskScore": _as_number(risk_audit.get("riskScore")),
            "globalSwot": dict(risk_audit.get("globalSwot") or {}),
            "topRisks": rank_risks(risk_audit),
        },
        "marketValidation": {
            "brandMarketFitScore": _as_number(track_audit.get("brandMarketFitScore")),
            "tam": str(deep_get(track_audit, "tamSamSom.tam.value") or ""),
            "sam": str(deep_get(track_audit, "tamSamSom.sam.value") or ""),
            "som": str(deep_get(track_audit, "tamSamSom.som.value") or ""),
            "trends": list(deep_get(track_audit, "marketReality.macroTrends") or []),
            "recommendations": list(track_audit.get("strategicRecommendations") or []),
        },
        "year1Priorities": urgent_actions(risk_audit),
    }


class AuditSynthesis(Module):
    descriptor = ModuleDescriptor(
        id="audit-synthesis",
        name="Synthèse des audits",
        description="Reporte les conclusions des audits R et T dans le plan d'implémentation",
        category=ModuleCategory.DEDUCE,
        inputs=(SlotSource(SlotType.R), SlotSource(SlotType.T)),
        outputs=(
            OutputTarget(SlotType.I, "riskSynthesis", MergeStrategy.MERGE),
            OutputTarget(SlotType.I, "marketValidation", MergeStrategy.MERGE),
            OutputTarget(SlotType.I, "strategicRoadmap.year1Priorities", MergeStrategy.APPEND),
        ),
        auto_trigger=False,
        input_schema=INPUT_SCHEMA,
        output_schema=OUTPUT_SCHEMA,
    )

    async def execute(self, ctx: ModuleContext) -> ModuleResult:
        risk_audit = ctx.inputs.get("slot_R") or {}
        track_audit = ctx.inputs.get("slot_T") or {}
        return ModuleResult(success=True, data=synthesize(risk_audit, track_audit))


def _as_number(value: Any) -> float | int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return value
    return 0
