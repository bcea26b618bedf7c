"""
Document schemas for the eight slot types.

Every field carries a default, so validating ``{}`` yields a complete
skeleton. Loose scalars are repaired instead of rejected: numeric strings
become numbers, unknown enum values fall back to a safe member, and
out-of-range scores fall back to a neutral value. Unknown keys are dropped.

Repairs are only applied in lax mode. Validating with
``context={"strict": True}`` turns every repair into a reported issue,
which is how the parser tells "valid as stored" apart from "usable after
coercion".
"""

from __future__ import annotations

import math
from typing import Annotated, Any, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationInfo
from pydantic.alias_generators import to_camel

Number = Union[int, float]


def _is_strict(info: ValidationInfo) -> bool:
    context = info.context
    return bool(isinstance(context, dict) and context.get("strict"))


def _to_number(value: Any) -> Number:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            raise ValueError("expected a finite number")
        return value
    if value is None:
        return 0
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        number = float(text)
        if not math.isfinite(number):
            raise ValueError("expected a finite number")
        return int(number) if number.is_integer() else number
    raise ValueError(f"expected a number, got {type(value).__name__}")


def _loose_number(value: Any, info: ValidationInfo) -> Number:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return _to_number(value)
    if _is_strict(info):
        raise ValueError(f"expected a number, got {type(value).__name__}")
    return _to_number(value)


def _bounded(low: Number, high: Number, fallback: Number) -> Any:
    def validate(value: Any, info: ValidationInfo) -> Number:
        strict = _is_strict(info)
        try:
            number = _loose_number(value, info)
        except ValueError:
            if strict:
                raise
            return fallback
        if not low <= number <= high:
            if strict:
                raise ValueError(f"must be between {low} and {high}")
            return fallback
        return number

    return Annotated[Number, BeforeValidator(validate)]


def _choice(allowed: tuple[str, ...], fallback: str) -> Any:
    def validate(value: Any, info: ValidationInfo) -> str:
        if isinstance(value, str) and value in allowed:
            return value
        if _is_strict(info):
            raise ValueError(f"expected one of {', '.join(allowed)}")
        return fallback

    return Annotated[str, BeforeValidator(validate)]


Num = Annotated[Number, BeforeValidator(_loose_number)]
Score50 = _bounded(0, 100, 50)
Score0 = _bounded(0, 100, 0)
Priority = _bounded(1, 5, 3)

TouchpointType = _choice(("physique", "digital", "humain"), "digital")
RituelType = _choice(("always-on", "cyclique"), "always-on")
RiskLevel = _choice(("low", "medium", "high"), "medium")
Urgency = _choice(("immediate", "short_term", "medium_term"), "medium_term")
HypothesisStatus = _choice(("validated", "invalidated", "to_test"), "to_test")
CampaignType = _choice(("lancement", "recurrence", "evenement", "activation"), "lancement")


class SlotDocument(BaseModel):
    model_config = ConfigDict(
        extra="ignore",
        alias_generator=to_camel,
        populate_by_name=True,
    )


# ---------------------------------------------------------------------------
# A: Authenticité
# ---------------------------------------------------------------------------


class Identite(SlotDocument):
    archetype: str = ""
    citation_fondatrice: str = ""
    noyau_identitaire: str = ""


class HerosJourney(SlotDocument):
    acte1_origines: str = ""
    acte2_appel: str = ""
    acte3_epreuves: str = ""
    acte4_transformation: str = ""
    acte5_revelation: str = ""


class Ikigai(SlotDocument):
    aimer: str = ""
    competence: str = ""
    besoin_monde: str = ""
    remuneration: str = ""


class Valeur(SlotDocument):
    valeur: str = ""
    rang: Num = 0
    justification: str = ""


class NiveauCommunautaire(SlotDocument):
    niveau: Num = 0
    nom: str = ""
    description: str = ""
    privileges: str = ""


class TimelineNarrative(SlotDocument):
    origines: str = ""
    croissance: str = ""
    pivot: str = ""
    futur: str = ""


class AuthenticiteDocument(SlotDocument):
    identite: Identite = Field(default_factory=Identite)
    heros_journey: HerosJourney = Field(default_factory=HerosJourney)
    ikigai: Ikigai = Field(default_factory=Ikigai)
    valeurs: list[Valeur] = Field(default_factory=list)
    hierarchie_communautaire: list[NiveauCommunautaire] = Field(default_factory=list)
    timeline_narrative: TimelineNarrative = Field(default_factory=TimelineNarrative)


# ---------------------------------------------------------------------------
# D: Distinction
# ---------------------------------------------------------------------------


class Persona(SlotDocument):
    nom: str = ""
    demographie: str = ""
    psychographie: str = ""
    motivations: str = ""
    freins: str = ""
    priorite: Num = 0


class Concurrent(SlotDocument):
    nom: str = ""
    forces: str = ""
    faiblesses: str = ""
    part_de_marche: str = ""


class PaysageConcurrentiel(SlotDocument):
    concurrents: list[Concurrent] = Field(default_factory=list)
    avantages_competitifs: list[str] = Field(default_factory=list)


class PromessesDeMarque(SlotDocument):
    promesse_maitre: str = ""
    sous_promesses: list[str] = Field(default_factory=list)


class TonDeVoix(SlotDocument):
    personnalite: str = ""
    on_dit: list[str] = Field(default_factory=list)
    on_nedit_pas: list[str] = Field(default_factory=list)


class IdentiteVisuelle(SlotDocument):
    direction_artistique: str = ""
    palette_couleurs: list[str] = Field(default_factory=list)
    mood: str = ""


class AssetsLinguistiques(SlotDocument):
    mantras: list[str] = Field(default_factory=list)
    vocabulaire_proprietaire: list[str] = Field(default_factory=list)


class DistinctionDocument(SlotDocument):
    personas: list[Persona] = Field(default_factory=list)
    paysage_concurrentiel: PaysageConcurrentiel = Field(default_factory=PaysageConcurrentiel)
    promesses_de_marque: PromessesDeMarque = Field(default_factory=PromessesDeMarque)
    positionnement: str = ""
    ton_de_voix: TonDeVoix = Field(default_factory=TonDeVoix)
    identite_visuelle: IdentiteVisuelle = Field(default_factory=IdentiteVisuelle)
    assets_linguistiques: AssetsLinguistiques = Field(default_factory=AssetsLinguistiques)


# ---------------------------------------------------------------------------
# V: Valeur
# ---------------------------------------------------------------------------


class ProductTier(SlotDocument):
    tier: str = ""
    prix: str = ""
    description: str = ""
    cible: str = ""


class ValeurMarque(SlotDocument):
    tangible: list[str] = Field(default_factory=list)
    intangible: list[str] = Field(default_factory=list)


class ValeurClient(SlotDocument):
    fonctionnels: list[str] = Field(default_factory=list)
    emotionnels: list[str] = Field(default_factory=list)
    sociaux: list[str] = Field(default_factory=list)


class CoutMarque(SlotDocument):
    capex: str = ""
    opex: str = ""
    couts_caches: list[str] = Field(default_factory=list)


class Friction(SlotDocument):
    friction: str = ""
    solution: str = ""


class CoutClient(SlotDocument):
    frictions: list[Friction] = Field(default_factory=list)


class UnitEconomics(SlotDocument):
    cac: str = ""
    ltv: str = ""
    ratio: str = ""
    point_mort: str = ""
    marges: str = ""
    notes: str = ""


class ValeurDocument(SlotDocument):
    product_ladder: list[ProductTier] = Field(default_factory=list)
    valeur_marque: ValeurMarque = Field(default_factory=ValeurMarque)
    valeur_client: ValeurClient = Field(default_factory=ValeurClient)
    cout_marque: CoutMarque = Field(default_factory=CoutMarque)
    cout_client: CoutClient = Field(default_factory=CoutClient)
    unit_economics: UnitEconomics = Field(default_factory=UnitEconomics)


# ---------------------------------------------------------------------------
# E: Engagement
# ---------------------------------------------------------------------------


class Touchpoint(SlotDocument):
    canal: str = ""
    kind: TouchpointType = Field(default="digital", alias="type")
    role: str = ""
    priorite: Num = 0


class Rituel(SlotDocument):
    nom: str = ""
    kind: RituelType = Field(default="always-on", alias="type")
    frequence: str = ""
    description: str = ""


class PrincipesCommunautaires(SlotDocument):
    principes: list[str] = Field(default_factory=list)
    tabous: list[str] = Field(default_factory=list)


class NiveauGamification(SlotDocument):
    niveau: Num = 0
    nom: str = ""
    condition: str = ""
    recompense: str = ""


class Aarrr(SlotDocument):
    acquisition: str = ""
    activation: str = ""
    retention: str = ""
    revenue: str = ""
    referral: str = ""


class EngagementKpi(SlotDocument):
    variable: str = ""
    nom: str = ""
    cible: str = ""
    frequence: str = ""


class EngagementDocument(SlotDocument):
    touchpoints: list[Touchpoint] = Field(default_factory=list)
    rituels: list[Rituel] = Field(default_factory=list)
    principes_communautaires: PrincipesCommunautaires = Field(default_factory=PrincipesCommunautaires)
    gamification: list[NiveauGamification] = Field(default_factory=list)
    aarrr: Aarrr = Field(default_factory=Aarrr)
    kpis: list[EngagementKpi] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# R: Risk audit
# ---------------------------------------------------------------------------


class Swot(SlotDocument):
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)
    opportunities: list[str] = Field(default_factory=list)
    threats: list[str] = Field(default_factory=list)


class MicroSwot(Swot):
    variable_id: str = ""
    variable_label: str = ""
    risk_level: RiskLevel = "medium"
    commentary: str = ""


class RiskMatrixEntry(SlotDocument):
    risk: str = ""
    probability: RiskLevel = "medium"
    impact: RiskLevel = "medium"
    priority: Priority = 3


class MitigationPriority(SlotDocument):
    risk: str = ""
    action: str = ""
    urgency: Urgency = "medium_term"
    effort: RiskLevel = "medium"


class RiskAuditDocument(SlotDocument):
    micro_swots: list[MicroSwot] = Field(default_factory=list)
    global_swot: Swot = Field(default_factory=Swot)
    risk_score: Score50 = 50
    risk_score_justification: str = ""
    probability_impact_matrix: list[RiskMatrixEntry] = Field(default_factory=list)
    mitigation_priorities: list[MitigationPriority] = Field(default_factory=list)
    summary: str = ""


# ---------------------------------------------------------------------------
# T: Track audit
# ---------------------------------------------------------------------------


class Triangulation(SlotDocument):
    internal_data: str = ""
    market_data: str = ""
    customer_data: str = ""
    synthesis: str = ""


class Hypothesis(SlotDocument):
    variable_id: str = ""
    hypothesis: str = ""
    status: HypothesisStatus = "to_test"
    evidence: str = ""


class MarketReality(SlotDocument):
    macro_trends: list[str] = Field(default_factory=list)
    weak_signals: list[str] = Field(default_factory=list)
    emerging_patterns: list[str] = Field(default_factory=list)


class MarketSize(SlotDocument):
    value: str = ""
    description: str = ""


class TamSamSom(SlotDocument):
    tam: MarketSize = Field(default_factory=MarketSize)
    sam: MarketSize = Field(default_factory=MarketSize)
    som: MarketSize = Field(default_factory=MarketSize)
    methodology: str = ""


class BenchmarkEntry(SlotDocument):
    competitor: str = ""
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)
    market_share: str = ""


class TrackAuditDocument(SlotDocument):
    triangulation: Triangulation = Field(default_factory=Triangulation)
    hypothesis_validation: list[Hypothesis] = Field(default_factory=list)
    market_reality: MarketReality = Field(default_factory=MarketReality)
    tam_sam_som: TamSamSom = Field(default_factory=TamSamSom)
    competitive_benchmark: list[BenchmarkEntry] = Field(default_factory=list)
    brand_market_fit_score: Score50 = 50
    brand_market_fit_justification: str = ""
    strategic_recommendations: list[str] = Field(default_factory=list)
    summary: str = ""


# ---------------------------------------------------------------------------
# I: Implementation
# ---------------------------------------------------------------------------


class BrandIdentity(SlotDocument):
    archetype: str = ""
    purpose: str = ""
    vision: str = ""
    values: list[str] = Field(default_factory=list)
    narrative: str = ""


class PositioningPersona(SlotDocument):
    name: str = ""
    description: str = ""
    priority: Num = 0


class PositioningCompetitor(SlotDocument):
    name: str = ""
    position: str = ""


class Positioning(SlotDocument):
    statement: str = ""
    differentiators: list[str] = Field(default_factory=list)
    tone_of_voice: str = ""
    personas: list[PositioningPersona] = Field(default_factory=list)
    competitors: list[PositioningCompetitor] = Field(default_factory=list)


class LadderStep(SlotDocument):
    tier: str = ""
    price: str = ""
    description: str = ""


class UnitEconomicsSummary(SlotDocument):
    cac: str = ""
    ltv: str = ""
    ratio: str = ""
    notes: str = ""


class ValueArchitecture(SlotDocument):
    product_ladder: list[LadderStep] = Field(default_factory=list)
    value_proposition: str = ""
    unit_economics: UnitEconomicsSummary = Field(default_factory=UnitEconomicsSummary)


class ChannelPlan(SlotDocument):
    channel: str = ""
    role: str = ""
    priority: Num = 0


class Ritual(SlotDocument):
    name: str = ""
    frequency: str = ""
    description: str = ""


class KpiTarget(SlotDocument):
    name: str = ""
    target: str = ""
    frequency: str = ""


class EngagementStrategy(SlotDocument):
    touchpoints: list[ChannelPlan] = Field(default_factory=list)
    rituals: list[Ritual] = Field(default_factory=list)
    aarrr: Aarrr = Field(default_factory=Aarrr)
    kpis: list[KpiTarget] = Field(default_factory=list)


class TopRisk(SlotDocument):
    risk: str = ""
    impact: str = ""
    mitigation: str = ""


class RiskSynthesis(SlotDocument):
    risk_score: Num = 0
    global_swot: Swot = Field(default_factory=Swot)
    top_risks: list[TopRisk] = Field(default_factory=list)


class MarketValidation(SlotDocument):
    brand_market_fit_score: Num = 0
    tam: str = ""
    sam: str = ""
    som: str = ""
    trends: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


class SprintAction(SlotDocument):
    action: str = ""
    owner: str = ""
    kpi: str = ""


class StrategicRoadmap(SlotDocument):
    sprint90_days: list[SprintAction] = Field(default_factory=list)
    year1_priorities: list[str] = Field(default_factory=list)
    year3_vision: str = ""


class CalendarEntry(SlotDocument):
    mois: str = ""
    campagne: str = ""
    objectif: str = ""
    canaux: list[str] = Field(default_factory=list)
    budget: str = ""
    kpi_cible: str = ""


class CampaignTemplate(SlotDocument):
    nom: str = ""
    kind: CampaignType = Field(default="lancement", alias="type")
    description: str = ""
    duree: str = ""
    canaux_principaux: list[str] = Field(default_factory=list)
    messages_cles: list[str] = Field(default_factory=list)


class ActivationPlan(SlotDocument):
    phase1_teasing: str = ""
    phase2_lancement: str = ""
    phase3_amplification: str = ""
    phase4_fidelisation: str = ""


class Campaigns(SlotDocument):
    annual_calendar: list[CalendarEntry] = Field(default_factory=list)
    templates: list[CampaignTemplate] = Field(default_factory=list)
    activation_plan: ActivationPlan = Field(default_factory=ActivationPlan)


class BudgetLine(SlotDocument):
    poste: str = ""
    montant: str = ""
    pourcentage: Num = 0
    justification: str = ""


class BudgetPhase(SlotDocument):
    phase: str = ""
    montant: str = ""
    focus: str = ""


class RoiProjections(SlotDocument):
    mois6: str = ""
    mois12: str = ""
    mois24: str = ""
    hypotheses: str = ""


class BudgetAllocation(SlotDocument):
    enveloppe_globale: str = ""
    par_poste: list[BudgetLine] = Field(default_factory=list)
    par_phase: list[BudgetPhase] = Field(default_factory=list)
    roi_projections: RoiProjections = Field(default_factory=RoiProjections)


class TeamMember(SlotDocument):
    role: str = ""
    profil: str = ""
    allocation: str = ""


class Hire(SlotDocument):
    role: str = ""
    profil: str = ""
    echeance: str = ""
    priorite: Num = 0


class ExternalPartner(SlotDocument):
    kind: str = Field(default="", alias="type")
    mission: str = ""
    budget: str = ""
    duree: str = ""


class TeamStructure(SlotDocument):
    equipe_actuelle: list[TeamMember] = Field(default_factory=list)
    recrutements: list[Hire] = Field(default_factory=list)
    partenaires_externes: list[ExternalPartner] = Field(default_factory=list)


class LaunchPhase(SlotDocument):
    nom: str = ""
    debut: str = ""
    fin: str = ""
    objectifs: list[str] = Field(default_factory=list)
    livrables: list[str] = Field(default_factory=list)
    go_no_go: str = ""


class Milestone(SlotDocument):
    date: str = ""
    jalon: str = ""
    responsable: str = ""
    critere_succes: str = ""


class LaunchPlan(SlotDocument):
    phases: list[LaunchPhase] = Field(default_factory=list)
    milestones: list[Milestone] = Field(default_factory=list)


class Escalation(SlotDocument):
    scenario: str = ""
    action: str = ""
    responsable: str = ""


class Tool(SlotDocument):
    outil: str = ""
    usage: str = ""
    cout: str = ""


class OperationalPlaybook(SlotDocument):
    rythme_quotidien: list[str] = Field(default_factory=list)
    rythme_hebdomadaire: list[str] = Field(default_factory=list)
    rythme_mensuel: list[str] = Field(default_factory=list)
    escalation: list[Escalation] = Field(default_factory=list)
    outils_stack: list[Tool] = Field(default_factory=list)


class BrandPlatform(SlotDocument):
    purpose: str = ""
    vision: str = ""
    mission: str = ""
    values: list[str] = Field(default_factory=list)
    personality: str = ""
    territory: str = ""
    tagline: str = ""


class CopyStrategy(SlotDocument):
    promise: str = ""
    rtb: list[str] = Field(default_factory=list)
    consumer_benefit: str = ""
    tone: str = ""
    constraint: str = ""


class Declinaison(SlotDocument):
    support: str = ""
    description: str = ""


class BigIdea(SlotDocument):
    concept: str = ""
    mechanism: str = ""
    insight_link: str = ""
    declinaisons: list[Declinaison] = Field(default_factory=list)


class ActivationChannel(SlotDocument):
    canal: str = ""
    role: str = ""
    budget: str = ""


class ActivationDispositif(SlotDocument):
    owned: list[ActivationChannel] = Field(default_factory=list)
    earned: list[ActivationChannel] = Field(default_factory=list)
    paid: list[ActivationChannel] = Field(default_factory=list)
    shared: list[ActivationChannel] = Field(default_factory=list)
    parcours_conso: str = ""


class Committee(SlotDocument):
    frequence: str = ""
    participants: list[str] = Field(default_factory=list)
    objectif: str = ""


class StandardDelay(SlotDocument):
    livrable: str = ""
    delai: str = ""


class Governance(SlotDocument):
    comite_strategique: Committee = Field(default_factory=Committee)
    comite_pilotage: Committee = Field(default_factory=Committee)
    points_operationnels: Committee = Field(default_factory=Committee)
    process_validation: str = ""
    delais_standards: list[StandardDelay] = Field(default_factory=list)


class Workstream(SlotDocument):
    name: str = ""
    objectif: str = ""
    livrables: list[str] = Field(default_factory=list)
    frequence: str = ""
    kpis: list[str] = Field(default_factory=list)


class BrandHierarchyLevel(SlotDocument):
    brand: str = ""
    level: str = ""
    role: str = ""


class BrandArchitecture(SlotDocument):
    model: str = ""
    hierarchy: list[BrandHierarchyLevel] = Field(default_factory=list)
    coexistence_rules: str = ""


class GuidingPrinciples(SlotDocument):
    dos: list[str] = Field(default_factory=list)
    donts: list[str] = Field(default_factory=list)
    communication_principles: list[str] = Field(default_factory=list)
    coherence_criteria: list[str] = Field(default_factory=list)


class ImplementationDocument(SlotDocument):
    brand_identity: BrandIdentity = Field(default_factory=BrandIdentity)
    positioning: Positioning = Field(default_factory=Positioning)
    value_architecture: ValueArchitecture = Field(default_factory=ValueArchitecture)
    engagement_strategy: EngagementStrategy = Field(default_factory=EngagementStrategy)
    risk_synthesis: RiskSynthesis = Field(default_factory=RiskSynthesis)
    market_validation: MarketValidation = Field(default_factory=MarketValidation)
    strategic_roadmap: StrategicRoadmap = Field(default_factory=StrategicRoadmap)

    # Enrichment sections stay absent until something supplies them.
    campaigns: Campaigns | None = None
    budget_allocation: BudgetAllocation | None = None
    team_structure: TeamStructure | None = None
    launch_plan: LaunchPlan | None = None
    operational_playbook: OperationalPlaybook | None = None
    brand_platform: BrandPlatform | None = None
    copy_strategy: CopyStrategy | None = None
    big_idea: BigIdea | None = None
    activation_dispositif: ActivationDispositif | None = None
    governance: Governance | None = None
    workstreams: list[Workstream] | None = None
    brand_architecture: BrandArchitecture | None = None
    guiding_principles: GuidingPrinciples | None = None

    coherence_score: Score0 = 0
    executive_summary: str = ""


# ---------------------------------------------------------------------------
# S: Synthèse
# ---------------------------------------------------------------------------


class PillarCoherence(SlotDocument):
    pilier: str = ""
    contribution: str = ""
    articulation: str = ""


class PriorityRecommendation(SlotDocument):
    action: str = ""
    priorite: Num = 0
    impact: str = ""
    delai: str = ""


class SyntheseDocument(SlotDocument):
    synthese_executive: str = ""
    vision_strategique: str = ""
    coherence_piliers: list[PillarCoherence] = Field(default_factory=list)
    facteurs_cles_succes: list[str] = Field(default_factory=list)
    recommandations_prioritaires: list[PriorityRecommendation] = Field(default_factory=list)
    score_coherence: Score0 = 0


__all__ = [
    "SlotDocument",
    "AuthenticiteDocument",
    "DistinctionDocument",
    "ValeurDocument",
    "EngagementDocument",
    "RiskAuditDocument",
    "TrackAuditDocument",
    "ImplementationDocument",
    "SyntheseDocument",
]
