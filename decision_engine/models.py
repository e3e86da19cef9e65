from datetime import date, datetime
from typing import Annotated, List, Optional, Dict, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

Confidence = Literal["low", "med", "high"]
Persona = Literal["startup", "enterprise", "learning"]
Axis = Literal["pricing", "ease", "docs", "community", "reliability"]
VerdictConfidence = Literal["slight", "moderate", "strong"]
Modality = Literal["text", "image", "audio"]

AXES: List[str] = ["pricing", "ease", "docs", "community", "reliability"]
PERSONAS: List[str] = ["startup", "enterprise", "learning"]


class Source(BaseModel):
    url: str
    observed_at: date
    content_hash: Optional[str] = None
    excerpt: Optional[str] = None


# --- llm_api ---

class LlmApiModel(BaseModel):
    id: str
    modalities: List[Modality] = Field(default_factory=lambda: ["text"])
    context_window_tokens: int = 0
    input_price_per_1k: float = 0.0
    output_price_per_1k: float = 0.0
    endpoints: List[str] = Field(default_factory=list)
    sources: List[Source] = Field(default_factory=list)


class RateLimits(BaseModel):
    rpm: int = 0
    tpm: int = 0
    scope: Literal["account", "key"] = "account"
    sources: List[Source] = Field(default_factory=list)


class Sdks(BaseModel):
    official: List[str] = Field(default_factory=list)
    community: List[str] = Field(default_factory=list)


class DataRetention(BaseModel):
    window_days: Optional[int] = None
    notes: Optional[str] = None
    sources: List[Source] = Field(default_factory=list)


class ToolNotes(BaseModel):
    strengths: List[str] = Field(default_factory=list)
    tradeoffs: List[str] = Field(default_factory=list)


class LlmApi(BaseModel):
    kind: Literal["llm_api"] = "llm_api"
    id: str
    name: str
    models: List[LlmApiModel] = Field(default_factory=list)
    rate_limits: RateLimits = Field(default_factory=RateLimits)
    sdks: Sdks = Field(default_factory=Sdks)
    data_retention: DataRetention = Field(default_factory=DataRetention)
    notes: ToolNotes = Field(default_factory=ToolNotes)


# --- framework ---

class FrameworkDocs(BaseModel):
    quickstart_examples: int = 0
    api_coverage_ratio: float = Field(default=0.0, ge=0.0, le=1.0)
    last_updated_days: Optional[int] = None
    sources: List[Source] = Field(default_factory=list)


class FrameworkCommunity(BaseModel):
    github_stars: int = 0
    github_open_issues: int = 0
    discord_members: Optional[int] = None
    release_cadence_days: Optional[int] = None
    sources: List[Source] = Field(default_factory=list)


class FrameworkReliability(BaseModel):
    breaking_changes_30d: int = 0
    deprecations_announced: bool = False
    sources: List[Source] = Field(default_factory=list)


class Framework(BaseModel):
    kind: Literal["framework"] = "framework"
    id: str
    name: str
    licensing: str = ""
    install: Dict[str, str] = Field(default_factory=dict)  # package manager -> package name
    docs: FrameworkDocs = Field(default_factory=FrameworkDocs)
    community: FrameworkCommunity = Field(default_factory=FrameworkCommunity)
    reliability: FrameworkReliability = Field(default_factory=FrameworkReliability)


# --- vector_db ---

class VectorDbPricing(BaseModel):
    model: str = "unknown"
    free_tier: bool = False
    starting_price: Optional[str] = None
    pricing_details: Optional[str] = None
    sources: List[Source] = Field(default_factory=list)


class VectorDbTechnical(BaseModel):
    open_source: bool = False
    api_access: bool = False
    setup_complexity: str = "unknown"
    languages: List[str] = Field(default_factory=list)
    sources: List[Source] = Field(default_factory=list)


class VectorDbCommunity(BaseModel):
    github_stars: int = 0
    github_forks: int = 0
    github_issues: int = 0
    release_frequency: str = "unknown"
    last_commit: Optional[str] = None
    sources: List[Source] = Field(default_factory=list)


class VectorDbDocumentation(BaseModel):
    has_docs: bool = False
    doc_pages: Optional[int] = None
    has_tutorials: bool = False
    has_examples: bool = False
    quality: str = "unknown"
    last_updated: Optional[str] = None
    sources: List[Source] = Field(default_factory=list)


class VectorDb(BaseModel):
    kind: Literal["vector_db"] = "vector_db"
    id: str
    name: str
    pricing: VectorDbPricing = Field(default_factory=VectorDbPricing)
    technical: VectorDbTechnical = Field(default_factory=VectorDbTechnical)
    community: VectorDbCommunity = Field(default_factory=VectorDbCommunity)
    documentation: VectorDbDocumentation = Field(default_factory=VectorDbDocumentation)


Tool = Annotated[Union[LlmApi, Framework, VectorDb], Field(discriminator="kind")]
TOOL_KINDS: List[str] = ["llm_api", "framework", "vector_db"]


# --- scoring ---

class ScoreRule(BaseModel):
    axis: Axis
    rule_id: str
    delta: float


class Score(BaseModel):
    value: float = Field(ge=0.0, le=10.0)
    confidence: Confidence
    reasoning: Optional[str] = None
    rules: List[ScoreRule] = Field(default_factory=list)


class Scores(BaseModel):
    pricing: Score
    ease: Score
    docs: Score
    community: Score
    reliability: Score

    def axis(self, name: str) -> Score:
        return getattr(self, name)


class PersonaWeights(BaseModel):
    pricing: float
    ease: float
    docs: float
    community: float
    reliability: float


PERSONA_WEIGHTS: Dict[str, PersonaWeights] = {
    "startup": PersonaWeights(pricing=0.35, ease=0.25, docs=0.2, community=0.1, reliability=0.1),
    "enterprise": PersonaWeights(pricing=0.15, ease=0.15, docs=0.25, community=0.10, reliability=0.35),
    "learning": PersonaWeights(pricing=0.15, ease=0.2, docs=0.35, community=0.25, reliability=0.05),
}


# --- verdicts ---

class Verdict(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    winner: str
    confidence: VerdictConfidence
    reasons: List[str] = Field(default_factory=list, max_length=3)
    what_this_means: str = Field(alias="whatThisMeans")
    what_would_change: List[str] = Field(default_factory=list, max_length=3, alias="whatWouldChange")


class ToolResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    scores: Scores
    weighted_score: float = Field(alias="weightedScore")


class ComparisonResult(BaseModel):
    tool1: ToolResult
    tool2: ToolResult
    verdict: Verdict
    persona: Persona


class FeaturedComparison(BaseModel):
    id: str
    title: str
    description: str
    tools: List[str] = Field(default_factory=list)
    href: str


# --- raw manifests ---

class ProvenanceItem(BaseModel):
    model_config = ConfigDict(extra="forbid")

    path: str
    url: str
    quote: Optional[str] = None
    captured_at: Union[datetime, date, str]


class ToolManifest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    schema_version: Literal["1.0"]
    slug: str
    name: str
    category: Literal["llm_api", "vector_db", "coding_assistant", "ai_framework"]
    homepage_url: str
    docs_url: Optional[str] = None
    github_repo: Optional[str] = None
    as_of: Union[datetime, date, str]
    facts: Dict[str, Any]
    provenance: List[ProvenanceItem]


# --- analytics ---

AnalyticsEventType = Literal[
    "index_filter",
    "tool_selection",
    "comparison_start",
    "verdict_view",
    "persona_change",
    "evidence_click",
    "outbound_click",
    "decision_made",
    "verdict_disagreement",
]


class AnalyticsEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: AnalyticsEventType
    timestamp: float
    session_id: str = Field(alias="sessionId")
    data: Dict[str, Any] = Field(default_factory=dict)


class DecisionOutcome(BaseModel):
    tool1: str
    tool2: str
    winner: str
    persona: Persona
    time_to_decision: float = 0.0
    evidence_clicks: int = 0
    outbound_clicks: int = 0
    verdict_agreement: bool = True
