# skuMatchModel/mainModelLayer/skuModels.py
"""
Data model shared by every stage of the SKU matcher.

Service       - one catalog entry (read-only to the engine)
TaskItem      - one unit of work extracted from an utterance
MatchResult   - the verdict for one task
AggregateResult - the verdict for a whole (possibly compound) utterance
"""

from __future__ import annotations
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

# =============================
# Routes / tags / methods
# =============================

ROUTE_INSTANT_PRICE = "instant_price"
ROUTE_VIDEO_QUOTE = "video_quote"
ROUTE_SITE_VISIT = "site_visit"
ROUTE_MIXED = "mixed"

METHOD_LEXICAL = "lexical"
METHOD_VECTOR = "vector"
METHOD_LLM = "llm"
METHOD_HYBRID = "hybrid"
METHOD_HEURISTIC = "heuristic"
METHOD_NONE = "none"

LIGHT_GREEN = "green"
LIGHT_AMBER = "amber"

ACTION_CONFIRM = "confirm"
ACTION_REVIEW = "review"

TaskRoute = Literal["instant_price", "video_quote", "site_visit"]
AggregateRoute = Literal["instant_price", "video_quote", "mixed"]
MatchMethod = Literal["lexical", "vector", "llm", "hybrid", "heuristic", "none"]
TrafficLight = Literal["green", "amber", "red"]
OperatorAction = Literal["confirm", "review", "override"]


class Service(BaseModel):
    id: str
    sku_code: str
    name: str
    description: str = ""
    price_pence: int
    time_estimate_minutes: int = 60
    keywords: List[str] = Field(default_factory=list)
    negative_keywords: List[str] = Field(default_factory=list)
    embedding: Optional[List[float]] = None
    category: Optional[str] = None
    is_active: bool = True

    model_config = {"frozen": True}

    def __hash__(self) -> int:
        return hash(self.id)

    @property
    def price_pounds(self) -> str:
        return f"{self.price_pence / 100:.0f}"


class TaskItem(BaseModel):
    description: str
    quantity: int = 1
    original_index: int = 0


class MatchDebug(BaseModel):
    lexical_score: float = 0.0
    embedding_score: float = 0.0
    llm_confidence: int = 0
    expanded_tokens: List[str] = Field(default_factory=list)
    trace: List[str] = Field(default_factory=list)


class MatchResult(BaseModel):
    matched: bool
    service: Optional[Service] = None
    confidence: int = 0
    method: MatchMethod = "none"
    rationale: str = ""
    route: TaskRoute = "video_quote"
    traffic_light: Optional[TrafficLight] = None
    operator_action: Optional[OperatorAction] = None
    suggested_script: Optional[str] = None
    safety_flags: List[str] = Field(default_factory=list)
    candidates: List[Service] = Field(default_factory=list)
    debug: Optional[MatchDebug] = None


class TaskMatch(BaseModel):
    task: TaskItem
    detection: MatchResult


class MatchedService(BaseModel):
    task: TaskItem
    service: Service
    confidence: int
    line_total_pence: int


class AggregateResult(BaseModel):
    original_text: str
    tasks: List[TaskItem]
    results: List[TaskMatch]
    matched_services: List[MatchedService] = Field(default_factory=list)
    unmatched_tasks: List[TaskItem] = Field(default_factory=list)
    total_price_pence: int = 0
    has_matches: bool = False
    has_unmatched: bool = False
    is_partial: bool = False
    safety_flags: List[str] = Field(default_factory=list)
    route: AggregateRoute = "video_quote"


class DetectionOptions(BaseModel):
    """Caller-supplied context for a single detection."""
    lead_type: Optional[str] = None
    is_elderly: bool = False
    previous_transcript: Optional[str] = None


class DetectionContext(BaseModel):
    """Running state for one live interaction (call or chat)."""
    history: List[str] = Field(default_factory=list)
    lead_type: Optional[str] = None
    is_elderly: bool = False
    last_detection: Optional[MatchResult] = None

    def options(self) -> DetectionOptions:
        return DetectionOptions(lead_type=self.lead_type, is_elderly=self.is_elderly)
