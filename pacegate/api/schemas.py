"""
Request and response models for the control-plane HTTP surface.
Closed-set values (pace, mode, resolution status) are checked by the core so
the error names the allowed set; models only reject empty or missing fields.
"""

from pydantic import BaseModel, field_validator, ConfigDict
from typing import Optional, List, Dict, Any


def _not_blank(name: str, v: str) -> str:
    if not v.strip():
        raise ValueError(f'{name} cannot be empty')
    return v


class HealthResponse(BaseModel):
    status: str
    version: str
    db_health: bool
    timestamp: str


class PaceRequest(BaseModel):
    pace: str

    @field_validator('pace')
    @classmethod
    def pace_must_not_be_empty(cls, v):
        return _not_blank('pace', v)


class ModeRequest(BaseModel):
    mode: str

    @field_validator('mode')
    @classmethod
    def mode_must_not_be_empty(cls, v):
        return _not_blank('mode', v)


class ScheduleRequest(BaseModel):
    sleep_start: str
    sleep_end: str


class ProposalCreateRequest(BaseModel):
    domain: str
    title: str
    body: str
    effort: str = "unknown"
    recommendation: str = "none"
    source: str = "api"

    @field_validator('domain', 'title', 'body')
    @classmethod
    def required_text(cls, v, info):
        return _not_blank(info.field_name, v)


class ProposalResolveRequest(BaseModel):
    status: str
    note: Optional[str] = None


class ProposalResponse(BaseModel):
    id: int
    domain: str
    title: str
    body: str
    effort: str
    recommendation: str
    status: str
    source: str
    created_at: str
    resolved_at: Optional[str] = None
    resolution_note: Optional[str] = None


class ProposalCreateResponse(BaseModel):
    proposal: ProposalResponse
    deduplicated: bool


class AuditEntryResponse(BaseModel):
    id: int
    timestamp: str
    agent: str
    action: str
    domain: str
    detail: Optional[str] = None
    blocked: bool


class ActionCheckRequest(BaseModel):
    action: str
    agent: Optional[str] = None
    domain: Optional[str] = None

    @field_validator('action')
    @classmethod
    def action_must_not_be_empty(cls, v):
        return _not_blank('action', v)


class ActionCheckResponse(BaseModel):
    allowed: bool
    mode: str
    pace: str
    reason: Optional[str] = None


class BudgetStatusResponse(BaseModel):
    ceiling: float
    spent: float
    remaining: float
    call_count: int
    within_budget: bool
    cost_per_call: float


class CeilingRequest(BaseModel):
    ceiling: float


class CostPerCallRequest(BaseModel):
    cost: float


class ThresholdRequest(BaseModel):
    key: str
    value: float


class ThresholdsResponse(BaseModel):
    max_calls_per_agent_per_hour: int
    max_consecutive_failures: int


class AnomalyItem(BaseModel):
    type: str
    agent: str
    detail: str


class AnomaliesResponse(BaseModel):
    anomalies: List[AnomalyItem]
    auto_paused: bool
    thresholds: ThresholdsResponse


class DispatchRequest(BaseModel):
    action: str
    domain: str
    message: str
    agent_name: Optional[str] = None
    options: Optional[Dict[str, Any]] = None
    node: Optional[str] = None
    ingest: bool = False
    topic_id: Optional[str] = None
    category: Optional[str] = None

    @field_validator('action', 'domain', 'message')
    @classmethod
    def required_text(cls, v, info):
        return _not_blank(info.field_name, v)


class DispatchResponse(BaseModel):
    ok: bool
    allowed: bool
    response: Optional[str] = None
    error: Optional[str] = None
    duration_ms: int = 0
    node: Optional[str] = None
    agent: Optional[str] = None
    raw: Optional[Any] = None
    ingested: Dict[str, Any] = {}


class DossierEntryResponse(BaseModel):
    id: int
    topic_id: str
    category: str
    findings: str
    relevance: str
    source: str
    created_at: str


class DossierTopicResponse(BaseModel):
    model_config = ConfigDict(extra='allow')

    id: str
    category: str
    topic: str
    frequency: Optional[str] = None


class DossierTopicsResponse(BaseModel):
    topics: List[DossierTopicResponse]
    references: List[Dict[str, Any]]
