"""
Project, Candidate and related record models
"""

from typing import List, Dict, Optional, Any
from pydantic import BaseModel, Field, model_validator
from datetime import datetime
import uuid

from .schemas import CRITERIA, Provenance, EvidenceBullet
from ..config.settings import DEFAULT_WEIGHTS


def _new_id() -> str:
    return str(uuid.uuid4())


class ScoringWeights(BaseModel):
    """Weight per criterion. Must be non-negative and sum to 1.0."""
    category_fit: float = DEFAULT_WEIGHTS["category_fit"]
    distribution_alignment: float = DEFAULT_WEIGHTS["distribution_alignment"]
    licensing_activity: float = DEFAULT_WEIGHTS["licensing_activity"]
    scale_appropriateness: float = DEFAULT_WEIGHTS["scale_appropriateness"]
    quality_reputation: float = DEFAULT_WEIGHTS["quality_reputation"]
    geo_coverage: float = DEFAULT_WEIGHTS["geo_coverage"]
    recent_momentum: float = DEFAULT_WEIGHTS["recent_momentum"]
    manufacturing_capability: float = DEFAULT_WEIGHTS["manufacturing_capability"]

    @model_validator(mode="after")
    def _check_weights(self):
        values = [getattr(self, name) for name in CRITERIA]
        if any(v < 0 for v in values):
            raise ValueError("weights must be non-negative")
        if abs(sum(values) - 1.0) > 1e-6:
            raise ValueError(f"weights must sum to 1.0 (got {sum(values):.6f})")
        return self

    def as_dict(self) -> Dict[str, float]:
        return {name: getattr(self, name) for name in CRITERIA}


class User(BaseModel):
    """The single operator"""
    user_id: str = Field(default_factory=_new_id)
    email: str
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Project(BaseModel):
    """A brand's licensing brief"""
    project_id: str = Field(default_factory=_new_id)
    owner_id: Optional[str] = None
    name: str = "Untitled Project"
    brand_category: Optional[str] = None
    product_type_sought: Optional[str] = None
    price_range: Optional[str] = None
    distribution_preference: Optional[str] = None
    geography: Optional[str] = None
    positioning_keywords: Optional[str] = None
    constraints: Optional[str] = None
    exclude_list: Optional[str] = None  # newline separated

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    def update(self, **kwargs):
        """Update intake fields and set updated_at"""
        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)
        self.updated_at = datetime.utcnow()
        return self


class Candidate(BaseModel):
    """A company being evaluated for a project"""
    candidate_id: str = Field(default_factory=_new_id)
    project_id: str
    name: str
    website: Optional[str] = None
    notes: Optional[str] = None
    custom_data: Optional[Dict[str, str]] = None
    provenance: Provenance = Provenance.MANUAL
    created_at: datetime = Field(default_factory=datetime.utcnow)


class EvidenceLink(BaseModel):
    """A public URL (optionally with a pasted excerpt) backing a candidate"""
    link_id: str = Field(default_factory=_new_id)
    candidate_id: str
    url: str
    excerpt: Optional[str] = None
    fetched_text: Optional[str] = None
    summary: Optional[List[EvidenceBullet]] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class OutreachDraft(BaseModel):
    candidate_id: str
    tone_preset: str = "warm_professional"
    subject: str
    body: str
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class ProjectFeedback(BaseModel):
    project_id: str
    rating: Optional[int] = Field(None, ge=1, le=5)
    notes: Optional[str] = None
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class CandidateFeedback(BaseModel):
    candidate_id: str
    misfit: bool = False
    reason: Optional[str] = None
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class OutcomeEvent(BaseModel):
    event_id: str = Field(default_factory=_new_id)
    candidate_id: str
    type: str = "status_change"
    payload: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class ModelRunLog(BaseModel):
    """One LLM attempt, successful or not"""
    prompt_name: str
    prompt_hash: Optional[str] = None
    provider: str
    model: str
    success: bool
    error: Optional[str] = None
    tokens_in: Optional[int] = None
    tokens_out: Optional[int] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
