"""
Pydantic schemas for License Finder

Structured LLM outputs (validated at the boundary) and scoring results.
"""

from enum import Enum
from typing import List, Dict, Optional, Any
from pydantic import BaseModel, Field, StrictInt, constr, field_validator
from datetime import datetime


# =============================================================================
# ENUMS
# =============================================================================

class Tier(str, Enum):
    """Partner tier"""
    A = "A"
    B = "B"
    C = "C"


class Confidence(str, Enum):
    """Evidence level behind a judgment"""
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class SupportType(str, Enum):
    """How a proof point is supported"""
    LINK_SUPPORTED = "link_supported"
    USER_PROVIDED_EXCERPT = "user_provided_excerpt"
    TO_VERIFY = "to_verify"
    ASSUMED = "assumed"


class Provenance(str, Enum):
    """Where a candidate came from"""
    MANUAL = "manual"
    UPLOADED = "uploaded"
    GENERATED = "generated"


# =============================================================================
# SCORING JUDGMENT
# =============================================================================

CRITERIA = [
    "category_fit",
    "distribution_alignment",
    "licensing_activity",
    "scale_appropriateness",
    "quality_reputation",
    "geo_coverage",
    "recent_momentum",
    "manufacturing_capability",
]


class CriterionScores(BaseModel):
    """Eight integer scores in [0, 5]. Out-of-range values are rejected, never clamped."""
    category_fit: StrictInt = Field(..., ge=0, le=5, alias="categoryFit")
    distribution_alignment: StrictInt = Field(..., ge=0, le=5, alias="distributionAlignment")
    licensing_activity: StrictInt = Field(..., ge=0, le=5, alias="licensingActivity")
    scale_appropriateness: StrictInt = Field(..., ge=0, le=5, alias="scaleAppropriateness")
    quality_reputation: StrictInt = Field(..., ge=0, le=5, alias="qualityReputation")
    geo_coverage: StrictInt = Field(..., ge=0, le=5, alias="geoCoverage")
    recent_momentum: StrictInt = Field(..., ge=0, le=5, alias="recentMomentum")
    manufacturing_capability: StrictInt = Field(..., ge=0, le=5, alias="manufacturingCapability")

    class Config:
        populate_by_name = True

    @field_validator(*CRITERIA, mode="before")
    @classmethod
    def integral_floats_to_int(cls, v):
        # JSON 4.0 is the integer 4; 3.5, "4" and bools still fail strict validation
        if isinstance(v, float) and v.is_integer():
            return int(v)
        return v

    @classmethod
    def zeros(cls) -> "CriterionScores":
        return cls(**{name: 0 for name in CRITERIA})


class ProofPoint(BaseModel):
    """A claim backing the judgment"""
    text: str = Field(..., min_length=1, max_length=400)
    support_type: SupportType = Field(..., alias="supportType")
    url: Optional[str] = None

    class Config:
        populate_by_name = True


class ScoringOutput(BaseModel):
    """Structured judgment returned by the scoring model"""
    criterion_scores: CriterionScores = Field(..., alias="criterionScores")
    disqualifiers: List[constr(min_length=1, max_length=80)] = Field(default_factory=list, max_length=10)
    flags: List[constr(min_length=1, max_length=120)] = Field(default_factory=list, max_length=10)
    rationale_bullets: List[str] = Field(..., min_length=3, max_length=5, alias="rationaleBullets")
    proof_points: List[ProofPoint] = Field(..., min_length=2, max_length=10, alias="proofPoints")
    confidence: Confidence
    next_step: str = Field(..., min_length=1, max_length=400, alias="nextStep")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "criterionScores": {
                    "categoryFit": 4,
                    "distributionAlignment": 4,
                    "licensingActivity": 3,
                    "scaleAppropriateness": 3,
                    "qualityReputation": 4,
                    "geoCoverage": 4,
                    "recentMomentum": 3,
                    "manufacturingCapability": 4,
                },
                "disqualifiers": [],
                "flags": ["Verify specialty retail mix"],
                "rationaleBullets": [
                    "Strong adjacency to premium drinkware",
                    "Price band likely fits",
                    "Specialty channel overlap",
                ],
                "proofPoints": [
                    {"text": "Check press page for collaborations", "supportType": "to_verify"},
                    {"text": "Confirm specialty retail presence", "supportType": "to_verify"},
                ],
                "confidence": "Medium",
                "nextStep": "Targeted outreach to the partnerships lead",
            }
        }


class ScoreCard(BaseModel):
    """Persisted result of scoring one candidate (replaced wholesale on re-score)"""
    candidate_id: str
    criterion_scores: CriterionScores
    weights: Dict[str, float]
    total_score: float = Field(..., ge=0, le=100)
    confidence: Confidence
    tier: Tier = Tier.C
    rationale_bullets: List[str] = Field(default_factory=list)
    proof_points: List[ProofPoint] = Field(default_factory=list)
    flags: List[str] = Field(default_factory=list)
    disqualifiers: List[str] = Field(default_factory=list)
    next_step: str = ""
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class TierInput(BaseModel):
    """One scored candidate as seen by the tiering pass"""
    candidate_id: str
    total_score: float
    disqualifiers: List[str] = Field(default_factory=list)


# =============================================================================
# OTHER STRUCTURED LLM OUTPUTS
# =============================================================================

class CandidateSuggestion(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    website: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=500)
    why_non_obvious: Optional[str] = Field(None, max_length=200, alias="whyNonObvious")

    class Config:
        populate_by_name = True


class CandidateGeneration(BaseModel):
    candidates: List[CandidateSuggestion] = Field(..., min_length=8, max_length=25)


class CandidateResearch(BaseModel):
    """What the model knows about a company, plus search queries to verify it"""
    website: Optional[str] = None
    description: Optional[str] = Field(None, max_length=500)
    category: Optional[str] = Field(None, max_length=120)
    licensing_history: Optional[str] = Field(None, max_length=400, alias="licensingHistory")
    key_products: Optional[str] = Field(None, max_length=300, alias="keyProducts")
    distribution_channels: Optional[str] = Field(None, max_length=300, alias="distributionChannels")
    notable_partnerships: Optional[str] = Field(None, max_length=300, alias="notablePartnerships")
    search_queries: List[str] = Field(..., min_length=1, max_length=3, alias="searchQueries")

    class Config:
        populate_by_name = True


class EvidenceBullet(BaseModel):
    text: str = Field(..., min_length=1, max_length=280)
    support_type: SupportType = Field(SupportType.LINK_SUPPORTED, alias="supportType")

    class Config:
        populate_by_name = True


class EvidenceSummary(BaseModel):
    # Empty when the page has nothing useful
    bullets: List[EvidenceBullet] = Field(default_factory=list, max_length=4)


class OutreachDraftOutput(BaseModel):
    subject: str = Field(..., min_length=1)
    body: str = Field(..., min_length=20)


# =============================================================================
# PIPELINE RESULTS
# =============================================================================

class BatchResult(BaseModel):
    """Summary of a sequential batch run over a project's candidates"""
    project_id: str
    processed: int = 0
    succeeded: int = 0
    failed: List[Dict[str, Any]] = Field(default_factory=list)
    tiers: Dict[str, str] = Field(default_factory=dict)
    processing_time_ms: float = 0
