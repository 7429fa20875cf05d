"""
Stage 3: Weighted Scoring
=========================
Deterministic post-processing of the model's structured judgment.

Criteria (0-5 each, normalized to 0-1):
- Category fit (30%)
- Distribution alignment (30%)
- Licensing activity (20%)
- Scale, quality/reputation, geo coverage, momentum, manufacturing (4% each)

A "wrong category" or "distribution mismatch" disqualifier zeroes its pillar
before weighting, so a candidate with both pillars zeroed cannot exceed 40.
"""

import logging
import math
from typing import Optional, Dict, Any, List, Union

from pydantic import ValidationError

from ..models.schemas import (
    CRITERIA,
    Confidence,
    CriterionScores,
    ScoreCard,
    ScoringOutput,
    SupportType,
    Tier,
)
from ..models.project import Candidate, EvidenceLink, Project, ScoringWeights
from ..config.settings import FIELD_LIMITS, NO_INFO_SCORECARD, PIPELINE_CONFIG
from ..errors import InvalidWeightsError, JudgmentValidationError
from ..prompts import score_candidate_user_prompt, system_preamble
from ..utils import redact_potential_contact_details

logger = logging.getLogger(__name__)


# =============================================================================
# DISQUALIFIER PREDICATES
# =============================================================================

def is_category_disqualifier(disq: str) -> bool:
    d = disq.lower()
    return "wrong category" in d or "category mismatch" in d


def is_distribution_disqualifier(disq: str) -> bool:
    d = disq.lower()
    return "distribution mismatch" in d or (
        "mass market" in d and ("mismatch" in d or "misalign" in d)
    )


def is_hard_disqualifier(disq: str) -> bool:
    """Hard disqualifiers keep a candidate out of tiers A and B."""
    if is_category_disqualifier(disq) or is_distribution_disqualifier(disq):
        return True
    d = disq.lower()
    return (
        "dormant" in d
        or "dead" in d
        or "website down" in d
        or "no information available" in d
        or "cannot evaluate" in d
        or ("quality" in d and "issues" in d)
    )


def classify_disqualifier(disq: str) -> List[str]:
    """Kinds a disqualifier label matches. Informational only."""
    d = disq.lower()
    kinds = []
    if is_category_disqualifier(disq):
        kinds.append("category")
    if is_distribution_disqualifier(disq):
        kinds.append("distribution")
    if "dormant" in d or "dead" in d or "website down" in d:
        kinds.append("dormant")
    if "quality" in d and "issues" in d:
        kinds.append("quality_issues")
    if "scale mismatch" in d:
        kinds.append("scale_mismatch")
    if "no information available" in d or "cannot evaluate" in d:
        kinds.append("no_information")
    return kinds


def normalize_disqualifiers(disqualifiers: Optional[List[str]]) -> List[str]:
    """Trim, drop empties, keep at most 10."""
    cleaned = [d.strip() for d in (disqualifiers or []) if d and d.strip()]
    return cleaned[: FIELD_LIMITS["max_disqualifiers"]]


# =============================================================================
# COMPOSITE SCORE
# =============================================================================

def _weights_dict(weights: Union[ScoringWeights, Dict[str, float], None]) -> Dict[str, float]:
    if weights is None:
        return ScoringWeights().as_dict()
    if isinstance(weights, ScoringWeights):
        return weights.as_dict()
    try:
        return ScoringWeights(**weights).as_dict()
    except ValidationError as e:
        raise InvalidWeightsError(str(e)) from e


def compute_total_score(
    criterion_scores: CriterionScores,
    disqualifiers: Optional[List[str]] = None,
    weights: Union[ScoringWeights, Dict[str, float], None] = None,
) -> float:
    """
    Weighted composite in [0, 100], one decimal, rounded half-up.

    Args:
        criterion_scores: Validated 0-5 scores
        disqualifiers: Disqualifier labels (pillar zeroing only)
        weights: Weight table (defaults to the standard table)

    Returns:
        Total score
    """
    w = _weights_dict(weights)
    disqs = disqualifiers or []

    fractions = {name: getattr(criterion_scores, name) / 5 for name in CRITERIA}
    if any(is_category_disqualifier(d) for d in disqs):
        fractions["category_fit"] = 0
    if any(is_distribution_disqualifier(d) for d in disqs):
        fractions["distribution_alignment"] = 0

    weighted = 0.0
    for name in CRITERIA:
        weighted += fractions[name] * w[name]

    return math.floor(weighted * 1000 + 0.5) / 10


def enforce_confidence(requested: Union[Confidence, str], has_evidence: bool) -> Confidence:
    """Without evidence the confidence label is always Low."""
    if not has_evidence:
        return Confidence.LOW
    return Confidence(requested)


# =============================================================================
# EVIDENCE HELPERS
# =============================================================================

def has_information(candidate: Candidate, evidence_links: List[EvidenceLink]) -> bool:
    return bool(
        candidate.website
        or (candidate.notes or "").strip()
        or candidate.custom_data
        or evidence_links
    )


def collect_evidence_bullets(evidence_links: List[EvidenceLink]) -> List[Dict[str, Optional[str]]]:
    bullets = []
    for link in evidence_links:
        for bullet in link.summary or []:
            bullets.append({"text": bullet.text, "url": link.url})
    return bullets[: PIPELINE_CONFIG["max_evidence_bullets"]]


def has_evidence(candidate: Candidate, evidence_bullets: List[Dict[str, Any]]) -> bool:
    return bool(evidence_bullets or candidate.custom_data or (candidate.notes or "").strip())


def validate_judgment(data: Union[ScoringOutput, Dict[str, Any]]) -> ScoringOutput:
    """Reject malformed or out-of-range judgments at the boundary."""
    if isinstance(data, ScoringOutput):
        return data
    try:
        return ScoringOutput.model_validate(data)
    except ValidationError as e:
        raise JudgmentValidationError(
            f"Invalid scoring judgment: {e.error_count()} error(s)", errors=e.errors()
        ) from e


def clean_scoring_output(output: ScoringOutput, evidence: bool) -> ScoringOutput:
    """Redact contact details, cap list sizes and enforce the evidence rules."""
    proof_points = []
    for p in output.proof_points:
        point = p.model_copy(update={"text": redact_potential_contact_details(p.text)})
        if not evidence:
            point.support_type = SupportType.TO_VERIFY
        proof_points.append(point)

    return output.model_copy(update={
        "flags": [redact_potential_contact_details(f) for f in output.flags][: FIELD_LIMITS["max_flags"]],
        "disqualifiers": normalize_disqualifiers(
            [redact_potential_contact_details(d) for d in output.disqualifiers]
        ),
        "rationale_bullets": [
            redact_potential_contact_details(b) for b in output.rationale_bullets
        ][: FIELD_LIMITS["max_rationale"]],
        "proof_points": proof_points,
        "next_step": redact_potential_contact_details(output.next_step),
        "confidence": enforce_confidence(output.confidence, evidence),
    })


# =============================================================================
# JUDGMENT SOURCE
# =============================================================================

class LLMJudge:
    """Judgment source backed by the structured LLM client."""

    def __init__(self, llm):
        self.llm = llm

    def judge(self, project, candidate, evidence_bullets):
        result = self.llm.run(
            prompt_name="score_candidate",
            system=system_preamble(),
            user=score_candidate_user_prompt(project, candidate, evidence_bullets),
            schema=ScoringOutput,
        )
        return result.data


# =============================================================================
# STAGE
# =============================================================================

class WeightedScoringStage:
    """
    Stage 3: Score one candidate against the project.
    """

    def __init__(
        self,
        judge,
        weights: Union[ScoringWeights, Dict[str, float], None] = None,
    ):
        """
        Args:
            judge: Object with judge(project, candidate, evidence_bullets)
                returning a ScoringOutput or a raw dict
            weights: Weight table; validated here, not on every call
        """
        self.judge = judge
        self.weights = _weights_dict(weights)

    def no_information_scorecard(self, candidate_id: str) -> ScoreCard:
        """Placeholder card for a candidate with nothing to evaluate."""
        return ScoreCard(
            candidate_id=candidate_id,
            criterion_scores=CriterionScores.zeros(),
            weights=self.weights,
            total_score=0,
            confidence=Confidence.LOW,
            tier=Tier.C,
            rationale_bullets=[NO_INFO_SCORECARD["rationale"]],
            proof_points=[],
            flags=[],
            disqualifiers=[NO_INFO_SCORECARD["disqualifier"]],
            next_step=NO_INFO_SCORECARD["next_step"],
        )

    def process(
        self,
        project: Project,
        candidate: Candidate,
        evidence_links: List[EvidenceLink],
    ) -> ScoreCard:
        """
        Score a candidate.

        Args:
            project: Project intake the candidate is judged against
            candidate: Candidate to score
            evidence_links: Candidate's evidence links (already summarized)

        Returns:
            ScoreCard with tier placeholder C; tiering happens project-wide
        """
        if not has_information(candidate, evidence_links):
            logger.info("No information for %s, skipping judgment", candidate.name)
            return self.no_information_scorecard(candidate.candidate_id)

        bullets = collect_evidence_bullets(evidence_links)
        judgment = validate_judgment(self.judge.judge(project, candidate, bullets))
        cleaned = clean_scoring_output(judgment, has_evidence(candidate, bullets))

        total = compute_total_score(
            cleaned.criterion_scores, cleaned.disqualifiers, self.weights
        )

        return ScoreCard(
            candidate_id=candidate.candidate_id,
            criterion_scores=cleaned.criterion_scores,
            weights=self.weights,
            total_score=total,
            confidence=cleaned.confidence,
            tier=Tier.C,
            rationale_bullets=cleaned.rationale_bullets,
            proof_points=cleaned.proof_points,
            flags=cleaned.flags,
            disqualifiers=cleaned.disqualifiers,
            next_step=cleaned.next_step,
        )
