"""
Stage 4: Tiering
================
Project-wide A/B/C bucketing of scored candidates.

Ranking uses an adjusted score: hard disqualifiers subtract 40, any other
disqualifier subtracts 15. The first three clean-enough candidates are A,
slots 4-5 of A require zero disqualifiers, B fills greedily up to 7 and is
backfilled from C up to 5. Hard-disqualified candidates are always C.
"""

from typing import Optional, Dict, Any, List

from ..models.schemas import TierInput, Tier
from ..config.settings import TIER_CONFIG
from .stage3_scoring import is_hard_disqualifier


def adjusted_score(total_score: float, disqualifiers: List[str], config: Dict[str, Any] = TIER_CONFIG) -> float:
    """Ranking score after the disqualifier penalty (never below 0)."""
    disqualifiers = _non_blank(disqualifiers)
    if any(is_hard_disqualifier(d) for d in disqualifiers):
        penalty = config["hard_penalty"]
    elif disqualifiers:
        penalty = config["soft_penalty"]
    else:
        penalty = 0
    return max(0, total_score - penalty)


def _non_blank(disqualifiers: List[str]) -> List[str]:
    return [d for d in disqualifiers if d and d.strip()]


def tier_buckets(
    candidates: List[TierInput],
    config: Optional[Dict[str, Any]] = None,
) -> Dict[str, Tier]:
    """
    Assign tiers to every scored candidate of one project.

    Args:
        candidates: Scored candidates (id, total score, disqualifiers)
        config: Bucket sizes and penalties (defaults to TIER_CONFIG)

    Returns:
        Mapping candidate_id -> Tier
    """
    config = config or TIER_CONFIG

    ranked = []
    for c in candidates:
        disqualifiers = _non_blank(c.disqualifiers)
        hard = any(is_hard_disqualifier(d) for d in disqualifiers)
        ranked.append({
            "candidate_id": c.candidate_id,
            "adjusted": adjusted_score(c.total_score, disqualifiers, config),
            "hard": hard,
            "clean": not disqualifiers,
        })

    # sorted() is stable: ties keep input order
    ranked = sorted(ranked, key=lambda r: r["adjusted"], reverse=True)

    tiers: Dict[str, Tier] = {}
    a_count = 0
    b_count = 0

    for r in ranked:
        if r["hard"]:
            tiers[r["candidate_id"]] = Tier.C
        elif a_count < config["a_unconditional"]:
            tiers[r["candidate_id"]] = Tier.A
            a_count += 1
        elif a_count < config["a_target"]:
            if r["clean"]:
                tiers[r["candidate_id"]] = Tier.A
                a_count += 1
            else:
                tiers[r["candidate_id"]] = Tier.B
                b_count += 1
        elif b_count < config["b_target"]:
            tiers[r["candidate_id"]] = Tier.B
            b_count += 1
        else:
            tiers[r["candidate_id"]] = Tier.C

    # Overflow: keep the first a_target A's in rank order
    a_ids = [r["candidate_id"] for r in ranked if tiers[r["candidate_id"]] == Tier.A]
    for candidate_id in a_ids[config["a_target"]:]:
        tiers[candidate_id] = Tier.B

    # Backfill B from the top of C, never with hard-disqualified candidates
    current_b = sum(1 for t in tiers.values() if t == Tier.B)
    if current_b < config["b_floor"]:
        promotable = [
            r["candidate_id"]
            for r in ranked
            if tiers[r["candidate_id"]] == Tier.C and not r["hard"]
        ]
        for candidate_id in promotable[: config["b_floor"] - current_b]:
            tiers[candidate_id] = Tier.B

    return tiers


class TieringStage:
    """
    Stage 4: Re-tier a project from its score cards.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or TIER_CONFIG

    def process(self, score_cards: List[Any]) -> Dict[str, Tier]:
        """
        Args:
            score_cards: Every ScoreCard of the project

        Returns:
            Mapping candidate_id -> Tier
        """
        inputs = [
            TierInput(
                candidate_id=card.candidate_id,
                total_score=card.total_score,
                disqualifiers=card.disqualifiers,
            )
            for card in score_cards
        ]
        return tier_buckets(inputs, self.config)
