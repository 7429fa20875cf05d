"""
Prompt builders for the structured LLM calls
"""

from typing import Optional, Dict, Any, List

from .config.settings import DEFAULT_GIANTS_EXCLUDE
from .utils import clamp_text


def system_preamble() -> str:
    return "\n".join([
        "You are a careful analyst assisting a licensing professional.",
        "You must follow instructions exactly.",
        "Never invent evidence. If a claim is not supported by a user-provided public URL or user-provided excerpt, label it as to_verify.",
        "Do NOT include personal contact details (no emails, phone numbers, names). Use only role/titles.",
        "All outputs MUST be valid JSON with no additional text.",
    ])


def _intake_lines(project) -> List[str]:
    return [
        f"- Brand category: {project.brand_category or '(missing)'}",
        f"- Product types sought: {project.product_type_sought or '(missing)'}",
        f"- Price range: {project.price_range or '(missing)'}",
        f"- Distribution preference: {project.distribution_preference or '(missing)'}",
        f"- Geography: {project.geography or '(optional)'}",
        f"- Positioning keywords: {project.positioning_keywords or '(optional)'}",
        f"- Constraints: {project.constraints or '(optional)'}",
    ]


def project_brief(project) -> str:
    """Plain-text intake summary used in outreach prompts"""
    return "\n".join(line[2:] for line in _intake_lines(project))


def candidate_generation_user_prompt(project, exclude_list: List[str]) -> str:
    excluded = ", ".join(exclude_list) if exclude_list else "(none)"
    return "\n".join([
        "Generate a list of candidate companies that could be strong licensee/manufacturer partners.",
        "Optimize for NON-OBVIOUS names (avoid giants / usual suspects) and specialty/boutique distribution alignment.",
        "Avoid mass market oriented companies unless you flag as a risk.",
        "Return 12-15 candidates.",
        "\nProject intake:",
        *_intake_lines(project),
        f"- Exclude list (do not include these): {excluded}",
        f"- Usual suspects (only include if clearly differentiated, and flag the scale risk): {', '.join(DEFAULT_GIANTS_EXCLUDE)}",
        "\nOutput JSON schema:",
        "{ candidates: [{ name: string, website?: string|null, notes?: string|null, whyNonObvious?: string|null }, ...] }",
    ])


def score_candidate_user_prompt(project, candidate, evidence_bullets: List[Dict[str, Any]]) -> str:
    if evidence_bullets:
        evidence = "\n".join(
            f"  {i}. {clamp_text(b['text'], 240)}" + (f" (source: {b['url']})" if b.get("url") else "")
            for i, b in enumerate(evidence_bullets[:8], start=1)
        )
    else:
        evidence = "  (none)"

    candidate_lines = [
        f"- Name: {candidate.name}",
        f"- Website: {candidate.website or '(none)'}",
        f"- Notes: {candidate.notes or '(none)'}",
    ]
    if candidate.custom_data:
        candidate_lines.append("\nAdditional user-provided data:")
        for key, value in list(candidate.custom_data.items())[:20]:
            candidate_lines.append(f"- {key}: {clamp_text(value, 300)}")

    return "\n".join([
        "Score the candidate for licensing partner fit for this project.",
        "You MUST follow the scoring criteria and constraints.",
        "Evidence sources include: link-supported evidence bullets, user-provided notes, and additional user-provided data fields. All of these count as real evidence when assessing the evidence level.",
        "If there is NO evidence at all (no evidence bullets, no notes, no user-provided data), all proofPoints MUST be labeled to_verify and phrased as verification steps (not claims).",
        "If the candidate has user-provided notes or additional data, use supportType 'user_provided_excerpt' for claims derived from that data.",
        "The 'confidence' field represents the EVIDENCE LEVEL: how much supporting evidence is available, NOT how certain the AI is. Set it to 'High' when multiple evidence sources corroborate the assessment, 'Medium' when some evidence supports it, and 'Low' only when there is little or no evidence.",
        "\nProject intake:",
        *_intake_lines(project),
        "\nCandidate:",
        *candidate_lines,
        "\nEvidence bullets (user-provided, link-supported):",
        evidence,
        "\nScoring criteria (0-5 each): categoryFit, distributionAlignment, recent licensing activity, scale appropriateness, quality/reputation, geo coverage, recent momentum, manufacturing capability.",
        "Disqualifiers (use EXACT labels when applicable):",
        "  - 'distribution mismatch': the candidate's distribution channels are fundamentally incompatible (e.g., mass market vs. specialty/premium). This zeros the Distribution pillar.",
        "  - 'wrong category': the candidate operates in a completely unrelated product category. This zeros the Category pillar.",
        "  - 'dormant/dead': the company appears inactive, defunct, or has a non-functional website.",
        "  - 'known quality issues': the company has documented quality or reputation problems.",
        "  - 'extreme scale mismatch': the candidate is far too large or too small for the project.",
        "Use these exact phrases as disqualifier strings so they can be detected programmatically.",
        "\nOutput JSON schema:",
        "{\n  criterionScores: { categoryFit: int, distributionAlignment: int, licensingActivity: int, scaleAppropriateness: int, qualityReputation: int, geoCoverage: int, recentMomentum: int, manufacturingCapability: int },\n  disqualifiers: string[],\n  flags: string[],\n  rationaleBullets: string[3-5],\n  proofPoints: [{ text: string, supportType: 'link_supported'|'user_provided_excerpt'|'to_verify'|'assumed', url?: string|null }, ...],\n  confidence: 'High'|'Medium'|'Low',\n  nextStep: string\n}",
    ])


def candidate_research_user_prompt(candidate, project) -> str:
    return "\n".join([
        "Research the following company as a potential licensing partner.",
        "Return what you know about this company. Do NOT invent facts; only include information you are confident about.",
        "If you are not confident about a field, return null for that field.",
        "Also suggest 1-3 Google search queries that would find useful public information about this company's licensing activity, partnerships, products, or distribution.",
        "",
        f"Company name: {candidate.name}",
        f"Known website: {candidate.website or '(none)'}",
        f"Known notes: {candidate.notes or '(none)'}",
        "",
        "Context for search query generation:",
        f"- Brand category: {project.brand_category or '(unknown)'}",
        f"- Product types sought: {project.product_type_sought or '(unknown)'}",
        "",
        "Output JSON schema:",
        "{ website?: string|null, description?: string|null, category?: string|null, licensingHistory?: string|null, keyProducts?: string|null, distributionChannels?: string|null, notablePartnerships?: string|null, searchQueries: string[1-3] }",
    ])


def evidence_summary_user_prompt(url: str, text: str, kind: str) -> str:
    return "\n".join([
        "Summarize the evidence text into 1-4 short bullets relevant to licensing partner fit.",
        "If the page contains no useful information about the company or licensing, return an empty bullets array.",
        "Do NOT add any facts not in the evidence text.",
        "Return JSON only.",
        f"\nEvidence URL: {url}",
        f"Evidence kind: {kind}",
        "\nEvidence text (truncated):",
        clamp_text(text, 6000),
        "\nOutput JSON schema:",
        "{ bullets: [{ text: string }, ...] }",
    ])


def outreach_draft_user_prompt(
    brief: str,
    candidate_name: str,
    candidate_website: Optional[str],
    proof_points: List[Any],
) -> str:
    points = "\n".join(
        f"- {clamp_text(p.text, 180)}" + (f" (source: {p.url})" if p.url else "")
        for p in proof_points[:3]
    )
    return "\n".join([
        "Write a warm, professional outreach email draft for a licensing/partnerships conversation.",
        "Avoid spammy marketing language.",
        "Do NOT include personal contact details; use role/title placeholders.",
        "If proof points are to_verify, include placeholders rather than asserting facts.",
        "Return JSON only.",
        "\nProject brief:",
        clamp_text(brief, 700),
        "\nCandidate:",
        f"- {candidate_name}",
        f"- Website: {candidate_website or '(none)'}",
        "\nProof points (may be to_verify):",
        points or "(none)",
        "\nOutput JSON schema:",
        "{ subject: string, body: string }",
    ])
