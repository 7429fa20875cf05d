"""
Stage 1: Candidate Research
===========================
Three phases per candidate:
  1. LLM knowledge pass (fills a missing website, merges facts into notes)
  2. Web search for the suggested queries
  3. Evidence links for the top results, fetched and summarized
"""

import logging
import time
from typing import Callable, List, Optional

from ..models.project import Candidate, EvidenceLink, Project
from ..models.schemas import CandidateResearch
from ..config.settings import FIELD_LIMITS, PIPELINE_CONFIG
from ..prompts import candidate_research_user_prompt, system_preamble
from ..utils import clamp_text, normalize_url, redact_potential_contact_details

logger = logging.getLogger(__name__)


def merge_research_notes(existing: Optional[str], research: CandidateResearch) -> Optional[str]:
    """Existing notes first, then the model's knowledge, joined with ' | '."""
    knowledge = " | ".join(part for part in [
        research.description,
        f"Category: {research.category}" if research.category else None,
        f"Licensing: {research.licensing_history}" if research.licensing_history else None,
        f"Products: {research.key_products}" if research.key_products else None,
        f"Distribution: {research.distribution_channels}" if research.distribution_channels else None,
        f"Partnerships: {research.notable_partnerships}" if research.notable_partnerships else None,
    ] if part)

    merged = " | ".join(part for part in [existing, knowledge] if part)
    merged = clamp_text(redact_potential_contact_details(merged), FIELD_LIMITS["candidate_notes"])
    return merged or None


class CandidateResearchStage:
    """
    Stage 1: Research a candidate and attach evidence links.
    """

    def __init__(
        self,
        llm,
        search,
        evidence_stage,
        store,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.llm = llm
        self.search = search
        self.evidence_stage = evidence_stage
        self.store = store
        self.sleep = sleep

    def process(self, project: Project, candidate: Candidate) -> List[EvidenceLink]:
        """
        Research one candidate.

        Args:
            project: Project (category and product type steer the queries)
            candidate: Candidate to research; website and notes are updated

        Returns:
            Evidence links created for the candidate
        """
        # Phase 1: LLM knowledge
        research = self.llm.run(
            prompt_name="candidate_research",
            system=system_preamble(),
            user=candidate_research_user_prompt(candidate, project),
            schema=CandidateResearch,
        ).data

        candidate.website = candidate.website or normalize_url(research.website)
        candidate.notes = merge_research_notes(candidate.notes, research)

        # Phase 2: Web search
        urls: List[str] = []
        for query in research.search_queries[: PIPELINE_CONFIG["research_queries"]]:
            self.sleep(PIPELINE_CONFIG["search_delay_seconds"])
            try:
                results = self.search.search(query, PIPELINE_CONFIG["results_per_query"])
            except Exception:
                logger.exception("Search failed for %r query %r", candidate.name, query)
                continue
            for result in results:
                url = normalize_url(result.url)
                if url and url not in urls:
                    urls.append(url)

        # Phase 3: Fetch & summarize
        links = []
        for url in urls[: PIPELINE_CONFIG["research_evidence_links"]]:
            try:
                link = self.store.add_evidence(
                    EvidenceLink(candidate_id=candidate.candidate_id, url=url)
                )
                links.append(link)
                self.evidence_stage.summarize_link(link)
                self.sleep(PIPELINE_CONFIG["call_delay_seconds"])
            except Exception:
                logger.exception("Evidence processing failed for %r url %s", candidate.name, url)

        logger.info("Researched %s: %d evidence link(s)", candidate.name, len(links))
        return links
