"""
Stage 2: Evidence Summaries
===========================
Turns evidence links into short bullets the scoring prompt can cite.

A pasted excerpt is summarized as-is; otherwise the public page is fetched
and its readable text summarized. A failed fetch leaves the link without
bullets so the operator can paste an excerpt later.
"""

import logging
import time
from datetime import datetime
from typing import Callable, Optional, List

from ..models.project import EvidenceLink
from ..models.schemas import EvidenceSummary
from ..config.settings import FETCH_CONFIG, PIPELINE_CONFIG
from ..prompts import evidence_summary_user_prompt, system_preamble
from ..utils import clamp_text

logger = logging.getLogger(__name__)


class EvidenceSummaryStage:
    """
    Stage 2: Fetch and summarize evidence links.
    """

    def __init__(
        self,
        llm,
        fetcher,
        sleep: Callable[[float], None] = time.sleep,
        delay: Optional[float] = None,
    ):
        self.llm = llm
        self.fetcher = fetcher
        self.sleep = sleep
        self.delay = PIPELINE_CONFIG["call_delay_seconds"] if delay is None else delay

    def summarize_link(self, link: EvidenceLink) -> bool:
        """
        Summarize one link in place.

        Returns:
            True when bullets were stored, False when the page could not be read
        """
        if link.excerpt:
            text, kind = link.excerpt, "excerpt"
        else:
            fetched = self.fetcher.fetch(link.url)
            if not (fetched.ok and fetched.text):
                logger.info("Could not fetch %s: %s", link.url, fetched.error)
                link.fetched_text = None
                link.updated_at = datetime.utcnow()
                return False
            text, kind = fetched.text, "fetched"

        result = self.llm.run(
            prompt_name="evidence_summary",
            system=system_preamble(),
            user=evidence_summary_user_prompt(link.url, text, kind),
            schema=EvidenceSummary,
        )

        link.fetched_text = clamp_text(text, FETCH_CONFIG["text_limit"]) if kind == "fetched" else None
        link.summary = result.data.bullets
        link.updated_at = datetime.utcnow()
        return True

    def summarize_pending(self, links: List[EvidenceLink]) -> int:
        """
        Summarize every link that has no bullets yet, one at a time.

        Returns:
            Number of links summarized
        """
        done = 0
        for link in links:
            if link.summary is not None:
                continue
            try:
                if self.summarize_link(link):
                    done += 1
                self.sleep(self.delay)
            except Exception:
                logger.exception("Auto-summarize failed for %s", link.url)
        return done
