"""
License Finder Engine - Main Orchestrator
=========================================
Orchestrates the five-stage pipeline over a project's candidates:
  Stage 1: Research → Stage 2: Evidence Summaries →
  Stage 3: Weighted Scoring → Stage 4: Tiering → Stage 5: Outreach

Batches run sequentially in candidate creation order with a fixed delay
between external calls. One candidate failing is logged and skipped; the
project is re-tiered once, after the whole batch.
"""

import logging
import time
from typing import Callable, Optional, List, Dict, Any, Union

from .models.project import (
    Candidate,
    CandidateFeedback,
    EvidenceLink,
    OutcomeEvent,
    OutreachDraft,
    Project,
    ProjectFeedback,
    ScoringWeights,
)
from .models.schemas import BatchResult, CandidateGeneration, Provenance, ScoreCard, Tier
from .config.settings import (
    FIELD_LIMITS,
    OPTIONAL_INTAKE_FIELDS,
    PIPELINE_CONFIG,
    REQUIRED_INTAKE_FIELDS,
)
from .csv_io import (
    EXPORT_COLUMNS,
    export_filename,
    parse_csv_candidates,
    scorecard_export_row,
    to_csv,
)
from .errors import EntityNotFoundException, StructuredOutputError
from .llm import StructuredLLM
from .prompts import candidate_generation_user_prompt, system_preamble
from .search import PageFetcher, WebSearch
from .stages import (
    CandidateResearchStage,
    EvidenceSummaryStage,
    LLMJudge,
    OutreachStage,
    TieringStage,
    WeightedScoringStage,
)
from .stages.stage3_scoring import classify_disqualifier, has_information
from .storage import ProjectStore
from .utils import is_excluded, normalize_url, null_if_empty, parse_exclude_list

logger = logging.getLogger(__name__)

INTAKE_FIELDS = [name for name, _ in REQUIRED_INTAKE_FIELDS + OPTIONAL_INTAKE_FIELDS] + ["exclude_list"]


class LicenseFinderEngine:
    """
    Main engine that runs the pipeline stages against the record store.
    """

    def __init__(
        self,
        store: Optional[ProjectStore] = None,
        llm: Optional[StructuredLLM] = None,
        judge=None,
        weights: Union[ScoringWeights, Dict[str, float], None] = None,
        search: Optional[WebSearch] = None,
        fetcher: Optional[PageFetcher] = None,
        sleep: Callable[[float], None] = time.sleep,
        tier_config: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize the engine.

        Args:
            store: Record store (a fresh in-memory store if omitted)
            llm: Structured LLM client
            judge: Scoring judgment source (LLM-backed if omitted)
            weights: Scoring weights (validated once, here)
            search: Web search client
            fetcher: Public page fetcher
            sleep: Delay function between external calls
            tier_config: Tier bucket sizes and penalties
        """
        self.store = store or ProjectStore()
        self.llm = llm or StructuredLLM()
        self.search = search or WebSearch()
        self.fetcher = fetcher or PageFetcher()
        self.sleep = sleep
        self.delay = PIPELINE_CONFIG["call_delay_seconds"]

        # Initialize stages
        self.stage2 = EvidenceSummaryStage(self.llm, self.fetcher, sleep=sleep)
        self.stage1 = CandidateResearchStage(self.llm, self.search, self.stage2, self.store, sleep=sleep)
        self.stage3 = WeightedScoringStage(judge or LLMJudge(self.llm), weights)
        self.stage4 = TieringStage(tier_config)
        self.stage5 = OutreachStage(self.llm)

        # Track statistics
        self.stats = {
            "candidates_scored": 0,
            "no_information": 0,
            "scoring_failures": 0,
            "candidates_researched": 0,
            "research_failures": 0,
            "outreach_drafted": 0,
            "total_processing_time_ms": 0,
        }

    # =========================================================================
    # Projects
    # =========================================================================

    def create_project(self, name: Optional[str] = None, owner_id: Optional[str] = None, **intake) -> Project:
        project = Project(
            name=(null_if_empty(name) or "Untitled Project")[: FIELD_LIMITS["project_name"]],
            owner_id=owner_id,
            **{k: null_if_empty(v) for k, v in intake.items() if k in INTAKE_FIELDS},
        )
        logger.info("Created project %s (%s)", project.project_id, project.name)
        return self.store.add_project(project)

    def update_project(self, project_id: str, name: Optional[str] = None, **intake) -> Project:
        project = self.store.get_project(project_id)
        updates = {k: null_if_empty(v) for k, v in intake.items() if k in INTAKE_FIELDS}
        updates["name"] = (null_if_empty(name) or "Untitled Project")[: FIELD_LIMITS["project_name"]]
        return project.update(**updates)

    def delete_project(self, project_id: str) -> None:
        self.store.delete_project(project_id)

    def project_completeness(self, project: Project) -> Dict[str, Any]:
        """Share of required intake fields filled, plus what is missing."""
        missing_required = [label for field, label in REQUIRED_INTAKE_FIELDS if not getattr(project, field)]
        missing_optional = [label for field, label in OPTIONAL_INTAKE_FIELDS if not getattr(project, field)]
        filled = len(REQUIRED_INTAKE_FIELDS) - len(missing_required)
        return {
            "score": round(filled / len(REQUIRED_INTAKE_FIELDS) * 100),
            "missing_required": missing_required,
            "missing_nice_to_have": missing_optional,
        }

    # =========================================================================
    # Candidates
    # =========================================================================

    def add_candidate(
        self,
        project_id: str,
        name: str,
        website: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Optional[Candidate]:
        """Add a manual candidate. Excluded or blank names are ignored (returns None)."""
        project = self.store.get_project(project_id)
        name = (name or "").strip()
        if not name:
            return None
        if is_excluded(name, parse_exclude_list(project.exclude_list)):
            logger.info("Ignoring excluded candidate %r", name)
            return None

        notes = null_if_empty(notes)
        return self.store.add_candidate(Candidate(
            project_id=project_id,
            name=name[: FIELD_LIMITS["candidate_name"]],
            website=normalize_url(null_if_empty(website)),
            notes=notes[: FIELD_LIMITS["candidate_notes"]] if notes else None,
            provenance=Provenance.MANUAL,
        ))

    def import_csv(self, project_id: str, text: str) -> Dict[str, int]:
        """
        Import candidates from CSV text.

        Returns:
            Counts of created candidates, excluded rows and evidence links
        """
        project = self.store.get_project(project_id)
        exclude = parse_exclude_list(project.exclude_list)
        counts = {"created": 0, "excluded": 0, "evidence_links": 0}

        for row in parse_csv_candidates(text)[: PIPELINE_CONFIG["max_csv_rows"]]:
            if is_excluded(row.name, exclude):
                counts["excluded"] += 1
                continue

            website = normalize_url(row.website)
            candidate = self.store.add_candidate(Candidate(
                project_id=project_id,
                name=row.name.strip()[: FIELD_LIMITS["candidate_name"]],
                website=website,
                notes=row.notes[: FIELD_LIMITS["candidate_notes"]] if row.notes else None,
                custom_data=row.extra_columns,
                provenance=Provenance.UPLOADED,
            ))
            counts["created"] += 1

            urls = [website] if website else []
            for raw in row.links[: PIPELINE_CONFIG["max_links_per_row"]]:
                url = normalize_url(raw)
                if url and url not in urls:
                    urls.append(url)
            for url in urls:
                self.store.add_evidence(EvidenceLink(candidate_id=candidate.candidate_id, url=url))
                counts["evidence_links"] += 1

        logger.info("CSV import into %s: %s", project_id, counts)
        return counts

    def delete_candidate(self, candidate_id: str) -> None:
        candidate = self.store.get_candidate(candidate_id)
        self.store.delete_candidate(candidate_id)
        self.retier_project(candidate.project_id)

    def delete_candidates(self, project_id: str, candidate_ids: List[str]) -> int:
        self.store.get_project(project_id)
        deleted = 0
        for candidate_id in candidate_ids:
            candidate = self.store.candidates.get(candidate_id)
            if candidate is not None and candidate.project_id == project_id:
                self.store.delete_candidate(candidate_id)
                deleted += 1
        self.retier_project(project_id)
        return deleted

    def clear_candidates(self, project_id: str) -> int:
        candidates = self.store.list_candidates(project_id)
        for candidate in candidates:
            self.store.delete_candidate(candidate.candidate_id)
        return len(candidates)

    def generate_candidates(self, project_id: str) -> List[Candidate]:
        """Ask the model for non-obvious candidates; skip excluded and existing names."""
        project = self.store.get_project(project_id)
        exclude = parse_exclude_list(project.exclude_list)

        result = self.llm.run(
            prompt_name="candidate_generation",
            system=system_preamble(),
            user=candidate_generation_user_prompt(project, exclude),
            schema=CandidateGeneration,
        )

        existing = {c.name.lower() for c in self.store.list_candidates(project_id)}
        suggestions = [
            s for s in result.data.candidates
            if s.name.strip() and not is_excluded(s.name, exclude)
        ][: PIPELINE_CONFIG["max_generated_candidates"]]

        created = []
        for s in suggestions:
            name = s.name.strip()
            if name.lower() in existing:
                continue
            existing.add(name.lower())
            notes = null_if_empty(s.notes)
            created.append(self.store.add_candidate(Candidate(
                project_id=project_id,
                name=name[: FIELD_LIMITS["candidate_name"]],
                website=normalize_url(s.website),
                notes=notes[: FIELD_LIMITS["candidate_notes"]] if notes else None,
                provenance=Provenance.GENERATED,
            )))

        logger.info("Generated %d candidate(s) for %s", len(created), project_id)
        return created

    # =========================================================================
    # Research & evidence
    # =========================================================================

    def research_candidates(self, project_id: str, candidate_ids: Optional[List[str]] = None) -> BatchResult:
        """Research every candidate that has no evidence links yet."""
        start_time = time.time()
        project = self.store.get_project(project_id)
        result = BatchResult(project_id=project_id)

        targets = [
            c for c in self._select_candidates(project_id, candidate_ids)
            if c.name.strip() and not self.store.list_evidence(c.candidate_id)
        ]

        for i, candidate in enumerate(targets):
            if i > 0:
                self.sleep(self.delay)
            result.processed += 1
            try:
                self.stage1.process(project, candidate)
                result.succeeded += 1
                self.stats["candidates_researched"] += 1
            except Exception as e:
                logger.exception("Research failed for candidate %r", candidate.name)
                self.stats["research_failures"] += 1
                result.failed.append({"candidate_id": candidate.candidate_id, "name": candidate.name, "error": str(e)})

        result.processing_time_ms = (time.time() - start_time) * 1000
        return result

    def add_evidence_link(self, candidate_id: str, url: str, excerpt: Optional[str] = None) -> Optional[EvidenceLink]:
        """Attach a link (and optional pasted excerpt) and summarize it right away."""
        self.store.get_candidate(candidate_id)
        normalized = normalize_url(url)
        if not normalized:
            return None

        excerpt = null_if_empty(excerpt)
        link = self.store.add_evidence(EvidenceLink(
            candidate_id=candidate_id,
            url=normalized,
            excerpt=excerpt[: FIELD_LIMITS["excerpt"]] if excerpt else None,
        ))
        try:
            self.stage2.summarize_link(link)
        except StructuredOutputError:
            logger.warning("Summary failed for %s; link kept without bullets", normalized)
        return link

    def summarize_evidence(self, link_id: str) -> EvidenceLink:
        link = self.store.get_evidence(link_id)
        self.stage2.summarize_link(link)
        return link

    # =========================================================================
    # Scoring & tiering
    # =========================================================================

    def score_candidate(self, project: Project, candidate: Candidate, links: List[EvidenceLink]) -> ScoreCard:
        """Summarize pending evidence, then score. Does not re-tier."""
        if not has_information(candidate, links):
            self.stats["no_information"] += 1
        self.stage2.summarize_pending(links)
        card = self.stage3.process(project, candidate, links)
        self.stats["candidates_scored"] += 1
        return self.store.save_score_card(card)

    def score_and_tier_project(self, project_id: str, candidate_ids: Optional[List[str]] = None) -> BatchResult:
        """
        Score candidates one at a time, then re-tier the whole project.

        Args:
            project_id: Project to score
            candidate_ids: Optional subset; the whole project is still re-tiered

        Returns:
            BatchResult with per-candidate failures and the final tiers
        """
        start_time = time.time()
        project = self.store.get_project(project_id)
        result = BatchResult(project_id=project_id)

        # Snapshot candidates and their evidence before the batch
        snapshot = [
            (c, list(self.store.list_evidence(c.candidate_id)))
            for c in self._select_candidates(project_id, candidate_ids)
            if c.name.strip()
        ]

        for i, (candidate, links) in enumerate(snapshot):
            if i > 0:
                self.sleep(self.delay)
            result.processed += 1
            try:
                self.score_candidate(project, candidate, links)
                result.succeeded += 1
            except Exception as e:
                logger.exception("Scoring failed for candidate %r", candidate.name)
                self.stats["scoring_failures"] += 1
                result.failed.append({"candidate_id": candidate.candidate_id, "name": candidate.name, "error": str(e)})

        tiers = self.retier_project(project_id)
        result.tiers = {candidate_id: tier.value for candidate_id, tier in tiers.items()}

        result.processing_time_ms = (time.time() - start_time) * 1000
        self.stats["total_processing_time_ms"] += result.processing_time_ms
        logger.info(
            "Scored project %s: %d/%d succeeded", project_id, result.succeeded, result.processed
        )
        return result

    def retier_project(self, project_id: str) -> Dict[str, Tier]:
        tiers = self.stage4.process(self.store.list_score_cards(project_id))
        self.store.apply_tiers(tiers)
        return tiers

    # =========================================================================
    # Outreach
    # =========================================================================

    def generate_outreach(self, candidate_id: str) -> OutreachDraft:
        candidate = self.store.get_candidate(candidate_id)
        card = self.store.get_score_card(candidate_id)
        if card is None:
            raise EntityNotFoundException("ScoreCard", candidate_id)
        project = self.store.get_project(candidate.project_id)

        draft = self.store.save_outreach_draft(self.stage5.process(project, candidate, card))
        self.store.add_outcome_event(OutcomeEvent(
            candidate_id=candidate_id,
            type="status_change",
            payload={"status": "outreach_drafted"},
        ))
        self.stats["outreach_drafted"] += 1
        return draft

    def generate_outreach_for_a_tier(self, project_id: str) -> List[OutreachDraft]:
        self.store.get_project(project_id)
        a_tier = []
        for candidate in self.store.list_candidates(project_id):
            card = self.store.get_score_card(candidate.candidate_id)
            if card is not None and card.tier == Tier.A:
                a_tier.append(candidate)

        drafts = []
        for i, candidate in enumerate(a_tier):
            if i > 0:
                self.sleep(self.delay)
            drafts.append(self.generate_outreach(candidate.candidate_id))
        return drafts

    # =========================================================================
    # Feedback
    # =========================================================================

    def save_project_feedback(self, project_id: str, rating: Optional[int] = None, notes: Optional[str] = None) -> ProjectFeedback:
        return self.store.save_project_feedback(
            ProjectFeedback(project_id=project_id, rating=rating, notes=null_if_empty(notes))
        )

    def save_candidate_feedback(self, candidate_id: str, misfit: bool = False, reason: Optional[str] = None) -> CandidateFeedback:
        return self.store.save_candidate_feedback(
            CandidateFeedback(candidate_id=candidate_id, misfit=misfit, reason=null_if_empty(reason))
        )

    # =========================================================================
    # Views & export
    # =========================================================================

    def candidate_view(self, candidate: Candidate) -> Dict[str, Any]:
        card = self.store.get_score_card(candidate.candidate_id)
        draft = self.store.get_outreach_draft(candidate.candidate_id)
        feedback = self.store.get_candidate_feedback(candidate.candidate_id)
        return {
            "candidate": candidate.model_dump(mode="json"),
            "evidence_links": [
                l.model_dump(mode="json", exclude={"fetched_text"})
                for l in self.store.list_evidence(candidate.candidate_id)
            ],
            "score_card": card.model_dump(mode="json") if card else None,
            "disqualifier_kinds": {d: classify_disqualifier(d) for d in card.disqualifiers} if card else {},
            "outreach_draft": draft.model_dump(mode="json") if draft else None,
            "feedback": feedback.model_dump(mode="json") if feedback else None,
        }

    def results(self, project_id: str) -> Dict[str, List[Dict[str, Any]]]:
        """Scored candidates grouped by tier, each group sorted by total score."""
        self.store.get_project(project_id)
        scored = [
            c for c in self.store.list_candidates(project_id)
            if self.store.get_score_card(c.candidate_id) is not None
        ]
        scored.sort(key=lambda c: self.store.get_score_card(c.candidate_id).total_score, reverse=True)

        grouped: Dict[str, List[Dict[str, Any]]] = {"A": [], "B": [], "C": []}
        for candidate in scored:
            tier = self.store.get_score_card(candidate.candidate_id).tier.value
            grouped[tier].append(self.candidate_view(candidate))
        return grouped

    def export_csv(self, project_id: str):
        """
        Returns:
            (filename, csv text) for the project's scored candidates
        """
        project = self.store.get_project(project_id)
        rows = []
        for candidate in self.store.list_candidates(project_id):
            card = self.store.get_score_card(candidate.candidate_id)
            if card is not None:
                rows.append(scorecard_export_row(
                    candidate, card, self.store.get_outreach_draft(candidate.candidate_id)
                ))
        rows.sort(key=lambda r: r["totalScore"], reverse=True)
        return export_filename(project.name, project.project_id), to_csv(rows, EXPORT_COLUMNS)

    def get_stats(self) -> Dict[str, Any]:
        """Get engine statistics"""
        return {
            **self.stats,
            "llm_provider": self.llm.provider,
            "llm_model": self.llm.model,
            "recent_model_runs": [r.model_dump(mode="json") for r in self.llm.run_logs[-20:]],
        }

    # =========================================================================
    # Helpers
    # =========================================================================

    def _select_candidates(self, project_id: str, candidate_ids: Optional[List[str]]) -> List[Candidate]:
        candidates = self.store.list_candidates(project_id)
        if candidate_ids is None:
            return candidates
        wanted = set(candidate_ids)
        return [c for c in candidates if c.candidate_id in wanted]
