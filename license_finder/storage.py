"""
In-memory record store
======================
Holds every record of a running instance (replace with a database in
production). Dicts keep insertion order, so candidates iterate in creation
order. Deletes cascade to dependent records.
"""

import logging
from typing import Optional, Dict, List

from .models.project import (
    Candidate,
    CandidateFeedback,
    EvidenceLink,
    OutcomeEvent,
    OutreachDraft,
    Project,
    ProjectFeedback,
    User,
)
from .models.schemas import ScoreCard, Tier
from .errors import EntityNotFoundException

logger = logging.getLogger(__name__)


class ProjectStore:
    """CRUD over projects, candidates and their dependent records."""

    def __init__(self):
        self.users: Dict[str, User] = {}
        self.projects: Dict[str, Project] = {}
        self.candidates: Dict[str, Candidate] = {}
        self.evidence_links: Dict[str, EvidenceLink] = {}
        self.score_cards: Dict[str, ScoreCard] = {}
        self.outreach_drafts: Dict[str, OutreachDraft] = {}
        self.project_feedback: Dict[str, ProjectFeedback] = {}
        self.candidate_feedback: Dict[str, CandidateFeedback] = {}
        self.outcome_events: List[OutcomeEvent] = []

    def reset(self):
        self.__init__()

    # =========================================================================
    # Users
    # =========================================================================

    def get_or_create_single_user(self, email: str) -> User:
        if self.users:
            return next(iter(self.users.values()))
        user = User(email=email)
        self.users[user.user_id] = user
        return user

    def get_user(self, user_id: str) -> Optional[User]:
        return self.users.get(user_id)

    # =========================================================================
    # Projects
    # =========================================================================

    def add_project(self, project: Project) -> Project:
        self.projects[project.project_id] = project
        return project

    def get_project(self, project_id: str) -> Project:
        project = self.projects.get(project_id)
        if project is None:
            raise EntityNotFoundException("Project", project_id)
        return project

    def list_projects(self) -> List[Project]:
        return sorted(self.projects.values(), key=lambda p: p.created_at, reverse=True)

    def delete_project(self, project_id: str) -> None:
        self.get_project(project_id)
        for candidate in self.list_candidates(project_id):
            self.delete_candidate(candidate.candidate_id)
        self.project_feedback.pop(project_id, None)
        del self.projects[project_id]

    # =========================================================================
    # Candidates
    # =========================================================================

    def add_candidate(self, candidate: Candidate) -> Candidate:
        self.get_project(candidate.project_id)
        self.candidates[candidate.candidate_id] = candidate
        return candidate

    def get_candidate(self, candidate_id: str) -> Candidate:
        candidate = self.candidates.get(candidate_id)
        if candidate is None:
            raise EntityNotFoundException("Candidate", candidate_id)
        return candidate

    def list_candidates(self, project_id: str) -> List[Candidate]:
        """Candidates of a project in creation order"""
        return [c for c in self.candidates.values() if c.project_id == project_id]

    def delete_candidate(self, candidate_id: str) -> None:
        self.get_candidate(candidate_id)
        for link in self.list_evidence(candidate_id):
            del self.evidence_links[link.link_id]
        self.score_cards.pop(candidate_id, None)
        self.outreach_drafts.pop(candidate_id, None)
        self.candidate_feedback.pop(candidate_id, None)
        self.outcome_events = [e for e in self.outcome_events if e.candidate_id != candidate_id]
        del self.candidates[candidate_id]

    # =========================================================================
    # Evidence
    # =========================================================================

    def add_evidence(self, link: EvidenceLink) -> EvidenceLink:
        self.get_candidate(link.candidate_id)
        self.evidence_links[link.link_id] = link
        return link

    def get_evidence(self, link_id: str) -> EvidenceLink:
        link = self.evidence_links.get(link_id)
        if link is None:
            raise EntityNotFoundException("EvidenceLink", link_id)
        return link

    def list_evidence(self, candidate_id: str) -> List[EvidenceLink]:
        return [l for l in self.evidence_links.values() if l.candidate_id == candidate_id]

    # =========================================================================
    # Score cards & tiers
    # =========================================================================

    def save_score_card(self, card: ScoreCard) -> ScoreCard:
        """Replace the candidate's card wholesale, keeping its current tier."""
        existing = self.score_cards.get(card.candidate_id)
        if existing is not None:
            card = card.model_copy(update={"tier": existing.tier})
        self.score_cards[card.candidate_id] = card
        return card

    def get_score_card(self, candidate_id: str) -> Optional[ScoreCard]:
        return self.score_cards.get(candidate_id)

    def list_score_cards(self, project_id: str) -> List[ScoreCard]:
        return [
            self.score_cards[c.candidate_id]
            for c in self.list_candidates(project_id)
            if c.candidate_id in self.score_cards
        ]

    def apply_tiers(self, tiers: Dict[str, Tier]) -> None:
        for candidate_id, tier in tiers.items():
            card = self.score_cards.get(candidate_id)
            if card is not None:
                card.tier = tier

    # =========================================================================
    # Outreach, feedback, events
    # =========================================================================

    def save_outreach_draft(self, draft: OutreachDraft) -> OutreachDraft:
        existing = self.outreach_drafts.get(draft.candidate_id)
        if existing is not None:
            draft = draft.model_copy(update={"created_at": existing.created_at})
        self.outreach_drafts[draft.candidate_id] = draft
        return draft

    def get_outreach_draft(self, candidate_id: str) -> Optional[OutreachDraft]:
        return self.outreach_drafts.get(candidate_id)

    def save_project_feedback(self, feedback: ProjectFeedback) -> ProjectFeedback:
        self.get_project(feedback.project_id)
        self.project_feedback[feedback.project_id] = feedback
        return feedback

    def get_project_feedback(self, project_id: str) -> Optional[ProjectFeedback]:
        return self.project_feedback.get(project_id)

    def save_candidate_feedback(self, feedback: CandidateFeedback) -> CandidateFeedback:
        self.get_candidate(feedback.candidate_id)
        self.candidate_feedback[feedback.candidate_id] = feedback
        return feedback

    def get_candidate_feedback(self, candidate_id: str) -> Optional[CandidateFeedback]:
        return self.candidate_feedback.get(candidate_id)

    def add_outcome_event(self, event: OutcomeEvent) -> OutcomeEvent:
        self.outcome_events.append(event)
        return event

    def list_outcome_events(self, candidate_id: str) -> List[OutcomeEvent]:
        return [e for e in self.outcome_events if e.candidate_id == candidate_id]
