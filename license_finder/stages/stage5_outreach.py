"""
Stage 5: Outreach Drafts
========================
Warm, professional first-contact emails for scored candidates.
"""

from datetime import datetime

from ..models.project import Candidate, OutreachDraft, Project
from ..models.schemas import OutreachDraftOutput, ScoreCard
from ..config.settings import FIELD_LIMITS
from ..prompts import outreach_draft_user_prompt, project_brief, system_preamble
from ..utils import clamp_text, redact_potential_contact_details


class OutreachStage:
    """
    Stage 5: Draft an outreach email for one candidate.
    """

    def __init__(self, llm, tone_preset: str = "warm_professional"):
        self.llm = llm
        self.tone_preset = tone_preset

    def process(self, project: Project, candidate: Candidate, score_card: ScoreCard) -> OutreachDraft:
        result = self.llm.run(
            prompt_name="outreach_draft",
            system=system_preamble(),
            user=outreach_draft_user_prompt(
                brief=project_brief(project),
                candidate_name=candidate.name,
                candidate_website=candidate.website,
                proof_points=score_card.proof_points,
            ),
            schema=OutreachDraftOutput,
        )
        output = result.data

        return OutreachDraft(
            candidate_id=candidate.candidate_id,
            tone_preset=self.tone_preset,
            subject=clamp_text(
                redact_potential_contact_details(output.subject), FIELD_LIMITS["outreach_subject"]
            ),
            body=clamp_text(
                redact_potential_contact_details(output.body), FIELD_LIMITS["outreach_body"]
            ),
            updated_at=datetime.utcnow(),
        )
