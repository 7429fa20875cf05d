# Pipeline stages module
from .stage1_research import CandidateResearchStage
from .stage2_evidence import EvidenceSummaryStage
from .stage3_scoring import LLMJudge, WeightedScoringStage
from .stage4_tiering import TieringStage
from .stage5_outreach import OutreachStage
