# tests/test_csv_io.py

import csv
import io

from license_finder.csv_io import (
    EXPORT_COLUMNS,
    export_filename,
    parse_csv_candidates,
    scorecard_export_row,
    to_csv,
)
from license_finder.models.project import Candidate, OutreachDraft
from license_finder.models.schemas import (
    Confidence,
    CriterionScores,
    ProofPoint,
    Provenance,
    ScoreCard,
    SupportType,
    Tier,
)


# =============================================================================
# IMPORT
# =============================================================================

class TestParseCsvCandidates:

    def test_header_aliases(self):
        text = "Company Name,Homepage,Description,Sources\nMiiR,miir.com,Drinkware,https://a.example\n"
        rows = parse_csv_candidates(text)

        assert len(rows) == 1
        assert rows[0].name == "MiiR"
        assert rows[0].website == "miir.com"
        assert rows[0].notes == "Drinkware"
        assert rows[0].links == ["https://a.example"]

    def test_name_falls_back_to_first_column(self):
        rows = parse_csv_candidates("Label,Website\nSnow Peak,snowpeak.com\n")
        assert rows[0].name == "Snow Peak"
        assert rows[0].website == "snowpeak.com"

    def test_quoted_fields_with_commas_and_newlines(self):
        text = 'name,notes\n"Hydro Flask","Insulated, premium\nbottles"\n'
        rows = parse_csv_candidates(text)
        assert rows[0].notes == "Insulated, premium\nbottles"

    def test_escaped_quotes(self):
        rows = parse_csv_candidates('name,notes\nAcme,"The ""best"" mugs"\n')
        assert rows[0].notes == 'The "best" mugs'

    def test_bom_and_crlf(self):
        rows = parse_csv_candidates("\ufeffname,website\r\nAcme,acme.example\r\n")
        assert rows[0].name == "Acme"

    def test_blank_and_zero_width_names_dropped(self):
        text = "name,website\n,acme.example\n\u200b\u200d,x.example\nReal Co,real.example\n\n"
        rows = parse_csv_candidates(text)
        assert [r.name for r in rows] == ["Real Co"]

    def test_links_split_on_semicolons_and_whitespace(self):
        text = 'name,links\nAcme,"https://a.example; https://b.example  https://c.example"\n'
        rows = parse_csv_candidates(text)
        assert rows[0].links == ["https://a.example", "https://b.example", "https://c.example"]

    def test_extra_columns_kept_with_original_headers(self):
        text = "Name,Website,HQ Country,Employees\nAcme,acme.example,US,\n"
        rows = parse_csv_candidates(text)
        assert rows[0].extra_columns == {"HQ Country": "US"}

    def test_no_extra_columns(self):
        rows = parse_csv_candidates("name\nAcme\n")
        assert rows[0].extra_columns is None
        assert rows[0].website is None
        assert rows[0].links == []

    def test_empty_input(self):
        assert parse_csv_candidates("") == []
        assert parse_csv_candidates("name,website\n") == []


# =============================================================================
# EXPORT
# =============================================================================

def _score_card(candidate_id):
    return ScoreCard(
        candidate_id=candidate_id,
        criterion_scores=CriterionScores(**{
            "category_fit": 4, "distribution_alignment": 4, "licensing_activity": 3,
            "scale_appropriateness": 3, "quality_reputation": 4, "geo_coverage": 4,
            "recent_momentum": 3, "manufacturing_capability": 4,
        }),
        weights={},
        total_score=74.4,
        confidence=Confidence.MEDIUM,
        tier=Tier.A,
        rationale_bullets=["Strong adjacency", "Price fits"],
        proof_points=[
            ProofPoint(text="Press page lists collaborations", support_type=SupportType.LINK_SUPPORTED),
            ProofPoint(text="Confirm retail mix", support_type=SupportType.TO_VERIFY),
        ],
        flags=["Verify, please"],
        disqualifiers=[],
        next_step="Email the partnerships lead",
    )


class TestScorecardExport:

    def test_export_row(self):
        candidate = Candidate(project_id="p1", name="MiiR", website="https://miir.com/",
                              provenance=Provenance.UPLOADED)
        draft = OutreachDraft(candidate_id=candidate.candidate_id, subject="Collab idea",
                              body="A body long enough for the draft.")

        row = scorecard_export_row(candidate, _score_card(candidate.candidate_id), draft)

        assert list(row) == EXPORT_COLUMNS
        assert row["tier"] == "A"
        assert row["totalScore"] == 74.4
        assert row["confidence"] == "Medium"
        assert row["provenance"] == "uploaded"
        assert row["rationaleBullets"] == "Strong adjacency | Price fits"
        assert row["proofPoints"] == (
            "Press page lists collaborations (link_supported) | Confirm retail mix (to_verify)"
        )
        assert row["disqualifiers"] == ""
        assert row["outreachSubject"] == "Collab idea"

    def test_export_row_without_website_or_draft(self):
        candidate = Candidate(project_id="p1", name="Acme")
        row = scorecard_export_row(candidate, _score_card(candidate.candidate_id))
        assert row["website"] == ""
        assert row["outreachSubject"] == ""

    def test_to_csv_quotes_and_line_endings(self):
        rows = [{"a": "plain", "b": 'has "quotes", commas'}, {"a": "multi\nline", "b": None}]

        text = to_csv(rows)

        assert text.startswith("a,b\r\n")
        assert 'plain,"has ""quotes"", commas"\r\n' in text
        assert '"multi\nline",\r\n' in text
        parsed = list(csv.reader(io.StringIO(text)))
        assert parsed[2] == ["multi\nline", ""]

    def test_to_csv_empty(self):
        assert to_csv([]) == ""
        assert to_csv([], columns=["tier"]) == "tier\r\n"

    def test_export_filename(self):
        assert export_filename("Rumpl x Outdoor!", "abcdef123456") == "license-finder-rumpl-x-outdoor--abcdef.csv"
