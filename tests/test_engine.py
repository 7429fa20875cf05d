# tests/test_engine.py

"""
Engine orchestration: batch scoring, re-tiering, candidate intake,
research, outreach and export.
"""

import pytest

from license_finder.engine import LicenseFinderEngine
from license_finder.errors import EntityNotFoundException
from license_finder.models.project import EvidenceLink
from license_finder.models.schemas import Provenance, Tier


@pytest.fixture
def judged_engine(store, mock_llm, fake_sleep, fetcher, unconfigured_search, fake_judge_class):
    """Engine whose judgments come from a FakeJudge (exposed as engine.judge)."""
    judge = fake_judge_class()
    engine = LicenseFinderEngine(
        store=store,
        llm=mock_llm,
        judge=judge,
        search=unconfigured_search,
        fetcher=fetcher,
        sleep=fake_sleep,
    )
    engine.judge = judge
    return engine


@pytest.fixture
def judged_project(judged_engine):
    return judged_engine.create_project(
        name="Trailhead Drinkware",
        brand_category="Outdoor lifestyle",
        product_type_sought="Insulated drinkware",
        price_range="$25-$45",
        distribution_preference="Specialty outdoor retail",
    )


# =============================================================================
# PROJECTS
# =============================================================================

class TestProjects:

    def test_create_trims_and_defaults(self, engine):
        project = engine.create_project(name="   ", brand_category="  Outdoor  ", price_range="")
        assert project.name == "Untitled Project"
        assert project.brand_category == "Outdoor"
        assert project.price_range is None

    def test_name_clamped(self, engine):
        assert len(engine.create_project(name="x" * 200).name) == 80

    def test_update(self, engine, project):
        updated = engine.update_project(project.project_id, name="Renamed", geography="EU")
        assert updated.name == "Renamed"
        assert updated.geography == "EU"
        assert updated.updated_at >= updated.created_at

    def test_completeness(self, engine):
        project = engine.create_project(name="Half", brand_category="Outdoor", price_range="$$")
        completeness = engine.project_completeness(project)
        assert completeness["score"] == 50
        assert completeness["missing_required"] == ["Product type sought", "Distribution preference"]
        assert "Geography" in completeness["missing_nice_to_have"]

    def test_unknown_project(self, engine):
        with pytest.raises(EntityNotFoundException):
            engine.update_project("missing", name="x")


# =============================================================================
# CANDIDATES
# =============================================================================

class TestCandidates:

    def test_add_normalizes_website(self, engine, project):
        candidate = engine.add_candidate(project.project_id, "  MiiR ", "miir.com", "  ")
        assert candidate.name == "MiiR"
        assert candidate.website == "https://miir.com/"
        assert candidate.notes is None
        assert candidate.provenance == Provenance.MANUAL

    def test_excluded_name_ignored(self, engine, project):
        assert engine.add_candidate(project.project_id, "yeti") is None
        assert engine.store.list_candidates(project.project_id) == []

    def test_import_csv(self, engine, project):
        text = (
            "Company Name,URL,Description,Sources,Annual Revenue\n"
            "GSI Outdoors,gsioutdoors.com,Camp kitchen,https://gsioutdoors.com/ https://press.example/gsi,$50M\n"
            "YETI,yeti.com,Excluded giant,,\n"
            "Snow Peak,,\"Premium, design-led\",,\n"
        )
        counts = engine.import_csv(project.project_id, text)

        assert counts == {"created": 2, "excluded": 1, "evidence_links": 2}
        gsi, snow_peak = engine.store.list_candidates(project.project_id)
        assert gsi.provenance == Provenance.UPLOADED
        assert gsi.custom_data == {"Annual Revenue": "$50M"}
        assert [l.url for l in engine.store.list_evidence(gsi.candidate_id)] == [
            "https://gsioutdoors.com/",
            "https://press.example/gsi",
        ]
        assert snow_peak.notes == "Premium, design-led"
        assert engine.store.list_evidence(snow_peak.candidate_id) == []

    def test_import_caps_rows(self, engine, project):
        rows = "\n".join(f"Company {i}" for i in range(250))
        counts = engine.import_csv(project.project_id, "name\n" + rows)
        assert counts["created"] == 200

    def test_generate_skips_excluded_and_existing(self, engine, project):
        engine.add_candidate(project.project_id, "miir")
        created = engine.generate_candidates(project.project_id)

        names = [c.name for c in created]
        assert "Stanley 1913" not in names
        assert "MiiR" not in names
        assert len(created) == 8
        assert all(c.provenance == Provenance.GENERATED for c in created)
        assert created[0].website == "https://www.gsioutdoors.com/"

    def test_delete_candidate_cascades_and_retiers(self, judged_engine, judged_project):
        pid = judged_project.project_id
        candidates = [judged_engine.add_candidate(pid, f"C{i}", notes="known") for i in range(6)]
        first, sixth = candidates[0], candidates[-1]
        judged_engine.add_evidence_link(first.candidate_id, "https://first.example/", "excerpt text")
        judged_engine.score_and_tier_project(pid)
        assert judged_engine.store.get_score_card(sixth.candidate_id).tier == Tier.B

        judged_engine.delete_candidate(first.candidate_id)

        assert judged_engine.store.list_evidence(first.candidate_id) == []
        assert judged_engine.store.get_score_card(first.candidate_id) is None
        assert judged_engine.store.get_score_card(sixth.candidate_id).tier == Tier.A

    def test_delete_batch_ignores_other_projects(self, engine, project):
        other = engine.create_project(name="Other")
        mine = engine.add_candidate(project.project_id, "Mine")
        theirs = engine.add_candidate(other.project_id, "Theirs")

        deleted = engine.delete_candidates(project.project_id, [mine.candidate_id, theirs.candidate_id, "nope"])

        assert deleted == 1
        assert engine.store.get_candidate(theirs.candidate_id)

    def test_clear(self, engine, project):
        engine.add_candidate(project.project_id, "A")
        engine.add_candidate(project.project_id, "B")
        assert engine.clear_candidates(project.project_id) == 2
        assert engine.store.list_candidates(project.project_id) == []


# =============================================================================
# BATCH SCORING
# =============================================================================

class TestScoreAndTier:

    def test_scores_in_creation_order_with_delay_between(self, judged_engine, judged_project, sleep_calls):
        pid = judged_project.project_id
        for name in ["Alpha", "Bravo", "Charlie"]:
            judged_engine.add_candidate(pid, name, notes="has notes")

        result = judged_engine.score_and_tier_project(pid)

        assert judged_engine.judge.calls == ["Alpha", "Bravo", "Charlie"]
        assert sleep_calls == [1.0, 1.0]
        assert result.processed == 3
        assert result.succeeded == 3

    def test_no_information_never_judged(self, judged_engine, judged_project):
        pid = judged_project.project_id
        empty = judged_engine.add_candidate(pid, "Empty Co")
        judged_engine.add_candidate(pid, "Known Co", "known.example")

        judged_engine.score_and_tier_project(pid)

        assert judged_engine.judge.calls == ["Known Co"]
        card = judged_engine.store.get_score_card(empty.candidate_id)
        assert card.total_score == 0
        assert card.tier == Tier.C
        assert judged_engine.stats["no_information"] == 1

    def test_one_failure_does_not_abort_batch(self, judged_engine, judged_project, fake_judge_class):
        pid = judged_project.project_id
        judged_engine.stage3.judge = fake_judge_class(fail_for={"Bravo"})
        for name in ["Alpha", "Bravo", "Charlie"]:
            judged_engine.add_candidate(pid, name, notes="has notes")

        result = judged_engine.score_and_tier_project(pid)

        assert result.succeeded == 2
        assert [f["name"] for f in result.failed] == ["Bravo"]
        assert "judge failed" in result.failed[0]["error"]
        assert set(result.tiers) == {
            c.candidate_id for c in judged_engine.store.list_candidates(pid) if c.name != "Bravo"
        }

    def test_invalid_judgment_counts_as_failure(self, judged_engine, judged_project, fake_judge_class, judgment_factory):
        bad = judgment_factory()
        bad["criterionScores"]["categoryFit"] = 7
        judged_engine.stage3.judge = fake_judge_class(judgments={"Broken": bad})
        pid = judged_project.project_id
        judged_engine.add_candidate(pid, "Broken", notes="x")
        judged_engine.add_candidate(pid, "Fine", notes="x")

        result = judged_engine.score_and_tier_project(pid)

        assert [f["name"] for f in result.failed] == ["Broken"]
        assert judged_engine.stats["scoring_failures"] == 1

    def test_retiers_once_per_batch(self, judged_engine, judged_project):
        pid = judged_project.project_id
        for name in ["Alpha", "Bravo", "Charlie", "Delta"]:
            judged_engine.add_candidate(pid, name, notes="x")

        calls = []
        original = judged_engine.stage4.process

        def counting(cards):
            calls.append(len(cards))
            return original(cards)

        judged_engine.stage4.process = counting
        judged_engine.score_and_tier_project(pid)

        assert calls == [4]

    def test_subset_scoring_retiers_whole_project(self, judged_engine, judged_project, fake_judge_class, judgment_factory):
        pid = judged_project.project_id
        candidates = [judged_engine.add_candidate(pid, f"C{i}", notes="x") for i in range(7)]
        judged_engine.score_and_tier_project(pid)
        last = candidates[-1]
        assert judged_engine.store.get_score_card(last.candidate_id).tier == Tier.B

        judged_engine.stage3.judge = fake_judge_class(default=judgment_factory(scores=5))
        result = judged_engine.score_and_tier_project(pid, [last.candidate_id])

        assert result.processed == 1
        assert len(result.tiers) == 7
        assert judged_engine.store.get_score_card(last.candidate_id).total_score == 100.0
        assert judged_engine.store.get_score_card(last.candidate_id).tier == Tier.A
        # the old fifth-place candidate is pushed into B
        assert judged_engine.store.get_score_card(candidates[4].candidate_id).tier == Tier.B

    def test_pending_evidence_summarized_before_scoring(self, judged_engine, judged_project):
        pid = judged_project.project_id
        candidate = judged_engine.add_candidate(pid, "Linked")
        link = judged_engine.store.add_evidence(
            EvidenceLink(candidate_id=candidate.candidate_id, url="https://linked.example/")
        )

        judged_engine.score_and_tier_project(pid)

        assert link.summary is not None
        assert "Licensed collaborations" in link.fetched_text
        bullets = judged_engine.judge.bullets["Linked"]
        assert bullets and all(b["url"] == "https://linked.example/" for b in bullets)

    def test_rescore_replaces_card(self, judged_engine, judged_project, fake_judge_class, judgment_factory):
        pid = judged_project.project_id
        candidate = judged_engine.add_candidate(pid, "Acme", notes="x")
        judged_engine.score_and_tier_project(pid)

        judged_engine.stage3.judge = fake_judge_class(
            default=judgment_factory(scores=1, disqualifiers=["Scale mismatch"])
        )
        judged_engine.score_and_tier_project(pid)

        card = judged_engine.store.get_score_card(candidate.candidate_id)
        assert card.total_score == 20.0
        assert card.disqualifiers == ["Scale mismatch"]

    def test_mock_llm_judgment(self, engine, project):
        candidate = engine.add_candidate(project.project_id, "MiiR", "miir.com")
        engine.score_and_tier_project(project.project_id)
        card = engine.store.get_score_card(candidate.candidate_id)
        assert card.total_score == 74.4
        assert card.tier == Tier.A


# =============================================================================
# RESEARCH & EVIDENCE
# =============================================================================

class TestResearch:

    def test_research_fills_website_and_notes(self, engine, project):
        candidate = engine.add_candidate(project.project_id, "Acme", notes="Met at trade show")

        result = engine.research_candidates(project.project_id)

        assert result.succeeded == 1
        assert candidate.website == "https://www.example.com/"
        assert candidate.notes.startswith("Met at trade show | ")
        assert "Licensing:" in candidate.notes

    def test_candidates_with_evidence_skipped(self, engine, project, sleep_calls):
        linked = engine.add_candidate(project.project_id, "Linked", "linked.example")
        engine.add_evidence_link(linked.candidate_id, "https://linked.example/about", "We license.")
        engine.add_candidate(project.project_id, "Fresh")
        engine.add_candidate(project.project_id, "Fresh Two")

        result = engine.research_candidates(project.project_id)

        assert result.processed == 2
        assert sleep_calls.count(1.0) == 1

    def test_add_evidence_with_excerpt(self, engine, project):
        candidate = engine.add_candidate(project.project_id, "Acme")
        link = engine.add_evidence_link(candidate.candidate_id, "acme.example/press", "Acme licensed a line.")

        assert link.url == "https://acme.example/press"
        assert link.summary
        assert link.fetched_text is None

    def test_add_evidence_rejects_bad_url(self, engine, project):
        candidate = engine.add_candidate(project.project_id, "Acme")
        assert engine.add_evidence_link(candidate.candidate_id, "not a url") is None

    def test_blocked_fetch_leaves_link_unsummarized(self, engine, project):
        candidate = engine.add_candidate(project.project_id, "Acme")
        link = engine.add_evidence_link(candidate.candidate_id, "http://127.0.0.1/admin")
        assert link.summary is None


# =============================================================================
# OUTREACH, FEEDBACK, RESULTS
# =============================================================================

class TestOutputs:

    def test_outreach_requires_score_card(self, engine, project):
        candidate = engine.add_candidate(project.project_id, "Acme", "acme.example")
        with pytest.raises(EntityNotFoundException):
            engine.generate_outreach(candidate.candidate_id)

    def test_outreach_for_a_tier(self, judged_engine, judged_project, fake_judge_class, judgment_factory):
        pid = judged_project.project_id
        judged_engine.stage3.judge = fake_judge_class(judgments={
            "Dormant": judgment_factory(disqualifiers=["Dormant brand"]),
        })
        good = judged_engine.add_candidate(pid, "Good", notes="x")
        dormant = judged_engine.add_candidate(pid, "Dormant", notes="x")
        judged_engine.score_and_tier_project(pid)

        drafts = judged_engine.generate_outreach_for_a_tier(pid)

        assert [d.candidate_id for d in drafts] == [good.candidate_id]
        assert judged_engine.store.get_outreach_draft(dormant.candidate_id) is None
        events = judged_engine.store.list_outcome_events(good.candidate_id)
        assert events[0].payload == {"status": "outreach_drafted"}

    def test_results_grouped_and_sorted(self, judged_engine, judged_project, fake_judge_class, judgment_factory):
        pid = judged_project.project_id
        judged_engine.stage3.judge = fake_judge_class(judgments={
            "Low": judgment_factory(scores=2),
            "High": judgment_factory(scores=5),
            "Wrong": judgment_factory(scores=5, disqualifiers=["Wrong category"]),
        })
        for name in ["Low", "High", "Wrong"]:
            judged_engine.add_candidate(pid, name, notes="x")
        judged_engine.add_candidate(pid, "Unscored")
        judged_engine.score_and_tier_project(pid, [
            c.candidate_id for c in judged_engine.store.list_candidates(pid) if c.name != "Unscored"
        ])

        results = judged_engine.results(pid)

        assert [e["candidate"]["name"] for e in results["A"]] == ["High", "Low"]
        assert [e["candidate"]["name"] for e in results["C"]] == ["Wrong"]
        assert results["C"][0]["disqualifier_kinds"] == {"Wrong category": ["category"]}

    def test_export_csv(self, judged_engine, judged_project):
        pid = judged_project.project_id
        judged_engine.add_candidate(pid, "Acme, Inc.", "acme.example", "x")
        judged_engine.score_and_tier_project(pid)

        filename, text = judged_engine.export_csv(pid)

        assert filename == f"license-finder-trailhead-drinkware-{pid[:6]}.csv"
        lines = text.split("\r\n")
        assert lines[0].startswith("tier,totalScore,confidence,companyName")
        assert lines[1].startswith('A,80.0,High,"Acme, Inc.",https://acme.example/,manual,')

    def test_feedback(self, engine, project):
        candidate = engine.add_candidate(project.project_id, "Acme")
        engine.save_project_feedback(project.project_id, rating=4, notes=" good ")
        engine.save_candidate_feedback(candidate.candidate_id, misfit=True, reason="too big")

        assert engine.store.get_project_feedback(project.project_id).notes == "good"
        assert engine.store.get_candidate_feedback(candidate.candidate_id).misfit is True

    def test_stats(self, engine, project):
        engine.add_candidate(project.project_id, "Acme", "acme.example")
        engine.score_and_tier_project(project.project_id)
        stats = engine.get_stats()
        assert stats["candidates_scored"] == 1
        assert stats["llm_provider"] == "mock"
        assert stats["recent_model_runs"][-1]["prompt_name"] == "score_candidate"
