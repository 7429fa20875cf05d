"""
License Finder - Usage Examples
===============================
This file demonstrates how to use License Finder
both programmatically and via the API.

The examples use the mock LLM provider, so they run without API keys.
"""

# =============================================================================
# EXAMPLE 1: Direct Engine Usage (Programmatic)
# =============================================================================

def example_direct_usage():
    """Create a project, add candidates, score and tier them"""
    from license_finder.engine import LicenseFinderEngine
    from license_finder.llm import StructuredLLM

    # Mock provider and no delay between calls
    engine = LicenseFinderEngine(llm=StructuredLLM(provider="mock"), sleep=lambda s: None)

    project = engine.create_project(
        name="Trailhead Drinkware",
        brand_category="Outdoor lifestyle",
        product_type_sought="Insulated drinkware",
        price_range="$25-$45",
        distribution_preference="Specialty outdoor retail",
        geography="US",
        exclude_list="YETI\nStanley",
    )

    engine.add_candidate(project.project_id, "MiiR", "miir.com", "Design-led drinkware, co-branding history")
    engine.add_candidate(project.project_id, "Klean Kanteen", "kleankanteen.com")
    engine.add_candidate(project.project_id, "Unknown Co")          # nothing to evaluate
    engine.add_candidate(project.project_id, "YETI", "yeti.com")    # excluded, ignored

    print("=" * 60)
    print(f"SCORING PROJECT: {project.name}")
    print("=" * 60)

    completeness = engine.project_completeness(project)
    print(f"\nIntake completeness: {completeness['score']}%")
    if completeness["missing_nice_to_have"]:
        print(f"Nice to have: {', '.join(completeness['missing_nice_to_have'])}")

    result = engine.score_and_tier_project(project.project_id)
    print(f"\nProcessed: {result.processed}")
    print(f"Succeeded: {result.succeeded}")
    print(f"Failed: {len(result.failed)}")

    print("\n--- Tiers ---")
    for tier, entries in engine.results(project.project_id).items():
        for entry in entries:
            card = entry["score_card"]
            print(f"  [{tier}] {entry['candidate']['name']}: {card['total_score']}/100 ({card['confidence']})")
            for disq in card["disqualifiers"]:
                print(f"        ✗ {disq}")

    print(f"\nProcessing Time: {result.processing_time_ms:.2f}ms")

    return engine, project


# =============================================================================
# EXAMPLE 2: Scoring Math Without the Pipeline
# =============================================================================

def example_scoring_math():
    """Compute totals and tiers from scores you already have"""
    from license_finder.models.schemas import CriterionScores, TierInput
    from license_finder.stages.stage3_scoring import compute_total_score
    from license_finder.stages.stage4_tiering import tier_buckets

    scores = CriterionScores(
        category_fit=5,
        distribution_alignment=5,
        licensing_activity=5,
        scale_appropriateness=5,
        quality_reputation=5,
        geo_coverage=5,
        recent_momentum=5,
        manufacturing_capability=5,
    )

    print("=" * 60)
    print("SCORING MATH")
    print("=" * 60)
    print(f"All fives:                    {compute_total_score(scores)}")
    print(f"Distribution mismatch:        {compute_total_score(scores, ['Distribution mismatch'])}")
    print(f"Wrong category + mismatch:    {compute_total_score(scores, ['Wrong category', 'Distribution mismatch'])}")

    # Custom weights must be non-negative and sum to 1.0
    custom = {
        "category_fit": 0.25,
        "distribution_alignment": 0.25,
        "licensing_activity": 0.30,
        "scale_appropriateness": 0.05,
        "quality_reputation": 0.05,
        "geo_coverage": 0.05,
        "recent_momentum": 0.025,
        "manufacturing_capability": 0.025,
    }
    print(f"All fives, custom weights:    {compute_total_score(scores, weights=custom)}")

    tiers = tier_buckets([
        TierInput(candidate_id="alpha", total_score=91.0),
        TierInput(candidate_id="bravo", total_score=88.0, disqualifiers=["Dormant brand"]),
        TierInput(candidate_id="charlie", total_score=74.0),
        TierInput(candidate_id="delta", total_score=60.0, disqualifiers=["Scale mismatch"]),
    ])
    print("\n--- Tiers ---")
    for candidate_id, tier in tiers.items():
        print(f"  {candidate_id}: {tier.value}")

    return tiers


# =============================================================================
# EXAMPLE 3: CSV Import & Export
# =============================================================================

def example_csv_round_trip():
    """Import a candidate list and export the scored results"""
    from license_finder.engine import LicenseFinderEngine
    from license_finder.llm import StructuredLLM

    engine = LicenseFinderEngine(llm=StructuredLLM(provider="mock"), sleep=lambda s: None)
    project = engine.create_project(name="Camp Kitchen", brand_category="Outdoor cooking")

    csv_text = (
        "Company,Website,Notes,Sources,Annual Revenue\n"
        "GSI Outdoors,gsioutdoors.com,Camp kitchen leader,https://www.gsioutdoors.com/about,$50M\n"
        "Snow Peak,snowpeak.com,\"Premium, design-led\",,\n"
    )
    counts = engine.import_csv(project.project_id, csv_text)

    print("=" * 60)
    print("CSV IMPORT & EXPORT")
    print("=" * 60)
    print(f"Imported: {counts}")

    # Links without a pasted excerpt are fetched before scoring; skip that here
    for link in engine.store.evidence_links.values():
        link.excerpt = "Specialty outdoor retail partner with licensed collaborations."

    engine.score_and_tier_project(project.project_id)
    filename, text = engine.export_csv(project.project_id)
    print(f"\n{filename}")
    print(text)

    return filename, text


# =============================================================================
# EXAMPLE 4: API Usage with httpx
# =============================================================================

def example_api_usage():
    """Use the API via HTTP requests"""
    import httpx

    BASE_URL = "http://localhost:8000"

    print("=" * 60)
    print("API USAGE EXAMPLE")
    print("=" * 60)
    print("Make sure the server is running: python main.py")
    print()

    payload = {
        "name": "Trailhead Drinkware",
        "brand_category": "Outdoor lifestyle",
        "product_type_sought": "Insulated drinkware",
        "price_range": "$25-$45",
        "distribution_preference": "Specialty outdoor retail",
    }

    print("Requests:")
    print(f"  POST {BASE_URL}/api/login {{\"password\": \"...\"}}")
    print(f"  POST {BASE_URL}/api/projects")
    print(f"  {payload}")
    print(f"  POST {BASE_URL}/api/projects/<id>/generate")
    print(f"  POST {BASE_URL}/api/projects/<id>/score")
    print(f"  GET  {BASE_URL}/api/projects/<id>/results")

    # Uncomment to actually make the requests:
    # with httpx.Client(base_url=BASE_URL) as client:
    #     client.post("/api/login", json={"password": "change-me"})
    #     project_id = client.post("/api/projects", json=payload).json()["project_id"]
    #     client.post(f"/api/projects/{project_id}/generate", timeout=120)
    #     client.post(f"/api/projects/{project_id}/score", timeout=600)
    #     print(client.get(f"/api/projects/{project_id}/results").json())


# =============================================================================
# MAIN
# =============================================================================

if __name__ == "__main__":
    print("\n" + "=" * 60)
    print("LICENSE FINDER - USAGE EXAMPLES")
    print("=" * 60 + "\n")

    # Run examples
    print("\n[Example 1: Direct Usage]")
    example_direct_usage()

    print("\n" + "-" * 60)
    print("\n[Example 2: Scoring Math]")
    example_scoring_math()

    print("\n" + "-" * 60)
    print("\n[Example 3: CSV Import & Export]")
    example_csv_round_trip()

    print("\n" + "-" * 60)
    print("\n[Example 4: API Usage]")
    example_api_usage()

    print("\n" + "=" * 60)
    print("EXAMPLES COMPLETE")
    print("=" * 60)
