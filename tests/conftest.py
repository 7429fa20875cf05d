# tests/conftest.py

"""
Pytest Fixtures - Shared engine, client and judgment fixtures

Nothing here touches the network or sleeps: the LLM runs on the mock
provider, search and page fetches go through httpx.MockTransport, and the
engine's delay function only records its calls.
"""

import httpx
import pytest
from fastapi.testclient import TestClient
from tenacity import wait_none

from license_finder.api.endpoints import app, get_engine
from license_finder.engine import LicenseFinderEngine
from license_finder.llm import StructuredLLM
from license_finder.search import PageFetcher, WebSearch
from license_finder.storage import ProjectStore

TEST_PASSWORD = "correct horse battery staple"
TEST_SECRET = "test-signing-secret"

SAMPLE_PAGE = """
<html>
  <head><title>Acme Outfitters</title><script>var tracking = 1;</script></head>
  <body>
    <h1>Acme Outfitters</h1>
    <p>Licensed collaborations with heritage outdoor brands.</p>
    <p>Sold through specialty outdoor retailers nationwide.</p>
  </body>
</html>
"""


# =============================================================================
# ENVIRONMENT
# =============================================================================

@pytest.fixture(autouse=True)
def auth_env(monkeypatch):
    """Operator password and signing secret for every test."""
    monkeypatch.setenv("APP_PASSWORD", TEST_PASSWORD)
    monkeypatch.setenv("AUTH_SECRET", TEST_SECRET)


@pytest.fixture
def operator_password():
    return TEST_PASSWORD


# =============================================================================
# PIPELINE COLLABORATORS
# =============================================================================

@pytest.fixture
def mock_llm():
    """Mock provider with no backoff between retries."""
    return StructuredLLM(provider="mock", wait=wait_none())


@pytest.fixture
def sleep_calls():
    return []


@pytest.fixture
def fake_sleep(sleep_calls):
    return sleep_calls.append


@pytest.fixture
def fetcher():
    """Serves SAMPLE_PAGE for every public URL."""
    def handler(request):
        return httpx.Response(200, headers={"content-type": "text/html; charset=utf-8"}, text=SAMPLE_PAGE)

    return PageFetcher(client=httpx.Client(transport=httpx.MockTransport(handler)))


@pytest.fixture
def unconfigured_search():
    def handler(request):
        raise AssertionError(f"unexpected search request to {request.url}")

    return WebSearch(
        serper_api_key="",
        google_api_key="",
        google_cse_id="",
        client=httpx.Client(transport=httpx.MockTransport(handler)),
    )


# =============================================================================
# JUDGMENTS
# =============================================================================

def build_judgment(scores=4, disqualifiers=None, confidence="High", **overrides):
    """Raw judgment dict in the shape the scoring model returns."""
    if isinstance(scores, int):
        scores = {
            "categoryFit": scores,
            "distributionAlignment": scores,
            "licensingActivity": scores,
            "scaleAppropriateness": scores,
            "qualityReputation": scores,
            "geoCoverage": scores,
            "recentMomentum": scores,
            "manufacturingCapability": scores,
        }
    judgment = {
        "criterionScores": scores,
        "disqualifiers": disqualifiers or [],
        "flags": [],
        "rationaleBullets": [
            "Adjacent product category",
            "Specialty retail overlap",
            "Has licensed before",
        ],
        "proofPoints": [
            {"text": "Press page lists brand collaborations", "supportType": "link_supported", "url": "https://acme.example/press"},
            {"text": "Stocked at specialty outdoor retailers", "supportType": "to_verify"},
        ],
        "confidence": confidence,
        "nextStep": "Reach out to the partnerships lead",
    }
    judgment.update(overrides)
    return judgment


class FakeJudge:
    """Canned judgments keyed by candidate name; records every call."""

    def __init__(self, judgments=None, default=None, fail_for=()):
        self.judgments = judgments or {}
        self.default = default if default is not None else build_judgment()
        self.fail_for = set(fail_for)
        self.calls = []
        self.bullets = {}

    def judge(self, project, candidate, evidence_bullets):
        self.calls.append(candidate.name)
        self.bullets[candidate.name] = evidence_bullets
        if candidate.name in self.fail_for:
            raise RuntimeError(f"judge failed for {candidate.name}")
        return self.judgments.get(candidate.name, self.default)


@pytest.fixture
def judgment_factory():
    return build_judgment


@pytest.fixture
def fake_judge_class():
    return FakeJudge


# =============================================================================
# ENGINE & PROJECT
# =============================================================================

@pytest.fixture
def store():
    return ProjectStore()


@pytest.fixture
def engine(store, mock_llm, fake_sleep, fetcher, unconfigured_search):
    """Engine on the mock provider with the LLM-backed judge."""
    return LicenseFinderEngine(
        store=store,
        llm=mock_llm,
        search=unconfigured_search,
        fetcher=fetcher,
        sleep=fake_sleep,
    )


@pytest.fixture
def project(engine):
    return engine.create_project(
        name="Trailhead Drinkware",
        brand_category="Outdoor lifestyle",
        product_type_sought="Insulated drinkware",
        price_range="$25-$45",
        distribution_preference="Specialty outdoor retail",
        geography="US",
        exclude_list="YETI\nStanley 1913",
    )


# =============================================================================
# FASTAPI TEST CLIENT FIXTURES
# =============================================================================

@pytest.fixture
def client(engine):
    """TestClient wired to the test engine."""
    app.dependency_overrides[get_engine] = lambda: engine
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_client(client):
    """TestClient holding a valid session cookie."""
    response = client.post("/api/login", json={"password": TEST_PASSWORD})
    assert response.status_code == 200
    return client
