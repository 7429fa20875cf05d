"""
Structured LLM client
=====================
Runs a prompt against the configured provider and returns data validated
against a pydantic schema. Non-JSON or schema-invalid replies are retried
with truncated exponential backoff (1s, 2s, 4s ... capped at 16s, plus jitter).

Providers:
- openai / openrouter (OpenAI SDK, OpenRouter via base_url)
- anthropic (Anthropic SDK)
- mock (canned JSON per prompt name; used when no API key is configured)
"""

import json
import logging
import re
from typing import Optional, Dict, Any, List, Tuple, Type

from pydantic import BaseModel
from tenacity import Retrying, stop_after_attempt, wait_exponential, wait_random

from .models.project import ModelRunLog
from .config.settings import LLM_CONFIG
from .errors import StructuredOutputError
from .utils import redact_potential_contact_details, sha256

logger = logging.getLogger(__name__)

PROVIDERS = ("openai", "openrouter", "anthropic", "mock")
FENCE_PATTERN = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


# =============================================================================
# MOCK RESPONSES
# =============================================================================

MOCK_RESPONSES: Dict[str, Dict[str, Any]] = {
    "candidate_generation": {
        "candidates": [
            {"name": "MiiR", "website": "https://www.miir.com", "notes": "Premium drinkware; brand collaborations.", "whyNonObvious": "Not a mega-giant; often overlooked."},
            {"name": "GSI Outdoors", "website": "https://www.gsioutdoors.com", "notes": "Camp kitchen + drinkware adjacency; specialty outdoor retail."},
            {"name": "Snow Peak", "website": "https://www.snowpeak.com", "notes": "Premium outdoor lifestyle + home/outdoor entertaining adjacency."},
            {"name": "Klean Kanteen", "website": "https://www.kleankanteen.com", "notes": "Quality reputation; premium positioning."},
            {"name": "W&P", "website": "https://wandp.com", "notes": "Premium home goods; could extend to outdoor entertaining accessories."},
            {"name": "Stojo", "website": "https://www.stojo.co", "notes": "Reusable drinkware; potential licensing openness."},
            {"name": "OXO", "website": "https://www.oxo.com", "notes": "Quality home goods; scale risk, verify channel fit."},
            {"name": "Sea to Summit", "website": "https://seatosummit.com", "notes": "Outdoor gear brand; accessory manufacturing capability."},
            {"name": "S'well", "website": "https://www.swell.com", "notes": "Premium drinkware; fashion/home channel adjacency."},
            {"name": "Stanley 1913", "website": "https://www.stanley1913.com", "notes": "Obvious giant; include only if not excluded."},
        ]
    },
    "score_candidate": {
        "criterionScores": {
            "categoryFit": 4,
            "distributionAlignment": 4,
            "licensingActivity": 3,
            "scaleAppropriateness": 3,
            "qualityReputation": 4,
            "geoCoverage": 4,
            "recentMomentum": 3,
            "manufacturingCapability": 4,
        },
        "disqualifiers": [],
        "flags": ["Verify specialty retail mix", "Confirm openness to third-party licensing"],
        "rationaleBullets": [
            "Strong adjacency: premium drinkware / outdoor entertaining aligns with requested home-goods expansion",
            "Brand + product systems likely to meet the requested price band (verify SKU-level pricing)",
            "Distribution appears compatible with specialty outdoor + boutique channels (verify channel mix)",
            "Manufacturing capability likely supports hardgoods/accessories with quality expectations",
        ],
        "proofPoints": [
            {"text": "Look for partnerships/collabs or licensing mentions on press/news pages", "supportType": "to_verify", "url": None},
            {"text": "Confirm presence in specialty outdoor retailers (store locators / wholesale pages)", "supportType": "to_verify", "url": None},
        ],
        "confidence": "Medium",
        "nextStep": "Warm intro if you have a mutual connection; otherwise a targeted cold outreach to the Licensing/Partnerships lead",
    },
    "outreach_draft": {
        "subject": "Exploring a premium outdoor-home goods licensing fit",
        "body": (
            "Hi [Name],\n\nI run licensing strategy for a premium outdoor lifestyle brand expanding into "
            "home goods with a specialty-first channel focus.\n\nYour team's product and brand positioning "
            "looks like a strong adjacency for a selective licensing partnership. [PLACEHOLDER: insert 1-2 "
            "concrete proof points once verified].\n\nWould you be open to a short exploratory call to see "
            "if there's a mutual fit?\n\nBest,\n[Your Name]"
        ),
    },
    "candidate_research": {
        "website": "https://www.example.com",
        "description": "A premium outdoor goods manufacturer with specialty retail focus.",
        "category": "Outdoor lifestyle / home goods",
        "licensingHistory": "Known to have licensing partnerships in the outdoor space.",
        "keyProducts": "Drinkware, outdoor entertaining accessories",
        "distributionChannels": "Specialty outdoor retailers, upscale boutiques",
        "notablePartnerships": None,
        "searchQueries": [
            "Example Company licensing partnerships",
            "Example Company outdoor products distribution",
        ],
    },
    "evidence_summary": {
        "bullets": [
            {"text": "Evidence link highlights relevant product/category adjacency (summary)."},
            {"text": "Evidence link suggests distribution/channel alignment indicators (summary)."},
        ]
    },
}


def mock_response(prompt_name: str) -> str:
    return json.dumps(MOCK_RESPONSES.get(prompt_name, {}))


# =============================================================================
# JSON EXTRACTION
# =============================================================================

def extract_first_json(text: str) -> Optional[Any]:
    """Parse the first JSON object or array in text, ignoring fences and prose."""
    trimmed = FENCE_PATTERN.sub("", text.strip()).strip()
    if not trimmed:
        return None

    decoder = json.JSONDecoder()
    starts = [i for i in (trimmed.find("{"), trimmed.find("[")) if i >= 0]
    if not starts:
        return None

    start = min(starts)
    while start >= 0:
        try:
            obj, _ = decoder.raw_decode(trimmed, start)
            return obj
        except json.JSONDecodeError:
            nxt = [i for i in (trimmed.find("{", start + 1), trimmed.find("[", start + 1)) if i >= 0]
            start = min(nxt) if nxt else -1
    return None


class StructuredResult(BaseModel):
    data: Any
    raw_text: str
    provider: str
    model: str


# =============================================================================
# CLIENT
# =============================================================================

class StructuredLLM:
    """
    Structured JSON generation with schema validation and retry.
    """

    def __init__(
        self,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        max_retries: Optional[int] = None,
        client: Any = None,
        wait: Any = None,
    ):
        """
        Initialize LLM client.

        Args:
            provider: "openai", "openrouter", "anthropic" or "mock"
            model: Model name (provider default if omitted)
            api_key: API key (read from the environment if omitted)
            max_retries: Retries after the first attempt
            client: Pre-built SDK client (tests)
            wait: tenacity wait strategy override (tests)
        """
        provider = (provider or LLM_CONFIG["provider"]).lower()
        if provider not in PROVIDERS:
            logger.warning("Unknown LLM provider %r, using openai", provider)
            provider = "openai"

        self.api_key = api_key or LLM_CONFIG["api_keys"].get(provider, "")
        if provider != "mock" and not self.api_key and client is None:
            logger.warning("No API key for %s, falling back to mock provider", provider)
            provider = "mock"

        self.provider = provider
        if model:
            self.model = model
        elif provider == LLM_CONFIG["provider"]:
            self.model = LLM_CONFIG["model"]
        else:
            self.model = LLM_CONFIG["default_models"][provider]

        self.max_retries = LLM_CONFIG["max_retries"] if max_retries is None else max_retries
        self.wait = wait or (
            wait_exponential(
                multiplier=LLM_CONFIG["backoff_initial_seconds"],
                max=LLM_CONFIG["backoff_max_seconds"],
            )
            + wait_random(0, 1)
        )
        self.run_logs: List[ModelRunLog] = []
        self.client = client or self._initialize_client()

    def _initialize_client(self):
        """Initialize the SDK client based on provider"""
        if self.provider == "openrouter":
            from openai import OpenAI
            return OpenAI(
                api_key=self.api_key,
                base_url=LLM_CONFIG["base_url"],
                default_headers={
                    "HTTP-Referer": LLM_CONFIG["site_url"],
                    "X-Title": LLM_CONFIG["app_name"],
                }
            )
        elif self.provider == "openai":
            from openai import OpenAI
            return OpenAI(api_key=self.api_key)
        elif self.provider == "anthropic":
            from anthropic import Anthropic
            return Anthropic(api_key=self.api_key)
        return None

    def _call_provider(self, prompt_name: str, system: str, user: str) -> Tuple[str, Optional[int], Optional[int]]:
        """Returns (text, tokens_in, tokens_out)"""
        if self.provider == "mock":
            return mock_response(prompt_name), None, None

        if self.provider == "anthropic":
            response = self.client.messages.create(
                model=self.model,
                max_tokens=LLM_CONFIG["max_tokens"],
                temperature=LLM_CONFIG["temperature"],
                system=system,
                messages=[{"role": "user", "content": user}],
            )
            usage = getattr(response, "usage", None)
            return (
                response.content[0].text,
                getattr(usage, "input_tokens", None),
                getattr(usage, "output_tokens", None),
            )

        response = self.client.chat.completions.create(
            model=self.model,
            temperature=LLM_CONFIG["temperature"],
            max_tokens=LLM_CONFIG["max_tokens"],
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            response_format={"type": "json_object"},
        )
        usage = getattr(response, "usage", None)
        return (
            response.choices[0].message.content or "",
            getattr(usage, "prompt_tokens", None),
            getattr(usage, "completion_tokens", None),
        )

    def _attempt(self, prompt_name: str, system: str, user: str, schema: Type[BaseModel]) -> StructuredResult:
        digest = prompt_hash(prompt_name, system, user)
        try:
            text, tokens_in, tokens_out = self._call_provider(prompt_name, system, user)
            cleaned = redact_potential_contact_details(text).strip()

            parsed = extract_first_json(cleaned)
            if parsed is None:
                raise ValueError("Model did not return valid JSON")

            # Some models wrap a single object in an array
            if isinstance(parsed, list) and len(parsed) == 1:
                parsed = parsed[0]

            data = schema.model_validate(parsed)
        except Exception as e:
            logger.warning("LLM attempt failed (%s): %s", prompt_name, e)
            self._log_run(prompt_name, digest, success=False, error=str(e)[:500])
            raise

        self._log_run(prompt_name, digest, success=True, tokens_in=tokens_in, tokens_out=tokens_out)
        return StructuredResult(data=data, raw_text=cleaned, provider=self.provider, model=self.model)

    def run(self, prompt_name: str, system: str, user: str, schema: Type[BaseModel]) -> StructuredResult:
        """
        Run a prompt and validate the reply.

        Args:
            prompt_name: Prompt identifier (logging and mock lookup)
            system: System prompt
            user: User prompt
            schema: Pydantic model the reply must satisfy

        Returns:
            StructuredResult with validated data

        Raises:
            StructuredOutputError: when every attempt failed
        """
        retrying = Retrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=self.wait,
            reraise=True,
        )
        try:
            for attempt in retrying:
                with attempt:
                    return self._attempt(prompt_name, system, user, schema)
        except Exception as e:
            raise StructuredOutputError(prompt_name, str(e)[:300]) from e

    def _log_run(self, prompt_name: str, digest: str, success: bool, error: Optional[str] = None,
                 tokens_in: Optional[int] = None, tokens_out: Optional[int] = None):
        self.run_logs.append(ModelRunLog(
            prompt_name=prompt_name,
            prompt_hash=digest,
            provider=self.provider,
            model=self.model,
            success=success,
            error=error,
            tokens_in=tokens_in,
            tokens_out=tokens_out,
        ))


def prompt_hash(prompt_name: str, system: str, user: str) -> str:
    return sha256(f"{prompt_name}|{system}|{user}")
