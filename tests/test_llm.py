# tests/test_llm.py

"""
Structured LLM client: JSON extraction, schema validation, retries,
provider fallback and run logging. SDK clients are replaced by fakes.
"""

import json
from types import SimpleNamespace

import pytest
from tenacity import wait_none

from license_finder.config.settings import LLM_CONFIG
from license_finder.errors import StructuredOutputError
from license_finder.llm import StructuredLLM, extract_first_json, prompt_hash
from license_finder.models.schemas import EvidenceSummary, OutreachDraftOutput, ScoringOutput


class FakeOpenAI:
    """Returns the queued replies in order, like chat.completions.create."""

    def __init__(self, replies):
        self.replies = list(replies)
        self.requests = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def _create(self, **kwargs):
        self.requests.append(kwargs)
        content = self.replies.pop(0)
        return SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
            usage=SimpleNamespace(prompt_tokens=120, completion_tokens=40),
        )


class FakeAnthropic:

    def __init__(self, replies):
        self.replies = list(replies)
        self.messages = SimpleNamespace(create=self._create)

    def _create(self, **kwargs):
        return SimpleNamespace(
            content=[SimpleNamespace(text=self.replies.pop(0))],
            usage=SimpleNamespace(input_tokens=80, output_tokens=20),
        )


OUTREACH_JSON = json.dumps({"subject": "Hello", "body": "A body that is long enough to pass."})


def openai_llm(replies, max_retries=2):
    return StructuredLLM(
        provider="openai",
        api_key="sk-test",
        client=FakeOpenAI(replies),
        max_retries=max_retries,
        wait=wait_none(),
    )


# =============================================================================
# JSON EXTRACTION
# =============================================================================

class TestExtractFirstJson:

    def test_plain_object(self):
        assert extract_first_json('{"a": 1}') == {"a": 1}

    def test_code_fence(self):
        assert extract_first_json('```json\n{"a": 1}\n```') == {"a": 1}

    def test_surrounding_prose(self):
        assert extract_first_json('Sure! Here it is: {"a": {"b": [1, 2]}} Hope that helps.') == {"a": {"b": [1, 2]}}

    def test_braces_inside_strings(self):
        assert extract_first_json('{"text": "use {curly} braces"}') == {"text": "use {curly} braces"}

    def test_array(self):
        assert extract_first_json('[{"a": 1}]') == [{"a": 1}]

    def test_skips_broken_prefix(self):
        assert extract_first_json('{oops} then {"a": 2}') == {"a": 2}

    @pytest.mark.parametrize("text", ["", "   ", "no json here", "{not: valid"])
    def test_nothing_found(self, text):
        assert extract_first_json(text) is None


# =============================================================================
# CLIENT
# =============================================================================

class TestStructuredLLM:

    def test_mock_provider_returns_valid_judgment(self, mock_llm):
        result = mock_llm.run("score_candidate", "system", "user", ScoringOutput)

        assert isinstance(result.data, ScoringOutput)
        assert result.provider == "mock"
        assert mock_llm.run_logs[-1].success is True

    def test_mock_evidence_summary(self, mock_llm):
        result = mock_llm.run("evidence_summary", "system", "user", EvidenceSummary)
        assert len(result.data.bullets) == 2

    def test_openai_request_shape(self):
        llm = openai_llm([OUTREACH_JSON])
        llm.run("outreach_draft", "be brief", "write it", OutreachDraftOutput)

        request = llm.client.requests[0]
        assert request["response_format"] == {"type": "json_object"}
        assert request["messages"][0] == {"role": "system", "content": "be brief"}
        assert request["temperature"] == LLM_CONFIG["temperature"]

    def test_retries_until_valid(self):
        llm = openai_llm(["I cannot do that", '{"subject": "x"}', OUTREACH_JSON])

        result = llm.run("outreach_draft", "s", "u", OutreachDraftOutput)

        assert result.data.subject == "Hello"
        assert [log.success for log in llm.run_logs] == [False, False, True]
        assert llm.run_logs[-1].tokens_in == 120
        assert {log.prompt_hash for log in llm.run_logs} == {prompt_hash("outreach_draft", "s", "u")}

    def test_integral_float_scores_accepted(self, judgment_factory):
        judgment = judgment_factory()
        judgment["criterionScores"] = {k: 4.0 for k in judgment["criterionScores"]}
        llm = openai_llm([json.dumps(judgment)])

        result = llm.run("score_candidate", "s", "u", ScoringOutput)

        assert result.data.criterion_scores.category_fit == 4
        assert [log.success for log in llm.run_logs] == [True]

    def test_exhaustion_raises_structured_output_error(self):
        llm = openai_llm(["nope"] * 3, max_retries=2)

        with pytest.raises(StructuredOutputError) as exc_info:
            llm.run("outreach_draft", "s", "u", OutreachDraftOutput)

        assert exc_info.value.prompt_name == "outreach_draft"
        assert len(llm.run_logs) == 3
        assert not any(log.success for log in llm.run_logs)

    def test_single_element_array_unwrapped(self):
        llm = openai_llm([f"[{OUTREACH_JSON}]"])
        assert llm.run("outreach_draft", "s", "u", OutreachDraftOutput).data.subject == "Hello"

    def test_contact_details_redacted_before_parsing(self):
        reply = json.dumps({"subject": "Hi", "body": "Write to jane@acme.example or call 555-010-9999 today."})
        llm = openai_llm([reply])

        result = llm.run("outreach_draft", "s", "u", OutreachDraftOutput)

        assert "[REDACTED EMAIL]" in result.data.body
        assert "[REDACTED PHONE]" in result.data.body
        assert "jane@" not in result.raw_text

    def test_anthropic_provider(self):
        llm = StructuredLLM(
            provider="anthropic",
            api_key="sk-ant-test",
            client=FakeAnthropic([f"Here you go:\n```json\n{OUTREACH_JSON}\n```"]),
            wait=wait_none(),
        )
        result = llm.run("outreach_draft", "s", "u", OutreachDraftOutput)

        assert result.provider == "anthropic"
        assert llm.run_logs[-1].tokens_out == 20

    def test_missing_key_falls_back_to_mock(self, monkeypatch):
        monkeypatch.setitem(LLM_CONFIG["api_keys"], "anthropic", "")
        llm = StructuredLLM(provider="anthropic")
        assert llm.provider == "mock"
        assert llm.client is None

    def test_unknown_provider_treated_as_openai(self, monkeypatch):
        monkeypatch.setitem(LLM_CONFIG["api_keys"], "openai", "")
        llm = StructuredLLM(provider="gemini")
        assert llm.provider == "mock"

    def test_explicit_model(self):
        llm = StructuredLLM(provider="openai", api_key="sk-test", model="gpt-4o", client=FakeOpenAI([]))
        assert llm.model == "gpt-4o"


def test_prompt_hash():
    first = prompt_hash("score_candidate", "system", "user")
    assert first == prompt_hash("score_candidate", "system", "user")
    assert first != prompt_hash("score_candidate", "system", "other user")
    assert len(first) == 64
