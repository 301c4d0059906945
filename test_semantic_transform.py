"""Tests for the LLM-backed semantic transform and its chat client, with scripted responses."""
import pytest

from text2rule.core.semantic_transform import LLMSemanticTransform, clean_if_condition, clean_refined_prompt
from text2rule.utils.llm_client import LLMClient, TransformError
from text2rule.utils.prompt_registry import PromptRegistry


class ScriptedClient:
    """Returns canned responses in order and records the prompts it was sent."""

    model_name = "scripted-model"

    def __init__(self, *responses):
        self.responses = list(responses)
        self.prompts = []

    async def complete(self, prompt, stage=None):
        self.prompts.append(prompt)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def make(*responses):
    client = ScriptedClient(*responses)
    return LLMSemanticTransform(client=client, prompts=PromptRegistry()), client


async def test_validate_parses_camel_case_response():
    transform, client = make('```json\n{"isValid": false, "issuesDetected": "Missing action", "hasCondition": true}\n```')

    result = await transform.validate("If ARPU > 100")

    assert not result.is_valid
    assert result.issues_detected == ["Missing action"]
    assert result.has_condition
    assert result.input_text == "If ARPU > 100"
    assert "If ARPU > 100" in client.prompts[0]


async def test_validate_unparseable_response():
    transform, _ = make("I think this rule is fine.")

    result = await transform.validate("If ARPU > 100 send SMS")

    assert not result.is_valid
    assert result.issues_detected == [
        "Validation failed: Could not parse JSON response. Response: I think this rule is fine."
    ]


async def test_decompose_joins_list_and_uses_override():
    transform, client = make('{"normal_statements": ["A", "B"], "schedule": "daily"}')

    result = await transform.decompose("rule text", prompt_override="Custom: {{ $json.input }}")

    assert result.normal_statements == "A, otherwise B"
    assert result.schedule == "daily"
    assert client.prompts == ["Custom: rule text"]


async def test_decompose_without_json_returns_none():
    transform, _ = make("sorry")
    assert await transform.decompose("rule text") is None


async def test_extract_child_texts_accepts_strings_and_objects():
    transform, _ = make(
        '[{"condition": "ARPU > 100", "actions": "send SMS"}, "Condition: x -> Action: y", {"rule": "R"}, 3]'
    )

    texts = await transform.extract_child_texts("statements")

    assert texts == ["Condition: ARPU > 100 -> Action: send SMS", "Condition: x -> Action: y", "R"]


async def test_score_similarity_is_clamped_and_nullable():
    transform, _ = make(
        '{"similarity_score": 1.7}',
        '{"similarityScore": "0.42"}',
        '{"similarity_score": "high"}',
        "no json",
        TransformError("down"),
    )

    assert await transform.score_similarity("a", "b") == 1.0
    assert await transform.score_similarity("a", "b") == 0.42
    assert await transform.score_similarity("a", "b") is None
    assert await transform.score_similarity("a", "b") is None
    assert await transform.score_similarity("a", "b") is None


async def test_refine_prompt_cleans_response_and_handles_failure():
    transform, client = make("```text\nBetter prompt {{ $json.input }}\n```", TransformError("down"))

    refined = await transform.refine_prompt("Old prompt", "rule", "A\nB", "score too low")

    assert refined == "Better prompt {{ $json.input }}"
    assert "Old prompt" in client.prompts[0] and "score too low" in client.prompts[0]
    assert await transform.refine_prompt("Old prompt", "rule", "", "") == ""


async def test_parse_schedule_raises_on_garbage():
    transform, _ = make('{"schedule_type": "Weekly", "day": ["Monday", "Friday"], "start_time": "9am"}', "nothing")

    result = await transform.parse_schedule("every Monday and Friday")
    assert result.schedule_type == "Weekly"
    assert result.day == "Monday, Friday"
    assert result.start_time == {}

    with pytest.raises(ValueError):
        await transform.parse_schedule("whenever")


async def test_kpi_matching_failure_is_empty_list():
    transform, _ = make('["ARPU", null, "DATA_GB"]', TransformError("down"))

    assert await transform.match_kpis("ARPU > 100", "") == ["ARPU", "DATA_GB"]
    assert await transform.match_kpis("ARPU > 100", "") == []


def test_response_cleanup_helpers():
    assert clean_refined_prompt("markdown\nUse this prompt") == "Use this prompt"
    assert clean_refined_prompt("") == ""
    assert clean_if_condition("Here you go:\n```\nif (ARPU > 100) AND (AGE < 30)\n```") == "if (ARPU > 100) AND (AGE < 30)"


def test_default_prompt_comes_from_registry():
    transform, _ = make()
    assert "{{ $json.input }}" in transform.default_prompt("statement_decompostion_agent_prompt")
    assert transform.model_tag == "scripted-model"


# =============================================================================
# CHAT CLIENT
# =============================================================================

class FakeMessage:
    def __init__(self, content):
        self.content = content


class FlakyLLM:
    """Fails ``failures`` times, then answers."""

    model_name = "flaky"

    def __init__(self, failures, content="ok"):
        self.failures = failures
        self.content = content
        self.attempts = 0

    async def ainvoke(self, prompt):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise ConnectionError("connection reset")
        return FakeMessage(self.content)


@pytest.fixture
def no_retry_wait(monkeypatch):
    from tenacity import wait_none

    monkeypatch.setattr(LLMClient._invoke.retry, "wait", wait_none())


async def test_client_retries_transport_errors(no_retry_wait):
    llm = FlakyLLM(failures=2, content=[{"type": "text", "text": "hello"}])
    client = LLMClient(llm=llm)

    assert await client.complete("prompt", stage="test") == "hello"
    assert llm.attempts == 3
    assert client.stats.successful_calls == 1
    assert client.stats.to_dict()["stages"]["test"]["calls"] == 1


async def test_client_gives_up_with_transform_error(no_retry_wait):
    llm = FlakyLLM(failures=5)
    client = LLMClient(llm=llm)

    with pytest.raises(TransformError):
        await client.complete("prompt", stage="test")
    assert llm.attempts == 3
    assert client.stats.failed_calls == 1
    assert client.model_name == "flaky"


async def test_aclose_releases_the_http_client():
    import httpx

    http_client = httpx.AsyncClient()
    client = LLMClient(llm=FlakyLLM(failures=0), http_client=http_client)
    transform = LLMSemanticTransform(client=client, prompts=PromptRegistry())

    await transform.aclose()
    await transform.aclose()

    assert http_client.is_closed


async def test_aclose_without_http_client_is_a_no_op():
    client = LLMClient(llm=FlakyLLM(failures=0))
    await client.aclose()
    assert client.http_client is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
