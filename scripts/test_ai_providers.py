#!/usr/bin/env python3
"""
AI Provider Service Test Script

Tests:
1. Priority ordering and fallback to the next provider
2. Health tracking (failed provider skipped, reset when none is healthy)
3. Redis result cache and per-day usage counters
4. Cost analytics
5. Response parsing (fenced JSON, free-text suggestions)

Uses fake providers and fakeredis - no API key or Redis server needed.

Run: python scripts/test_ai_providers.py
"""
import json
import math
import sys
sys.path.insert(0, '.')

import fakeredis
from datetime import datetime

from app.core.exceptions import AIProviderError, AllProvidersFailedError
from app.services.ai_providers import AIProvider
from app.services.ai_provider_service import AIProviderService, estimate_tokens, generate_cache_key
from app.services.ai_response_parser import (
    extract_json_object,
    parse_suggestions_response,
    validate_analysis_result,
)


ANALYSIS_JSON = json.dumps({
    "atsScore": 80,
    "skills": [{"name": "Python", "category": "technical", "level": "expert", "yearsExperience": "4"}],
    "suggestions": ["Quantify achievements"],
    "summary": "Backend engineer",
})

RESUME = "Priya Sharma - Python developer with 4 years of FastAPI experience"


class FakeProvider(AIProvider):
    """Returns a canned response or raises; counts calls."""

    def __init__(self, name, priority, response=None, error=None, cost=0.001):
        super().__init__(configured=True)
        self.name = name
        self.priority = priority
        self.cost_per_token = cost
        self.response = response
        self.error = error
        self.calls = 0

    def _call_api(self, system_prompt, user_content, max_tokens=1000, temperature=0.3):
        self.calls += 1
        if self.error:
            raise self.error
        return self.response


def make_service(*providers, cache_enabled=True):
    return AIProviderService(
        providers=list(providers), redis_client=fakeredis.FakeRedis(), cache_enabled=cache_enabled
    )


def test_priority_order():
    print("\n[1] Priority ordering")
    low = FakeProvider("claude", 3, response="3")
    high = FakeProvider("gemini", 1, response="1")
    service = make_service(low, high)
    assert [p.name for p in service.providers] == ["gemini", "claude"]
    assert service.analyze_text("prompt")["text"] == "1"
    assert low.calls == 0


def test_fallback_to_next_provider():
    primary = FakeProvider("gemini", 1, error=RuntimeError("quota exceeded"))
    secondary = FakeProvider("openai", 2, response=ANALYSIS_JSON)
    service = make_service(primary, secondary)

    analysis = service.analyze_resume(RESUME, "resume.txt")
    print(f"    ats_score={analysis['ats_score']} skills={analysis['skills']}")
    assert analysis["ats_score"] == 80
    assert analysis["skills"][0]["years_experience"] == 4.0
    assert analysis["text"] == ANALYSIS_JSON
    assert primary.is_healthy is False
    assert secondary.is_healthy is True

    # unhealthy provider is skipped from now on
    service.analyze_text("another prompt")
    assert primary.calls == 1


def test_invalid_json_counts_as_failure():
    broken = FakeProvider("gemini", 1, response="I cannot help with that")
    backup = FakeProvider("openai", 2, response=ANALYSIS_JSON)
    service = make_service(broken, backup, cache_enabled=False)
    assert service.analyze_resume(RESUME, "resume.txt")["ats_score"] == 80
    assert broken.is_healthy is False


def test_all_providers_failed():
    print("\n[2] All providers failing")
    service = make_service(
        FakeProvider("gemini", 1, error=RuntimeError("down")),
        FakeProvider("openai", 2, response=""),
    )
    try:
        service.analyze_text("prompt")
    except AllProvidersFailedError as e:
        print(f"    {e} {e.errors}")
        assert e.operation == "text-analysis"
        assert set(e.errors) == {"gemini", "openai"}
        assert "empty response" in e.errors["openai"]
    else:
        raise AssertionError("expected AllProvidersFailedError")


def test_named_provider_only():
    gemini = FakeProvider("gemini", 1, response="from gemini")
    claude = FakeProvider("claude", 3, response="from claude")
    service = make_service(gemini, claude)
    assert service.analyze_text("prompt", provider="Claude")["text"] == "from claude"
    assert gemini.calls == 0


def test_health_reset_when_none_healthy():
    gemini = FakeProvider("gemini", 1, response="ok")
    gemini.is_healthy = False
    service = make_service(gemini)
    assert service.analyze_text("prompt")["text"] == "ok"
    assert gemini.is_healthy is True


def test_unconfigured_provider():
    provider = AIProvider(configured=False)
    assert provider.is_healthy is False
    try:
        provider.complete("prompt")
    except AIProviderError as e:
        assert "not configured" in str(e)
    else:
        raise AssertionError("expected AIProviderError")


def test_health_report_and_reset():
    gemini = FakeProvider("gemini", 1, error=RuntimeError("down"))
    service = make_service(gemini, FakeProvider("openai", 2, response="ok"))
    service.analyze_text("prompt")
    health = service.get_provider_health()
    assert health["gemini"]["is_healthy"] is False
    assert health["openai"]["is_healthy"] is True
    assert health["gemini"]["priority"] == 1
    service.reset_provider_health()
    assert service.get_provider_health()["gemini"]["is_healthy"] is True
    assert service.get_provider("OPENAI").name == "openai"
    assert service.get_provider("missing") is None


def test_cache_hit():
    print("\n[3] Cache and usage")
    gemini = FakeProvider("gemini", 1, response="cached answer")
    service = make_service(gemini)
    first = service.analyze_text("same prompt", max_tokens=100)
    second = service.analyze_text("same prompt", max_tokens=100)
    assert first == second == {"text": "cached answer"}
    assert gemini.calls == 1

    # different options -> different key
    service.analyze_text("same prompt", max_tokens=50)
    assert gemini.calls == 2


def test_cache_disabled():
    gemini = FakeProvider("gemini", 1, response="fresh")
    service = make_service(gemini, cache_enabled=False)
    service.analyze_text("prompt")
    service.analyze_text("prompt")
    assert gemini.calls == 2


def test_cache_key():
    key = generate_cache_key("analysis", "text", {"b": 1, "a": 2})
    assert key.startswith("ai:analysis:")
    assert key == generate_cache_key("analysis", "text", {"a": 2, "b": 1})
    assert key != generate_cache_key("matching", "text", {"a": 2, "b": 1})
    assert estimate_tokens("abcde") == 2
    assert estimate_tokens("") == 0


def test_usage_tracking():
    gemini = FakeProvider("gemini", 1, response=ANALYSIS_JSON, cost=0.002)
    service = make_service(gemini)
    service.analyze_resume(RESUME, "resume.txt")

    today = datetime.utcnow().date().isoformat()
    usage = service.redis.hgetall(f"ai:usage:gemini:{today}")
    usage = {k.decode(): v.decode() for k, v in usage.items()}
    print(f"    usage: {usage}")
    tokens = math.ceil(len(RESUME) / 4)
    assert int(usage["tokens"]) == tokens
    assert math.isclose(float(usage["cost"]), tokens / 1000 * 0.002, rel_tol=1e-6)
    assert usage["analysis"] == "1"
    assert service.redis.ttl(f"ai:usage:gemini:{today}") > 0


def test_cost_analytics():
    print("\n[4] Cost analytics")
    gemini = FakeProvider("gemini", 1, response="[\"Add metrics to every role\"]")
    service = make_service(gemini, FakeProvider("openai", 2, response="unused"))
    assert service.generate_suggestions(RESUME) == ["Add metrics to every role"]

    analytics = service.get_cost_analytics()
    assert set(analytics) == {"gemini", "openai"}
    assert len(analytics["gemini"]) == 31
    today = analytics["gemini"][-1]
    print(f"    today: {today}")
    assert today["tokens"] > 0
    assert today["operations"]["suggestions"] == 1
    assert today["operations"]["analysis"] == 0
    assert analytics["openai"][-1]["tokens"] == 0


def test_response_parsing():
    print("\n[5] Response parsing")
    fenced = "```json\n{\"atsScore\": \"91\", \"skills\": [\"Go\"]}\n```"
    result = validate_analysis_result(extract_json_object(fenced))
    assert result["ats_score"] == 91.0
    assert result["skills"][0]["name"] == "Go"
    assert result["skills"][0]["category"] == "technical"

    try:
        extract_json_object("no json here")
    except ValueError:
        pass
    else:
        raise AssertionError("expected ValueError")

    free_text = "Ideas:\n- Add a summary section at the top\n- ok\n- Quantify every achievement"
    assert parse_suggestions_response(free_text) == [
        "- Add a summary section at the top",
        "- Quantify every achievement",
    ]
    assert parse_suggestions_response("[\"a\", \"b\"]") == ["a", "b"]


def main():
    print("=" * 60)
    print("AI PROVIDER SERVICE TEST")
    print("=" * 60)
    test_priority_order()
    test_fallback_to_next_provider()
    test_invalid_json_counts_as_failure()
    test_all_providers_failed()
    test_named_provider_only()
    test_health_reset_when_none_healthy()
    test_unconfigured_provider()
    test_health_report_and_reset()
    test_cache_hit()
    test_cache_disabled()
    test_cache_key()
    test_usage_tracking()
    test_cost_analytics()
    test_response_parsing()
    print("\n✅ All AI provider tests passed")


if __name__ == "__main__":
    main()
