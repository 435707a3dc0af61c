from types import SimpleNamespace

import anthropic
import httpx
import openai
import pytest
import requests

from analysis.errors import Malformed, NotConfigured, ProviderError, Rejected, Unreachable
from providers import registry
from providers.base import normalize_text, request_json
from providers.chatgpt import ChatGPTProvider
from providers.claude import ClaudeProvider
from providers.gemini import GeminiProvider
from providers.pagespeed import PageSpeedProvider, summarise_lighthouse
from settings import AIConfig, PageSpeedSettings
from conftest import FakeResponse


LIGHTHOUSE = {
    "lighthouseResult": {
        "lighthouseVersion": "12.0.0",
        "fetchTime": "2026-01-01T00:00:00Z",
        "categories": {"performance": {"score": 0.874}},
        "audits": {
            "first-contentful-paint": {"displayValue": "1.2 s"},
            "largest-contentful-paint": {"displayValue": "2.5 s"},
            "cumulative-layout-shift": {"displayValue": "0.01"},
        },
    }
}


# ── request_json error mapping ────────────────────────────────────────────────

def _patch_request(monkeypatch, outcome):
    seen = {}

    def fake_request(method, url, timeout=None, **kwargs):
        seen.update(method=method, url=url, timeout=timeout, **kwargs)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    monkeypatch.setattr(requests, "request", fake_request)
    return seen


def test_request_json_timeout_is_unreachable(monkeypatch):
    _patch_request(monkeypatch, requests.Timeout("slow"))
    with pytest.raises(Unreachable) as exc:
        request_json("gemini", "GET", "https://api", timeout=5)
    assert exc.value.kind == "unreachable"


def test_request_json_connection_error_is_unreachable(monkeypatch):
    _patch_request(monkeypatch, requests.ConnectionError("refused"))
    with pytest.raises(Unreachable):
        request_json("gemini", "GET", "https://api", timeout=5)


def test_request_json_non_2xx_is_rejected(monkeypatch):
    _patch_request(monkeypatch, FakeResponse(403, "forbidden"))
    with pytest.raises(Rejected) as exc:
        request_json("pagespeed", "GET", "https://api", timeout=5)
    assert exc.value.status_code == 403
    assert str(exc.value) == "pagespeed: HTTP 403"


def test_request_json_bad_body_is_malformed(monkeypatch):
    _patch_request(monkeypatch, FakeResponse(200, "<html>"))
    with pytest.raises(Malformed):
        request_json("gemini", "GET", "https://api", timeout=5)

    _patch_request(monkeypatch, FakeResponse(200, "[]", json_data=[1, 2]))
    with pytest.raises(Malformed):
        request_json("gemini", "GET", "https://api", timeout=5)


# ── Gemini ────────────────────────────────────────────────────────────────────

def test_gemini_normalizes_response(monkeypatch):
    body = {
        "candidates": [{"content": {"parts": [{"text": "Hello "}, {"text": "world"}]}}],
        "usageMetadata": {"promptTokenCount": 7, "candidatesTokenCount": 3},
        "modelVersion": "gemini-2.0-flash-001",
    }
    seen = _patch_request(monkeypatch, FakeResponse(200, json_data=body))

    out = GeminiProvider("key", "gemini-2.0-flash", timeout=12).generate_text("prompt")

    assert out == {
        "text": "Hello world",
        "model": "gemini-2.0-flash-001",
        "usage": {"inputTokens": 7, "outputTokens": 3},
    }
    assert seen["method"] == "POST"
    assert seen["url"].endswith("/gemini-2.0-flash:generateContent")
    assert seen["headers"]["x-goog-api-key"] == "key"
    assert seen["timeout"] == 12


def test_gemini_without_candidates_is_malformed(monkeypatch):
    _patch_request(monkeypatch, FakeResponse(200, json_data={"candidates": []}))
    with pytest.raises(Malformed):
        GeminiProvider("key", "gemini-2.0-flash").generate_text("prompt")


# ── Claude ────────────────────────────────────────────────────────────────────

class _FakeMessages:
    def __init__(self, outcome):
        self.outcome = outcome
        self.kwargs = None

    def create(self, **kwargs):
        self.kwargs = kwargs
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


def _claude_with(monkeypatch, outcome):
    messages = _FakeMessages(outcome)
    monkeypatch.setattr(ClaudeProvider, "_client", lambda self: SimpleNamespace(messages=messages))
    return ClaudeProvider("key", "claude-sonnet-4-6", max_tokens=100, temperature=0.2), messages


def test_claude_normalizes_message(monkeypatch):
    message = SimpleNamespace(
        content=[SimpleNamespace(type="text", text="Answer")],
        model="claude-sonnet-4-6",
        usage=SimpleNamespace(input_tokens=5, output_tokens=9),
    )
    provider, messages = _claude_with(monkeypatch, message)

    out = provider.generate_text("prompt")

    assert out == normalize_text("Answer", "claude-sonnet-4-6", 5, 9)
    assert messages.kwargs["max_tokens"] == 100
    assert messages.kwargs["messages"] == [{"role": "user", "content": "prompt"}]


def test_claude_connection_error_is_unreachable(monkeypatch):
    request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
    provider, _ = _claude_with(monkeypatch, anthropic.APIConnectionError(request=request))
    with pytest.raises(Unreachable):
        provider.generate_text("prompt")


def test_claude_status_error_is_rejected(monkeypatch):
    request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
    response = httpx.Response(529, request=request)
    error = anthropic.APIStatusError("Overloaded", response=response, body=None)
    provider, _ = _claude_with(monkeypatch, error)
    with pytest.raises(Rejected) as exc:
        provider.generate_text("prompt")
    assert exc.value.status_code == 529


def test_claude_without_text_blocks_is_malformed(monkeypatch):
    message = SimpleNamespace(content=[], model="m", usage=None)
    provider, _ = _claude_with(monkeypatch, message)
    with pytest.raises(Malformed):
        provider.generate_text("prompt")


# ── PageSpeed ─────────────────────────────────────────────────────────────────

def test_summarise_lighthouse():
    summary = summarise_lighthouse(LIGHTHOUSE)
    assert summary["score"] == 87
    assert summary["metrics"]["firstContentfulPaint"] == "1.2 s"
    assert summary["metrics"]["speedIndex"] is None
    assert summary["lighthouseVersion"] == "12.0.0"


def test_summarise_lighthouse_requires_result():
    with pytest.raises(Malformed):
        summarise_lighthouse({"error": "nope"})


def test_pagespeed_runs_each_strategy(monkeypatch):
    strategies = []

    def fake_request(method, url, timeout=None, params=None, **kwargs):
        strategies.append(params["strategy"])
        return FakeResponse(200, json_data=LIGHTHOUSE)

    monkeypatch.setattr(requests, "request", fake_request)
    out = PageSpeedProvider("key").fetch_metrics("https://example.com")

    assert strategies == ["mobile", "desktop"]
    assert set(out["metrics"]) == {"mobile", "desktop"}
    assert out["metrics"]["desktop"]["score"] == 87


# ── Registry ──────────────────────────────────────────────────────────────────

def test_invoke_without_credential_never_builds_a_client(monkeypatch):
    def explode(*args, **kwargs):
        raise AssertionError("provider must not be built")

    monkeypatch.setattr(registry, "build_provider", explode)
    params = AIConfig.from_dict().get("claude")

    with pytest.raises(NotConfigured) as exc:
        registry.invoke("claude", "prompt", params)
    assert exc.value.kind == "not_configured"
    assert "ANTHROPIC_API_KEY" in str(exc.value)

    with pytest.raises(NotConfigured):
        registry.invoke("pagespeed", "https://example.com", PageSpeedSettings())


def test_invoke_dispatches_by_capability(monkeypatch):
    monkeypatch.setenv("PAGESPEED_API_KEY", "ps-key")
    monkeypatch.setattr(
        requests, "request", lambda *a, **kw: FakeResponse(200, json_data=LIGHTHOUSE)
    )
    out = registry.invoke("pagespeed", "https://example.com", PageSpeedSettings(strategies=("mobile",)))
    assert list(out["metrics"]) == ["mobile"]


def test_unknown_provider_is_rejected():
    with pytest.raises(ProviderError) as exc:
        registry.build_provider("bard", PageSpeedSettings())
    assert "Unknown provider" in str(exc.value)


# ── ChatGPT ───────────────────────────────────────────────────────────────────

def _chatgpt_with(monkeypatch, outcome):
    completions = _FakeMessages(outcome)
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    monkeypatch.setattr(ChatGPTProvider, "_client", lambda self: client)
    return ChatGPTProvider("key", "gpt-4o", max_tokens=50), completions


def test_chatgpt_normalizes_completion(monkeypatch):
    response = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=" Sure. "))],
        model="gpt-4o-2024-08-06",
        usage=SimpleNamespace(prompt_tokens=4, completion_tokens=2),
    )
    provider, completions = _chatgpt_with(monkeypatch, response)

    out = provider.generate_text("prompt")

    assert out == {
        "text": "Sure.",
        "model": "gpt-4o-2024-08-06",
        "usage": {"inputTokens": 4, "outputTokens": 2},
    }
    assert completions.kwargs["model"] == "gpt-4o"


def test_chatgpt_status_error_is_rejected(monkeypatch):
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    response = httpx.Response(401, request=request)
    error = openai.APIStatusError("Invalid API key", response=response, body=None)
    provider, _ = _chatgpt_with(monkeypatch, error)
    with pytest.raises(Rejected) as exc:
        provider.generate_text("prompt")
    assert exc.value.status_code == 401


def test_chatgpt_empty_choices_is_malformed(monkeypatch):
    provider, _ = _chatgpt_with(monkeypatch, SimpleNamespace(choices=[], model="gpt-4o", usage=None))
    with pytest.raises(Malformed):
        provider.generate_text("prompt")
