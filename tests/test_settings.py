from pathlib import Path

import pytest

from analysis.errors import InvalidRequest
from providers.prompts import PROMPTS
from settings import AIConfig, load_config, settings_from_dict


def test_missing_config_file_gives_defaults(tmp_path):
    settings = load_config(str(tmp_path / "absent.yaml"))
    assert settings.task_max_attempts == 3
    assert settings.pagespeed.strategies == ("mobile", "desktop")
    assert [p.provider_id for p in settings.ai.providers] == ["gemini", "claude", "chatgpt"]


def test_load_config_from_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "settings:\n"
        "  http_timeout_seconds: 10\n"
        "  reports_dir: out\n"
        "pagespeed:\n"
        "  strategies: [mobile]\n"
        "providers:\n"
        "  claude:\n"
        "    enabled: false\n"
        "    model: claude-haiku-4-5\n",
        encoding="utf-8",
    )
    settings = load_config(str(path))

    assert settings.http_timeout_seconds == 10.0
    assert settings.reports_dir == Path("out")
    assert settings.pagespeed.strategies == ("mobile",)
    claude = settings.ai.get("claude")
    assert claude.enabled is False
    assert claude.model == "claude-haiku-4-5"
    assert claude.api_key_env == "ANTHROPIC_API_KEY"
    assert settings.ai.get("gemini").model == "gemini-2.0-flash"


def test_updated_returns_new_snapshot():
    original = AIConfig.from_dict()
    changed = original.updated({"chatgpt": {"model": "gpt-4o-mini", "temperature": 0.1}})

    assert changed is not original
    assert original.get("chatgpt").model == "gpt-4o"
    assert changed.get("chatgpt").model == "gpt-4o-mini"
    assert changed.get("chatgpt").temperature == 0.1
    assert changed.get("gemini") == original.get("gemini")


def test_updated_ignores_unknown_providers():
    original = AIConfig.from_dict()
    assert original.updated({"bard": {"enabled": False}}) == original


def test_credentials_are_read_from_environment(monkeypatch):
    gemini = AIConfig.from_dict().get("gemini")
    assert gemini.api_key is None
    monkeypatch.setenv("GEMINI_API_KEY", "secret")
    assert gemini.api_key == "secret"
    assert "secret" not in str(AIConfig.from_dict().to_dict())


def test_settings_from_empty_dict():
    assert settings_from_dict(None).flask_port == 5000


def test_prompt_templates_default_to_builtin_prompts():
    gemini = AIConfig.from_dict().get("gemini")
    assert gemini.prompts == PROMPTS
    assert AIConfig.from_dict().to_dict()["gemini"]["promptTemplates"] == PROMPTS


def test_updated_replaces_only_named_prompt_templates():
    custom = "Describe {company} at {url} in one line."
    changed = AIConfig.from_dict().updated({"gemini": {"promptTemplates": {"seoAnalysis": custom}}})

    templates = changed.to_dict()["gemini"]["promptTemplates"]
    assert templates["seoAnalysis"] == custom
    assert templates["companyAnalysis"] == PROMPTS["companyAnalysis"]
    assert changed.get("claude").prompts == PROMPTS


@pytest.mark.parametrize(
    "fields",
    [
        {"enabled": "false"},
        {"max_tokens": "lots"},
        {"max_tokens": 0},
        {"max_tokens": True},
        {"temperature": "hot"},
        {"model": 42},
        {"promptTemplates": "just a string"},
        {"promptTemplates": {"poetry": "Write a poem about {url}"}},
        {"promptTemplates": {"seoAnalysis": ""}},
    ],
)
def test_updated_rejects_badly_typed_fields(fields):
    with pytest.raises(InvalidRequest):
        AIConfig.from_dict().updated({"gemini": fields})


def test_updated_rejects_non_object_provider_changes():
    with pytest.raises(InvalidRequest):
        AIConfig.from_dict().updated({"gemini": "off"})
