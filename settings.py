"""
Configuration loader.

config.yaml holds non-secret settings and the default AI provider
configuration. Credentials stay in the environment (.env via python-dotenv)
and are only read at call time, so they never end up in a stored snapshot.

AIConfig is an immutable snapshot: `updated()` returns a new object and the
dispatcher stores the snapshot it resolved on the report.
"""

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional

import yaml

from analysis.errors import InvalidRequest
from providers.prompts import PROMPTS

logger = logging.getLogger(__name__)

AI_PROVIDERS = ("gemini", "claude", "chatgpt")

_DEFAULT_PROVIDERS = {
    "gemini": {
        "model": "gemini-2.0-flash",
        "api_key_env": "GEMINI_API_KEY",
    },
    "claude": {
        "model": "claude-sonnet-4-6",
        "api_key_env": "ANTHROPIC_API_KEY",
    },
    "chatgpt": {
        "model": "gpt-4o",
        "api_key_env": "OPENAI_API_KEY",
    },
}


def _typed(provider_id: str, data: dict, key: str, kinds: tuple, default):
    value = data.get(key)
    if value is None:
        return default
    # bool is an int subclass; only accept it where bool is asked for
    if (isinstance(value, bool) and bool not in kinds) or not isinstance(value, kinds):
        raise InvalidRequest(f"{provider_id}.{key} has an invalid value: {value!r}")
    return value


def _prompt_templates(provider_id: str, raw) -> tuple:
    """Stored as (name, template) pairs over the built-in templates."""
    templates = dict(PROMPTS)
    if raw is None:
        return tuple(templates.items())
    if not isinstance(raw, dict):
        raise InvalidRequest(f"{provider_id}.promptTemplates must be an object")
    for name, template in raw.items():
        if name not in PROMPTS:
            raise InvalidRequest(f"{provider_id}.promptTemplates: unknown prompt '{name}'")
        if not isinstance(template, str) or not template.strip():
            raise InvalidRequest(f"{provider_id}.promptTemplates.{name} must be a non-empty string")
        templates[name] = template
    return tuple(templates.items())


@dataclass(frozen=True)
class ProviderSettings:
    provider_id: str
    enabled: bool = True
    model: str = ""
    max_tokens: int = 4096
    temperature: float = 0.7
    api_key_env: str = ""
    prompt_templates: tuple = tuple(PROMPTS.items())

    @property
    def api_key(self) -> Optional[str]:
        if not self.api_key_env:
            return None
        return os.getenv(self.api_key_env) or None

    @property
    def prompts(self) -> dict:
        return dict(self.prompt_templates)

    def to_dict(self) -> dict:
        return {
            "enabled":         self.enabled,
            "model":           self.model,
            "max_tokens":      self.max_tokens,
            "temperature":     self.temperature,
            "api_key_env":     self.api_key_env,
            "promptTemplates": self.prompts,
        }

    @classmethod
    def from_dict(cls, provider_id: str, data: dict) -> "ProviderSettings":
        """Raises InvalidRequest on a field of the wrong type."""
        defaults = _DEFAULT_PROVIDERS.get(provider_id, {})
        max_tokens = _typed(provider_id, data, "max_tokens", (int,), 4096)
        temperature = _typed(provider_id, data, "temperature", (int, float), 0.7)
        if max_tokens <= 0:
            raise InvalidRequest(f"{provider_id}.max_tokens must be positive")
        if not 0 <= temperature <= 2:
            raise InvalidRequest(f"{provider_id}.temperature must be between 0 and 2")
        return cls(
            provider_id=provider_id,
            enabled=_typed(provider_id, data, "enabled", (bool,), True),
            model=_typed(provider_id, data, "model", (str,), None) or defaults.get("model", ""),
            max_tokens=max_tokens,
            temperature=float(temperature),
            api_key_env=(
                _typed(provider_id, data, "api_key_env", (str,), None)
                or defaults.get("api_key_env", "")
            ),
            prompt_templates=_prompt_templates(provider_id, data.get("promptTemplates")),
        )


@dataclass(frozen=True)
class AIConfig:
    """Per-provider settings for the text-generation providers."""
    providers: tuple = ()

    def get(self, provider_id: str) -> Optional[ProviderSettings]:
        return next((p for p in self.providers if p.provider_id == provider_id), None)

    def to_dict(self) -> dict:
        return {p.provider_id: p.to_dict() for p in self.providers}

    @classmethod
    def from_dict(cls, data: Optional[dict] = None) -> "AIConfig":
        data = data or {}
        providers = []
        for provider_id in AI_PROVIDERS:
            providers.append(ProviderSettings.from_dict(provider_id, data.get(provider_id) or {}))
        return cls(providers=tuple(providers))

    def updated(self, changes: dict) -> "AIConfig":
        """
        Return a new snapshot with `changes` ({provider_id: {field: value}})
        applied on top of this one. Unknown provider ids are ignored; a
        partial promptTemplates object only replaces the templates it names.
        Raises InvalidRequest if a changed field has the wrong type.
        """
        if not isinstance(changes, dict):
            raise InvalidRequest("Configuration must be an object")
        merged = self.to_dict()
        for provider_id, fields in changes.items():
            if provider_id not in merged:
                logger.warning("Ignoring AI config change for unknown provider '%s'", provider_id)
                continue
            if not isinstance(fields, dict):
                raise InvalidRequest(f"Configuration for '{provider_id}' must be an object")
            current = merged[provider_id]
            templates = fields.get("promptTemplates")
            if isinstance(templates, dict):
                fields = {**fields, "promptTemplates": {**current["promptTemplates"], **templates}}
            merged[provider_id] = {**current, **fields}
        return AIConfig.from_dict(merged)


@dataclass(frozen=True)
class PageSpeedSettings:
    api_key_env: str = "PAGESPEED_API_KEY"
    strategies: tuple = ("mobile", "desktop")

    @property
    def api_key(self) -> Optional[str]:
        return os.getenv(self.api_key_env) or None


@dataclass(frozen=True)
class Settings:
    http_timeout_seconds: float = 30.0
    worker_poll_seconds: int = 5
    task_max_attempts: int = 3
    task_lease_seconds: int = 900
    reports_dir: Path = Path("reports")
    flask_host: str = "127.0.0.1"
    flask_port: int = 5000
    flask_debug: bool = False
    pagespeed: PageSpeedSettings = field(default_factory=PageSpeedSettings)
    ai: AIConfig = field(default_factory=AIConfig.from_dict)

    def with_ai(self, ai: AIConfig) -> "Settings":
        return replace(self, ai=ai)


def settings_from_dict(raw: Optional[dict]) -> Settings:
    raw = raw or {}
    general = raw.get("settings", {}) or {}
    pagespeed = raw.get("pagespeed", {}) or {}

    return Settings(
        http_timeout_seconds=float(general.get("http_timeout_seconds", 30)),
        worker_poll_seconds=int(general.get("worker_poll_seconds", 5)),
        task_max_attempts=int(general.get("task_max_attempts", 3)),
        task_lease_seconds=int(general.get("task_lease_seconds", 900)),
        reports_dir=Path(general.get("reports_dir", "reports")),
        flask_host=str(general.get("flask_host", "127.0.0.1")),
        flask_port=int(general.get("flask_port", 5000)),
        flask_debug=bool(general.get("flask_debug", False)),
        pagespeed=PageSpeedSettings(
            api_key_env=str(pagespeed.get("api_key_env", "PAGESPEED_API_KEY")),
            strategies=tuple(pagespeed.get("strategies") or ("mobile", "desktop")),
        ),
        ai=AIConfig.from_dict(raw.get("providers")),
    )


def load_config(path: str = "config.yaml") -> Settings:
    """Load config.yaml. A missing file yields the built-in defaults."""
    config_path = Path(path)
    if not config_path.exists():
        logger.warning("Config file %s not found, using defaults", config_path)
        return settings_from_dict({})
    with open(config_path, "r", encoding="utf-8") as f:
        return settings_from_dict(yaml.safe_load(f))
