"""
Provider contract and response normalization.

A provider either generates text from a prompt or fetches metrics for a URL.
Whatever the vendor returns is normalized before it leaves the adapter:

    text providers    -> {"text": str, "model": str, "usage": {...} | None}
    metrics providers -> {"metrics": {...}}

Each call is a single attempt. Retrying is the caller's business.
"""

import logging
from typing import Optional

import requests

from analysis.errors import Malformed, NotConfigured, Rejected, Unreachable

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0


def normalize_text(text: Optional[str], model: str, input_tokens=None, output_tokens=None) -> dict:
    usage = None
    if input_tokens is not None or output_tokens is not None:
        usage = {"inputTokens": input_tokens, "outputTokens": output_tokens}
    return {"text": (text or "").strip(), "model": model, "usage": usage}


class Provider:
    provider_id = ""

    def __init__(self, api_key: Optional[str], timeout: float = DEFAULT_TIMEOUT):
        self.api_key = api_key
        self.timeout = timeout

    def require_key(self) -> str:
        if not self.api_key:
            raise NotConfigured(self.provider_id, "API key is not configured")
        return self.api_key


class TextProvider(Provider):
    def __init__(self, api_key: Optional[str], model: str, max_tokens: int = 4096,
                 temperature: float = 0.7, timeout: float = DEFAULT_TIMEOUT):
        super().__init__(api_key, timeout)
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

    def generate_text(self, prompt: str) -> dict:
        raise NotImplementedError


class MetricsProvider(Provider):
    def fetch_metrics(self, url: str) -> dict:
        raise NotImplementedError


# ── Shared REST helper for providers without an SDK ──────────────────────────

def request_json(provider_id: str, method: str, url: str, timeout: float, **kwargs) -> dict:
    """
    One HTTP call through requests, mapped onto the ProviderError kinds.
    """
    try:
        resp = requests.request(method, url, timeout=timeout, **kwargs)
    except requests.Timeout as exc:
        raise Unreachable(provider_id, f"Request timed out after {timeout}s") from exc
    except requests.RequestException as exc:
        raise Unreachable(provider_id, f"Request failed: {exc}") from exc

    if not 200 <= resp.status_code < 300:
        logger.error("%s returned %d: %.300s", provider_id, resp.status_code, resp.text)
        raise Rejected(provider_id, f"HTTP {resp.status_code}", status_code=resp.status_code)

    try:
        data = resp.json()
    except ValueError as exc:
        raise Malformed(provider_id, "Response body is not JSON") from exc
    if not isinstance(data, dict):
        raise Malformed(provider_id, "Response body is not a JSON object")
    return data
