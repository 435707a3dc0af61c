"""
Gemini text generation over the Generative Language REST API.
"""

import logging

from analysis.errors import Malformed
from providers.base import TextProvider, normalize_text, request_json

logger = logging.getLogger(__name__)

API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"


class GeminiProvider(TextProvider):
    provider_id = "gemini"

    def generate_text(self, prompt: str) -> dict:
        api_key = self.require_key()
        data = request_json(
            self.provider_id,
            "POST",
            f"{API_BASE}/{self.model}:generateContent",
            self.timeout,
            headers={"Content-Type": "application/json", "x-goog-api-key": api_key},
            json={
                "contents": [{"parts": [{"text": prompt}]}],
                "generationConfig": {
                    "temperature": self.temperature,
                    "maxOutputTokens": self.max_tokens,
                },
            },
        )

        try:
            parts = data["candidates"][0]["content"]["parts"]
            text = "".join(p.get("text", "") for p in parts)
        except (KeyError, IndexError, TypeError) as exc:
            raise Malformed(self.provider_id, "No candidate text in response") from exc

        usage = data.get("usageMetadata") or {}
        return normalize_text(
            text,
            data.get("modelVersion") or self.model,
            usage.get("promptTokenCount"),
            usage.get("candidatesTokenCount"),
        )
