"""
Claude text generation through the Anthropic SDK.
"""

import logging

import anthropic

from analysis.errors import Malformed, Rejected, Unreachable
from providers.base import TextProvider, normalize_text

logger = logging.getLogger(__name__)


class ClaudeProvider(TextProvider):
    provider_id = "claude"

    def _client(self) -> anthropic.Anthropic:
        # single attempt per call
        return anthropic.Anthropic(api_key=self.require_key(), timeout=self.timeout, max_retries=0)

    def generate_text(self, prompt: str) -> dict:
        client = self._client()
        try:
            message = client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIConnectionError as exc:
            raise Unreachable(self.provider_id, str(exc)) from exc
        except anthropic.APIStatusError as exc:
            logger.error("Claude returned %d: %s", exc.status_code, exc.message)
            raise Rejected(self.provider_id, exc.message, status_code=exc.status_code) from exc
        except anthropic.APIError as exc:
            raise Malformed(self.provider_id, str(exc)) from exc

        blocks = [b.text for b in (message.content or []) if getattr(b, "type", "") == "text"]
        if not blocks:
            raise Malformed(self.provider_id, "No text content in response")

        usage = getattr(message, "usage", None)
        return normalize_text(
            "".join(blocks),
            message.model or self.model,
            getattr(usage, "input_tokens", None),
            getattr(usage, "output_tokens", None),
        )
