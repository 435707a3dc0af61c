"""
ChatGPT text generation through the OpenAI SDK.
"""

import logging

import openai
from openai import OpenAI

from analysis.errors import Malformed, Rejected, Unreachable
from providers.base import TextProvider, normalize_text

logger = logging.getLogger(__name__)


class ChatGPTProvider(TextProvider):
    provider_id = "chatgpt"

    def _client(self) -> OpenAI:
        return OpenAI(api_key=self.require_key(), timeout=self.timeout, max_retries=0)

    def generate_text(self, prompt: str) -> dict:
        client = self._client()
        try:
            response = client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except openai.APIConnectionError as exc:
            raise Unreachable(self.provider_id, str(exc)) from exc
        except openai.APIStatusError as exc:
            logger.error("OpenAI returned %d: %s", exc.status_code, exc.message)
            raise Rejected(self.provider_id, exc.message, status_code=exc.status_code) from exc
        except openai.APIError as exc:
            raise Malformed(self.provider_id, str(exc)) from exc

        if not response.choices or response.choices[0].message.content is None:
            raise Malformed(self.provider_id, "No message content in response")

        usage = response.usage
        return normalize_text(
            response.choices[0].message.content,
            response.model or self.model,
            getattr(usage, "prompt_tokens", None),
            getattr(usage, "completion_tokens", None),
        )
