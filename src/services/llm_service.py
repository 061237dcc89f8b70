"""
src/services/llm_service.py — Language-model client shared by all three agents.

Wraps the Anthropic Messages API behind one call:

    text = await llm.invoke(
        [{"role": "system", "content": "..."}, {"role": "user", "content": "..."}],
        output_schema=SignalRecommendation,
    )

Messages are role-tagged dicts. "system" messages are lifted into the API's
`system` parameter; list content is joined part by part. When an
`output_schema` (pydantic model) is given, its JSON schema is appended to the
system prompt and the caller parses the reply with `parse_reply()`.

The API key is checked on every call, not at construction, so an unconfigured
deployment still boots and only fails when an agent actually runs.
"""

import json
import logging
from typing import Any

import anthropic
from pydantic import BaseModel

from config import Settings, settings as default_settings
from src.utils.exceptions import ConfigurationError, ModelInvocationError

logger = logging.getLogger(__name__)

_JSON_INSTRUCTION = """\

RESPONSE FORMAT (strict JSON, no markdown, no extra text). The reply must be a
single JSON object matching this JSON schema:
{schema}
"""


def _part_text(part: Any) -> str:
    if isinstance(part, str):
        return part
    if isinstance(part, dict) and part.get("type") == "text":
        return str(part.get("text", ""))
    raise ValueError(f"Unsupported message content part: {part!r}")


def _content_text(content: Any) -> str:
    parts = content if isinstance(content, list) else [content]
    return "\n".join(_part_text(p) for p in parts)


def build_request(
    messages: list[dict[str, Any]],
    output_schema: type[BaseModel] | None = None,
) -> tuple[str, list[dict[str, str]]]:
    """Split role-tagged messages into (system prompt, conversation turns)."""
    system_parts: list[str] = []
    turns: list[dict[str, str]] = []
    for message in messages:
        role = message.get("role")
        text = _content_text(message.get("content", ""))
        if role == "system":
            system_parts.append(text)
        elif role in ("user", "assistant"):
            turns.append({"role": role, "content": text})
        else:
            raise ValueError(f"Unsupported message role: {role!r}")

    if not turns:
        raise ValueError("At least one user message is required")

    if output_schema is not None:
        schema = json.dumps(output_schema.model_json_schema(), indent=2)
        system_parts.append(_JSON_INSTRUCTION.format(schema=schema))

    return "\n\n".join(system_parts), turns


class LLMClient:
    """Thin async client over anthropic.AsyncAnthropic."""

    def __init__(self, config: Settings | None = None):
        self._config = config or default_settings
        self._client: anthropic.AsyncAnthropic | None = None

    @property
    def is_configured(self) -> bool:
        return bool(self._config.anthropic_api_key)

    def _get_client(self) -> anthropic.AsyncAnthropic:
        if not self.is_configured:
            raise ConfigurationError("anthropic_api_key")
        if self._client is None:
            self._client = anthropic.AsyncAnthropic(
                api_key=self._config.anthropic_api_key,
                base_url=self._config.anthropic_base_url,
            )
        return self._client

    async def invoke(
        self,
        messages: list[dict[str, Any]],
        output_schema: type[BaseModel] | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Send one completion request and return the reply's text content.

        Raises:
            ConfigurationError: ANTHROPIC_API_KEY is not set.
            ModelInvocationError: the API call failed or returned no text.
        """
        client = self._get_client()
        system, turns = build_request(messages, output_schema)

        kwargs: dict[str, Any] = {
            "model": self._config.anthropic_model,
            "max_tokens": max_tokens or self._config.anthropic_max_tokens,
            "messages": turns,
        }
        if system:
            kwargs["system"] = system

        try:
            response = await client.messages.create(**kwargs)
        except anthropic.APIError as exc:
            logger.error("Model call failed: %s", exc)
            raise ModelInvocationError(f"Model call failed: {exc}") from exc

        text = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        ).strip()
        if not text:
            raise ModelInvocationError("Model returned an empty reply")
        return text

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
