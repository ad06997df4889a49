"""
Model gateway: a thin wrapper around the OpenAI chat-completions API.
"""
import json
import logging
from typing import Any, Dict, Optional, Sequence

import openai
from openai import AsyncOpenAI

from luna_assistant.config import Settings
from luna_assistant.exceptions import ConfigurationError, UpstreamUnavailable
from luna_assistant.models.conversation import ConversationTurn
from luna_assistant.models.tool_calls import Completion, ToolInvocationRequest

logger = logging.getLogger(__name__)


class ModelGateway:
    """Read-only handle built once at startup and passed to the orchestrator."""

    def __init__(self, client: AsyncOpenAI, model_name: str, temperature: float = 0.7):
        self.client = client
        self.model_name = model_name
        self.temperature = temperature

    @classmethod
    def from_settings(cls, settings: Settings) -> "ModelGateway":
        if not settings.openai_api_key:
            raise ConfigurationError("OPENAI_API_KEY is not set; the assistant cannot serve requests.")
        # No retries: a failed completion surfaces to the caller directly.
        client = AsyncOpenAI(api_key=settings.openai_api_key, timeout=settings.model_timeout, max_retries=0)
        return cls(client, settings.model_name, settings.temperature)

    async def complete(self, messages: Sequence[ConversationTurn], tools: Optional[Sequence[Any]] = None) -> Completion:
        kwargs: Dict[str, Any] = {
            "model": self.model_name,
            "messages": [m.to_openai() for m in messages],
            "temperature": self.temperature,
        }
        if tools:
            kwargs["tools"] = [t.to_openai_tool() for t in tools]
            kwargs["tool_choice"] = "auto"

        try:
            res = await self.client.chat.completions.create(**kwargs)
        except openai.APIError as exc:
            logger.error("Model completion failed: %s", exc)
            raise UpstreamUnavailable(f"Error communicating with AI service: {exc}") from exc

        if not res.choices:
            raise UpstreamUnavailable("AI service returned no choices")
        message = res.choices[0].message
        if message.tool_calls:
            return Completion.tool_calls(
                [_parse_call(tc) for tc in message.tool_calls], content=message.content or ""
            )
        return Completion.text(message.content or "")

    async def draft_text(self, system: str, user: str, max_tokens: int = 2000) -> str:
        """Single tool-free completion used by content-drafting tools."""
        try:
            res = await self.client.chat.completions.create(
                model=self.model_name,
                messages=[{"role": "system", "content": system}, {"role": "user", "content": user}],
                temperature=self.temperature,
                max_tokens=max_tokens,
            )
        except openai.APIError as exc:
            raise UpstreamUnavailable(f"Error communicating with AI service: {exc}") from exc
        if not res.choices:
            return ""
        return res.choices[0].message.content or ""

    async def close(self) -> None:
        if not self.client.is_closed():
            await self.client.close()


def _parse_call(tc) -> ToolInvocationRequest:
    raw = tc.function.arguments or "{}"
    error = None
    try:
        args = json.loads(raw)
    except json.JSONDecodeError as exc:
        args, error = {}, f"Arguments are not valid JSON: {exc}"
    if not isinstance(args, dict):
        args, error = {}, "Arguments must be a JSON object"
    return ToolInvocationRequest(
        invocation_id=tc.id,
        tool_name=tc.function.name,
        arguments=args,
        argument_error=error,
        raw_arguments=raw,
    )

