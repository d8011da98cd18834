"""OpenAI-compatible chat client used by the copilot, study tools and coach.

Every provider (the hosted AI gateway, OpenAI, a local LM Studio) speaks the
chat-completions API, so a single OpenAI SDK client covers them all. SDK
exceptions are translated into the LLMError hierarchy below; the web layer
maps those to HTTP statuses.
"""

from __future__ import annotations

import json
import os
import re
import time
from dataclasses import dataclass, field
from typing import Any, Literal

import structlog
from openai import APIConnectionError, APIStatusError, OpenAI, RateLimitError

from skoo.config.app_config import DEFAULT_PROVIDERS, AppConfig, load_app_config

logger = structlog.get_logger(__name__)

Provider = Literal["gateway", "openai", "lmstudio"]
Role = Literal["system", "user", "assistant", "tool"]

# Sent when a provider needs no key (the SDK refuses an empty one)
KEYLESS_API_KEY = "lm-studio"

# Reasoning blocks some local models emit before their answer
_REASONING_BLOCK = re.compile(
    r"<(think|analysis|reasoning)>.*?</\1>", re.DOTALL | re.IGNORECASE
)
_FENCED_JSON = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


def _load_object(text: str) -> dict[str, Any] | None:
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def parse_json_content(content: str) -> dict[str, Any] | None:
    """Extract a JSON object from free-form model output.

    Tries the whole text, then a fenced ```json block, then the span between
    the first "{" and the last "}". Returns None when nothing parses.
    """
    text = _REASONING_BLOCK.sub("", content).strip()

    candidates = [text]
    fenced = _FENCED_JSON.search(text)
    if fenced:
        candidates.append(fenced.group(1).strip())
    start, end = text.find("{"), text.rfind("}")
    if 0 <= start < end:
        candidates.append(text[start : end + 1])

    for candidate in candidates:
        parsed = _load_object(candidate)
        if parsed is not None:
            return parsed
    return None


def _provider_connection(provider: str) -> tuple[str, str | None]:
    """Built-in (base_url, api_key) of a provider."""
    defaults = DEFAULT_PROVIDERS.get(provider, {})
    key_env = defaults.get("api_key_env")
    api_key = os.environ.get(key_env) if key_env else KEYLESS_API_KEY
    return defaults.get("base_url", ""), api_key


@dataclass
class LLMConfig:
    provider: Provider = "gateway"
    base_url: str = DEFAULT_PROVIDERS["gateway"]["base_url"]
    model: str = "default"
    temperature: float | None = None  # None = provider default
    max_tokens: int = 4096
    timeout: int = 120
    max_retries: int = 2
    api_key: str | None = None

    @classmethod
    def from_app_config(
        cls,
        app_config: AppConfig | None = None,
        provider: str | None = None,
    ) -> LLMConfig:
        """Resolve provider, model and key from the application config.

        A provider missing from the config falls back to its built-in URL.
        """
        app_config = app_config or load_app_config()
        provider = provider or app_config.copilot.default_provider
        provider_config = app_config.providers.get(provider)
        base_url, default_key = _provider_connection(provider)

        if provider_config is None:
            logger.warning("llm.provider_not_configured", provider=provider)
            return cls(provider=provider, base_url=base_url, api_key=default_key)  # type: ignore[arg-type]

        if provider_config.api_key_env:
            api_key = provider_config.get_api_key()
        else:
            api_key = KEYLESS_API_KEY

        return cls(
            provider=provider,  # type: ignore[arg-type]
            base_url=provider_config.base_url or base_url,
            model=app_config.copilot.model or provider_config.default_model,
            max_tokens=app_config.copilot.max_tokens,
            api_key=api_key,
        )


@dataclass
class ToolCall:
    """A function call requested by the model.

    ``arguments`` is the raw JSON string, decoded by the caller.
    """

    id: str
    name: str
    arguments: str = "{}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass
class Message:
    role: Role
    content: str | None
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_call_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            payload["tool_calls"] = [call.to_dict() for call in self.tool_calls]
        if self.tool_call_id is not None:
            payload["tool_call_id"] = self.tool_call_id
        return payload


@dataclass
class LLMResponse:
    content: str
    model: str
    provider: str
    tool_calls: list[ToolCall] = field(default_factory=list)
    finish_reason: str | None = None
    usage: dict[str, int] = field(default_factory=dict)
    latency_ms: int = 0

    @property
    def total_tokens(self) -> int:
        return self.usage.get("total_tokens", 0)


class LLMError(Exception):
    """Error during LLM interaction.

    ``details`` carries the raw provider message for the 500 response body.
    """

    def __init__(self, message: str, details: str = ""):
        super().__init__(message)
        self.details = details


class LLMConnectionError(LLMError):
    """The provider could not be reached."""

    pass


class LLMResponseError(LLMError):
    """The provider failed or returned something unusable."""

    pass


class LLMRateLimitError(LLMError):
    """Gateway answered 429 (too many requests)."""

    pass


class LLMQuotaError(LLMError):
    """Gateway answered 402 (AI credits exhausted)."""

    pass


class LLMClient:
    """Chat-completions client bound to one provider and model."""

    def __init__(
        self,
        config: LLMConfig | None = None,
        provider: str | None = None,
        model: str | None = None,
    ):
        if config is None:
            config = LLMConfig.from_app_config(provider=provider)
        elif provider is not None and provider != config.provider:
            config.provider = provider  # type: ignore[assignment]
            config.base_url, config.api_key = _provider_connection(provider)

        if model is not None:
            config.model = model
        self.config = config

        self._client = OpenAI(
            base_url=config.base_url,
            api_key=config.api_key or KEYLESS_API_KEY,
            timeout=config.timeout,
            max_retries=config.max_retries,
        )

        logger.info(
            "llm_client_initialized",
            provider=config.provider,
            model=config.model,
            base_url=config.base_url,
        )

    def _translate(self, exc: Exception) -> LLMError:
        provider = self.config.provider
        if isinstance(exc, RateLimitError):
            logger.warning("llm.rate_limited", provider=provider)
            return LLMRateLimitError("Rate limit exceeded", details=str(exc))
        if isinstance(exc, APIStatusError):
            if exc.status_code == 402:
                logger.warning("llm.quota_exhausted", provider=provider)
                return LLMQuotaError("AI credits exhausted", details=str(exc))
            logger.error("llm.gateway_error", provider=provider, status_code=exc.status_code)
            return LLMResponseError(f"AI gateway error ({exc.status_code})", details=str(exc))
        logger.error("llm.unreachable", provider=provider, base_url=self.config.base_url)
        return LLMConnectionError(
            f"Could not connect to {provider} at {self.config.base_url}",
            details=str(exc),
        )

    def chat(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None = None,
        tool_choice: dict[str, Any] | str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """Run one chat completion.

        Args:
            messages: Conversation so far, system prompt first
            tools: OpenAI-style function definitions
            tool_choice: Forced tool (the provider decides when omitted)
            temperature: Overrides the configured temperature
            max_tokens: Overrides the configured limit

        Raises:
            LLMRateLimitError: Provider answered 429
            LLMQuotaError: Provider answered 402
            LLMConnectionError: Provider unreachable
            LLMResponseError: Any other provider failure, or no choices
        """
        request: dict[str, Any] = {
            "model": self.config.model,
            "messages": [message.to_dict() for message in messages],
            "max_tokens": max_tokens or self.config.max_tokens,
        }
        temperature = self.config.temperature if temperature is None else temperature
        if temperature is not None:
            request["temperature"] = temperature
        if tools:
            request["tools"] = tools
        if tool_choice is not None:
            request["tool_choice"] = tool_choice

        started = time.monotonic()
        try:
            completion = self._client.chat.completions.create(**request)
        except (RateLimitError, APIStatusError, APIConnectionError) as e:
            raise self._translate(e) from e
        latency_ms = int((time.monotonic() - started) * 1000)

        if not completion.choices:
            raise LLMResponseError("Empty response from LLM")

        choice = completion.choices[0]
        tool_calls = [
            ToolCall(id=call.id, name=call.function.name, arguments=call.function.arguments or "{}")
            for call in (choice.message.tool_calls or [])
        ]
        usage = {}
        if completion.usage:
            usage = {
                "prompt_tokens": completion.usage.prompt_tokens,
                "completion_tokens": completion.usage.completion_tokens,
                "total_tokens": completion.usage.total_tokens,
            }

        logger.debug(
            "llm_response",
            provider=self.config.provider,
            model=completion.model,
            finish_reason=choice.finish_reason,
            tool_calls=len(tool_calls),
            tokens=usage.get("total_tokens", 0),
            latency_ms=latency_ms,
        )

        return LLMResponse(
            content=choice.message.content or "",
            model=completion.model,
            provider=self.config.provider,
            tool_calls=tool_calls,
            finish_reason=choice.finish_reason,
            usage=usage,
            latency_ms=latency_ms,
        )

    def simple_chat(
        self,
        system_prompt: str,
        user_message: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Single-turn chat returning only the text."""
        response = self.chat(
            [
                Message(role="system", content=system_prompt),
                Message(role="user", content=user_message),
            ],
            temperature=temperature,
            max_tokens=max_tokens,
        )
        return response.content
