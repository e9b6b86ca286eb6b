"""Pass-through client for card recognition via the Anthropic Messages API."""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import anthropic

from ..config import Settings

logger = logging.getLogger(__name__)


class RecognitionError(Exception):
    """Raised when a recognition request cannot be forwarded."""


class InvalidRecognitionRequest(RecognitionError):
    pass


class RecognitionPayloadTooLarge(RecognitionError):
    pass


def serialized_size(messages: Any) -> int:
    """Size in bytes of ``messages`` encoded as compact UTF-8 JSON."""
    encoded = json.dumps(messages, separators=(",", ":"), ensure_ascii=False)
    return len(encoded.encode("utf-8"))


def build_request(
    messages: Any,
    model: Optional[str] = None,
    max_tokens: Optional[int] = None,
    tools: Any = None,
    *,
    default_model: str,
    default_max_tokens: int,
    max_bytes: int,
) -> dict[str, Any]:
    """Validate a recognition request and fill in the provider defaults.

    ``messages`` only has to be present and a list; an empty list is
    forwarded and left for the provider to judge.
    """
    if messages is None or not isinstance(messages, list):
        raise InvalidRecognitionRequest("Invalid request format")

    if serialized_size(messages) > max_bytes:
        raise RecognitionPayloadTooLarge("Request too large")

    params: dict[str, Any] = {
        "model": model or default_model,
        "max_tokens": max_tokens or default_max_tokens,
        "messages": messages,
    }
    if tools and isinstance(tools, list):
        params["tools"] = tools
    return params


class RecognitionClient:
    """Forwards validated message payloads and returns the raw provider JSON."""

    def __init__(self, settings: Settings):
        self.api_key = settings.anthropic_api_key
        self.default_model = settings.anthropic_model
        self.default_max_tokens = settings.anthropic_max_tokens
        self.max_bytes = settings.max_recognition_bytes
        self.timeout = settings.anthropic_timeout
        self._client: Optional[anthropic.AsyncAnthropic] = None

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _get_client(self) -> anthropic.AsyncAnthropic:
        if not self.api_key:
            raise RecognitionError("ANTHROPIC_API_KEY is not configured")
        if self._client is None:
            self._client = anthropic.AsyncAnthropic(api_key=self.api_key, timeout=self.timeout)
        return self._client

    async def create(self, params: dict[str, Any]) -> dict[str, Any]:
        client = self._get_client()
        response = await client.messages.create(**params)
        return response.model_dump(mode="json")

    async def recognize(
        self,
        messages: Any,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        tools: Any = None,
    ) -> dict[str, Any]:
        params = build_request(
            messages,
            model,
            max_tokens,
            tools,
            default_model=self.default_model,
            default_max_tokens=self.default_max_tokens,
            max_bytes=self.max_bytes,
        )
        logger.info("Forwarding recognition request to %s", params["model"])
        return await self.create(params)
