"""
LLM Client Infrastructure
==========================

Wrapper for the text-generation service used by triage.

Every call goes to a primary model first and to a fallback model when the
primary fails (non-success status, timeout, network error or an empty
completion). A failure of the fallback is terminal for that call.

This module abstracts the LLM client implementation following the
Dependency Inversion Principle - the domain layer depends on abstractions,
not concrete implementations.
"""

import json
import time
from abc import ABC, abstractmethod
from typing import List, Optional

from openai import AsyncOpenAI

from wildwatch.config import settings
from wildwatch.core import ConfigurationException, LLMException
from wildwatch.shared.infrastructure.grafana import get_grafana_exporter
from wildwatch.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class ChatCompletionResult:
    """Result of a chat completion."""

    def __init__(
        self,
        content: str,
        model: str,
        prompt_tokens: int,
        completion_tokens: int,
        latency_ms: int
    ):
        self.content = content
        self.model = model
        self.prompt_tokens = prompt_tokens
        self.completion_tokens = completion_tokens
        self.total_tokens = prompt_tokens + completion_tokens
        self.latency_ms = latency_ms


class ILLMClient(ABC):
    """
    Interface for LLM client operations.

    Following Interface Segregation Principle - only methods
    actually needed by the application are defined.
    """

    @abstractmethod
    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.0,
        max_tokens: int = 500,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """Generate chat completion."""


class OpenAICompatibleLLMClient(ILLMClient):
    """
    Client for any OpenAI-compatible chat completions endpoint.

    Defaults to Gemini's OpenAI-compatible API with a primary/fallback
    model pair taken from settings.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        primary_model: Optional[str] = None,
        fallback_model: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        client: Optional[AsyncOpenAI] = None
    ):
        self._api_key = api_key or settings.llm_api_key
        if client is None and not self._api_key:
            raise ConfigurationException("LLM API key not configured")

        self._client = client or AsyncOpenAI(
            api_key=self._api_key,
            base_url=base_url or settings.llm_base_url,
            timeout=timeout_seconds or settings.llm_timeout_seconds,
            max_retries=0,
        )
        self._primary_model = primary_model or settings.llm_primary_model
        self._fallback_model = fallback_model or settings.llm_fallback_model

    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.0,
        max_tokens: int = 500,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """
        Generate a chat completion, falling back to the secondary model.

        Args:
            messages: List of message dicts with 'role' and 'content'
            temperature: Sampling temperature (0-1)
            max_tokens: Maximum tokens to generate
            operation: Operation type for logs and metrics

        Returns:
            ChatCompletionResult with generated text

        Raises:
            LLMException: If both the primary and the fallback model fail
        """
        try:
            return await self._complete(self._primary_model, messages, temperature, max_tokens, operation)
        except Exception as e:
            logger.warning(
                "Primary model failed, attempting fallback",
                extra={
                    "operation": operation,
                    "model": self._primary_model,
                    "fallback_model": self._fallback_model,
                    "error": str(e)
                }
            )

        try:
            return await self._complete(self._fallback_model, messages, temperature, max_tokens, operation)
        except Exception as e:
            raise LLMException(
                f"Chat completion failed on primary and fallback models: {e}",
                details={"operation": operation, "model": self._fallback_model}
            ) from e

    async def _complete(
        self,
        model: str,
        messages: List[dict],
        temperature: float,
        max_tokens: int,
        operation: str
    ) -> ChatCompletionResult:
        start_time = time.perf_counter()

        response = await self._client.chat.completions.create(
            model=model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens
        )

        latency_ms = int((time.perf_counter() - start_time) * 1000)

        if not response.choices or not response.choices[0].message.content:
            raise LLMException(f"Empty completion from {model}")

        content = response.choices[0].message.content
        usage = response.usage
        prompt_tokens = usage.prompt_tokens if usage else 0
        completion_tokens = usage.completion_tokens if usage else 0

        exporter = get_grafana_exporter()
        if exporter and exporter.is_enabled():
            await exporter.export_llm_metrics(
                model=model,
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                latency_ms=latency_ms,
                operation=operation
            )

        logger.debug(
            "Chat completion received",
            extra={"operation": operation, "model": model, "latency_ms": latency_ms}
        )

        return ChatCompletionResult(
            content=content,
            model=model,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            latency_ms=latency_ms
        )


class MockLLMClient(ILLMClient):
    """
    Mock LLM client for local runs and tests.

    Returns predictable responses without calling external APIs.
    """

    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.0,
        max_tokens: int = 500,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """Return mock response based on operation type."""
        op = operation.lower()

        if "moderation" in op:
            mock_response = {
                "decision": "ALLOW",
                "confidence": 0.9,
                "reasons": ["factual-report"]
            }
            content = f"```json\n{json.dumps(mock_response, indent=2)}\n```"
        elif "office" in op:
            content = "SSD"
        elif "classification" in op:
            content = "true"
        elif "tag" in op:
            content = "Campus, Building, Safety, Hazard, Maintenance"
        else:
            content = "This is a mock LLM response for testing purposes."

        return ChatCompletionResult(
            content=content,
            model="mock-model",
            prompt_tokens=100,
            completion_tokens=len(content.split()),
            latency_ms=1
        )


def create_llm_client() -> ILLMClient:
    """Build the client selected by settings."""
    if settings.mock_llm:
        return MockLLMClient()
    return OpenAICompatibleLLMClient()
