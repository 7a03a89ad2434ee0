"""
Triage External Service Adapters
==================================

Adapter for the text-generation service used by the triage module.

Implements the application layer interface using the infrastructure
client selected by settings (OpenAI-compatible endpoint or mock).
"""

from typing import List, Optional

from wildwatch.infrastructure.llm import ChatCompletionResult, create_llm_client
from wildwatch.infrastructure.llm import ILLMClient as InfrastructureLLMClient
from wildwatch.triage.application import ILLMClient


class LLMClientAdapter(ILLMClient):
    """
    Adapter that wraps the infrastructure LLM client.

    Implements the application layer ILLMClient interface using
    the primary/fallback client from the infrastructure layer.
    """

    def __init__(self, client: Optional[InfrastructureLLMClient] = None):
        self._client = client or create_llm_client()

    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.0,
        max_tokens: int = 500,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """Generate chat completion."""
        return await self._client.chat_completion(messages, temperature, max_tokens, operation)
