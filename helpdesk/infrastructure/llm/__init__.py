"""
LLM Client Infrastructure
==========================

Wrapper for OpenAI-compatible chat-completion providers providing a clean
interface for LLM operations.

This module abstracts the LLM client implementation following the
Dependency Inversion Principle - the triage layer depends on abstractions,
not concrete implementations. Provider errors are translated into
``LLMException`` with a ``transient`` flag so callers can decide whether a
retry makes sense.
"""

import asyncio
import json
import time
from abc import ABC, abstractmethod
from typing import List, Optional

import openai
from openai import AsyncOpenAI

from helpdesk.core import LLMException, ConfigurationException

# Errors worth retrying: the request may succeed a moment later
_TRANSIENT_ERRORS = (
    openai.APITimeoutError,
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.InternalServerError,
)


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
        temperature: float = 0.2,
        max_tokens: int = 800,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """Generate chat completion."""

    async def close(self) -> None:
        """Release network resources held by the client."""


class OpenAILLMClient(ILLMClient):
    """
    OpenAI client implementation for GPT models.

    Works with any OpenAI-compatible endpoint through ``base_url``. SDK-level
    retries are disabled; retry policy belongs to the caller.
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        base_url: Optional[str] = None,
        timeout_seconds: float = 30.0
    ):
        if not api_key:
            raise ConfigurationException("Classification service API key not configured")

        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout_seconds,
            max_retries=0,
        )
        self._model = model
        self._timeout_seconds = timeout_seconds

    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.2,
        max_tokens: int = 800,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """
        Generate chat completion.

        Args:
            messages: List of message dicts with 'role' and 'content'
            temperature: Sampling temperature (0-1)
            max_tokens: Maximum tokens to generate
            operation: Operation type for logging (classification, ...)

        Returns:
            ChatCompletionResult with generated text

        Raises:
            LLMException: If completion fails; ``transient`` tells whether
                the failure is worth retrying
        """
        start_time = time.perf_counter()

        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=self._model,
                    messages=messages,
                    temperature=temperature,
                    max_tokens=max_tokens
                ),
                timeout=self._timeout_seconds,
            )
        except asyncio.TimeoutError:
            raise LLMException(
                f"{operation} timed out after {self._timeout_seconds}s",
                transient=True
            )
        except _TRANSIENT_ERRORS as e:
            raise LLMException(f"{operation} failed: {e}", transient=True)
        except openai.APIError as e:
            raise LLMException(f"{operation} rejected: {e}", transient=False)

        latency_ms = int((time.perf_counter() - start_time) * 1000)

        content = ""
        if response.choices:
            content = response.choices[0].message.content or ""
        usage = response.usage

        return ChatCompletionResult(
            content=content,
            model=response.model or self._model,
            prompt_tokens=usage.prompt_tokens if usage else 0,
            completion_tokens=usage.completion_tokens if usage else 0,
            latency_ms=latency_ms
        )

    async def close(self) -> None:
        await self._client.close()


class MockLLMClient(ILLMClient):
    """
    Mock LLM client for local development.

    Returns predictable classification replies without calling external APIs.
    """

    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.2,
        max_tokens: int = 800,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """Return a fenced JSON classification derived from the ticket title."""
        user_content = str(messages[-1].get("content", "")) if messages else ""
        title = "the reported issue"
        for line in user_content.splitlines():
            if line.startswith("Title:"):
                title = line.split(":", 1)[1].strip() or title
                break

        mock_response = {
            "summary": f"Mock: user reports {title}.",
            "priority": "medium",
            "notes": "Mock: reproduce the issue and collect logs before escalating.",
            "skills": ["support"]
        }
        content = f"```json\n{json.dumps(mock_response, indent=2)}\n```"

        return ChatCompletionResult(
            content=content,
            model="mock-model",
            prompt_tokens=100,
            completion_tokens=len(content.split()),
            latency_ms=0
        )
