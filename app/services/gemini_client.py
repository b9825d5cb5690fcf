"""Gemini LLM client abstraction with protocol-based swappable implementations.

Production code uses ``GeminiClient`` which wraps the ``google-genai`` SDK's
native async streaming API (``client.aio.models.generate_content_stream``).
Tests use ``InMemoryLLMClient`` which captures calls and replays a
configurable canned response in chunks without requiring the SDK or network
access.

Both yield raw JSON text fragments; parsing and validation belong to
``app.services.completion``.

The ``google.genai`` import is lazy so this module loads without the SDK
installed.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator
from typing import Protocol


class LLMClient(Protocol):
    """Protocol for streamed LLM generation with structured output."""

    def generate_stream(
        self, system_prompt: str, user_content: str, response_schema: type
    ) -> AsyncGenerator[str, None]:
        """Start a generation and yield its JSON text as it arrives."""
        ...


class GeminiClient:
    """Production Gemini client using google-genai SDK.

    Uses lazy imports so the module loads without the SDK installed.  An API
    key selects the Gemini Developer API; otherwise Vertex AI is used with
    application default credentials.
    """

    def __init__(
        self,
        model: str,
        *,
        api_key: str = "",
        project: str = "",
        location: str = "us-central1",
        temperature: float = 0.2,
    ) -> None:
        from google import genai

        if api_key:
            self._client = genai.Client(api_key=api_key)
        else:
            self._client = genai.Client(vertexai=True, project=project, location=location)
        self._model = model
        self._temperature = temperature

    async def generate_stream(
        self, system_prompt: str, user_content: str, response_schema: type
    ) -> AsyncGenerator[str, None]:
        """Stream structured JSON text from Gemini.

        The SDK stream is closed when this generator is closed, which aborts
        the underlying HTTP request.
        """
        from google.genai import types

        stream = await self._client.aio.models.generate_content_stream(
            model=self._model,
            contents=user_content,
            config=types.GenerateContentConfig(
                system_instruction=system_prompt,
                response_mime_type="application/json",
                response_schema=response_schema,
                temperature=self._temperature,
                thinking_config=types.ThinkingConfig(thinking_budget=0),
            ),
        )
        try:
            async for chunk in stream:
                if chunk.text:
                    yield chunk.text
        finally:
            await stream.aclose()


class InMemoryLLMClient:
    """Test double that records calls and replays a canned response in chunks.

    Set ``error`` to make the stream raise after ``fail_after`` chunks have
    been yielded.  ``closed`` counts generations whose stream was closed,
    whether they ran to completion or were abandoned.
    """

    def __init__(self) -> None:
        self.calls: list[dict] = []
        self.response: str = '{"answer_markdown":"**Test answer.**\\n\\n- First step"}'
        self.chunk_size: int = 8
        self.error: Exception | None = None
        self.fail_after: int = 0
        self.delay: float = 0.0
        self.closed: int = 0

    async def generate_stream(
        self, system_prompt: str, user_content: str, response_schema: type
    ) -> AsyncGenerator[str, None]:
        """Append call details and yield the canned response chunk by chunk."""
        self.calls.append(
            {
                "system_prompt": system_prompt,
                "user_content": user_content,
                "response_schema": response_schema,
            }
        )
        try:
            chunks = [
                self.response[i : i + self.chunk_size]
                for i in range(0, len(self.response), self.chunk_size)
            ]
            for index, chunk in enumerate(chunks):
                if self.error is not None and index >= self.fail_after:
                    raise self.error
                if self.delay:
                    await asyncio.sleep(self.delay)
                yield chunk
            if self.error is not None:
                raise self.error
        finally:
            self.closed += 1
