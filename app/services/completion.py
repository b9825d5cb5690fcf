"""Structured completion: one schema-constrained generation exposed as a stream.

``StructuredCompletionClient.stream_answer`` opens a single generation on the
injected ``LLMClient`` and returns an ``AnswerStream``: a lazy, single-pass
async iterator of partial result snapshots (plain dicts).  The provider's JSON
text is accumulated and re-parsed after every fragment with
``pydantic_core.from_json(allow_partial="trailing-strings")`` so a truncated
``answer_markdown`` is visible while it is still being written.

Each snapshot is checked against the schema's field set only.  Full
validation happens once, when the provider stream is exhausted; the
validated result is yielded as the last snapshot and kept on
``AnswerStream.result``.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import structlog
from pydantic import BaseModel
from pydantic_core import from_json

from app.schemas.output import OutputSchema
from app.services.errors import TransportError
from app.services.gemini_client import LLMClient
from app.services.prompt_builder import PromptPair

logger = structlog.get_logger()


class AnswerStream:
    """Forward-only stream of partial answer snapshots for one generation.

    Iterate it to exhaustion to obtain ``result``.  Closing it (explicitly via
    ``aclose`` or by abandoning an ``async for``) closes the provider stream.
    """

    def __init__(self, llm: LLMClient, prompt: PromptPair, schema: OutputSchema) -> None:
        self.schema = schema
        self._prompt = prompt
        self._llm = llm
        self._result: BaseModel | None = None
        self._iterator = self._run()

    @property
    def result(self) -> BaseModel:
        """The validated result, available once the stream has been consumed."""
        if self._result is None:
            raise RuntimeError("answer stream has not completed")
        return self._result

    def __aiter__(self) -> AnswerStream:
        return self

    async def __anext__(self) -> dict[str, Any]:
        return await self._iterator.__anext__()

    async def aclose(self) -> None:
        await self._iterator.aclose()

    async def _run(self) -> AsyncIterator[dict[str, Any]]:
        fragments = self._llm.generate_stream(
            system_prompt=self._prompt.system_prompt,
            user_content=self._prompt.user_prompt,
            response_schema=self.schema.model,
        )
        buffer = ""
        last: Any = None
        try:
            while True:
                try:
                    fragment = await fragments.__anext__()
                except StopAsyncIteration:
                    break
                except Exception as exc:
                    raise TransportError(f"{type(exc).__name__}: {exc}") from exc

                buffer += fragment
                snapshot = _parse_partial(buffer)
                if snapshot is None or snapshot == last:
                    continue
                self.schema.check_partial(snapshot)
                last = snapshot
                yield snapshot
        finally:
            await fragments.aclose()

        result = self.schema.validate_final(buffer)
        self._result = result
        logger.debug(
            "structured_completion_done",
            schema=self.schema.kind.value,
            chars=len(buffer),
        )
        yield result.model_dump(mode="json")


def _parse_partial(buffer: str) -> Any:
    """Parse an incomplete JSON document, or return None if nothing is parseable yet.

    Malformed text is not an error here; it is reported by the final
    validation once the provider has finished.
    """
    if not buffer.strip():
        return None
    try:
        return from_json(buffer, allow_partial="trailing-strings")
    except ValueError:
        return None


class StructuredCompletionClient:
    """Issues schema-constrained generations against an ``LLMClient``."""

    def __init__(self, llm: LLMClient) -> None:
        self._llm = llm

    def stream_answer(self, prompt: PromptPair, schema: OutputSchema) -> AnswerStream:
        """Open one generation for *prompt* constrained to *schema*.

        Nothing is sent to the provider until the stream is first iterated.
        There is no retry: provider failures surface as ``TransportError``.
        """
        return AnswerStream(self._llm, prompt, schema)
