"""Tests for the structured completion client and AnswerStream.

All tests use InMemoryLLMClient -- no real Gemini API calls are made.
"""

from __future__ import annotations

import json

import pytest

from app.schemas.output import AnswerWithAssumptions, PlainAnswer, SchemaKind, resolve_schema
from app.services.completion import StructuredCompletionClient
from app.services.errors import SchemaViolation, TransportError
from app.services.gemini_client import InMemoryLLMClient
from app.services.prompt_builder import PromptPair

pytestmark = pytest.mark.anyio

PROMPT = PromptPair(system_prompt="system", user_prompt="user")
ANSWER = "**Request $3,500,000.** That keeps you at 70% LTV.\n\n- Confirm the appraisal"


def _llm(response: dict, chunk_size: int = 8) -> InMemoryLLMClient:
    llm = InMemoryLLMClient()
    llm.response = json.dumps(response)
    llm.chunk_size = chunk_size
    return llm


async def _collect(stream) -> list[dict]:
    return [snapshot async for snapshot in stream]


async def test_stream_yields_growing_snapshots() -> None:
    """answer_markdown grows monotonically and ends with the full text."""
    llm = _llm({"answer_markdown": ANSWER})
    stream = StructuredCompletionClient(llm).stream_answer(PROMPT, resolve_schema("plain"))

    snapshots = await _collect(stream)
    texts = [s["answer_markdown"] for s in snapshots if "answer_markdown" in s]

    assert len(texts) > 2
    for earlier, later in zip(texts, texts[1:]):
        assert later.startswith(earlier)
    assert texts[-1] == ANSWER
    assert snapshots[-1] == {"answer_markdown": ANSWER}


async def test_result_available_after_exhaustion() -> None:
    """The validated result is only available once the stream is consumed."""
    llm = _llm({"answer_markdown": ANSWER})
    stream = StructuredCompletionClient(llm).stream_answer(PROMPT, resolve_schema("plain"))

    with pytest.raises(RuntimeError):
        _ = stream.result

    await _collect(stream)
    assert isinstance(stream.result, PlainAnswer)
    assert stream.result.answer_markdown == ANSWER


async def test_single_lazy_provider_call() -> None:
    """No call is made until iteration, then exactly one with the prompt pair."""
    llm = _llm({"answer_markdown": ANSWER})
    schema = resolve_schema("plain")
    stream = StructuredCompletionClient(llm).stream_answer(PROMPT, schema)

    assert llm.calls == []

    await _collect(stream)

    assert len(llm.calls) == 1
    assert llm.calls[0]["system_prompt"] == "system"
    assert llm.calls[0]["user_content"] == "user"
    assert llm.calls[0]["response_schema"] is PlainAnswer


async def test_with_assumptions_result() -> None:
    """A conforming assumptions answer validates at completion."""
    llm = _llm(
        {
            "answer_markdown": "DSCR is **1.35x**.",
            "assumptions": [
                {"text": "NOI per OM", "source": "om", "citation": "Key Metrics"},
                {"text": "5.5% exit cap", "source": "industry", "citation": None},
            ],
        }
    )
    stream = StructuredCompletionClient(llm).stream_answer(
        PROMPT, resolve_schema(SchemaKind.WITH_ASSUMPTIONS)
    )

    snapshots = await _collect(stream)

    assert isinstance(stream.result, AnswerWithAssumptions)
    assert len(stream.result.assumptions) == 2
    assert snapshots[-1]["assumptions"][0]["source"] == "om"


async def test_uncited_assumption_completes() -> None:
    """An assumption that leaves out citation still completes the stream."""
    llm = _llm({"answer_markdown": "a", "assumptions": [{"text": "t", "source": "om"}]})
    stream = StructuredCompletionClient(llm).stream_answer(
        PROMPT, resolve_schema(SchemaKind.WITH_ASSUMPTIONS)
    )

    snapshots = await _collect(stream)

    assert stream.result.assumptions[0].citation is None
    assert snapshots[-1]["assumptions"] == [{"text": "t", "source": "om", "citation": None}]


async def test_invalid_source_is_schema_violation() -> None:
    """An out-of-enumeration source fails the stream at completion."""
    llm = _llm(
        {
            "answer_markdown": "Answer",
            "assumptions": [{"text": "t", "source": "guess", "citation": None}],
        }
    )
    stream = StructuredCompletionClient(llm).stream_answer(
        PROMPT, resolve_schema(SchemaKind.WITH_ASSUMPTIONS)
    )

    seen: list[dict] = []
    with pytest.raises(SchemaViolation):
        async for snapshot in stream:
            seen.append(snapshot)

    assert seen, "partial snapshots are delivered before final validation"
    assert llm.closed == 1


async def test_unknown_field_fails_mid_stream() -> None:
    """A key outside the schema fails as soon as it is parsed."""
    llm = _llm({"answer_markdown": "x", "confidence": "high"}, chunk_size=1000)
    stream = StructuredCompletionClient(llm).stream_answer(PROMPT, resolve_schema("plain"))

    with pytest.raises(SchemaViolation):
        await _collect(stream)


async def test_truncated_output_is_schema_violation() -> None:
    """Output that never closes its JSON object fails at completion."""
    llm = InMemoryLLMClient()
    llm.response = '{"answer_markdown": "cut off'
    stream = StructuredCompletionClient(llm).stream_answer(PROMPT, resolve_schema("plain"))

    with pytest.raises(SchemaViolation):
        await _collect(stream)


async def test_provider_error_is_transport_error() -> None:
    """A provider failure mid-stream surfaces as TransportError, not retried."""
    llm = _llm({"answer_markdown": ANSWER})
    llm.error = ConnectionError("connection reset")
    llm.fail_after = 3
    stream = StructuredCompletionClient(llm).stream_answer(PROMPT, resolve_schema("plain"))

    with pytest.raises(TransportError) as exc_info:
        await _collect(stream)

    assert isinstance(exc_info.value.__cause__, ConnectionError)
    assert len(llm.calls) == 1


async def test_provider_error_before_first_chunk() -> None:
    """A failure opening the generation raises on the first iteration."""
    llm = _llm({"answer_markdown": ANSWER})
    llm.error = TimeoutError("deadline exceeded")
    stream = StructuredCompletionClient(llm).stream_answer(PROMPT, resolve_schema("plain"))

    with pytest.raises(TransportError):
        await stream.__anext__()


async def test_abandoned_stream_releases_provider() -> None:
    """Closing a stream early closes the provider generation."""
    llm = _llm({"answer_markdown": ANSWER}, chunk_size=4)
    stream = StructuredCompletionClient(llm).stream_answer(PROMPT, resolve_schema("plain"))

    async for _ in stream:
        break
    await stream.aclose()

    assert llm.closed == 1
    with pytest.raises(StopAsyncIteration):
        await stream.__anext__()
