"""Adapters from an ``AnswerStream`` to response body iterators.

``to_text_stream`` emits only the newly appended part of ``answer_markdown``
for every snapshot, with no framing, for clients that simply append text.
A failure after partial output ends the body early; a plain text client cannot
tell that apart from success.

``to_ndjson_stream`` emits one JSON document per line and ends with either a
``done`` line carrying the validated result or an ``error`` line, giving
clients an explicit completion signal.

Both adapters close the answer stream in ``finally`` so a client disconnect
releases the provider generation.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from typing import Any

import structlog

from app.services.completion import AnswerStream
from app.services.errors import AnswerError, StreamAbort

logger = structlog.get_logger()

FAILURE_MESSAGE = "Failed to get answer"


async def prime(stream: AnswerStream) -> dict[str, Any] | None:
    """Pull the first snapshot so that opening failures surface before any bytes are sent.

    Returns None when the stream ends without producing a snapshot.
    """
    try:
        return await stream.__anext__()
    except StopAsyncIteration:
        return None


async def _snapshots(
    stream: AnswerStream, first: dict[str, Any] | None
) -> AsyncIterator[dict[str, Any]]:
    if first is not None:
        yield first
    async for snapshot in stream:
        yield snapshot


async def to_text_stream(
    stream: AnswerStream, first: dict[str, Any] | None = None
) -> AsyncIterator[str]:
    """Relay ``answer_markdown`` as plain text deltas in generation order."""
    sent = ""
    try:
        async for snapshot in _snapshots(stream, first):
            text = snapshot.get("answer_markdown")
            if not isinstance(text, str) or len(text) <= len(sent):
                continue
            if not text.startswith(sent):
                # Already-sent text cannot be retracted; wait for a snapshot that extends it.
                logger.warning("answer_stream_diverged", sent_chars=len(sent))
                continue
            delta = text[len(sent) :]
            sent = text
            yield delta
    except AnswerError as exc:
        logger.error(
            "answer_stream_failed",
            error_kind=exc.kind,
            error=str(exc),
            sent_chars=len(sent),
        )
    except (asyncio.CancelledError, GeneratorExit):
        logger.info("answer_stream_aborted", error_kind=StreamAbort.kind, sent_chars=len(sent))
        raise
    finally:
        await stream.aclose()


async def to_ndjson_stream(
    stream: AnswerStream, first: dict[str, Any] | None = None
) -> AsyncIterator[str]:
    """Relay every snapshot as a JSON line, then a ``done`` or ``error`` line."""
    try:
        async for snapshot in _snapshots(stream, first):
            yield json.dumps({"partial": snapshot}) + "\n"
        yield json.dumps({"done": True, "result": stream.result.model_dump(mode="json")}) + "\n"
    except AnswerError as exc:
        logger.error("answer_stream_failed", error_kind=exc.kind, error=str(exc))
        yield json.dumps({"error": FAILURE_MESSAGE}) + "\n"
    except (asyncio.CancelledError, GeneratorExit):
        logger.info("answer_stream_aborted", error_kind=StreamAbort.kind)
        raise
    finally:
        await stream.aclose()
