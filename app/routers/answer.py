"""Streaming answer endpoints.

Orchestrates: parse request -> build prompt pair -> resolve output schema ->
open structured completion -> stream to the client.

Errors are reported with fixed JSON bodies only; underlying causes are logged
server side.  The first snapshot is pulled before the response starts so that
failures while opening the generation still produce a 500.  Once bytes have
been sent a failure can only end the stream early (text) or append an error
line (ndjson).
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse
from pydantic import ValidationError

from app.config import settings
from app.dependencies import get_completion_client
from app.schemas.answer import (
    AnswerRequest,
    OMQuestionRequest,
    PresetQuestion,
    PresetQuestionRequest,
)
from app.schemas.output import SchemaKind, resolve_schema
from app.services.completion import AnswerStream, StructuredCompletionClient
from app.services.errors import AnswerError, InvalidRequest
from app.services.preset_questions import generate_preset_questions
from app.services.prompt_builder import build_om_prompt, build_prompt
from app.services.stream_transport import (
    FAILURE_MESSAGE,
    prime,
    to_ndjson_stream,
    to_text_stream,
)

logger = structlog.get_logger()

MISSING_CONTEXT = "Missing required context"
MISSING_QUESTION = "Missing question"
FAILED_TO_ANSWER = FAILURE_MESSAGE

_REQUIRED_CONTEXTS = ("fieldContext", "projectContext")


class StreamFormat(str, Enum):
    """Body framing of a streamed answer."""

    TEXT = "text"
    NDJSON = "ndjson"


router = APIRouter(tags=["answer"])

CompletionClient = Annotated[StructuredCompletionClient, Depends(get_completion_client)]


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def parse_answer_request(payload: Any) -> AnswerRequest:
    """Validate a decoded JSON body as an ``AnswerRequest``.

    Raises ``InvalidRequest`` when either context is missing, null or not an
    object; an empty object is filled from model defaults.  Other
    validation problems propagate as ``ValidationError``.
    """
    if not isinstance(payload, dict):
        raise InvalidRequest(MISSING_CONTEXT)
    for key in _REQUIRED_CONTEXTS:
        value = payload.get(key)
        if not isinstance(value, dict):
            raise InvalidRequest(MISSING_CONTEXT)
    return AnswerRequest.model_validate(payload)


async def _stream_response(stream: AnswerStream, stream_format: StreamFormat) -> Response:
    try:
        first = await prime(stream)
    except AnswerError as exc:
        await stream.aclose()
        logger.error("answer_failed", error_kind=exc.kind, error=str(exc))
        return _error(500, FAILED_TO_ANSWER)

    if stream_format is StreamFormat.NDJSON:
        return StreamingResponse(
            to_ndjson_stream(stream, first), media_type="application/x-ndjson"
        )
    return StreamingResponse(
        to_text_stream(stream, first), media_type="text/plain; charset=utf-8"
    )


@router.post("/answer")
async def answer(
    request: Request,
    completion: CompletionClient,
    schema_kind: Annotated[SchemaKind, Query(alias="schema")] = SchemaKind.PLAIN,
    stream_format: Annotated[StreamFormat, Query(alias="format")] = StreamFormat.TEXT,
) -> Response:
    """Stream markdown guidance for a form field."""
    try:
        payload = await request.json()
    except ValueError:
        logger.exception("answer_failed", error_kind="invalid_body")
        return _error(500, FAILED_TO_ANSWER)

    try:
        answer_request = parse_answer_request(payload)
        prompt = build_prompt(answer_request, history_window=settings.history_window)
    except InvalidRequest:
        logger.info("answer_rejected", reason="missing_context")
        return _error(400, MISSING_CONTEXT)
    except ValidationError:
        logger.exception("answer_failed", error_kind="invalid_body")
        return _error(500, FAILED_TO_ANSWER)

    logger.info(
        "answer_requested",
        field=answer_request.field_context.label,
        schema=schema_kind.value,
        format=stream_format.value,
        has_question=bool(answer_request.question),
        history_len=len(answer_request.chat_history or []),
    )
    stream = completion.stream_answer(prompt, resolve_schema(schema_kind))
    return await _stream_response(stream, stream_format)


@router.post("/om-answer")
async def om_answer(
    request: OMQuestionRequest,
    completion: CompletionClient,
    stream_format: Annotated[StreamFormat, Query(alias="format")] = StreamFormat.NDJSON,
) -> Response:
    """Stream an answer with sourced assumptions about an offering memorandum."""
    try:
        prompt = build_om_prompt(request)
    except InvalidRequest:
        logger.info("om_answer_rejected", reason="missing_question")
        return _error(400, MISSING_QUESTION)

    logger.info("om_answer_requested", document_chars=len(request.document))
    stream = completion.stream_answer(prompt, resolve_schema(SchemaKind.WITH_ASSUMPTIONS))
    return await _stream_response(stream, stream_format)


@router.post("/preset-questions")
async def preset_questions(request: PresetQuestionRequest) -> list[PresetQuestion]:
    """Suggest questions for the given field."""
    return generate_preset_questions(request.field_context)
