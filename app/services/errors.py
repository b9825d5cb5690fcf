"""Error kinds raised by the answer pipeline.

Each subclass carries a ``kind`` tag that ends up in server-side logs; callers
only ever see the generic JSON bodies produced by the router.
"""

from __future__ import annotations


class AnswerError(Exception):
    """Base class for failures while producing an answer."""

    kind = "answer_error"


class InvalidRequest(AnswerError):
    """Required field or project context is missing."""

    kind = "invalid_request"


class TransportError(AnswerError):
    """The model provider could not be reached or failed mid-generation."""

    kind = "transport"


class SchemaViolation(AnswerError):
    """Provider output does not conform to the resolved output schema."""

    kind = "schema_violation"


class StreamAbort(AnswerError):
    """The caller stopped consuming the stream before it completed."""

    kind = "stream_abort"
