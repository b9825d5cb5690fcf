"""Structured output shapes the model may be asked to produce.

The LLM-facing models intentionally have NO default values for compatibility
with google-genai ``response_schema``; nullable fields use ``str | None``.

``OutputSchema`` pairs one of those models with the field sets used to check
partial snapshots while a generation is still streaming.  ``resolve_schema``
is the only way the rest of the application obtains one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, ValidationError
from pydantic_core import from_json, to_json

from app.services.errors import SchemaViolation


class AssumptionSource(str, Enum):
    """Provenance of a claim made in an answer."""

    OM = "om"
    INDUSTRY = "industry"
    MIXED = "mixed"


class Assumption(BaseModel):
    """A stated assumption behind an answer."""

    text: str
    source: AssumptionSource
    citation: str | None


class PlainAnswer(BaseModel):
    """Markdown answer only."""

    answer_markdown: str = Field(
        description=(
            "A comprehensive, helpful answer to the user's question about the "
            "form field, formatted in markdown"
        )
    )


class AnswerWithAssumptions(BaseModel):
    """Markdown answer plus the assumptions it relies on."""

    answer_markdown: str = Field(description="A direct answer formatted in markdown")
    assumptions: list[Assumption] = Field(
        description="Key assumptions, each tagged om, industry or mixed"
    )


AnswerResult = PlainAnswer | AnswerWithAssumptions


class SchemaKind(str, Enum):
    """Selector for the output shape of a request."""

    PLAIN = "plain"
    WITH_ASSUMPTIONS = "with_assumptions"


@dataclass(frozen=True)
class OutputSchema:
    """A resolved output shape.

    ``fields`` is the set of keys allowed at the top level; ``list_fields``
    maps array-valued keys to the keys allowed in each element.
    ``omittable_item_fields`` names element keys that may be left out of the
    completed output and are read as null.
    """

    kind: SchemaKind
    model: type[BaseModel]
    fields: frozenset[str]
    list_fields: dict[str, frozenset[str]]
    omittable_item_fields: dict[str, frozenset[str]] = field(default_factory=dict)

    def check_partial(self, snapshot: Any) -> None:
        """Check a mid-stream snapshot against the field set.

        Strings and array elements may be truncated and required keys may not
        have arrived yet, so only key names and container types are checked.
        """
        if not isinstance(snapshot, dict):
            raise SchemaViolation(f"expected a JSON object, got {type(snapshot).__name__}")
        unknown = set(snapshot) - self.fields
        if unknown:
            raise SchemaViolation(f"unexpected fields: {sorted(unknown)}")
        for key, value in snapshot.items():
            if key in self.list_fields:
                self._check_partial_list(key, value)
            elif not isinstance(value, str):
                raise SchemaViolation(f"field {key!r} must be a string")

    def _check_partial_list(self, key: str, value: Any) -> None:
        if not isinstance(value, list):
            raise SchemaViolation(f"field {key!r} must be an array")
        allowed = self.list_fields[key]
        for item in value:
            if not isinstance(item, dict):
                raise SchemaViolation(f"elements of {key!r} must be objects")
            unknown = set(item) - allowed
            if unknown:
                raise SchemaViolation(f"unexpected fields in {key!r}: {sorted(unknown)}")

    def validate_final(self, raw: str) -> BaseModel:
        """Validate the complete generation text.

        Unknown keys, wrong types and out-of-range enum values all raise
        ``SchemaViolation``; nothing is coerced or dropped.  Omitted optional
        element keys are filled with null first.
        """
        try:
            data = from_json(raw)
        except ValueError as exc:
            raise SchemaViolation(f"output is not valid JSON: {exc}") from exc
        self.check_partial(data)
        if self._fill_omitted(data):
            raw = to_json(data)
        try:
            return self.model.model_validate_json(raw, strict=True)
        except ValidationError as exc:
            raise SchemaViolation(str(exc)) from exc

    def _fill_omitted(self, data: dict[str, Any]) -> bool:
        filled = False
        for key, omittable in self.omittable_item_fields.items():
            for item in data.get(key, ()):
                for name in omittable.difference(item):
                    item[name] = None
                    filled = True
        return filled


_ASSUMPTION_FIELDS = frozenset(Assumption.model_fields)

_REGISTRY: dict[SchemaKind, OutputSchema] = {
    SchemaKind.PLAIN: OutputSchema(
        kind=SchemaKind.PLAIN,
        model=PlainAnswer,
        fields=frozenset(PlainAnswer.model_fields),
        list_fields={},
    ),
    SchemaKind.WITH_ASSUMPTIONS: OutputSchema(
        kind=SchemaKind.WITH_ASSUMPTIONS,
        model=AnswerWithAssumptions,
        fields=frozenset(AnswerWithAssumptions.model_fields),
        list_fields={"assumptions": _ASSUMPTION_FIELDS},
        omittable_item_fields={"assumptions": frozenset({"citation"})},
    ),
}


def resolve_schema(kind: SchemaKind | str) -> OutputSchema:
    """Return the registered output schema for *kind*.

    Raises ``ValueError`` for an unknown kind.
    """
    return _REGISTRY[SchemaKind(kind)]
