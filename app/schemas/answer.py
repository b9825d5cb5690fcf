"""Request models for the answer endpoints.

Payloads arrive from the form front end in camelCase, so every model here
uses a camelCase alias generator while keeping snake_case attribute names.
Defaults mirror what the front end substitutes for blank form values.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _default_if_null(cls: type[BaseModel], value: Any, info: ValidationInfo) -> Any:
    # Front-end forms send null for untouched inputs.
    if value is None:
        return cls.model_fields[info.field_name].get_default(call_default_factory=True)
    return value


class FieldValidationState(_CamelModel):
    """Client-side validation state of a form field."""

    is_valid: bool = True
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class FieldContext(_CamelModel):
    """The form input the user is asking about."""

    label: str = ""
    type: str = "input"
    section: str = "basic-info"
    current_value: str | int | float | bool | None = None
    id: str | None = None
    options: list[str] | None = None
    validation_state: FieldValidationState | None = None

    @field_validator("label", "type", "section", mode="before")
    @classmethod
    def null_to_default(cls, value: Any, info: ValidationInfo) -> Any:
        return _default_if_null(cls, value, info)


class ProjectContext(_CamelModel):
    """The project record that encloses the field.

    Financial figures are opaque inputs: they are formatted, never computed.
    """

    project_name: str = "Unnamed Project"
    asset_type: str = "Not specified"
    project_phase: str = "Not specified"
    loan_amount_requested: float | None = None
    target_ltv_percent: float | None = None
    property_address_city: str = "Not specified"
    property_address_state: str = "Not specified"

    @field_validator(
        "project_name",
        "asset_type",
        "project_phase",
        "property_address_city",
        "property_address_state",
        mode="before",
    )
    @classmethod
    def null_to_default(cls, value: Any, info: ValidationInfo) -> Any:
        return _default_if_null(cls, value, info)


class ChatMessage(_CamelModel):
    """A single prior conversation turn. ``ai`` is accepted for ``assistant``."""

    type: Literal["user", "assistant", "ai"]
    content: str


class AnswerRequest(_CamelModel):
    """Incoming request for field guidance.

    Both contexts are optional at the model level so that their absence can
    be reported as ``InvalidRequest`` by the prompt builder rather than as a
    generic validation error.
    """

    field_context: FieldContext | None = None
    project_context: ProjectContext | None = None
    question: str | None = None
    chat_history: list[ChatMessage] | None = None


class OMQuestionRequest(_CamelModel):
    """Question about an offering memorandum document."""

    question: str | None = None
    document: str = ""


class PresetQuestionRequest(_CamelModel):
    """Field for which suggested questions are wanted."""

    field_context: FieldContext


class PresetQuestion(_CamelModel):
    """A suggested question shown next to a field."""

    id: str
    text: str
    category: Literal["field-specific", "general", "validation", "best-practices"]
    priority: Literal["high", "medium", "low"]
