"""Prompt assembly for field guidance and offering-memorandum questions.

``build_prompt`` turns an ``AnswerRequest`` into a ``(system, user)`` pair.
The system prompt is a fixed template filled from the field and project
contexts; the user prompt is the question (or a fallback naming the field)
followed by a bounded window of recent conversation turns.

All number formatting here is locale independent so that identical requests
always produce byte-identical prompts.
"""

from __future__ import annotations

from typing import NamedTuple

from app.schemas.answer import (
    AnswerRequest,
    ChatMessage,
    FieldContext,
    OMQuestionRequest,
    ProjectContext,
)
from app.services.errors import InvalidRequest

HISTORY_WINDOW = 3
NOT_SPECIFIED = "Not specified"
NOT_FILLED = "Not filled"

FIELD_SYSTEM_PROMPT = """\
You are a commercial real estate form completion expert assistant with 20+ years of experience.

CURRENT CONTEXT:
- Field: {label} ({field_type})
- Section: {section}
- Project: {project_name}
- Asset Type: {asset_type}
- Project Phase: {project_phase}
- Current Value: {current_value}
- Available Options: {options}
- Loan Amount: ${loan_amount}
- Target LTV: {target_ltv}%
- Location: {city}, {state}

RESPONSE PRIORITY:
1. **ANSWER THE USER'S IMMEDIATE QUESTION FIRST** - Provide a direct, concise answer
2. **Then briefly explain** why your recommendation makes sense
3. **Keep it short** - avoid unnecessary verbosity

INSTRUCTIONS:
1. Start with a direct, concise answer (1-2 sentences max)
2. If field has predefined options, recommend from those options when appropriate
3. Provide brief reasoning (1-2 sentences)
4. Reference project details only when essential
5. Be specific and actionable
6. Keep total response under 150 words

RESPONSE FORMAT:
- **Start with a direct answer** to their immediate question
- Use markdown formatting for structure (headers, lists, emphasis)
- Separate major sections with a blank line and keep related points on consecutive lines
- Use bullet points for actionable items
- Use **bold** for important points and *italic* for emphasis
- Give examples specific to this project and mention related form sections
- Quote industry benchmarks when applicable
- End with a short summary or next steps

EXAMPLE FORMAT:
Your direct answer here.

**Key Points:**
- Covers land acquisition and construction costs
- Interest-only payments during construction
- Converts to permanent financing upon completion

Remember: Get straight to the point. Users want quick, actionable answers, not lengthy explanations."""

FALLBACK_QUESTION = "Please provide guidance on completing the '{label}' field for this project."

OM_SYSTEM_PROMPT = """\
You are an expert analyst in Commercial Real Estate with over 20 years of experience \
underwriting deals for lenders and institutional investors.

Answer questions about the offering memorandum (OM) provided by the user.

RULES:
1. Start with a direct answer of at most 3 lines in answer_markdown.
2. List every assumption behind the answer in assumptions.
3. Tag each assumption's source: "om" when it comes from the document, \
"industry" when it comes from market knowledge, "mixed" when it combines both.
4. When the source is "om", set citation to the OM section it comes from; \
otherwise set citation to null.
5. When making projections, state the reasoning and ground it in the OM where possible.
6. Use bullet points and bold text for readability and stay concise."""


class PromptPair(NamedTuple):
    """System and user prompts for a single generation."""

    system_prompt: str
    user_prompt: str


def format_number(value: float, grouping: bool = True) -> str:
    """Format *value* with up to 3 decimals and, by default, US thousands separators.

    Trailing zeros are trimmed, so ``5000000.0`` renders as ``5,000,000`` and
    ``1234.5`` as ``1,234.5``.
    """
    fmt = ",.3f" if grouping else ".3f"
    text = format(value, fmt).rstrip("0").rstrip(".")
    return "0" if text == "-0" else text


def format_currency_amount(value: float | None) -> str:
    """Render a dollar amount (without the ``$``) or ``Not specified``."""
    if value is None:
        return NOT_SPECIFIED
    return format_number(value)


def format_percent(value: float | None) -> str:
    """Render a percentage (without the ``%``) or ``Not specified``."""
    if value is None:
        return NOT_SPECIFIED
    return format_number(value, grouping=False)


def format_current_value(value: str | int | float | bool | None) -> str:
    if value is None or value == "":
        return NOT_FILLED
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return format_number(value, grouping=False)
    return value


def build_system_prompt(field: FieldContext, project: ProjectContext) -> str:
    """Fill the field-guidance template from the two contexts."""
    return FIELD_SYSTEM_PROMPT.format(
        label=field.label,
        field_type=field.type,
        section=field.section,
        project_name=project.project_name,
        asset_type=project.asset_type,
        project_phase=project.project_phase,
        current_value=format_current_value(field.current_value),
        options=", ".join(field.options) if field.options else "No predefined options",
        loan_amount=format_currency_amount(project.loan_amount_requested),
        target_ltv=format_percent(project.target_ltv_percent),
        city=project.property_address_city,
        state=project.property_address_state,
    )


def render_history(history: list[ChatMessage] | None, window: int = HISTORY_WINDOW) -> str:
    """Render the last *window* messages as a ``Previous conversation`` block.

    Returns an empty string for no history.  Older turns are dropped without
    summarization.
    """
    if not history or window <= 0:
        return ""
    lines = [
        f"{'User' if message.type == 'user' else 'AI'}: {message.content}"
        for message in history[-window:]
    ]
    return "\n\nPrevious conversation:\n" + "\n".join(lines)


def build_user_prompt(field: FieldContext, question: str | None) -> str:
    if question:
        return question
    return FALLBACK_QUESTION.format(label=field.label)


def build_prompt(request: AnswerRequest, history_window: int = HISTORY_WINDOW) -> PromptPair:
    """Assemble the prompt pair for a field-guidance request.

    Raises ``InvalidRequest`` when either context is missing.  Performs no I/O.
    """
    if request.field_context is None or request.project_context is None:
        raise InvalidRequest("Missing required context")

    system_prompt = build_system_prompt(request.field_context, request.project_context)
    user_prompt = build_user_prompt(request.field_context, request.question)
    return PromptPair(
        system_prompt=system_prompt,
        user_prompt=user_prompt + render_history(request.chat_history, history_window),
    )


def build_om_prompt(request: OMQuestionRequest) -> PromptPair:
    """Assemble the prompt pair for a question about an offering memorandum."""
    if not request.question or not request.question.strip():
        raise InvalidRequest("Missing question")

    parts = []
    if request.document.strip():
        parts.append(f"Offering Memorandum Document:\n{request.document}")
    parts.append(f"User Question:\n{request.question}")
    return PromptPair(system_prompt=OM_SYSTEM_PROMPT, user_prompt="\n\n".join(parts))
