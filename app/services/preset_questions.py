"""Suggested questions for a form field.

Field-specific questions are keyed by the field id; unknown fields get two
general questions.  A validation question is added when the field has
errors, best-practice questions always follow, and the list is capped.
"""

from __future__ import annotations

from app.schemas.answer import FieldContext, PresetQuestion

MAX_PRESET_QUESTIONS = 6

# (id, template, priority); ``{value}`` is the field's current value or a fallback phrase.
_FIELD_QUESTIONS: dict[str, list[tuple[str, str, str]]] = {
    "projectName": [
        ("pn1", "How should I name my project for maximum clarity?", "high"),
        ("pn2", "What naming conventions do lenders prefer?", "medium"),
    ],
    "assetType": [
        ("at1", "What is {value} and what are the key considerations?", "high"),
        ("at2", "How does asset type affect my loan terms?", "high"),
    ],
    "projectPhase": [
        ("pp1", "What does {value} mean and how does it affect my loan?", "high"),
        ("pp2", "What documents are typically required for this phase?", "medium"),
    ],
    "loanAmountRequested": [
        ("lar1", "How do I determine the right loan amount for my project?", "high"),
        ("lar2", "What factors affect my maximum loan amount?", "high"),
    ],
    "targetLtvPercent": [
        ("ltv1", "How do I calculate the right LTV percentage for my project?", "high"),
        ("ltv2", "What LTV ranges are typical for my asset type?", "medium"),
    ],
    "interestRateType": [
        ("irt1", "What's the difference between Fixed and Floating rates?", "high"),
        ("irt2", "Which rate type is better for my project timeline?", "medium"),
    ],
    "recoursePreference": [
        ("rp1", "What is {value} and how does it affect my loan?", "high"),
        ("rp2", "How does recourse affect my personal liability?", "high"),
    ],
    "exitStrategy": [
        ("es1", "How do I choose the right exit strategy for my project?", "high"),
        ("es2", "What timeline should I plan for my exit?", "medium"),
    ],
    "capexBudget": [
        ("cb1", "What should I include in my CapEx budget?", "high"),
        ("cb2", "How do I estimate CapEx costs accurately?", "medium"),
    ],
    "stabilizedNoiProjected": [
        ("snp1", "How do I estimate my future NOI?", "high"),
        ("snp2", "What assumptions should I use for NOI projections?", "medium"),
    ],
}

_VALUE_FALLBACKS = {
    "assetType": "this asset type",
    "projectPhase": "this project phase",
    "recoursePreference": "this recourse type",
}

_GENERAL_QUESTIONS = [
    ("g1", "What information should I provide for this field?", "medium"),
    ("g2", "How does this field affect my loan application?", "medium"),
]

_BEST_PRACTICE_QUESTIONS = [
    ("bp1", "What are the best practices for completing this field?", "medium"),
    ("bp2", "What common mistakes should I avoid?", "medium"),
]


def generate_preset_questions(field: FieldContext) -> list[PresetQuestion]:
    """Return up to ``MAX_PRESET_QUESTIONS`` suggestions for *field*."""
    questions: list[PresetQuestion] = []

    field_id = field.id or ""
    if field_id in _FIELD_QUESTIONS:
        value = field.current_value or _VALUE_FALLBACKS.get(field_id, "this value")
        for qid, template, priority in _FIELD_QUESTIONS[field_id]:
            questions.append(
                PresetQuestion(
                    id=qid,
                    text=template.format(value=value),
                    category="field-specific",
                    priority=priority,
                )
            )
    else:
        questions.extend(
            PresetQuestion(id=qid, text=text, category="general", priority=priority)
            for qid, text, priority in _GENERAL_QUESTIONS
        )

    if field.validation_state is not None and field.validation_state.errors:
        questions.append(
            PresetQuestion(
                id="v1",
                text="How do I fix the validation errors for this field?",
                category="validation",
                priority="high",
            )
        )

    questions.extend(
        PresetQuestion(id=qid, text=text, category="best-practices", priority=priority)
        for qid, text, priority in _BEST_PRACTICE_QUESTIONS
    )
    return questions[:MAX_PRESET_QUESTIONS]
