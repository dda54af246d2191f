"""Plain-text cleaning for user-submitted form fields."""
from __future__ import annotations

from typing import Mapping

import bleach

# Form fields are stored and mailed as plain text, so every tag is stripped.
ALLOWED_TAGS: list[str] = []
ALLOWED_ATTRIBUTES: dict[str, list[str]] = {}


def sanitize_text(value: str) -> str:
    return bleach.clean(value, tags=ALLOWED_TAGS, attributes=ALLOWED_ATTRIBUTES, strip=True)


def sanitize_optional(value: str | None) -> str | None:
    """Like ``sanitize_text`` but maps empty input to ``None`` for nullable columns."""
    if not value:
        return None
    return sanitize_text(value)


def sanitize_answers(answers: Mapping[str, str]) -> dict[str, str]:
    return {sanitize_text(question): sanitize_text(answer) for question, answer in answers.items()}
