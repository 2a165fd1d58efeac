"""Formatting and parsing helpers shared by the CLI."""

from __future__ import annotations

import json
from datetime import datetime

from memoria.errors import ValidationError
from memoria.scheduling.models import utc_now

PAIR_SEPARATOR = "::"


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'}"


def format_time_until_due(next_due: datetime, now: datetime | None = None) -> str:
    """
    Human-readable time until a card is due.

    Uses the largest whole unit: "3 days", "1 hour", "5 minutes".
    """
    now = now or utc_now()
    seconds = (next_due - now).total_seconds()

    if seconds <= 0:
        return "Due now"

    minutes = int(seconds // 60)
    hours = int(seconds // 3600)
    days = int(seconds // 86400)

    if days > 0:
        return _plural(days, "day")
    if hours > 0:
        return _plural(hours, "hour")
    if minutes > 0:
        return _plural(minutes, "minute")
    return "< 1 minute"


def parse_card_pairs(text: str) -> list[tuple[str, str]]:
    """
    Parse question/answer pairs.

    Accepts either a JSON list of {"question": ..., "answer": ...} objects or
    one "question :: answer" pair per line (blank lines and # comments skipped).

    Raises:
        ValidationError: On a malformed line or JSON entry
    """
    stripped = text.strip()
    if not stripped:
        return []

    if stripped.startswith("["):
        try:
            data = json.loads(stripped)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Invalid JSON card list: {e}") from e

        pairs = []
        for i, item in enumerate(data):
            if not isinstance(item, dict) or not item.get("question") or not item.get("answer"):
                raise ValidationError(f"Card {i} needs non-empty 'question' and 'answer'")
            pairs.append((str(item["question"]).strip(), str(item["answer"]).strip()))
        return pairs

    pairs = []
    for line_no, line in enumerate(stripped.splitlines(), 1):
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        question, sep, answer = line.partition(PAIR_SEPARATOR)
        if not sep or not question.strip() or not answer.strip():
            raise ValidationError(f"Line {line_no}: expected 'question {PAIR_SEPARATOR} answer'")
        pairs.append((question.strip(), answer.strip()))
    return pairs
