"""Pull candidate task titles out of free-form requirement text."""

from __future__ import annotations

import re
from typing import List

BULLET_RE = re.compile(r"^[-*•]\s*(?:\[.\])?\s*(.+)$")
NUMBERED_RE = re.compile(r"^\d+[.)]\s*(.+)$")

MIN_TITLE_LENGTH = 6
MAX_EXTRACTED_LENGTH = 199
# Titles created from extracted lines are cut to this length.
MAX_TITLE_LENGTH = 100


def extract_task_titles(text: str) -> List[str]:
    """Return bullet and numbered list items found in ``text``.

    Items shorter than 6 or longer than 199 characters are skipped.
    Checkbox markers such as ``- [ ]`` are stripped.
    """
    titles: List[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        match = BULLET_RE.match(stripped) or NUMBERED_RE.match(stripped)
        if not match:
            continue
        candidate = match.group(1)
        if MIN_TITLE_LENGTH <= len(candidate) <= MAX_EXTRACTED_LENGTH:
            titles.append(candidate)
    return titles


def truncate_title(title: str, limit: int = MAX_TITLE_LENGTH) -> str:
    return title[:limit]
