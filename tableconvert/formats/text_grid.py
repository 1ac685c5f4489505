"""Shared helpers for the plain-text grid formats (Markdown, ASCII box, TWiki)."""

from __future__ import annotations

from typing import List, Optional, Sequence

from wcwidth import wcswidth, wcwidth

ALIGNMENTS = {"l", "c", "r"}


def display_width(text: str) -> int:
    """Terminal columns occupied by ``text``; wide CJK characters count as two."""
    width = wcswidth(text)
    if width >= 0:
        return width
    return sum(max(wcwidth(ch), 0) for ch in text)


def pad(text: str, width: int, align: str = "l") -> str:
    gap = width - display_width(text)
    if gap <= 0:
        return text
    if align == "r":
        return " " * gap + text
    if align == "c":
        left = gap // 2
        return " " * left + text + " " * (gap - left)
    return text + " " * gap


def parse_alignments(spec: Optional[str], count: int) -> List[str]:
    """``"l,c,r"`` -> one alignment per column; unknown entries and gaps become ``l``."""
    aligns = [a.strip().lower() for a in (spec or "").split(",")] if spec else []
    aligns = [a if a in ALIGNMENTS else "l" for a in aligns]
    if len(aligns) == 1 and count > 1:
        aligns = aligns * count
    aligns.extend(["l"] * (count - len(aligns)))
    return aligns[:count]


def column_widths(rows: Sequence[Sequence[str]], count: int, minimum: int = 0) -> List[int]:
    widths = [minimum] * count
    for row in rows:
        for i, cell in enumerate(row[:count]):
            w = display_width(cell)
            if w > widths[i]:
                widths[i] = w
    return widths


def strip_closing_pipe(body: str) -> str:
    """Drop a trailing ``|`` unless an odd run of backslashes escapes it."""
    if not body.endswith("|"):
        return body
    rest = body[:-1]
    if (len(rest) - len(rest.rstrip("\\"))) % 2:
        return body
    return rest
