"""Label wrapping for fixed-width mind map nodes."""

from typing import List

AVERAGE_GLYPH_WIDTH = 8


def max_chars_per_line(max_width: float, glyph_width: float = AVERAGE_GLYPH_WIDTH) -> int:
    """Convert a pixel width into a character budget (at least one)."""
    return max(1, int(max_width // glyph_width))


def wrap_text(text: str, max_width: float,
              glyph_width: float = AVERAGE_GLYPH_WIDTH) -> List[str]:
    """Greedily wrap `text` into lines that fit `max_width` pixels.

    Words longer than the budget are hard-split with no hyphen. Empty or
    whitespace-only input gives no lines.
    """
    words = text.split() if text else []
    if not words:
        return []

    budget = max_chars_per_line(max_width, glyph_width)
    lines: List[str] = []
    line = ""

    for word in words:
        if len(word) > budget:
            if line:
                lines.append(line)
            while len(word) > budget:
                lines.append(word[:budget])
                word = word[budget:]
            line = word
            continue

        candidate = f"{line} {word}" if line else word
        if len(candidate) > budget and line:
            lines.append(line)
            line = word
        else:
            line = candidate

    if line:
        lines.append(line)
    return lines
