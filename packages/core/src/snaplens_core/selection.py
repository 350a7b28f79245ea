"""Selection capture: snapshot a line range of a buffer plus surrounding context.

The snapshot is line-oriented. ``context_before``, ``selected_text`` and
``context_after`` partition the expanded range exactly, line endings included,
so joining them reproduces the source text byte for byte.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import PurePath

from snaplens_core.errors import InvalidSelection

# Editors break lines on "\n" only; str.splitlines() would also split on form
# feeds, U+2028 and the other Unicode separators.
_LINE_END_RE = re.compile(r"(?<=\n)")


def split_lines(text: str) -> list[str]:
    """Split ``text`` into lines the way an editor numbers them, endings kept."""
    lines = _LINE_END_RE.split(text)
    if lines[-1] == "":
        lines.pop()
    return lines


@dataclass(frozen=True)
class CodeSelection:
    """Immutable snapshot of the code a review thread is about."""

    file_id: str
    language: str
    selected_text: str
    context_before: tuple[str, ...]
    context_after: tuple[str, ...]
    start_line: int  # 1-based, inclusive
    end_line: int  # 1-based, inclusive

    @property
    def line_count(self) -> int:
        return self.end_line - self.start_line + 1

    @property
    def expanded_text(self) -> str:
        """The selection with its context, exactly as it appeared in the buffer."""
        return "".join(self.context_before) + self.selected_text + "".join(self.context_after)

    def summary(self) -> str:
        """Short ``name:start-end`` label, e.g. ``views.py:12-18``."""
        name = PurePath(self.file_id).name or self.file_id
        return f"{name}:{self.start_line}-{self.end_line}"


def capture(
    buffer_text: str,
    selection_range: tuple[int, int],
    context_lines: int,
    file_id: str,
    language: str = "",
) -> CodeSelection:
    """Capture lines ``selection_range`` (1-based, inclusive) with context.

    Context is clipped at the start and end of the buffer; clipping is not an
    error. Raises InvalidSelection for an empty or out-of-bounds range or a
    negative ``context_lines``.
    """
    if context_lines < 0:
        raise InvalidSelection(f"context_lines must be >= 0, got {context_lines}")

    start_line, end_line = selection_range
    lines = split_lines(buffer_text)
    if not lines:
        raise InvalidSelection("Cannot capture a selection from an empty buffer.")
    if end_line < start_line:
        raise InvalidSelection(f"Empty selection: lines {start_line}-{end_line}")
    if start_line < 1 or end_line > len(lines):
        raise InvalidSelection(f"Selection {start_line}-{end_line} is outside the buffer (1-{len(lines)}).")

    first = start_line - 1
    before_start = max(0, first - context_lines)
    after_end = min(len(lines), end_line + context_lines)

    return CodeSelection(
        file_id=file_id,
        language=language or "",
        selected_text="".join(lines[first:end_line]),
        context_before=tuple(lines[before_start:first]),
        context_after=tuple(lines[end_line:after_end]),
        start_line=start_line,
        end_line=end_line,
    )


def line_range_for_offsets(buffer_text: str, start: int, end: int) -> tuple[int, int]:
    """Convert a character-offset selection ``[start, end)`` into a 1-based line pair.

    A selection that ends right after a newline (the cursor sits at column 0
    of the next line) does not include that next line, matching how editors
    highlight whole-line selections.
    """
    if start >= end:
        raise InvalidSelection(f"Empty selection: offsets {start}-{end}")
    if start < 0 or end > len(buffer_text):
        raise InvalidSelection(f"Offsets {start}-{end} are outside the buffer (0-{len(buffer_text)}).")

    start_line = buffer_text.count("\n", 0, start) + 1
    last_char = end - 1
    if buffer_text[last_char] == "\n" and last_char > start:
        last_char -= 1
    end_line = buffer_text.count("\n", 0, last_char) + 1
    return start_line, max(start_line, end_line)


def capture_offsets(
    buffer_text: str,
    start: int,
    end: int,
    context_lines: int,
    file_id: str,
    language: str = "",
) -> CodeSelection:
    return capture(buffer_text, line_range_for_offsets(buffer_text, start, end), context_lines, file_id, language)
