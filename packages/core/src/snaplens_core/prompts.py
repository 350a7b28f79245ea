"""Prompt construction for selection reviews.

A prompt is plain text sent through ModelClient.submit(). The severity words
and fenced-code instructions below match what snaplens_core.parser looks
for, so keep the two in step when editing either.
"""

from __future__ import annotations

from collections.abc import Sequence

from snaplens_core.selection import CodeSelection, split_lines
from snaplens_core.thread import Author, ReviewComment

DEFAULT_REQUEST = (
    "Please review this code and provide feedback on potential improvements, issues, or best practices."
)

_GUIDELINES = """You are an expert code reviewer. Analyze the selected code and provide constructive feedback.

## Guidelines:
- Focus on code quality, potential bugs, and best practices
- Provide specific, actionable suggestions
- Be concise but thorough
- Start your reply with exactly one severity label followed by a colon:
  Error (bugs/security issues), Warning (potential problems), Suggestion (improvements), or Info (explanations)
- If you suggest a code change, give the improved code in a single fenced block with a language tag:
  ```python
  code here
  ```"""


def render_context(selection: CodeSelection) -> str:
    """Number the expanded range and mark the selected lines with ``>``."""
    first = selection.start_line - len(selection.context_before)
    selected = split_lines(selection.selected_text)
    lines = list(selection.context_before) + selected + list(selection.context_after)
    width = len(str(first + len(lines)))
    rendered = []
    for offset, line in enumerate(lines):
        number = first + offset
        marker = ">" if selection.start_line <= number <= selection.end_line else " "
        text = line.rstrip("\r\n")
        rendered.append(f"{marker} {number:>{width}} | {text}")
    return "\n".join(rendered)


def render_transcript(comments: Sequence[ReviewComment]) -> str:
    turns = []
    for comment in comments:
        speaker = "User" if comment.author is Author.USER else "Assistant"
        turns.append(f"{speaker}: {comment.body}")
    return "\n\n".join(turns)


def build_review_prompt(
    selection: CodeSelection,
    history: Sequence[ReviewComment] = (),
    request: str | None = None,
    custom_prompt: str | None = None,
) -> str:
    """Build the full prompt for one request on a thread.

    ``history`` is every comment already on the thread, oldest first.
    ``request`` is the newest user text; when neither history nor a request is
    given the default review request is used.
    """
    parts = []
    if custom_prompt:
        parts.append(custom_prompt)
    parts.append(_GUIDELINES)

    if selection.language:
        parts.append(f"## Language: {selection.language}")
    parts.append(f"## File: {selection.file_id} (lines {selection.start_line}-{selection.end_line})")

    fence = selection.language.lower() if selection.language else ""
    parts.append(f"## Context (selected lines marked with '>'):\n```{fence}\n{render_context(selection)}\n```")
    parts.append(f"## Selected code to review:\n```{fence}\n{selection.selected_text.rstrip()}\n```")

    if history:
        parts.append(f"## Conversation so far:\n{render_transcript(history)}")

    if request:
        parts.append(f"## User's question/request:\n{request}")
    elif not history:
        parts.append(f"## User's question/request:\n{DEFAULT_REQUEST}")

    parts.append("## Your review:")
    return "\n\n".join(parts) + "\n"
