"""Heuristic parsing of free-text model replies.

The model is asked for plain prose, not JSON, so structure is recovered
lexically:

    parse(raw) → first fenced code block  → code_suggestion (markers stripped from body)
               → keyword scan of the lead → severity

parse() is a pure, total function: it never raises and the same text always
yields the same ParsedResponse. A reply it cannot classify degrades to
Severity.NONE with no suggestion rather than failing.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    SUGGESTION = "suggestion"
    INFO = "info"
    NONE = "none"

    @property
    def label(self) -> str:
        return "" if self is Severity.NONE else self.value.capitalize()


@dataclass(frozen=True)
class CodeBlock:
    """A fenced code block lifted out of a reply."""

    language: str
    code: str


@dataclass(frozen=True)
class ParsedResponse:
    severity: Severity
    body: str
    code_suggestion: CodeBlock | None = None

    @property
    def is_degraded(self) -> bool:
        """True when nothing could be recovered beyond the raw text."""
        return self.severity is Severity.NONE and self.code_suggestion is None


# Opening fence: ``` plus an optional language tag, then a newline. It may trail
# prose on the same line ("Error: SQL injection. ```sql"). The closing fence
# must sit on its own line.
_FENCE_RE = re.compile(
    r"```[ \t]*(?P<lang>[\w+#.-]*)[ \t]*\r?\n(?P<code>.*?)^[ \t]*```[ \t]*\r?$",
    re.DOTALL | re.MULTILINE,
)


@dataclass(frozen=True)
class SeverityPolicy:
    """Ordered keyword tiers used to classify a reply.

    Tiers are checked in order and the first tier with any match wins, so
    "Bug: consider a guard" is an Error even though "consider" appears too.
    Keywords match at the start of a word and may continue with word
    characters: "bug" matches "bugs" but not "debug".
    """

    tiers: tuple[tuple[Severity, tuple[str, ...]], ...]
    lead_lines: int = 2
    _patterns: tuple[tuple[Severity, re.Pattern], ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        patterns = tuple(
            (severity, _keyword_pattern(keywords)) for severity, keywords in self.tiers if keywords
        )
        object.__setattr__(self, "_patterns", patterns)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Iterable[str]], lead_lines: int = 2) -> SeverityPolicy:
        """Build a policy from ``{"error": [...], "warning": [...]}``; key order is priority order."""
        tiers = []
        for name, keywords in mapping.items():
            try:
                severity = Severity(str(name).lower())
            except ValueError:
                raise ValueError(f"Unknown severity in keyword config: {name!r}")
            if severity is Severity.NONE:
                raise ValueError("Severity 'none' is the no-match default and cannot have keywords.")
            tiers.append((severity, tuple(str(k) for k in keywords)))
        return cls(tiers=tuple(tiers), lead_lines=lead_lines)

    def classify(self, text: str) -> Severity:
        lead = _lead(text, self.lead_lines)
        for severity, pattern in self._patterns:
            if pattern.search(lead):
                return severity
        return Severity.NONE


def _keyword_pattern(keywords: Iterable[str]) -> re.Pattern:
    alternatives = [r"\s+".join(re.escape(part) for part in kw.split()) for kw in keywords if kw.strip()]
    if not alternatives:
        return re.compile(r"(?!x)x")
    return re.compile(r"\b(?:" + "|".join(alternatives) + r")\w*", re.IGNORECASE)


def _lead(text: str, max_lines: int) -> str:
    lines = [line for line in text.splitlines() if line.strip()]
    return "\n".join(lines[:max_lines])


DEFAULT_POLICY = SeverityPolicy(
    tiers=(
        (Severity.ERROR, ("error", "critical", "bug", "security", "vulnerability")),
        (Severity.WARNING, ("warning", "warn", "caution", "potential issue", "might cause")),
        (Severity.SUGGESTION, ("suggestion", "suggest", "consider", "recommend", "could be improved")),
        (Severity.INFO, ("info", "note", "fyi")),
    )
)


def parse(raw_text: str, policy: SeverityPolicy = DEFAULT_POLICY) -> ParsedResponse:
    """Split a raw reply into severity, body and an optional code suggestion."""
    text = raw_text or ""

    for match in _FENCE_RE.finditer(text):
        code = match.group("code").rstrip("\r\n")
        if not code.strip():
            continue
        before, after = text[: match.start()], text[match.end() :]
        if before and not before.endswith("\n"):
            # Opening fence trailed prose; keep the prose line, drop the marker.
            before = before.rstrip(" \t") + "\n"
        body = (before + code + after).strip()
        return ParsedResponse(
            severity=policy.classify(before + after),
            body=body,
            code_suggestion=CodeBlock(language=match.group("lang"), code=code),
        )

    return ParsedResponse(severity=policy.classify(text), body=text.strip())
