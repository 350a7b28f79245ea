"""Tests for the heuristic reply parser."""

import pytest

from snaplens_core.parser import DEFAULT_POLICY, CodeBlock, ParsedResponse, Severity, SeverityPolicy, parse


class TestSeverity:
    def test_warning_with_python_suggestion(self):
        raw = "Warning: unchecked index access.\n\n```python\nif i < len(arr): ...\n```"
        result = parse(raw)
        assert result.severity is Severity.WARNING
        assert result.code_suggestion == CodeBlock(language="python", code="if i < len(arr): ...")
        assert "```" not in result.body
        assert result.body.startswith("Warning: unchecked index access.")

    def test_no_keyword_is_none(self):
        result = parse("This function looks fine.")
        assert result.severity is Severity.NONE
        assert result.code_suggestion is None
        assert result.body == "This function looks fine."

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("Error: null dereference on line 3.", Severity.ERROR),
            ("CRITICAL: credentials are logged.", Severity.ERROR),
            ("There is a bug in the loop bound.", Severity.ERROR),
            ("Caution: this allocates per call.", Severity.WARNING),
            ("Consider extracting a helper.", Severity.SUGGESTION),
            ("I recommend renaming `x`.", Severity.SUGGESTION),
            ("Note: this mirrors the stdlib API.", Severity.INFO),
        ],
    )
    def test_keyword_tiers(self, raw, expected):
        assert parse(raw).severity is expected

    def test_higher_tier_wins_regardless_of_position(self):
        assert parse("Consider this: there is a bug here.").severity is Severity.ERROR

    def test_case_insensitive(self):
        assert parse("wArNiNg: shadowed name").severity is Severity.WARNING

    def test_keyword_must_start_a_word(self):
        assert parse("Run it under the debugger.").severity is Severity.NONE

    def test_keyword_may_continue_with_word_characters(self):
        assert parse("Several bugs here.").severity is Severity.ERROR

    def test_only_lead_lines_are_scanned(self):
        raw = "Looks reasonable overall.\nThe naming is clear.\n\nOne error path is untested."
        assert parse(raw).severity is Severity.NONE

    def test_lead_skips_blank_lines(self):
        raw = "\n\n   \nWarning: missing timeout."
        assert parse(raw).severity is Severity.WARNING

    def test_code_block_contents_are_not_scanned(self):
        raw = "Looks fine.\n```python\nraise ValueError('error')\n```"
        result = parse(raw)
        assert result.severity is Severity.NONE
        assert result.code_suggestion is not None


class TestCodeSuggestion:
    def test_inline_opening_fence(self):
        raw = "Error: SQL injection risk. ```sql\nSELECT ...\n```"
        result = parse(raw)
        assert result.severity is Severity.ERROR
        assert result.code_suggestion == CodeBlock(language="sql", code="SELECT ...")
        assert result.body == "Error: SQL injection risk.\nSELECT ..."

    def test_first_block_taken(self):
        raw = "Suggestion: two options.\n```go\nfirst()\n```\nor\n```go\nsecond()\n```"
        result = parse(raw)
        assert result.code_suggestion.code == "first()"
        # Only the extracted block loses its markers.
        assert result.body.count("```") == 2

    def test_block_without_language_tag(self):
        result = parse("Suggestion:\n```\nx = 1\n```")
        assert result.code_suggestion == CodeBlock(language="", code="x = 1")

    def test_multiline_code_keeps_indentation(self):
        raw = "Consider:\n```python\ndef f():\n    return 1\n```\nThanks."
        result = parse(raw)
        assert result.code_suggestion.code == "def f():\n    return 1"
        assert result.body == "Consider:\ndef f():\n    return 1\nThanks."

    def test_unterminated_fence_is_plain_text(self):
        raw = "Warning: partial reply\n```python\nx = 1\n"
        result = parse(raw)
        assert result.code_suggestion is None
        assert result.body == raw.strip()
        assert result.severity is Severity.WARNING

    def test_empty_block_is_skipped(self):
        raw = "Info:\n```\n```\nnothing else"
        assert parse(raw).code_suggestion is None

    def test_inline_triple_backticks_are_not_a_block(self):
        assert parse("Use ```x``` here.").code_suggestion is None

    def test_crlf_fences(self):
        result = parse("Suggestion:\r\n```js\r\nlet a = 1;\r\n```\r\n")
        assert result.code_suggestion == CodeBlock(language="js", code="let a = 1;")

    @pytest.mark.parametrize("tag", ["C#", "F#", "ObjectiveC", "TypeScript"])
    def test_language_tag_kept_as_written(self, tag):
        result = parse(f"Suggestion: simplify.\n```{tag}\nx = 1\n```")
        assert result.code_suggestion == CodeBlock(language=tag, code="x = 1")


class TestTotality:
    @pytest.mark.parametrize("raw", ["", "   ", "```", "```\n", "\n```python\n", "``````", "\x00\x01"])
    def test_never_raises(self, raw):
        result = parse(raw)
        assert isinstance(result, ParsedResponse)

    def test_empty_string(self):
        assert parse("") == ParsedResponse(severity=Severity.NONE, body="", code_suggestion=None)

    def test_deterministic(self):
        raw = "Error: off by one.\n```c\nfor (i = 0; i < n; i++)\n```"
        assert parse(raw) == parse(raw)

    def test_degraded_flag(self):
        assert parse("Nothing to flag.").is_degraded is True
        assert parse("Warning: x").is_degraded is False


class TestSeverityPolicy:
    def test_custom_policy_reorders_priority(self):
        policy = SeverityPolicy.from_mapping({"suggestion": ["consider"], "error": ["bug"]})
        assert parse("Consider: there is a bug.", policy).severity is Severity.SUGGESTION

    def test_custom_keywords(self):
        policy = SeverityPolicy.from_mapping({"error": ["blocker"]})
        assert parse("Blocker: data race", policy).severity is Severity.ERROR
        assert parse("Error: data race", policy).severity is Severity.NONE

    def test_multi_word_keyword(self):
        assert DEFAULT_POLICY.classify("This has a potential  issue with locking.") is Severity.WARNING

    def test_lead_lines_configurable(self):
        policy = SeverityPolicy(tiers=DEFAULT_POLICY.tiers, lead_lines=1)
        assert parse("Looks fine.\nWarning: but slow.", policy).severity is Severity.NONE
        assert parse("Looks fine.\nWarning: but slow.").severity is Severity.WARNING

    def test_unknown_severity_rejected(self):
        with pytest.raises(ValueError):
            SeverityPolicy.from_mapping({"blocker": ["x"]})

    def test_none_severity_rejected(self):
        with pytest.raises(ValueError):
            SeverityPolicy.from_mapping({"none": ["x"]})
