"""Tests for ralphdash.lib.envparse."""

import pytest

from ralphdash.lib.envparse import load_env, parse_env


class TestParseEnv:
    """Tests for parse_env."""

    def test_basic(self):
        """KEY=value lines become dict entries."""
        assert parse_env("A=1\nB_2=two\n") == {"A": "1", "B_2": "two"}

    def test_comments_and_blank_lines(self):
        """Comments and blank lines are skipped."""
        assert parse_env("# comment\n\nA=1\n   \n") == {"A": "1"}

    def test_quotes_removed(self):
        """Matching quotes around a value are stripped."""
        assert parse_env("A=\"x y\"\nB='z'") == {"A": "x y", "B": "z"}

    def test_mismatched_quotes_kept(self):
        """Mismatched quotes are left in the value."""
        assert parse_env("A=\"x'") == {"A": "\"x'"}

    def test_export_prefix(self):
        """A leading export keyword is accepted."""
        assert parse_env("export RALPH_UI_MODE=live") == {"RALPH_UI_MODE": "live"}

    def test_value_may_contain_equals(self):
        """Only the first = separates key from value."""
        assert parse_env("A=b=c") == {"A": "b=c"}

    def test_empty_value(self):
        """An empty value is allowed."""
        assert parse_env("A=") == {"A": ""}

    def test_missing_equals(self):
        """A line without = is an error naming the line."""
        with pytest.raises(ValueError, match="Line 2"):
            parse_env("A=1\nB\n")

    @pytest.mark.parametrize("key", ["lower", "1ABC", "A-B"])
    def test_invalid_key(self, key):
        """Keys must be upper-case identifiers."""
        with pytest.raises(ValueError, match="Invalid key"):
            parse_env(f"{key}=1")

    @pytest.mark.parametrize("value", ["`id`", "$(id)", "${HOME}", "a;b", "a && b", "a | b"])
    def test_forbidden_patterns(self, value):
        """Shell substitution and chaining are rejected."""
        with pytest.raises(ValueError, match="Forbidden pattern"):
            parse_env(f"A={value}")


class TestLoadEnv:
    """Tests for load_env."""

    def test_missing_file(self, tmp_path):
        """A missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_env(tmp_path / "nope.env")

    def test_reads_file(self, tmp_path):
        """File contents are parsed."""
        path = tmp_path / "ralph-ui.env"
        path.write_text("RALPH_UI_MAX_LINES=10\n")
        assert load_env(path) == {"RALPH_UI_MAX_LINES": "10"}
