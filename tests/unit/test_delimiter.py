"""
Unit tests for delimiter detection.
"""

import pytest

from duckit.ingest.delimiter import (
    COMMA,
    PIPE,
    TAB,
    choose_delimiter,
    count_candidates,
    delimiter_for_extension,
    first_line,
    infer_delimiter,
)


class TestChooseDelimiter:
    """Tests for choosing a delimiter from a header line."""

    def test_pipe_wins_on_highest_count(self):
        """Three pipes and one tab should choose pipe."""
        assert choose_delimiter("a|b|c\td|e") == PIPE

    def test_tab_wins_on_highest_count(self):
        """Tabs outnumbering everything else should choose tab."""
        assert choose_delimiter("a\tb\tc,d") == TAB

    def test_comma_wins_on_highest_count(self):
        assert choose_delimiter("a,b,c|d") == COMMA

    def test_no_candidates_falls_back_to_comma(self):
        """A line without any candidate should choose comma."""
        assert choose_delimiter("single_column") == COMMA

    def test_empty_line_falls_back_to_comma(self):
        assert choose_delimiter("") == COMMA

    @pytest.mark.parametrize("line", ["a,b|c", "a,b\tc", "a,b|c\td"])
    def test_comma_wins_ties(self, line):
        """Comma should win every tie it is part of."""
        assert choose_delimiter(line) == COMMA

    def test_pipe_beats_tab_on_tie(self):
        """A pipe/tab tie should go to pipe."""
        assert choose_delimiter("a|b\tc") == PIPE

    def test_count_candidates(self):
        assert count_candidates("a|b|c\td,e") == {PIPE: 2, TAB: 1, COMMA: 1}


class TestExtensionDelimiter:
    """Tests for extensions that fix the delimiter."""

    @pytest.mark.parametrize("filename,expected", [
        ("data.pipe", PIPE),
        ("data.psv", PIPE),
        ("data.tsv", TAB),
        ("DATA.TSV", TAB),
        ("data.csv", None),
        ("data.txt", None),
    ])
    def test_delimiter_for_extension(self, filename, expected):
        assert delimiter_for_extension(filename) == expected

    def test_extension_overrides_content(self, tmp_path):
        """A .tsv file should be tab-delimited even if its header has commas."""
        path = tmp_path / "odd.tsv"
        path.write_text("a,b,c\n1,2,3\n")

        assert infer_delimiter(path) == TAB


class TestInferDelimiter:
    """Tests for content-based inference."""

    def test_infers_pipe_from_first_line(self, tmp_path):
        path = tmp_path / "data.txt"
        path.write_text("id|name|city\n1|a|b\n")

        assert infer_delimiter(path) == PIPE

    def test_only_first_line_is_considered(self, tmp_path):
        """Later lines should not influence the choice."""
        path = tmp_path / "data.csv"
        path.write_text("id,name\n1|2|3|4|5\n")

        assert infer_delimiter(path) == COMMA

    def test_sample_window_is_respected(self, tmp_path):
        """Only the leading bytes should be read."""
        path = tmp_path / "data.csv"
        path.write_text("a" * 20 + "|" * 10 + "\n")

        assert infer_delimiter(path, sample_bytes=10) == COMMA

    def test_empty_file_falls_back_to_comma(self, tmp_path):
        path = tmp_path / "empty.csv"
        path.write_bytes(b"")

        assert infer_delimiter(path) == COMMA

    def test_first_line_handles_crlf(self):
        assert first_line(b"a\tb\r\n1\t2\r\n") == "a\tb"

    @pytest.mark.parametrize("separator", ["\r", "\x1e", "\x85", "\u2028"])
    def test_first_line_ends_only_at_newline(self, separator):
        header = f"a|b{separator}c|d|e"

        assert first_line(f"{header}\n1,2\n".encode("utf-8")) == header

    def test_header_with_embedded_separator_is_counted_whole(self, tmp_path):
        path = tmp_path / "data.txt"
        path.write_bytes("a,b\rc|d|e|f\n1,2\n".encode("utf-8"))

        assert infer_delimiter(path) == PIPE
