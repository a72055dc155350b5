"""
Unit tests for the file validator.
"""

import pytest

from duckit.ingest.validator import FileKind, FileValidator


class TestFileValidator:
    """Tests for FileValidator."""

    @pytest.fixture
    def validator(self):
        """Create validator instance."""
        return FileValidator()

    @pytest.mark.parametrize("filename,kind", [
        ("data.parquet", FileKind.PARQUET),
        ("DATA.PARQUET", FileKind.PARQUET),
        ("store.duckdb", FileKind.DATABASE),
        ("store.db", FileKind.DATABASE),
        ("sales.csv", FileKind.DELIMITED),
        ("sales.tsv", FileKind.DELIMITED),
        ("sales.psv", FileKind.DELIMITED),
        ("image.png", FileKind.UNKNOWN),
    ])
    def test_classify(self, validator, filename, kind):
        assert validator.classify(filename) == kind

    def test_valid_parquet(self, validator, tmp_path):
        """Test validation of a Parquet file for quick upload."""
        path = tmp_path / "data.parquet"
        path.write_bytes(b"PAR1data")

        result = validator.validate_path(path)

        assert result.valid is True
        assert result.kind == FileKind.PARQUET
        assert result.filename == "data.parquet"
        assert result.size_bytes == 8
        assert result.content_type == "application/vnd.apache.parquet"

    def test_valid_database_file(self, validator, tmp_path):
        path = tmp_path / "store.duckdb"
        path.write_bytes(b"\x00" * 16)

        result = validator.validate_path(path)

        assert result.valid is True
        assert result.content_type == "application/octet-stream"

    def test_missing_file(self, validator, tmp_path):
        result = validator.validate_path(tmp_path / "missing.parquet")

        assert result.valid is False
        assert result.error_type == "not_found"

    def test_unsupported_kind(self, validator, tmp_path):
        """A CSV is not accepted for quick upload."""
        path = tmp_path / "data.csv"
        path.write_text("id\n1\n")

        result = validator.validate_path(path)

        assert result.valid is False
        assert result.error_type == "unsupported"
        assert "data.csv" in result.error

    def test_delimited_accepted_when_requested(self, validator, tmp_path):
        path = tmp_path / "data.csv"
        path.write_text("id\n1\n")

        result = validator.validate_path(path, accept=(FileKind.DELIMITED,))

        assert result.valid is True
        assert result.content_type == "text/csv"

    def test_empty_file(self, validator, tmp_path):
        path = tmp_path / "empty.parquet"
        path.write_bytes(b"")

        result = validator.validate_path(path)

        assert result.valid is False
        assert result.error_type == "empty"
