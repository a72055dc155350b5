"""
Unit tests for pre-upload size estimation.
"""

import pytest

from duckit.export.bundle import ExportError
from duckit.export.estimator import SizeEstimator, bytes_to_mb, estimate_filename
from duckit.ingest.ingestor import SchemaInferringIngestor


@pytest.fixture
def estimator(engine):
    return SizeEstimator(engine)


@pytest.fixture
def loaded(engine, write_file):
    ingestor = SchemaInferringIngestor(engine, sample_bytes=8192)
    ingestor.ingest(write_file("a.csv", "id,name\n1,x\n2,y\n3,z\n"), "a")
    ingestor.ingest(write_file("b.csv", "id,score\n1,9.5\n"), "b")
    return engine


class TestSizeEstimator:
    """Tests for SizeEstimator."""

    def test_no_tables_estimates_zero(self, estimator):
        assert estimator.estimate() == 0

    def test_estimate_is_positive(self, estimator, loaded):
        assert estimator.estimate() > 0

    def test_estimate_is_repeatable(self, estimator, loaded):
        """Estimating twice should give the same number."""
        assert estimator.estimate() == estimator.estimate()

    def test_estimate_does_not_modify_tables(self, estimator, loaded):
        before = loaded.list_tables()

        estimator.estimate()

        assert loaded.list_tables() == before

    def test_estimate_leaves_no_scratch_files(self, estimator, loaded):
        estimator.estimate()

        assert list(loaded._scratch_dir().iterdir()) == []

    def test_subset_is_smaller_than_total(self, estimator, loaded):
        assert 0 < estimator.estimate(["a"]) < estimator.estimate()

    def test_missing_table_raises(self, estimator, loaded):
        with pytest.raises(ExportError):
            estimator.estimate(["missing"])

    def test_estimate_mb(self, estimator, loaded):
        assert estimator.estimate_mb() == pytest.approx(bytes_to_mb(estimator.estimate()))


class TestHelpers:
    def test_estimate_filename(self):
        assert estimate_filename("t") == "_estimate_t.parquet"

    def test_bytes_to_mb(self):
        assert bytes_to_mb(1024 * 1024 * 3) == 3
