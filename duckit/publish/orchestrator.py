"""
Publish orchestrator.

Runs the three workflows over one skeleton:

    role-loaded guard -> in-flight guard -> measure -> admit
        -> produce bytes -> transfer -> record (non-temporary only)

An ArtifactSource decides how the size is measured and how the bytes are
produced:

- BundleSource: build database (Parquet estimate, ZIP export after admission)
- FileSource: quick upload of an existing .parquet/.duckdb/.db file
- BufferSource: Parquet bytes from a conversion
"""

import logging
import re
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple, Union

from duckit.catalog.store import FileRecordData, MetadataStore, MetadataStoreError
from duckit.common.logging_config import (
    PerformanceTracker,
    correlation_scope,
)
from duckit.common.metrics import record_persist_failures_total
from duckit.config.settings import Settings, get_settings
from duckit.engine.adapter import AnalyticalEngine, ColumnInfo, TableInfo
from duckit.engine.duckdb_engine import DuckDBEngine
from duckit.export.bundle import BundleExporter, ExportError, generate_database_name
from duckit.export.estimator import SizeEstimator, bytes_to_mb
from duckit.ingest.ingestor import SchemaInferringIngestor
from duckit.ingest.validator import FileKind, FileValidator
from duckit.publish.admission import (
    AdmissionController,
    AdmissionDenied,
    ArtifactKind,
)
from duckit.publish.errors import (
    InvalidArtifactError,
    PublishInProgressError,
    RecordPersistError,
    RoleNotLoadedError,
)
from duckit.publish.identity import Identity, StorageTier
from duckit.publish.transfer import CancelToken, TransferClient, TransferResult, percentage
from duckit.storage.adapter import ArtifactStorage
from duckit.storage.factory import get_artifact_storage

logger = logging.getLogger(__name__)

StageCallback = Callable[[str, str, int], None]
ByteProgressCallback = Callable[[int, int], None]

CONVERSION_TABLE = "_temp_csv_to_parquet_"

_DELIMITED_EXT_RE = re.compile(r"\.(csv|tsv|txt|pipe|psv)$", re.IGNORECASE)
_ARTIFACT_EXT_RE = re.compile(r"\.(parquet|duckdb|db)$", re.IGNORECASE)
_PARQUET_EXT_RE = re.compile(r"\.parquet$", re.IGNORECASE)


# ==================== Artifact sources ====================

class ArtifactSource(ABC):
    """
    Strategy for measuring and producing the bytes of one upload.

    Attributes:
        kind: Artifact kind for admission
        record_format: File record format ("parquet" or "duckdb")
        content_type: Content type of the uploaded file part
        upload_band: (start, span) of the overall percent range used by
            the transfer
    """
    kind: ArtifactKind
    record_format: str
    content_type: str = "application/octet-stream"
    upload_band: Tuple[int, int] = (10, 90)

    @abstractmethod
    def measure(self) -> int:
        """Exact or estimated artifact size in bytes."""
        pass

    @abstractmethod
    def produce(self, on_progress: Optional[StageCallback] = None) -> bytes:
        """Return the bytes to upload. Called only after admission."""
        pass

    @property
    @abstractmethod
    def filename(self) -> str:
        pass

    @property
    @abstractmethod
    def display_name(self) -> str:
        pass


class BundleSource(ArtifactSource):
    """All (or selected) engine tables as a ZIP database bundle."""
    kind = ArtifactKind.DATABASE_BUNDLE
    record_format = "duckdb"
    content_type = "application/zip"
    upload_band = (90, 10)

    def __init__(
        self,
        exporter: BundleExporter,
        estimator: SizeEstimator,
        tables: Optional[Sequence[str]] = None,
        database_name: Optional[str] = None,
    ):
        self.exporter = exporter
        self.estimator = estimator
        self.tables = tables
        self._database_name = database_name

    def _name(self) -> str:
        if self._database_name is None:
            self._database_name = generate_database_name(
                self.exporter.resolve_tables(self.tables))
        return self._database_name

    def measure(self) -> int:
        if not self.exporter.resolve_tables(self.tables):
            raise ExportError("No tables to export")
        return self.estimator.estimate(self.tables)

    def produce(self, on_progress: Optional[StageCallback] = None) -> bytes:
        bundle = self.exporter.export_bundle(
            self.tables, on_progress=on_progress, database_name=self._name())
        return bundle.data

    @property
    def filename(self) -> str:
        return f"{self._name()}.zip"

    @property
    def display_name(self) -> str:
        return self._name()


class FileSource(ArtifactSource):
    """An existing Parquet or database file uploaded as-is."""

    def __init__(self, path: Union[str, Path], validator: Optional[FileValidator] = None):
        self.path = Path(path)
        validation = (validator or FileValidator()).validate_path(self.path)
        if not validation.valid:
            raise InvalidArtifactError(validation.error)

        if validation.kind == FileKind.PARQUET:
            self.kind = ArtifactKind.PARQUET
            self.record_format = "parquet"
        else:
            self.kind = ArtifactKind.DATABASE_FILE
            self.record_format = "duckdb"
        self.content_type = validation.content_type or "application/octet-stream"

    def measure(self) -> int:
        return self.path.stat().st_size

    def produce(self, on_progress: Optional[StageCallback] = None) -> bytes:
        return self.path.read_bytes()

    @property
    def filename(self) -> str:
        return self.path.name

    @property
    def display_name(self) -> str:
        return _ARTIFACT_EXT_RE.sub("", self.path.name)


class BufferSource(ArtifactSource):
    """Parquet bytes already held in memory."""
    kind = ArtifactKind.PARQUET
    record_format = "parquet"
    upload_band = (50, 50)

    def __init__(self, data: bytes, filename: str):
        self.data = data
        self._filename = filename

    def measure(self) -> int:
        return len(self.data)

    def produce(self, on_progress: Optional[StageCallback] = None) -> bytes:
        return self.data

    @property
    def filename(self) -> str:
        return self._filename

    @property
    def display_name(self) -> str:
        return _PARQUET_EXT_RE.sub("", self._filename)


# ==================== Results ====================

@dataclass
class PublishResult:
    """Outcome of a completed publish."""
    download_url: str
    filename: str
    size_bytes: int
    tier: StorageTier
    display_name: str
    expires_in_hours: Optional[float] = None
    downgraded: bool = False
    record: Optional[FileRecordData] = None
    record_saved: bool = True
    correlation_id: Optional[str] = None


@dataclass
class ConversionResult:
    """A delimited file converted to Parquet in memory."""
    data: bytes
    filename: str
    row_count: int
    columns: Tuple[ColumnInfo, ...] = field(default_factory=tuple)

    @property
    def size_bytes(self) -> int:
        return len(self.data)


def parquet_name_for(filename: str) -> str:
    """'sales.csv' -> 'sales.parquet'"""
    name = Path(filename).name
    if _DELIMITED_EXT_RE.search(name):
        return _DELIMITED_EXT_RE.sub(".parquet", name)
    return f"{name}.parquet"


# ==================== Orchestrator ====================

class PublishOrchestrator:
    """
    Sequences ingestion, export, admission, transfer and recording.

    One publish may run at a time; a concurrent call raises
    PublishInProgressError instead of waiting.
    """

    def __init__(
        self,
        store: MetadataStore,
        transfer_client: Optional[TransferClient] = None,
        engine: Optional[AnalyticalEngine] = None,
        admission: Optional[AdmissionController] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.store = store
        self.transfer_client = transfer_client or TransferClient()
        self.engine = engine or DuckDBEngine(workdir=self.settings.engine_workdir)
        self.ingestor = SchemaInferringIngestor(
            self.engine, self.settings.delimiter_sample_bytes)
        self.exporter = BundleExporter(self.engine)
        self.estimator = SizeEstimator(self.engine, self.exporter)
        self.admission = admission or AdmissionController(
            store,
            capacity_probe=self.transfer_client.get_storage_status,
            settings=self.settings,
        )
        self.validator = FileValidator()
        self._in_flight = threading.Lock()

    # ==================== Guards ====================

    @staticmethod
    def _require_role(identity: Identity) -> None:
        if not identity.role_loaded:
            raise RoleNotLoadedError()

    @property
    def is_publishing(self) -> bool:
        return self._in_flight.locked()

    # ==================== Workflows ====================

    def ingest_files(
        self, paths: Sequence[Union[str, Path]], identity: Identity
    ) -> List[TableInfo]:
        """Load delimited files into engine tables (names from filenames)."""
        self._require_role(identity)
        return self.ingestor.ingest_many(paths)

    def build_database(
        self,
        identity: Identity,
        requested_tier: StorageTier = StorageTier.TEMPORARY,
        tables: Optional[Sequence[str]] = None,
        database_name: Optional[str] = None,
        on_progress: Optional[StageCallback] = None,
        on_transfer_progress: Optional[ByteProgressCallback] = None,
        cancel: Optional[CancelToken] = None,
    ) -> PublishResult:
        """Publish the engine tables as a ZIP database bundle."""
        source = BundleSource(self.exporter, self.estimator, tables, database_name)
        return self.publish(
            source, identity, requested_tier, on_progress, on_transfer_progress, cancel)

    def quick_upload(
        self,
        path: Union[str, Path],
        identity: Identity,
        requested_tier: StorageTier = StorageTier.TEMPORARY,
        on_progress: Optional[StageCallback] = None,
        on_transfer_progress: Optional[ByteProgressCallback] = None,
        cancel: Optional[CancelToken] = None,
    ) -> PublishResult:
        """
        Publish an existing .parquet, .duckdb or .db file unchanged.

        Raises:
            InvalidArtifactError: For missing, empty or unsupported files
        """
        self._require_role(identity)
        source = FileSource(path, self.validator)
        return self.publish(
            source, identity, requested_tier, on_progress, on_transfer_progress, cancel)

    def convert(self, path: Union[str, Path], identity: Identity) -> ConversionResult:
        """
        Convert one delimited file to Parquet bytes.

        Uses a transient table that is dropped on every exit path; tables
        loaded by ingest_files are left untouched.

        Raises:
            InvalidArtifactError: If the file is not delimited text
            IngestError: If the file cannot be parsed
            ExportError: If the Parquet export fails
        """
        self._require_role(identity)
        validation = self.validator.validate_path(path, accept=(FileKind.DELIMITED,))
        if not validation.valid:
            raise InvalidArtifactError(validation.error)

        with PerformanceTracker("convert", logger, filename=validation.filename):
            try:
                info = self.ingestor.ingest(path, CONVERSION_TABLE)
                data = self.exporter.export_table(CONVERSION_TABLE)
            finally:
                self.engine.drop_table(CONVERSION_TABLE)

        return ConversionResult(
            data=data,
            filename=parquet_name_for(validation.filename),
            row_count=info.row_count,
            columns=info.columns,
        )

    def keep_local(
        self, result: ConversionResult, storage: Optional[ArtifactStorage] = None
    ) -> str:
        """Store a conversion locally without any network call. Returns the URI."""
        if storage is None:
            storage = get_artifact_storage()
        uri = storage.store(result.data, result.filename)
        logger.info(f"Kept {result.filename} locally at {uri}")
        return uri

    def publish_conversion(
        self,
        result: ConversionResult,
        identity: Identity,
        requested_tier: StorageTier = StorageTier.TEMPORARY,
        on_progress: Optional[StageCallback] = None,
        on_transfer_progress: Optional[ByteProgressCallback] = None,
        cancel: Optional[CancelToken] = None,
    ) -> PublishResult:
        """Publish the Parquet bytes of a conversion."""
        source = BufferSource(result.data, result.filename)
        return self.publish(
            source, identity, requested_tier, on_progress, on_transfer_progress, cancel)

    # ==================== Shared skeleton ====================

    def publish(
        self,
        source: ArtifactSource,
        identity: Identity,
        requested_tier: StorageTier = StorageTier.TEMPORARY,
        on_progress: Optional[StageCallback] = None,
        on_transfer_progress: Optional[ByteProgressCallback] = None,
        cancel: Optional[CancelToken] = None,
    ) -> PublishResult:
        """
        Admit, produce, transfer and record one artifact.

        Raises:
            RoleNotLoadedError: While the identity's role is loading
            PublishInProgressError: If another publish is running
            AdmissionDenied: If admission denies the upload
            TokenError, TransferError: If the upload fails
        """
        self._require_role(identity)
        if not self._in_flight.acquire(blocking=False):
            raise PublishInProgressError()

        try:
            with correlation_scope() as correlation_id, PerformanceTracker(
                "publish", logger, kind=source.kind.value,
                requested_tier=StorageTier(requested_tier).value,
            ):
                return self._run(
                    source, identity, requested_tier, on_progress,
                    on_transfer_progress, cancel, correlation_id)
        finally:
            self._in_flight.release()

    def _run(
        self,
        source: ArtifactSource,
        identity: Identity,
        requested_tier: StorageTier,
        on_progress: Optional[StageCallback],
        on_transfer_progress: Optional[ByteProgressCallback],
        cancel: Optional[CancelToken],
        correlation_id: str,
    ) -> PublishResult:
        def report(stage: str, message: str, percent: int):
            if on_progress:
                on_progress(stage, message, percent)

        size_bytes = source.measure()
        decision = self.admission.decide(
            identity, requested_tier, bytes_to_mb(size_bytes), source.kind)
        if not decision.allowed:
            raise AdmissionDenied(decision)

        data = source.produce(on_progress)

        band_start, band_span = source.upload_band
        report("uploading", "Getting upload authorization...", max(0, band_start - 2))

        def transfer_progress(sent: int, total: int):
            pct = percentage(sent, total)
            report("uploading", f"Uploading... {pct}%",
                   band_start + round(pct * band_span / 100))
            if on_transfer_progress:
                on_transfer_progress(sent, total)

        result = self.transfer_client.publish(
            data,
            source.filename,
            decision.tier,
            on_progress=transfer_progress,
            cancel=cancel,
            content_type=source.content_type,
        )

        record, record_saved = None, True
        if decision.tier != StorageTier.TEMPORARY:
            try:
                record = self._record(identity, source, result)
            except RecordPersistError as e:
                record_saved = False
                logger.error(
                    f"Upload succeeded but file record was not saved: {e}",
                    extra={"extra_fields": {"download_url": e.download_url}},
                )

        report("complete", "Upload complete!", 100)

        return PublishResult(
            download_url=result.download_url,
            filename=result.filename,
            size_bytes=result.size_bytes,
            tier=decision.tier,
            display_name=source.display_name,
            expires_in_hours=result.expires_in_hours,
            downgraded=decision.downgraded,
            record=record,
            record_saved=record_saved,
            correlation_id=correlation_id,
        )

    def _record(
        self, identity: Identity, source: ArtifactSource, result: TransferResult
    ) -> FileRecordData:
        try:
            return self.store.add_file(
                identity.email,
                server_filename=result.filename,
                download_url=result.download_url,
                format=source.record_format,
                display_name=source.display_name,
                size_mb=round(bytes_to_mb(result.size_bytes), 2),
                user_id=identity.user_id,
            )
        except MetadataStoreError as e:
            record_persist_failures_total.inc()
            raise RecordPersistError(str(e), download_url=result.download_url) from e

    # ==================== Session ====================

    def reset_session(self) -> None:
        """Drop every table and scratch file; the engine reopens on next use."""
        self.engine.close()

    def close(self) -> None:
        self.engine.close()
        self.transfer_client.close()
