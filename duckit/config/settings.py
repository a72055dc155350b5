# Configuration management

from pydantic_settings import BaseSettings  # type: ignore
from functools import lru_cache
from typing import List, Optional


class Settings(BaseSettings):
    # Metadata database (file records, users, role defaults)
    database_url: str = "sqlite:///./duckit.db"
    db_pool_size: int = 5
    db_max_overflow: int = 10

    # Local storage for artifacts kept on disk
    storage_path: str = "./storage"
    # Scratch directory for the analytical engine (None = system temp dir)
    engine_workdir: Optional[str] = None

    # Remote admission/storage service
    service_base_url: str = "http://localhost:8080"
    service_api_key: str = ""
    http_timeout_seconds: float = 30.0
    upload_timeout_seconds: float = 600.0

    # Remote metadata API (used by RemoteMetadataStore)
    metadata_api_url: str = "http://localhost:8000/api/db"
    metadata_api_token: str = ""

    # Application
    app_name: str = "duckit"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    debug: bool = False
    log_level: str = "INFO"
    json_logs: bool = True

    # Ingestion
    delimiter_sample_bytes: int = 8192

    # Upload admission
    max_parquet_upload_mb: float = 75.0
    max_database_upload_mb: float = 150.0
    max_database_bundle_mb: float = 75.0
    # Parquet -> database size multiplier used for capacity checks.
    # Empirical; calibrate against real backend conversion ratios.
    db_size_inflation_factor: float = 2.0

    # Security
    allowed_origins: List[str] = [
        "http://localhost:3000", "http://localhost:5173"]

    # Observability
    metrics_enabled: bool = True

    class Config:
        env_file = ".env"
        env_prefix = "DUCKIT_"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    return Settings()
