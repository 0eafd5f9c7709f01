import dataclasses
import logging

import dotenv

from filevault.utils import as_bool
from filevault.utils import env


dotenv.load_dotenv()

logger = logging.getLogger(__name__)

STORAGE_BACKENDS = ("memory", "filesystem", "minio")


@dataclasses.dataclass
class Config:
    """Application configuration settings."""

    # Logging
    log_level: str = env("LOG_LEVEL:INFO")
    loki_url: str = env("LOKI_URL:", convert=str)
    loki_enabled: bool = env("LOKI_ENABLED:false", convert=as_bool)

    # Server Configuration
    host: str = env("HOST:0.0.0.0")
    port: int = env("PORT:8000", convert=int)
    environment: str = env("ENVIRONMENT:")
    debug: bool = env("DEBUG:false", convert=as_bool)
    enable_api_docs: bool = env("ENABLE_API_DOCS:false", convert=as_bool)
    max_upload_size_mb: int = env("MAX_UPLOAD_SIZE_MB:100", convert=int)
    max_file_name_length: int = env("MAX_FILE_NAME_LENGTH:1024", convert=int)

    # Storage layout
    storage_backend: str = env("FILEVAULT_STORAGE_BACKEND:memory")
    active_bucket: str = env("FILEVAULT_ACTIVE_BUCKET:files")
    trash_bucket: str = env("FILEVAULT_TRASH_BUCKET:trash")
    fs_root: str = env("FILEVAULT_FS_ROOT:/var/lib/filevault")

    # S3-compatible backend
    minio_endpoint: str = env("MINIO_ENDPOINT:localhost:9000")
    minio_access_key: str = env("MINIO_ACCESS_KEY:", convert=str)
    minio_secret_key: str = env("MINIO_SECRET_KEY:", convert=str)
    minio_secure: bool = env("MINIO_SECURE:false", convert=as_bool)
    minio_region: str = env("MINIO_REGION:", convert=str)

    # Trash lifecycle
    trash_retention_days: int = env("TRASH_RETENTION_DAYS:30", convert=int)
    # Degraded mode: restore from the trash key's name fragment when metadata lacks originalName
    trash_restore_key_fallback: bool = env("TRASH_RESTORE_KEY_FALLBACK:false", convert=as_bool)
    trash_sweep_interval_seconds: int = env("TRASH_SWEEP_INTERVAL_SECONDS:3600", convert=int)
    cleanup_api_key: str = env("CLEANUP_API_KEY:", convert=str)

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024


def validate_config(cfg: Config) -> Config:
    if not cfg.environment or not cfg.environment.strip():
        raise ValueError("ENVIRONMENT variable is required but not set or empty")

    if cfg.trash_retention_days <= 0:
        raise ValueError(f"TRASH_RETENTION_DAYS must be positive, got {cfg.trash_retention_days}")

    backend = cfg.storage_backend.strip().lower()
    if backend not in STORAGE_BACKENDS:
        raise ValueError(f"FILEVAULT_STORAGE_BACKEND must be one of {STORAGE_BACKENDS}, got {cfg.storage_backend!r}")
    cfg.storage_backend = backend

    if cfg.active_bucket == cfg.trash_bucket:
        raise ValueError("FILEVAULT_ACTIVE_BUCKET and FILEVAULT_TRASH_BUCKET must differ")

    if not cfg.cleanup_api_key:
        logger.warning("CLEANUP_API_KEY is not set; the cleanup endpoint will reject every request")

    return cfg


def get_config() -> Config:
    """Get application configuration."""
    return validate_config(Config())
