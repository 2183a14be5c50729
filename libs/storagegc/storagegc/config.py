"""Configuration management using pydantic-settings."""

from pathlib import Path
from typing import Any

from pydantic import Field, model_validator
from pydantic.aliases import AliasChoices
from pydantic_settings import BaseSettings, SettingsConfigDict

from storagegc.exceptions import ConfigurationError

_ENV_FILES = (".env", ".env.local", "../.env", "../../.env")

_REPO_ROOT = Path(__file__).resolve().parents[3]

# Hard per-call ceiling of the storage listing query.
MAX_PAGE_SIZE = 8000


def _resolve_repo_path(value: str) -> str:
    raw = str(value or "").strip()
    if not raw:
        return raw
    p = Path(raw)
    if p.is_absolute():
        return str(p)
    return str((_REPO_ROOT / p).resolve())


class ConvexConfig(BaseSettings):
    """Managed backend deployment configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CONVEX_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    url: str = Field(
        default="",
        validation_alias=AliasChoices("CONVEX_URL", "VITE_CONVEX_URL"),
    )
    # Shared secret for mutating storage operations. Empty disables the check.
    upload_secret: str = ""
    timeout_s: float = Field(default=60.0, gt=0)
    max_read_retries: int = Field(default=3, ge=1)


class GCConfig(BaseSettings):
    """Dangling blob reconciliation and deletion."""

    model_config = SettingsConfigDict(
        env_prefix="GC_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    page_size: int = Field(default=MAX_PAGE_SIZE, ge=1)
    delete_batch_size: int = Field(default=10, ge=1)

    @model_validator(mode="after")
    def _validate_page_size(self) -> "GCConfig":
        if int(self.page_size) > MAX_PAGE_SIZE:
            raise ConfigurationError(f"GC_PAGE_SIZE must be <= {MAX_PAGE_SIZE}")
        return self


class OptimizerConfig(BaseSettings):
    """Image re-encoding configuration."""

    model_config = SettingsConfigDict(
        env_prefix="OPTIMIZER_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    target_format: str = "webp"
    quality: int = Field(default=85, ge=1, le=100)
    effort: int = Field(default=6, ge=0, le=6, description="WebP encoder method (0=fast, 6=smallest).")
    delay_s: float = Field(default=0.1, ge=0, description="Pause between records to stay under rate limits.")
    download_timeout_s: float = Field(default=60.0, gt=0)

    @model_validator(mode="after")
    def _validate_format(self) -> "OptimizerConfig":
        if str(self.target_format).strip().lower() != "webp":
            raise ConfigurationError(f"Unsupported OPTIMIZER_TARGET_FORMAT: {self.target_format!r} (expected: webp)")
        self.target_format = "webp"
        return self


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt: str = "%Y-%m-%d %H:%M:%S"
    console: bool = True
    file: str | None = None
    max_bytes: int = Field(default=10 * 1024 * 1024, ge=0)
    backup_count: int = Field(default=5, ge=0)


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=_ENV_FILES, env_file_encoding="utf-8", extra="ignore", populate_by_name=True
    )

    log_dir: str = "./logs"

    # "convex" | "memory"
    backend: str = Field(default="convex", validation_alias=AliasChoices("STORAGEGC_BACKEND"))

    convex: ConvexConfig = ConvexConfig()
    gc: GCConfig = GCConfig()
    optimizer: OptimizerConfig = OptimizerConfig()

    # Logging
    logging: LoggingSettings = LoggingSettings()

    @model_validator(mode="after")
    def _resolve_paths(self) -> "Settings":
        self.log_dir = _resolve_repo_path(self.log_dir)
        return self

    def model_post_init(self, __context: Any) -> None:
        self.backend = str(self.backend or "convex").strip().lower()

    @property
    def upload_secret(self) -> str | None:
        secret = str(self.convex.upload_secret or "").strip()
        return secret or None

    def require_convex_url(self) -> str:
        url = str(self.convex.url or "").strip()
        if not url:
            raise ConfigurationError("CONVEX_URL (or VITE_CONVEX_URL) environment variable is required")
        return url.rstrip("/")
