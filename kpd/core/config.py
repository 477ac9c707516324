from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="KPD_",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./kpd.db",
        description="SQLAlchemy async database URL"
    )
    database_echo: bool = Field(default=False, description="Echo SQL statements to the log")
    database_busy_timeout: float = Field(
        default=30.0,
        gt=0,
        le=600,
        description="Seconds a connection waits on a locked database before failing"
    )

    # Import
    data_file: Optional[str] = Field(default=None, description="Default KPD CSV (or .csv.gz) export to import")
    import_batch_size: int = Field(default=500, gt=0, le=10000, description="Rows per upsert batch")
    import_concurrency: int = Field(default=4, gt=0, le=64, description="Concurrent upsert batches")
    rebuild_index_after_import: bool = Field(default=False, description="Rebuild the search index after import")
    seed_on_startup: bool = Field(default=False, description="Import data_file at startup when the store is empty")

    # App Settings
    app_host: str = "0.0.0.0"
    app_port: int = Field(default=4000, gt=0, le=65535)
    debug: bool = False

    # Logging
    log_level: str = "INFO"
    log_json: bool = Field(default=False, description="Emit structured JSON log lines")

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        """Normalize and validate log level name"""
        level = v.strip().upper()
        if level not in {"TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator('database_url')
    @classmethod
    def validate_database_url(cls, v):
        """Require a SQLAlchemy-style URL"""
        if not v or "://" not in v:
            raise ValueError("database_url must be a SQLAlchemy URL")
        return v.strip()


settings = Settings()
