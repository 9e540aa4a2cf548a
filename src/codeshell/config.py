"""Process settings for Codeshell.

Loaded from CODESHELL_* environment variables and an optional .env file.
User-editable AI settings (API keys, preferences) live separately in the
JSON file at ``settings_file``; see codeshell.core.config.SettingsStore.
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CODESHELL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage directory (default: .codeshell in current directory)
    storage_dir: Path = Field(default=Path(".codeshell"))

    # Transaction log
    transaction_capacity: int = Field(default=100, ge=1)
    transaction_log_file: Path | None = None

    # Backends
    ollama_base_url: str = "http://127.0.0.1:11434"
    embedding_service_url: str = "http://localhost:8000/embed"
    embedding_provider: str = "service"

    # Per-call time bounds in seconds
    inline_timeout: float = 10.0
    completion_timeout: float = 30.0
    chat_timeout: float = 120.0

    # Persist the symbol/embedding index to SQLite instead of memory
    persist_index: bool = False

    @property
    def settings_file(self) -> Path:
        """Path to the user AI settings JSON file."""
        return self.storage_dir / "ai-settings.json"

    @property
    def index_db_path(self) -> Path:
        """Path to the on-disk index database."""
        return self.storage_dir / "index.db"

    @property
    def index_db_url(self) -> str:
        """SQLAlchemy URL for the index database."""
        return f"sqlite:///{self.index_db_path}"

    def ensure_storage_dir(self) -> None:
        """Create storage directory if it doesn't exist."""
        self.storage_dir.mkdir(parents=True, exist_ok=True)


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings cache (useful for testing)."""
    global _settings
    _settings = None
