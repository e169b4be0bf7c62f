"""Configuration settings for hotwills."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from hotwills.utils import get_hotwills_home


class Settings(BaseSettings):
    """Settings loaded from ``HOTWILLS_*`` environment variables or ``.env``."""

    model_config = SettingsConfigDict(
        env_prefix="HOTWILLS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore extra env vars not in model
    )

    # Supabase
    supabase_url: str
    supabase_anon_key: str  # Publishable key; row-level security scopes writes to the caller

    # Remote layout
    entries_table: str = "models"
    profiles_table: str = "profiles"
    image_bucket: str = "model-images"

    # Remote API limits
    page_size: int = 1000  # PostgREST caps rows per request
    storage_chunk_size: int = 100
    profile_chunk_size: int = 100
    code_chunk_size: int = 50
    owner_directory_timeout: float = 7.0

    # Features
    realtime_enabled: bool = True

    # Local
    assets_dir: Path = Path("img")  # Bundled images used to migrate bare names
    data_dir: Path | None = None  # Defaults to ~/.hotwills
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def get_data_dir(settings: Settings | None = None) -> Path:
    """Return the local state directory, expanded."""
    if settings is None:
        settings = get_settings()
    if settings.data_dir is None:
        return get_hotwills_home()
    return Path(settings.data_dir).expanduser()
