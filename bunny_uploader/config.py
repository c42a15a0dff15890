"""
Centralized configuration management

All configuration values are read from environment variables,
with sensible defaults for development.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # --- FastAPI ---
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    log_level: str = "info"

    # --- Bunny.net storage ---
    # Raw values; validated and normalized by core.settings_resolver.resolve().
    bunny_storage_zone: str = ""
    bunny_access_key: str = ""
    bunny_storage_region: str = ""  # "" = default Falkenstein endpoint
    bunny_pull_zone_url: str = ""
    bunny_ftp_host: str = "storage.bunnycdn.com"
    bunny_ftp_username: str = ""
    bunny_ftp_password: str = ""
    bunny_prefer_ftp: bool = False

    # --- Upload transports ---
    upload_large_file_threshold: int = 50 * 1024 * 1024
    upload_http_timeout: float = 60.0
    upload_large_http_timeout: float = 600.0
    upload_ftp_timeout: float = 30.0
    upload_stream_chunk_size: int = 1024 * 1024
    upload_large_file_policy: str = "http_stream"  # http_stream | ftp_only

    # --- Event log ---
    error_log_capacity: int = 20
    debug_log_capacity: int = 50

    # --- Attachment state ---
    state_file: str = ".bunny_uploader/state.json"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    def raw_bunny_config(self) -> dict[str, str | bool]:
        """Return the raw Bunny.net config bundle in the resolver's key names."""
        return {
            "storage_zone": self.bunny_storage_zone,
            "access_key": self.bunny_access_key,
            "storage_region": self.bunny_storage_region,
            "pull_zone_base_url": self.bunny_pull_zone_url,
            "ftp_host": self.bunny_ftp_host,
            "ftp_username": self.bunny_ftp_username,
            "ftp_password": self.bunny_ftp_password,
            "prefer_ftp": self.bunny_prefer_ftp,
        }


@lru_cache()
def get_settings() -> Settings:
    """Return cached Settings instance (singleton)."""
    return Settings()
