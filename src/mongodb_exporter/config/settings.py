"""
Exporter settings using Pydantic.

Provides environment-based configuration loading with MONGODB_EXPORTER_ prefix.
Command-line flags override individual fields (see ``cli.py``).
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


def split_list(value: str) -> list[str]:
    """Split a comma-separated flag value, ignoring blanks."""
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """Exporter settings."""

    # MongoDB
    mongodb_uri: str = "mongodb://localhost:27017"
    direct_connect: bool = True
    global_conn_pool: bool = True
    connect_timeout: float = 5.0

    # Web
    web_listen_address: str = "0.0.0.0:9216"
    web_telemetry_path: str = "/metrics"

    # Metric naming
    compatible_mode: bool = False

    # Collectors
    collect_server_status: bool = True
    collect_diagnostic_data: bool = True
    collect_replset_status: bool = True
    collect_replset_config: bool = False
    collstats_colls: str = ""  # comma-separated db.collection list
    indexstats_colls: str = ""
    discovering_mode: bool = False

    # Flattening
    max_depth: int = 32
    max_array_items: int = 16
    declarations_file: str | None = None

    # Scrape deadline in seconds, overridden by the scraper's timeout header
    scrape_timeout: float = 10.0

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "MONGODB_EXPORTER_"

    @property
    def collstats_collections(self) -> list[str]:
        return split_list(self.collstats_colls)

    @property
    def indexstats_collections(self) -> list[str]:
        return split_list(self.indexstats_colls)

    @property
    def listen_host_port(self) -> tuple[str, int]:
        host, _, port = self.web_listen_address.rpartition(":")
        return host or "0.0.0.0", int(port)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
