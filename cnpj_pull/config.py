"""Configuration settings for the CNPJ discovery pipeline."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Paths
    base_dir: Path = Path(__file__).parent.parent
    data_dir: Path = base_dir / "data"
    db_path: Path = data_dir / "cnpj_pull.db"
    mock_db_path: Path = data_dir / "cnpj_pull_mock.db"

    # API Keys
    firecrawl_api_key: str = ""

    # HTTP Client Settings
    user_agent: str = "CNPJPullBot/1.0 (+contact@example.com)"
    provider_timeout: float = 3.0  # seconds per registry provider call
    search_timeout: float = 30.0
    page_fetch_timeout: float = 10.0

    # Search Settings
    search_provider: str = "firecrawl"  # firecrawl | duckduckgo
    search_results_per_query: int = 25
    search_language: str = "pt-BR"
    search_country: str = "BR"

    # Registry Settings
    registry_providers: list[str] = ["brasilapi", "minhareceita"]

    # Cache Settings
    cache_active_ttl_days: int = 7
    cache_inactive_ttl_days: int = 30

    # Orchestration Settings
    batch_size: int = Field(default=5, ge=5, le=15)
    max_candidates_factor: int = 5
    default_result_limit: int = 100
    max_result_limit: int = 500

    # Client Settings
    api_base_url: str = "http://localhost:8000"
    client_cache_ttl_minutes: int = 30
    client_cache_max_entries: int = 5
    batch_upload_max_identifiers: int = 100
    batch_upload_delay: float = 0.5  # seconds between single lookups

    log_level: str = "INFO"

    @property
    def database_url(self) -> str:
        return f"sqlite:///{self.db_path}"

    @property
    def mock_database_url(self) -> str:
        return f"sqlite:///{self.mock_db_path}"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()

# Ensure data directory exists
settings.data_dir.mkdir(parents=True, exist_ok=True)
