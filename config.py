from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "AssetMX Express API"
    debug: bool = False
    log_level: str = "INFO"

    database_url: str = "sqlite+aiosqlite:///./assetmx.db"
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    # Seconds between consecutive bot messages in a turn
    typing_delay_seconds: float = 0.8

    # Business register edge functions; empty base URL selects the mock registry
    registry_base_url: str = ""
    registry_api_key: str = ""
    registry_timeout_seconds: float = 10.0
    search_max_results: int = 3

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def use_mock_registry(self) -> bool:
        return not self.registry_base_url.strip()


settings = Settings()
