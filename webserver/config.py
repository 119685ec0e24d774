from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", populate_by_name=True
    )

    port: int = Field(default=5000, alias="PORT")
    host: str = Field(default="0.0.0.0", alias="HOST")
    # NODE_ENV is still honoured so existing deployment manifests keep working.
    app_env: str = Field(default="development", validation_alias=AliasChoices("APP_ENV", "NODE_ENV"))
    database_url: str | None = Field(default=None, alias="DATABASE_URL")

    api_prefix: str = Field(default="/api", alias="API_PREFIX")
    log_line_max_length: int = Field(default=80, alias="LOG_LINE_MAX_LENGTH")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="json", alias="LOG_FORMAT")

    static_dir: str = Field(default="dist/public", alias="STATIC_DIR")
    client_dir: str = Field(default="client", alias="CLIENT_DIR")

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def static_path(self) -> Path:
        return Path(self.static_dir)

    @property
    def client_path(self) -> Path:
        return Path(self.client_dir)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
