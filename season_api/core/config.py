from functools import lru_cache
from urllib.parse import urlparse

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _validate_http_url(value: str, field_name: str) -> None:
    parsed = urlparse(value)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError(f"{field_name} must be an absolute http(s) URL.")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "season-pricing-api"
    log_level: str = Field("INFO", env="LOG_LEVEL")

    # Supabase configuration (required)
    supabase_url: str = Field(..., env="SUPABASE_URL")
    supabase_service_key: str = Field(..., env="SUPABASE_SERVICE_KEY")

    # JWT configuration
    jwt_secret: str = Field(..., env="JWT_SECRET")
    algorithm: str = "HS256"

    # Channel manager proxy (edge function in front of the channel manager API)
    channel_manager_proxy_url: str | None = Field(None, env="CHANNEL_MANAGER_PROXY_URL")
    channel_manager_timeout_seconds: float = 30.0
    room_types_cache_seconds: int = 300

    # Season calendar files ("SAISON <year>.csv")
    season_csv_base_url: str | None = Field(None, env="SEASON_CSV_BASE_URL")
    season_csv_dir: str | None = Field(None, env="SEASON_CSV_DIR")
    default_season_year: int = 2026

    @model_validator(mode="after")
    def validate_settings(self):
        if not self.supabase_url or not self.supabase_service_key:
            raise ValueError(
                "SUPABASE_URL and SUPABASE_SERVICE_KEY are required. "
                "Get these from your Supabase project settings."
            )

        if not self.supabase_url.endswith(".supabase.co"):
            raise ValueError(
                "SUPABASE_URL must be a valid Supabase project URL "
                "(e.g., https://<project>.supabase.co)"
            )

        urls = {
            "CHANNEL_MANAGER_PROXY_URL": self.channel_manager_proxy_url,
            "SEASON_CSV_BASE_URL": self.season_csv_base_url,
        }
        for field_name, value in urls.items():
            if value:
                _validate_http_url(value, field_name)

        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()
