"""
Load settings from .env. Never log or expose secret values.
All values come from environment variables (populated via .env file).
"""
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # OpenAI / Azure (intent extraction)
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key")
    openai_chat_model: str = Field(default="gpt-4o", description="Model used for intent extraction")
    azure_openai_api_key: Optional[str] = Field(default=None, description="Azure OpenAI API key")
    azure_openai_endpoint: Optional[str] = Field(default=None, description="Azure OpenAI endpoint")
    azure_openai_deployment: Optional[str] = Field(default=None, description="Azure OpenAI deployment name")

    # ResolvedLocation store
    database_url: str = Field(default="sqlite:///weather_lookup.db", description="SQLAlchemy database URL")

    # Shared outbound HTTP client
    http_timeout_sec: float = Field(default=10.0, description="Per-request timeout for all providers")
    http_max_retries: int = Field(default=2, description="Retries on connection failure or 5xx")
    http_backoff_base_sec: float = Field(default=1.0, description="Delay before retry n is base * 2**n")
    http_user_agent: str = Field(default="WeatherLookup/1.0", description="User-Agent sent to providers")

    # Providers
    nominatim_base_url: str = Field(default="https://nominatim.openstreetmap.org", description="Geocoding provider")
    nws_base_url: str = Field(default="https://api.weather.gov", description="Grid-forecast provider")
    supported_country: str = Field(default="us", description="Forward-geocode country restriction")

    # Disambiguation
    state_importance_threshold: float = Field(default=0.7, description="Importance above which a boundary result counts as a state")
    disambiguation_limit: int = Field(default=5, description="Max candidates returned for disambiguation")
    state_city_search_limit: int = Field(default=10, description="Result limit for the cities-in-state search")

    # App
    api_token: Optional[str] = Field(default=None, description="Bearer token required on lookup routes when set")
    log_level: str = Field(default="INFO", description="Log level")
    api_host: str = Field(default="0.0.0.0", description="FastAPI bind host")
    api_port: int = Field(default=8000, description="FastAPI port")

    @property
    def extraction_configured(self) -> bool:
        return bool(self.openai_api_key or self.azure_openai_api_key)


@lru_cache
def get_settings() -> Settings:
    return Settings()
