"""Application configuration loaded from environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable loading and sensible defaults.

    Frozen after construction: the process reads it, never writes it.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
    )

    app_name: str = "field-assistant"
    debug: bool = False
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8080
    cors_origins: str = ""

    # Model provider. An API key selects the Gemini Developer API; a GCP
    # project selects Vertex AI. With neither, the in-memory client is used.
    gemini_api_key: str = ""
    gcp_project: str = ""
    gcp_location: str = "us-central1"
    gemini_model: str = "gemini-2.5-flash"
    gemini_temperature: float = 0.2

    history_window: int = 3


settings = Settings()
