import logging

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Groq
    groq_api_key: str | None = None
    default_model: str = "llama-3.3-70b-versatile"
    generation_temperature: float = 0.2

    # Google OAuth (Drive refresh tokens)
    google_client_id: str | None = None
    google_client_secret: str | None = None
    google_token_uri: str = "https://oauth2.googleapis.com/token"

    # Notion internal integration
    notion_token: str | None = None
    notion_version: str = "2022-06-28"

    # Imports
    initial_import_status: str = "PENDING_AI"

    # Storage
    database_path: str = "course_gen.db"

    # Server
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()


def configure_logging(level: str | None = None) -> None:
    """Install the root handler once, at process start."""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
