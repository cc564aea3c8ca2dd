from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):

    mongodb_url: str = "mongodb://localhost:27017"
    mongodb_db: str = "campus_help"

    # Unset -> in-process bus, only fans out inside this worker
    redis_url: Optional[str] = None

    # Sign-in is restricted to institutional addresses; empty disables the check
    allowed_email_domain: str = "metu.edu.tr"

    log_level: str = "INFO"

    # --- Chat Settings ---
    message_preview_length: int = 200
    message_history_limit: int = 500
    chat_list_limit: int = 100

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache()
def get_settings() -> Settings:
    return Settings()
