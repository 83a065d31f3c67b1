# clinic_agenda/config.py
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    MONGO_URI: str = "mongodb://localhost:27017"
    DB_NAME: str = "clinica_dental"
    COLLECTION_NAME: str = "appointments"

    # Only this address gets the admin dashboard
    ADMIN_EMAIL: str = "admin@example.com"
    GOOGLE_CLIENT_ID: Optional[str] = None
    SESSION_TTL_MINUTES: int = 12 * 60

    PUBLIC_BASE_URL: str = "http://localhost:5173/"
    CLINIC_NAME: str = "Clínica Dental Sonrisas"
    CLINIC_TIMEZONE: str = "UTC"

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False


@lru_cache()
def get_settings() -> Settings:
    return Settings()
