"""
Application settings loaded from the environment and .env
"""
import json
from typing import Annotated, List, Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore", case_sensitive=True)

    # Firestore
    FIRESTORE_PROJECT_ID: Optional[str] = Field(default=None)
    FIRESTORE_DATABASE: str = Field(default="(default)")
    USE_MOCK_SERVICES: bool = Field(default=False)

    # API
    CORS_ORIGINS: Annotated[List[str], NoDecode] = Field(default_factory=lambda: ["http://localhost:3000", "http://localhost:5173"])
    LOG_LEVEL: str = Field(default="INFO")

    # Auth
    SECRET_KEY: str = Field(default="change-this-secret-key-in-production")
    JWT_ALGORITHM: str = Field(default="HS256")
    JWT_TTL_DAYS: int = Field(default=7)

    # Listing
    DEFAULT_PAGE_SIZE: int = Field(default=10)
    MAX_PAGE_SIZE: int = Field(default=100)

    # Caches
    ANALYTICS_CACHE_TTL: int = Field(default=60)  # seconds

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _split_origins(cls, value):
        if isinstance(value, str):
            if value.strip().startswith("["):
                return json.loads(value)
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value


settings = Settings()


def get_firestore_client():
    """Return the Firestore client for the configured project, or the in-memory one"""
    if settings.USE_MOCK_SERVICES:
        from services.mocks import MockFirestoreClient
        return MockFirestoreClient()

    from google.cloud import firestore
    return firestore.Client(project=settings.FIRESTORE_PROJECT_ID, database=settings.FIRESTORE_DATABASE)
