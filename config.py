"""
Application settings for the blog API.

Values come from environment variables, with an optional .env file in the
working directory. Import the cached instance:

    from config import settings
"""
from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # -------------------------------------------------------------------
    # Database
    # -------------------------------------------------------------------
    DATABASE_URL: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection string",
    )
    DATABASE_NAME: str = Field(default="blog", description="MongoDB database name")

    # -------------------------------------------------------------------
    # Auth
    # -------------------------------------------------------------------
    JWT_SECRET: str = Field(
        default="supersecret-blog-api-change-me",
        min_length=16,
        description="HS256 signing secret for access tokens",
    )
    JWT_EXPIRE_MIN: int = Field(
        default=60 * 24 * 7,
        ge=1,
        description="Access token lifetime in minutes",
    )

    # -------------------------------------------------------------------
    # Server
    # -------------------------------------------------------------------
    CORS_ORIGINS: str = Field(default="*", description="Allowed origins, comma-separated")
    DEBUG: bool = Field(default=False)
    PORT: int = Field(default=8000, ge=1, le=65535)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
