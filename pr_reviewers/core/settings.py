# pr_reviewers/core/settings.py
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
from typing import Annotated, List, Optional
from pydantic import field_validator

class Settings(BaseSettings):
    """
    Service settings. Every value can be overridden from the environment
    or from a local .env file.
    """
    # Database
    DATABASE_URL: str = "sqlite:///./pr_reviewers.db"

    # JWT / Security
    SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    ADMIN_USER_ID: str = "admin"

    # Reviewer assignment
    MAX_REVIEWERS: int = 2
    REBALANCE_MAX_WORKERS: int = 8
    REBALANCE_TIMEOUT_SECONDS: Optional[float] = 30.0

    # App meta
    ENV: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    ALLOWED_ORIGINS: Annotated[List[str], NoDecode] = ["http://localhost:3000", "http://localhost:8080"]

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def split_origins(cls, v):
        if isinstance(v, str):
            return [i.strip() for i in v.split(",") if i.strip()]
        return v

    @field_validator("MAX_REVIEWERS", "REBALANCE_MAX_WORKERS")
    @classmethod
    def positive(cls, v):
        if v < 1:
            raise ValueError("must be a positive integer")
        return v

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

settings = Settings()
