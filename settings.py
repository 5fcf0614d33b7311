# settings.py
"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def _env_list(name: str, default: str) -> List[str]:
    return [part.strip() for part in os.getenv(name, default).split(",") if part.strip()]


@dataclass(frozen=True)
class Settings:
    environment: str = "development"
    log_level: str = "INFO"

    jwt_secret: str = "dev-secret-change-me"
    jwt_expires_in: str = "7d"

    store_backend: str = "dynamodb"
    aws_region: str = "us-east-1"
    users_table: str = "StyleAI_Users"
    wardrobe_table: str = "StyleAI_Wardrobe"

    use_s3: bool = False
    s3_bucket: Optional[str] = None
    storage_dir: str = "./storage"

    cors_origins: List[str] = field(default_factory=lambda: ["http://localhost:5173"])

    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    ebay_app_id: Optional[str] = None

    free_recommendations_limit: int = 3

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


def _build_settings() -> Settings:
    return Settings(
        environment=os.getenv("ENVIRONMENT", "development"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        jwt_secret=os.getenv("JWT_SECRET", "dev-secret-change-me"),
        jwt_expires_in=os.getenv("JWT_EXPIRES_IN", "7d"),
        store_backend=os.getenv("STORE_BACKEND", "dynamodb").lower(),
        aws_region=os.getenv("AWS_REGION", "us-east-1"),
        users_table=os.getenv("USERS_TABLE", "StyleAI_Users"),
        wardrobe_table=os.getenv("WARDROBE_TABLE", "StyleAI_Wardrobe"),
        use_s3=_env_bool("USE_S3"),
        s3_bucket=os.getenv("S3_BUCKET_NAME"),
        storage_dir=os.getenv("STORAGE_DIR", "./storage"),
        cors_origins=_env_list("CORS_ORIGINS", "http://localhost:5173"),
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
        ebay_app_id=os.getenv("EBAY_APP_ID") or None,
        free_recommendations_limit=int(os.getenv("FREE_RECOMMENDATIONS_LIMIT", "3")),
    )


@lru_cache
def get_settings() -> Settings:
    """Return the cached settings instance."""
    return _build_settings()
