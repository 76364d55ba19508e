"""
Runtime configuration.

Values are read from the environment (a local `.env` file is loaded in
development) into a typed `Settings` model. Import `settings` from here
rather than calling os.getenv elsewhere.
"""

import os
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


def _split_origins(raw: str) -> List[str]:
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


class Settings(BaseModel):
    event_store_backend: str = os.getenv("EVENT_STORE_BACKEND", "dynamodb")
    dynamodb_endpoint_url: Optional[str] = (
        os.getenv("DYNAMODB_ENDPOINT_URL", "http://dynamodb-local:8000") or None
    )
    aws_region: str = os.getenv("AWS_DEFAULT_REGION", "us-east-1")
    aws_access_key_id: str = os.getenv("AWS_ACCESS_KEY_ID", "fake")
    aws_secret_access_key: str = os.getenv("AWS_SECRET_ACCESS_KEY", "fake")
    events_table_name: str = os.getenv("EVENTS_TABLE_NAME", "EventHub")

    jwt_secret: str = os.getenv("JWT_SECRET", "devsecret")
    jwt_algorithm: str = os.getenv("JWT_ALGORITHM", "HS256")

    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    cors_origins: List[str] = Field(
        default_factory=lambda: _split_origins(os.getenv("CORS_ORIGINS", "*"))
    )


settings = Settings()
