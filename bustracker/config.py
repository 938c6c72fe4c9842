"""
Configuration for the Bus Tracker service
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

class Settings(BaseSettings):
    """Application settings"""

    # AWS Configuration
    AWS_REGION: str = "us-east-1"
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    DYNAMODB_ENDPOINT_URL: Optional[str] = None  # e.g. http://localhost:8000 for DynamoDB Local

    # DynamoDB Configuration
    BUS_TABLE_NAME: str = "bustracker-buses-dev"
    LOCATION_TABLE_NAME: str = "bustracker-locations-dev"
    LOCATION_RECORDED_AT_INDEX: str = "busId-recordedAt-index"

    # "dynamodb" or "memory"
    STORE_BACKEND: str = "dynamodb"

    # Service Configuration
    SERVICE_NAME: str = "bustracker"
    LOG_LEVEL: str = "INFO"
    HOST: str = "0.0.0.0"
    PORT: int = 10000

    # Timestamps
    TIMEZONE: str = "UTC"
    STRICT_TIMESTAMPS: bool = False

    # Authentication
    AUTH_ENABLED: bool = False
    ADMIN_API_KEY: Optional[str] = None
    JWT_SECRET: Optional[str] = None
    JWT_ALGORITHM: str = "HS256"

    @field_validator("TIMEZONE")
    @classmethod
    def check_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {value}")
        return value

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()
