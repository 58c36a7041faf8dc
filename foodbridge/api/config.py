"""
Application Configuration
Settings management using Pydantic for environment variables.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    """

    # Application
    APP_NAME: str = "FoodBridge API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "production"  # development, staging, production

    # Database
    DATABASE_URL: str
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 40
    DATABASE_ECHO: bool = False
    DATABASE_COMMAND_TIMEOUT: int = 60

    # JWT Authentication
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7

    # Security
    BCRYPT_ROUNDS: int = 12
    PASSWORD_MIN_LENGTH: int = 6

    # CORS
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Matching
    MATCH_RESULT_LIMIT: int = 10
    VOLUNTEER_DEFAULT_RADIUS_KM: float = 10.0

    # Notifications
    NOTIFICATION_TIMEOUT_SECONDS: float = 5.0
    PUSH_TIMEOUT_SECONDS: float = 5.0
    NOTIFICATION_FANOUT_CONCURRENCY: int = 5  # keep below DATABASE_POOL_SIZE
    EVENT_HANDLER_TIMEOUT_SECONDS: float = 30.0

    # Monitoring
    LOG_LEVEL: str = "INFO"

    # Feature Flags
    FEATURE_NOTIFICATIONS_ENABLED: bool = True
    FEATURE_REALTIME_ENABLED: bool = True

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
