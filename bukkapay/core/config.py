# bukkapay/core/config.py
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    # Environment
    ENV: str = Field("development")

    # Database
    DATABASE_URL: str
    DATABASE_URL_SYNC: str | None = None

    # Redis (rate limiting)
    REDIS_URL: str | None = None

    # JWT / sessions
    JWT_SECRET_KEY: str = Field("change-me")
    JWT_ALGORITHM: str = Field("HS256")
    JWT_PRIVATE_KEY_PATH: str | None = None
    JWT_PUBLIC_KEY_PATH: str | None = None
    JWT_KEY_ID: str = Field("bukkapay-key-1")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 14

    # Password hashing
    PASSWORD_PEPPER: str = Field("")
    ARGON2_TIME_COST: int = 2
    ARGON2_MEMORY_COST: int = 102400
    ARGON2_PARALLELISM: int = 8

    # Ledger
    DEFAULT_CURRENCY: str = Field("USD")
    DAILY_TRANSFER_LIMIT: int = 20000
    PAYMENT_REQUEST_TTL_HOURS: int = 72

    # RabbitMQ
    RABBITMQ_URL: str | None = None
    RABBITMQ_QUEUE_TRANSFERS: str = Field("transfers")
    RABBITMQ_QUEUE_SETTLEMENT: str = Field("settlement")

    # Logging
    LOG_FILE: str | None = None
    LOG_LEVEL: str = Field("info")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
