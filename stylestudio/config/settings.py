"""
Configuration settings for the Style Studio service
"""
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings"""

    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    API_RELOAD: bool = True
    API_TITLE: str = "Style Studio"
    API_VERSION: str = "1.0.0"

    DATABASE_URL: str = "sqlite:///./style_studio.db"
    DATABASE_ECHO: bool = False
    # "database" (SQLAlchemy) or "memory" (process-local, lost on restart)
    STORAGE_BACKEND: str = "database"

    OPENAI_API_KEY: Optional[str] = None
    OPENAI_CHAT_MODEL: str = "gpt-4o"
    DEFAULT_IMAGE_MODEL: str = "gpt-image-1"

    GENERATION_DELAY_SECONDS: float = 1.0
    MAX_VARIATIONS: int = 10
    DOWNLOAD_TIMEOUT_SECONDS: float = 60.0

    TEMP_DIR: str = "temp"
    MAX_UPLOAD_SIZE: int = 10 * 1024 * 1024
    # "inline" stores uploads as data URLs, "s3" uploads them to the bucket below
    REFERENCE_IMAGE_STORAGE: str = "inline"

    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    AWS_REGION: str = "us-east-1"
    S3_BUCKET_NAME: str = "style-studio-references"
    S3_ENDPOINT_URL: Optional[str] = None

    SECRET_KEY: str = "your-secret-key-change-in-production"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    BCRYPT_ROUNDS: int = 12

    ADMIN_EMAIL: Optional[str] = None
    ADMIN_PASSWORD: Optional[str] = None

    POLL_INTERVAL_SECONDS: float = 2.0

    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "app.log"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
