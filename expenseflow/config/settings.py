"""
Application Configuration Settings
"""

from pydantic_settings import BaseSettings
from typing import List
import os


class Settings(BaseSettings):
    """Application settings"""

    # Application
    APP_NAME: str = "ExpenseFlow"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Database
    DATABASE_URL: str = "sqlite:///./expenseflow.db"
    DATABASE_ECHO: bool = False

    # JWT
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # External collaborators
    EXCHANGE_RATE_API_URL: str = "https://api.exchangerate-api.com/v4/latest"
    COUNTRIES_API_URL: str = "https://restcountries.com/v3.1/all?fields=name,currencies"
    HTTP_TIMEOUT_SECONDS: float = 10.0

    # Receipt upload (OCR prefill)
    MAX_FILE_SIZE: int = 10485760  # 10MB
    ALLOWED_RECEIPT_EXTENSIONS: str = "jpg,jpeg,png,webp,pdf"  # Comma-separated string
    OCR_DELAY_SECONDS: float = 0.0

    @property
    def allowed_receipt_extensions_list(self) -> List[str]:
        """Convert comma-separated string to list"""
        return [ext.strip().lower() for ext in self.ALLOWED_RECEIPT_EXTENSIONS.split(",")]

    # Approval workflow
    # When true, an expense submitted with no actionable approval step is
    # finalized as approved instead of being left pending and stalled.
    AUTO_APPROVE_WITHOUT_RULE: bool = False

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:8000"  # Comma-separated string

    @property
    def cors_origins_list(self) -> List[str]:
        """Convert comma-separated string to list"""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    class Config:
        env_file = ".env"
        case_sensitive = True


# Create settings instance
settings = Settings()


os.makedirs(settings.LOG_DIR, exist_ok=True)
