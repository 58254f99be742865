from pydantic_settings import BaseSettings
from typing import Optional

class Settings(BaseSettings):
    # Application
    PROJECT_NAME: str = "Visitor Pass Gateway"
    VERSION: str = "1.0.0"
    API_PREFIX: str = "/api"
    DEBUG: bool = False
    ENVIRONMENT: str = "production"

    # Local cache (passes + login session)
    DATABASE_URL: str = "sqlite:///./visitorpass.db"

    # Community backend
    BACKEND_URL: str = "http://localhost:3000/api"
    BACKEND_TIMEOUT_SECONDS: float = 10.0

    # Visitor passes
    PASS_VALIDITY_SECONDS: int = 1800  # 30 minutes, not extendable
    PASS_CODE_LENGTH: int = 6
    DEFAULT_VISITOR_NAME: str = "Visitor"

    # Timers
    COUNTDOWN_TICK_SECONDS: float = 1.0
    SWEEP_INTERVAL_SECONDS: float = 30.0

    # QR rendering
    QR_BOX_SIZE: int = 10
    QR_BORDER: int = 2
    QR_FILL_COLOR: str = "#667eea"
    QR_BACK_COLOR: str = "#ffffff"

    # Display only, never used for arithmetic
    DISPLAY_TIMEZONE: str = "Asia/Kolkata"

    # File Upload
    MAX_UPLOAD_SIZE_MB: int = 10
    ALLOWED_IMAGE_TYPES: list = ["image/jpeg", "image/png", "image/jpg"]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = "visitorpass.log"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"

settings = Settings()
