from typing import List

from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    PROJECT_NAME: str = "Reservation API"
    API_PREFIX: str = "/api"

    # Server
    PORT: int = 5000
    ENVIRONMENT: str = "development"

    # Supabase
    SUPABASE_URL: str = ""
    SUPABASE_KEY: str = ""
    RESERVATIONS_TABLE: str = "reservations"
    SERVICES_TABLE: str = "services"

    # HTTP
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]
    REQUEST_TIMEOUT_SECONDS: float = 120.0
    MAX_BODY_BYTES: int = 10 * 1024 * 1024

    # Upper bound for a single database call
    STORE_TIMEOUT_SECONDS: float = 25.0

    # Logging
    LOG_LEVEL: str = "INFO"
    ERROR_LOG_FILE: str = "logs/errors.log"

    class Config:
        env_file = ".env"
        case_sensitive = True
        frozen = True

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() == "development"

    @property
    def has_store_credentials(self) -> bool:
        return bool(self.SUPABASE_URL and self.SUPABASE_KEY)

settings = Settings()
