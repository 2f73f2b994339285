from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    PROJECT_NAME: str = "CivicTrack Incident Reporting"
    API_V1_STR: str = "/api/v1"
    LOG_LEVEL: str = "INFO"

    # Database
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = "civictrack"
    DATABASE_URL: Optional[str] = None

    @property
    def async_database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    # Bearer tokens are issued by the identity provider, we only verify them
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7

    BACKEND_CORS_ORIGINS: List[str] = ["http://localhost:5173"]

    # Rate limiting (requests per minute per IP)
    RATE_LIMIT_PER_MINUTE: int = 100
    RATE_LIMIT_ANONYMOUS_WRITES: int = 20

    # Mail (SMTP). When SMTP_HOST is empty mails are logged and skipped.
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_STARTTLS: bool = True
    MAIL_FROM: str = "no-reply@civictrack.local"
    MAIL_TIMEOUT_SECONDS: float = 10.0

    # Links sent to citizens (survey invitations)
    PUBLIC_APP_URL: str = "http://localhost:5173"

    # Uploads
    UPLOAD_DIR: str = "static/uploads"
    UPLOAD_URL_PREFIX: str = "/static/uploads"

    # Configuration store defaults (overridable at runtime via admin config)
    DEFAULT_DISTRICTS: List[str] = ["Centro", "Norte", "Sur", "Este", "Oeste"]
    DEFAULT_PHOTO_MAX_FILES: int = 5
    DEFAULT_PHOTO_MAX_MB: int = 5
    DEFAULT_MAP_MAX_POINTS: int = 2000

settings = Settings()
