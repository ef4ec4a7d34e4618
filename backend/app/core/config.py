# Environment and configuration
# pydantic-settings reads .env = core/config.py

from typing import Optional
from pydantic import SecretStr, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# When uvicorn/celery run outside Docker, model_config.env_file=".env"
# resolves to backend/.env

class Settings(BaseSettings):

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_prefix="",
        case_sensitive=False,
        populate_by_name=True,
    )

    # ========= project config =========
    PROJECT_NAME: str = "Marketplace Sync Hub"
    ENVIRONMENT: str = "dev"
    API_PREFIX: str = "/api/v1"


    # ========= auth / CORS =========
    SECRET_KEY: str = Field("CHANGE_ME", alias="SECRET_KEY")                  # verifies inbound user JWTs
    JWT_ALGORITHM: str = Field("HS256", alias="JWT_ALGORITHM")
    JWT_AUDIENCE: Optional[str] = Field(None, alias="JWT_AUDIENCE")            # e.g. "authenticated"
    SERVICE_ROLE_KEY: Optional[SecretStr] = Field(None, alias="SERVICE_ROLE_KEY")  # bearer for cron/admin routes
    BACKEND_CORS_ORIGINS: str = "http://localhost:5173"


    # ========= Database =========
    DATABASE_URL: str = Field(
        default="postgresql+psycopg://msh_user:msh_pass@db:5432/marketplace_sync",
        alias="DATABASE_URL",
    )


    # ========= celery config =========
    CELERY_BROKER_URL: Optional[str] = None
    CELERY_RESULT_BACKEND: Optional[str] = None
    CELERY_TIMEZONE: str = "America/Sao_Paulo"
    CRON_ORDERS_SYNC_SEC: int = Field(600, ge=60, alias="CRON_ORDERS_SYNC_SEC")
    CRON_CLAIMS_SYNC_SEC: int = Field(600, ge=60, alias="CRON_CLAIMS_SYNC_SEC")
    CRON_CLAIMS_QUEUE_SEC: int = Field(120, ge=30, alias="CRON_CLAIMS_QUEUE_SEC")
    CRON_CACHE_PURGE_SEC: int = Field(3600, ge=60, alias="CRON_CACHE_PURGE_SEC")


    # ========= secret store =========
    APP_ENCRYPTION_KEY: Optional[SecretStr] = Field(None, alias="APP_ENCRYPTION_KEY")


    # ========= MercadoLibre API =========
    ML_API_BASE_URL: str = Field("https://api.mercadolibre.com", alias="ML_API_BASE_URL")
    ML_CLIENT_ID: Optional[str] = Field(None, alias="ML_CLIENT_ID")
    ML_CLIENT_SECRET: Optional[SecretStr] = Field(None, alias="ML_CLIENT_SECRET")
    ML_REDIRECT_URI: Optional[str] = Field(None, alias="ML_REDIRECT_URI")
    ML_CONNECT_TIMEOUT: int = Field(10, ge=1, alias="ML_CONNECT_TIMEOUT")
    ML_READ_TIMEOUT: int = Field(30, ge=1, alias="ML_READ_TIMEOUT")
    ML_HTTP_RETRIES: int = Field(3, ge=1, le=10, alias="ML_HTTP_RETRIES")
    ML_TOKEN_REFRESH_MARGIN_SEC: int = Field(300, ge=0, alias="ML_TOKEN_REFRESH_MARGIN_SEC")  # refresh a bit before expiry
    ML_ORDERS_PAGE_SIZE: int = Field(50, ge=1, le=50, alias="ML_ORDERS_PAGE_SIZE")
    ML_ORDERS_MAX_PAGES: int = Field(10, ge=1, alias="ML_ORDERS_MAX_PAGES")                   # 500 orders per account
    ML_CLAIMS_PAGE_SIZE: int = Field(50, ge=1, le=100, alias="ML_CLAIMS_PAGE_SIZE")
    ML_CLAIMS_MAX_PAGES: int = Field(20, ge=1, alias="ML_CLAIMS_MAX_PAGES")


    # ========= cache / sync config =========
    CACHE_TTL_MINUTES: int = Field(15, ge=1, alias="CACHE_TTL_MINUTES")
    SYNC_MAX_ACCOUNTS: int = Field(20, ge=1, alias="SYNC_MAX_ACCOUNTS")      # bounds one auto-sync run
    ORDERS_LOOKBACK_DAYS: int = Field(7, ge=1, alias="ORDERS_LOOKBACK_DAYS")
    CLAIMS_LOOKBACK_DAYS: int = Field(60, ge=1, alias="CLAIMS_LOOKBACK_DAYS")


    # ========= claims queue config =========
    CLAIMS_QUEUE_BATCH: int = Field(50, ge=1, le=500, alias="CLAIMS_QUEUE_BATCH")
    CLAIMS_QUEUE_MAX_ATTEMPTS: int = Field(3, ge=1, alias="CLAIMS_QUEUE_MAX_ATTEMPTS")
    CLAIMS_QUEUE_LEASE_SEC: int = Field(300, ge=30, alias="CLAIMS_QUEUE_LEASE_SEC")            # reclaim "processing" after this
    CLAIMS_QUEUE_BACKOFF_BASE_SEC: int = Field(60, ge=0, alias="CLAIMS_QUEUE_BACKOFF_BASE_SEC")
    CLAIMS_QUEUE_BACKOFF_MAX_SEC: int = Field(1800, ge=0, alias="CLAIMS_QUEUE_BACKOFF_MAX_SEC")


settings = Settings()  # environment only (including .env)
