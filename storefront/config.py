# storefront/config.py
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings
from typing import ClassVar, Optional
from pathlib import Path

# Resolve absolute path to the .env file for reliable loading
env_path = Path(__file__).parent.parent / ".env"

class Settings(BaseSettings):
    # "development" exposes upstream error details in 500 responses
    ENVIRONMENT: str = "production"
    LOG_LEVEL: str = "INFO"

    FRONTEND_URL: str = "http://localhost:3000"

    # Product system of record: "database" (SQLAlchemy) or "supabase" (PostgREST)
    PRODUCT_STORE: str = "database"
    DATABASE_URL: Optional[str] = None
    SUPABASE_URL: Optional[str] = None
    SUPABASE_KEY: Optional[str] = None
    PRODUCT_STORE_TIMEOUT_SECONDS: float = 5.0

    # Admission control: "upstash", "memory" or unset (upstash when credentials exist)
    RATE_LIMIT_BACKEND: Optional[str] = None
    UPSTASH_REDIS_REST_URL: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("UPSTASH_REDIS_REST_URL", "KV_REST_API_URL")
    )
    UPSTASH_REDIS_REST_TOKEN: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("UPSTASH_REDIS_REST_TOKEN", "KV_REST_API_TOKEN")
    )
    RATE_LIMIT_TIMEOUT_SECONDS: float = 2.0

    # Coarse per-instance limit applied by the edge filter to /api/*
    EDGE_RATE_LIMIT_MAX_REQUESTS: int = 100
    EDGE_RATE_LIMIT_WINDOW_SECONDS: int = 60

    # Session tokens issued by the identity provider
    AUTH_JWT_KEY: Optional[str] = None
    AUTH_JWT_ALGORITHM: str = "RS256"

    # Payment provider: "mock", "mercadopago" or "payu"
    PAYMENT_PROVIDER: str = "mock"
    PAYMENT_TIMEOUT_SECONDS: float = 10.0
    MERCADOPAGO_API_URL: str = "https://api.mercadopago.com"
    MERCADOPAGO_ACCESS_TOKEN: Optional[str] = None
    PAYU_API_URL: str = "https://secure.snd.payu.com"
    PAYU_POS_ID: Optional[str] = None
    PAYU_CLIENT_ID: Optional[str] = None
    PAYU_CLIENT_SECRET: Optional[str] = None

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() == "development"

    class Config:
        env_file: ClassVar[str] = str(env_path)
        extra: ClassVar[str] = "ignore"

settings = Settings()
