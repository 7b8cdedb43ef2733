# cabinetry/core/settings.py
from decimal import Decimal
from typing import Optional

from pydantic import AnyHttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_NAME: str = "Cabinetry Storefront"
    PUBLIC_BASE_URL: AnyHttpUrl = "http://localhost:8000"
    ALLOWED_ORIGINS: list[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]

    DATABASE_URL: str = "sqlite:///./cabinetry.db"

    # --- Auth ---
    JWT_SECRET: str = "dev_secret_change_me_please"
    JWT_EXP_HOURS: int = 24
    ADMIN_USERNAME: Optional[str] = None
    ADMIN_PASSWORD: Optional[str] = None

    # --- Storage ---
    USE_LOCAL_STORAGE: bool = True
    LOCAL_STORAGE_ROOT: str = "./.local_storage"
    S3_BUCKET: str = "cabinetry-files"
    S3_REGION: str = "ap-southeast-2"
    CLOUDFRONT_DOMAIN: Optional[str] = None

    allowed_mimes: list[str] = [
        "image/jpeg",
        "image/png",
        "application/pdf",
        "application/vnd.dwg",
    ]
    max_upload_mb: int = 25

    # --- E-mail ---
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_FROM_EMAIL: Optional[str] = None
    SMTP_FROM_NAME: str = "Custom Cabinets"
    ADMIN_NOTIFY_EMAIL: Optional[str] = None

    # --- Geocoding (Mapbox) ---
    MAPBOX_TOKEN: Optional[str] = None
    MAPBOX_BASE_URL: str = "https://api.mapbox.com/geocoding/v5/mapbox.places"
    GEOCODE_COUNTRY: str = "AU"
    GEOCODE_BATCH_LIMIT: int = 20

    # --- Celery ---
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/1"
    CELERY_TASK_ALWAYS_EAGER: bool = False

    # --- Carts ---
    CART_ABANDON_DAYS: int = 30

    # --- Pricing ---
    DEFAULT_MATERIAL_RATE: Decimal = Decimal("85")
    DEFAULT_DOOR_RATE: Decimal = Decimal("120")
    GST_RATE: Decimal = Decimal("0.10")
    CURRENCY: str = "AUD"

    # --- Quotes & payments ---
    QUOTE_VALIDITY_DAYS: int = 30
    DEPOSIT_PCT: Decimal = Decimal("20")
    PROGRESS_PCT: Decimal = Decimal("30")
    BALANCE_PCT: Decimal = Decimal("50")
    DEPOSIT_DUE_DAYS: int = 7
    PROGRESS_DUE_DAYS: int = 14
    BALANCE_DUE_DAYS: int = 7

    # --- Shipping & assembly ---
    DEPOT_ZONE: str = "MEL_METRO"
    DEFAULT_LEAD_TIME_DAYS: int = 8
    ASSEMBLY_CARCASS_BASE_PRICE: Decimal = Decimal("50.00")
    ASSEMBLY_DOORS_BASE_PRICE: Decimal = Decimal("100.00")

    # --- Rate limiting ---
    RATE_LIMIT_ENABLED: bool = True
    PORTAL_WRITE_LIMIT: str = "20/minute"

    SENTRY_DSN: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
