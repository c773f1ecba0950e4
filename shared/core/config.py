import os
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Always load .env from root
BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(__file__)))
load_dotenv(os.path.join(BASE_DIR, ".env"))


class Settings(BaseSettings):
    APP_ENV: str = os.getenv("APP_ENV", "development")

    JWT_SECRET: str = os.getenv("JWT_SECRET", "dev-secret")
    JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")

    # Full URL wins over the individual parts below
    DATABASE_URL: str | None = os.getenv("DATABASE_URL")

    DB_USER: str = os.getenv("DB_USER", "postgres")
    DB_PASS: str = os.getenv("DB_PASS", "postgres")
    DB_HOST: str = os.getenv("DB_HOST", "localhost")
    DB_PORT: str = os.getenv("DB_PORT", "5432")
    BILLING_DB_NAME: str = os.getenv("BILLING_DB_NAME", "billing")

    # Email Configuration FOR SCHEDULER NOTIFICATIONS
    SMTP_HOST: str | None = os.getenv("SMTP_HOST")
    SMTP_PORT: int = int(os.getenv("SMTP_PORT", 587))
    SMTP_USERNAME: str | None = os.getenv("SMTP_USERNAME")
    SMTP_PASSWORD: str | None = os.getenv("SMTP_PASSWORD")
    SMTP_USE_SSL: bool = os.getenv("SMTP_USE_SSL", "False").lower() == "true"
    EMAIL_SENDER: str = os.getenv("EMAIL_SENDER", "noreply@billing.local")

    # Billing engine
    BILLING_TIMEZONE: str = os.getenv("BILLING_TIMEZONE", "UTC")
    BILLING_DUE_DAY: int = int(os.getenv("BILLING_DUE_DAY", 15))
    BILLING_MONTHLY_HOUR: int = int(os.getenv("BILLING_MONTHLY_HOUR", 9))
    BILLING_MISSED_CHECK_HOUR: int = int(
        os.getenv("BILLING_MISSED_CHECK_HOUR", 9))
    BILLING_OVERDUE_CHECK_HOUR: int = int(
        os.getenv("BILLING_OVERDUE_CHECK_HOUR", 10))
    BILLING_STARTUP_DELAY_SECONDS: float = float(
        os.getenv("BILLING_STARTUP_DELAY_SECONDS", 10))
    BILLING_RUN_TIMEOUT_SECONDS: float = float(
        os.getenv("BILLING_RUN_TIMEOUT_SECONDS", 900))
    BILLING_LEASE_TIMEOUT_SECONDS: float = float(
        os.getenv("BILLING_LEASE_TIMEOUT_SECONDS", 30))
    SCHEDULER_ENABLED: bool = os.getenv(
        "SCHEDULER_ENABLED", "True").lower() == "true"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()

BILLING_DATABASE_URL = settings.DATABASE_URL or (
    f"postgresql+psycopg2://{settings.DB_USER}:{settings.DB_PASS}@{settings.DB_HOST}:{settings.DB_PORT}/{settings.BILLING_DB_NAME}"
)
