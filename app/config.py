from typing import List, Optional

from pydantic_settings import BaseSettings
from urllib.parse import quote_plus


class Settings(BaseSettings):
    ENV: str = "local"
    LOG_LEVEL: str = "INFO"

    # Full URL wins over the postgres parts (tests point this at sqlite)
    DATABASE_URL: Optional[str] = None
    postgres_user: str = "postgres"
    postgres_password: str = "postgres"
    postgres_db: str = "blueleaf"
    postgres_host: str = "localhost"
    postgres_port: str = "5432"

    secret_key: str = "change-me"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7

    BACKEND_URL: str = "http://localhost:8000"
    FRONTEND_URL: str = "http://localhost:5173"
    CORS_ORIGINS: List[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
    ]
    UPLOAD_DIR: str = "uploads"

    # Billing
    PLATFORM_FEE_PERCENTAGE: float = 10.0
    TRIAL_DAYS: int = 30
    FEE_DUE_DAY: int = 10
    BILLING_PERIOD_MODE: str = "calendar"  # calendar | anniversary
    FEE_PAID_AUTO_UNBLOCK: bool = True
    PAYOUTS_DIRECT_TO_AUTHORS: bool = False

    # PayPal
    PAYPAL_CLIENT_ID: str = ""
    PAYPAL_CLIENT_SECRET: str = ""
    PAYPAL_MODE: str = "sandbox"
    PAYPAL_CURRENCY: str = "USD"
    PAYPAL_TIMEOUT_SECONDS: float = 15.0

    # Email (Brevo)
    BREVO_API_KEY: str = ""
    MAIL_FROM: str = "no-reply@blueleafbooks.com"
    STORE_NAME: str = "BlueLeaf Books"
    ADMIN_PAYMENT_EMAIL: str = "billing@blueleafbooks.com"

    # Bootstrap admin
    ADMIN_EMAIL: Optional[str] = None
    ADMIN_PASSWORD: Optional[str] = None
    ADMIN_NAME: str = "Admin"

    @property
    def database_url(self):
        if self.DATABASE_URL:
            return self.DATABASE_URL
        encoded_password = quote_plus(self.postgres_password)
        return (
            f"postgresql+psycopg2://{self.postgres_user}:"
            f"{encoded_password}@{self.postgres_host}:"
            f"{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def paypal_base_url(self):
        if self.PAYPAL_MODE.lower() == "live":
            return "https://api-m.paypal.com"
        return "https://api-m.sandbox.paypal.com"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "allow"

settings = Settings()
