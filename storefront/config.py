import os
from decimal import Decimal
from pathlib import Path

from dotenv import load_dotenv

env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DEFAULT_JWT_SECRET = "change-me-in-production"


class Settings:
    @staticmethod
    def _get_int(name: str, default: int) -> int:
        return int(os.getenv(name, str(default)))

    @property
    def APP_ENV(self) -> str:
        return os.getenv("APP_ENV", "development").strip().lower()

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"

    @property
    def BASE_URL(self) -> str:
        return os.getenv("BASE_URL", "http://localhost:8000")

    @property
    def FRONTEND_URL(self) -> str:
        return os.getenv("FRONTEND_URL", "http://localhost:3000")

    @property
    def DATABASE_URL(self) -> str:
        database_url = os.getenv("DATABASE_URL", "").strip()
        if not database_url:
            raise ValueError("DATABASE_URL is required")
        return database_url

    @property
    def SERVICE_DATABASE_URL(self) -> str:
        """Elevated credentials for machine-to-machine handlers; defaults to DATABASE_URL."""
        return os.getenv("SERVICE_DATABASE_URL", "").strip() or self.DATABASE_URL

    @property
    def JWT_SECRET(self) -> str:
        return os.getenv("JWT_SECRET", DEFAULT_JWT_SECRET)

    @property
    def JWT_ALGORITHM(self) -> str:
        return os.getenv("JWT_ALGORITHM", "HS256")

    @property
    def JWT_AUDIENCE(self) -> str:
        return os.getenv("JWT_AUDIENCE", "authenticated").strip()

    @property
    def NOWPAYMENTS_API_KEY(self) -> str:
        return os.getenv("NOWPAYMENTS_API_KEY", "")

    @property
    def NOWPAYMENTS_IPN_SECRET(self) -> str:
        return os.getenv("NOWPAYMENTS_IPN_SECRET", "")

    @property
    def NOWPAYMENTS_API_URL(self) -> str:
        return os.getenv("NOWPAYMENTS_API_URL", "https://api.nowpayments.io/v1")

    @property
    def NOWPAYMENTS_TIMEOUT_SECONDS(self) -> int:
        return self._get_int("NOWPAYMENTS_TIMEOUT_SECONDS", 30)

    @property
    def PRICE_CURRENCY(self) -> str:
        return os.getenv("PRICE_CURRENCY", "usd")

    @property
    def PAY_CURRENCY(self) -> str:
        return os.getenv("PAY_CURRENCY", "btc")

    @property
    def MAX_CHECKOUT_TOTAL(self) -> Decimal:
        return Decimal(os.getenv("MAX_CHECKOUT_TOTAL", "100000"))

    @property
    def PAYMENT_SUCCESS_PATH(self) -> str:
        return os.getenv("PAYMENT_SUCCESS_PATH", "/dashboard")

    @property
    def PAYMENT_CANCEL_PATH(self) -> str:
        return os.getenv("PAYMENT_CANCEL_PATH", "/cart")

    @property
    def CORS_ORIGINS(self) -> str:
        return os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:3001")

    @property
    def DB_CONNECT_RETRIES(self) -> int:
        return self._get_int("DB_CONNECT_RETRIES", 5)

    @property
    def DB_CONNECT_RETRY_DELAY_SECONDS(self) -> int:
        return self._get_int("DB_CONNECT_RETRY_DELAY_SECONDS", 2)


settings = Settings()

# Validate critical settings
if settings.JWT_SECRET == DEFAULT_JWT_SECRET:
    import warnings
    warnings.warn("JWT_SECRET is using default value. Change it in production!", UserWarning)
