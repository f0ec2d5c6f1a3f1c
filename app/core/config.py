from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "local"
    APP_NAME: str = "Moorings Booking API"
    # Comma-separated origins for CORS (e.g. https://moorings.pt,https://admin.moorings.pt). If empty, uses localhost defaults.
    CORS_ORIGINS: str = ""
    LOG_LEVEL: str = "INFO"

    SECRET_KEY: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    DATABASE_URL: str

    @field_validator("DATABASE_URL", mode="after")
    @classmethod
    def normalize_database_url(cls, v: str) -> str:
        """Render and others give postgres://; SQLAlchemy expects postgresql+psycopg2://."""
        if v and v.startswith("postgres://"):
            return "postgresql+psycopg2://" + v[11:]
        return v
    REDIS_URL: str = "redis://localhost:6379/0"

    # Empty SMTP_HOST and no SendGrid key: emails are written to the log instead of sent.
    SMTP_HOST: str = ""
    SMTP_PORT: int = 25
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_FROM: str = "bookings@moorings.local"

    SENDGRID_API_KEY: str = ""
    SENDGRID_FROM_EMAIL: str = ""

    SITE_BASE_URL: str = "http://localhost:3000"  # customer site, used for redirect and payment links
    FINANCE_EMAIL: str = ""  # invoice requests on full settlement

    # Stripe Checkout
    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    STRIPE_CURRENCY: str = "eur"

    # Stay times are entered in local marina time
    TIMEZONE: str = "Europe/Lisbon"
    DEFAULT_CHECKIN_TIME: str = "15:00"
    DEFAULT_CHECKOUT_TIME: str = "11:00"

    PAYMENT_LINK_TTL_HOURS: int = 48

    @field_validator("STRIPE_CURRENCY", mode="after")
    @classmethod
    def lower_currency(cls, v: str) -> str:
        return (v or "eur").lower()


settings = Settings()
