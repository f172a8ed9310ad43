import os
from dotenv import load_dotenv

# .env values only fill variables that are not already set
load_dotenv()


def _env_list(name: str, default: str = "") -> list[str]:
    raw = os.getenv(name, default)
    return [x.strip() for x in raw.split(",") if x.strip()]


class Settings:
    # -------------------------------------------------------
    # Project
    # -------------------------------------------------------
    PROJECT_NAME: str = "Family Tree API"
    ENV: str = os.getenv("ENV", "dev")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    CORS_ORIGINS: list[str] = _env_list("CORS_ORIGINS", "*")

    # -------------------------------------------------------
    # Database
    # -------------------------------------------------------
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        "sqlite:///./family.db"
    )

    # Hosted providers hand out postgres:// but SQLAlchemy needs postgresql://
    if DATABASE_URL.startswith("postgres://"):
        DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

    # How long a database availability probe result is trusted
    DB_CHECK_INTERVAL_SECONDS: int = int(os.getenv("DB_CHECK_INTERVAL_SECONDS", 30))

    # In-memory member list used when the database is unavailable or empty
    SEED_DATA_PATH: str = os.getenv("SEED_DATA_PATH", "./seed_members.json")

    # -------------------------------------------------------
    # Member writes
    # -------------------------------------------------------
    DEFAULT_FAMILY_NAME: str = os.getenv("DEFAULT_FAMILY_NAME", "آل شايع")
    MEMBER_WRITE_MAX_RETRIES: int = int(os.getenv("MEMBER_WRITE_MAX_RETRIES", 5))
    MEMBER_WRITE_RETRY_DELAY_MS: int = int(os.getenv("MEMBER_WRITE_RETRY_DELAY_MS", 100))

    # Public pending-member submissions per client IP per hour
    PENDING_SUBMISSIONS_PER_HOUR: int = int(os.getenv("PENDING_SUBMISSIONS_PER_HOUR", 10))

    # -------------------------------------------------------
    # Authentication / JWT
    # -------------------------------------------------------
    SECRET_KEY: str = os.getenv(
        "SECRET_KEY",
        "change-me-family-tree-dev"
    )
    ALGORITHM: str = "HS256"

    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24))

    # -------------------------------------------------------
    # Public site URL (media links, branch invitation links)
    # -------------------------------------------------------
    BASE_URL: str = os.getenv(
        "BASE_URL",
        "http://127.0.0.1:8000"
    )

    # -------------------------------------------------------
    # Uploaded images
    # -------------------------------------------------------
    LOCAL_MEDIA_PATH: str = os.getenv(
        "LOCAL_MEDIA_PATH",
        "./media"
    )

    # -------------------------------------------------------
    # Email (SMTP)
    # -------------------------------------------------------
    EMAIL_PROVIDER: str = os.getenv("EMAIL_PROVIDER", "none")
    SMTP_HOST: str = os.getenv("SMTP_HOST", "smtp.gmail.com")
    SMTP_PORT: int = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USERNAME: str = os.getenv("SMTP_USERNAME", "")
    SMTP_PASSWORD: str = os.getenv("SMTP_PASSWORD", "")
    SMTP_FROM_EMAIL: str = os.getenv("SMTP_FROM_EMAIL", "noreply@example.com")
    SMTP_FROM_NAME: str = os.getenv("SMTP_FROM_NAME", "Family Tree")

    # -------------------------------------------------------
    # SMS (Twilio)
    # -------------------------------------------------------
    SMS_PROVIDER: str = os.getenv("SMS_PROVIDER", "none")
    TWILIO_ACCOUNT_SID: str = os.getenv("TWILIO_ACCOUNT_SID", "")
    TWILIO_AUTH_TOKEN: str = os.getenv("TWILIO_AUTH_TOKEN", "")
    TWILIO_FROM_NUMBER: str = os.getenv("TWILIO_FROM_NUMBER", "")


settings = Settings()
