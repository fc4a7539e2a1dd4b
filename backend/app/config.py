# backend configuration
# loads env vars for mongodb, jwt, membership terms, consultations, otp and smtp

import os
from pathlib import Path
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# load .env from project root
load_dotenv(Path(__file__).parent.parent.parent / ".env")


class Settings(BaseSettings):
    # mongodb
    MONGODB_URI: str = os.getenv("MONGODB_URI", "mongodb://localhost:27017")
    MONGODB_DATABASE: str = os.getenv("MONGODB_DATABASE", "hep2go_db")

    # jwt auth
    JWT_SECRET: str = os.getenv("JWT_SECRET", "hep2go-dev-secret-change-in-production")
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # cors
    FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:3000")

    # membership terms (days after payment)
    MONTHLY_MEMBERSHIP_DAYS: int = 30
    YEARLY_MEMBERSHIP_DAYS: int = 365

    # consultations
    CONSULTATION_DEFAULT_ACTIVE_DAYS: int = 14
    CONSULTATION_MAX_ACTIVE_DAYS: int = 365

    # exercise catalog
    EXERCISE_PAGE_SIZE: int = 9

    # one-time codes for registration and password reset
    OTP_LENGTH: int = 6
    OTP_EXPIRE_MINUTES: int = 10
    OTP_MAX_ATTEMPTS: int = 5

    # outbound email
    EMAIL_ENABLED: bool = False
    SMTP_HOST: str = os.getenv("SMTP_HOST", "smtp.gmail.com")
    SMTP_PORT: int = 587
    SMTP_USERNAME: str = os.getenv("SMTP_USERNAME", "")
    SMTP_PASSWORD: str = os.getenv("SMTP_PASSWORD", "")
    SMTP_USE_TLS: bool = True
    EMAIL_FROM: str = os.getenv("EMAIL_FROM", "no-reply@hep2go.app")

    # seed admin
    ADMIN_EMAIL: str = os.getenv("ADMIN_EMAIL", "admin@hep2go.app")
    ADMIN_PASSWORD: str = os.getenv("ADMIN_PASSWORD", "")

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
