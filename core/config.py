from typing import List, Optional
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    # -------------------------------------------------
    # General
    # -------------------------------------------------
    PROJECT_NAME: str = "Rentalinx Back Office API"
    ENV: str = "development"

    # -------------------------------------------------
    # Frontend Domains
    # -------------------------------------------------
    FRONTEND_DOMAIN: Optional[str] = None

    RENTALINX_DOMAINS: List[str] = [
        "https://rentalinx.com",
        "https://www.rentalinx.com",
    ]

    # -------------------------------------------------
    # CORS (auto-built below)
    # -------------------------------------------------
    BACKEND_CORS_ORIGINS: List[str] = []

    # -------------------------------------------------
    # Supabase (Credential Store)
    # -------------------------------------------------
    SUPABASE_URL: Optional[str] = None
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = None
    SUPABASE_USERS_TABLE: str = "users"

    # -------------------------------------------------
    # Sessions
    # -------------------------------------------------
    SESSION_STORAGE_DIR: str = ".sessions"
    SESSION_COOKIE_NAME: str = "rentalinx_context"
    SESSION_SHORT_HOURS: int = Field(8, description="Session length without 'remember me'")
    SESSION_REMEMBER_DAYS: int = Field(30, description="Session length with 'remember me'")

    # -------------------------------------------------
    # Passwords
    # -------------------------------------------------
    PASSWORD_HASH_ITERATIONS: int = Field(260000, description="PBKDF2 iterations for new hashes")

    # -------------------------------------------------
    # Login / reset rate limits
    # -------------------------------------------------
    LOGIN_RATE_LIMIT_MAX: int = Field(5, description="Attempts per window for login and reset")
    LOGIN_RATE_LIMIT_WINDOW_SECONDS: int = Field(900, description="Rate limit window (default: 15 minutes)")

    # -------------------------------------------------
    # Model Config
    # -------------------------------------------------
    class Config:
        case_sensitive = True


# Instantiate settings
settings = Settings()

# -------------------------------------------------
# Build CORS list dynamically after loading settings
# -------------------------------------------------
cors_origins = []

if settings.FRONTEND_DOMAIN:
    domain = settings.FRONTEND_DOMAIN
    if not domain.startswith("http"):
        domain = f"https://{domain}"
    cors_origins.append(domain.rstrip("/"))

cors_origins.extend([d.rstrip("/") for d in settings.RENTALINX_DOMAINS])

settings.BACKEND_CORS_ORIGINS = sorted(list(set(cors_origins)))
