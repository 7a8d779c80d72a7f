# teamforge/config.py
# Environment-aware configuration for TeamForge backend

import os
from typing import Literal

# Environment detection
ENV: Literal["dev", "staging", "prod"] = os.environ.get("ENV", "dev")  # type: ignore
IS_DEV = (ENV == "dev")
IS_STAGING = (ENV == "staging")
IS_PROD = (ENV == "prod")

# JWT verification (tokens are issued by the identity provider)
SECRET_KEY = os.environ.get("SECRET_KEY", "teamforge-dev-secret-key-change-me-in-prod")
ALGORITHM = "HS256"

# Database configuration
# DATABASE_URL takes precedence (managed Postgres)
# Falls back to SQLite for local development
DATABASE_URL = os.environ.get("DATABASE_URL", "").strip()
DATABASE_PATH = os.environ.get("DATABASE_PATH", "teamforge.db")

# CORS origins (expand for staging/prod)
CORS_ORIGINS = [
    "http://localhost:5173",  # Vite dev server
    "http://127.0.0.1:5173",
]

if IS_STAGING or IS_PROD:
    extra_origins = os.environ.get("CORS_ORIGINS", "")
    if extra_origins:
        CORS_ORIGINS.extend(o.strip() for o in extra_origins.split(",") if o.strip())

# Database type detection
IS_POSTGRES = DATABASE_URL.startswith(("postgres://", "postgresql://"))
IS_SQLITE = not IS_POSTGRES

# Project rules
DEFAULT_MAX_TEAM_SIZE = 5
MIN_TEAM_SIZE = 2
MAX_TEAM_SIZE = 20

PROJECT_DOMAINS = (
    "Web Development",
    "Mobile Apps",
    "AI/ML",
    "Data Science",
    "Blockchain",
    "Other",
)

# is_public is stored on every project but only filters reads when this is on
ENFORCE_PROJECT_VISIBILITY = os.environ.get("ENFORCE_PROJECT_VISIBILITY", "0").lower() in ("1", "true", "yes")

print(f"[CONFIG] Environment: {ENV}")
print(f"[CONFIG] Database: {'PostgreSQL' if IS_POSTGRES else 'SQLite (local dev)'}")
print(f"[CONFIG] Visibility enforcement: {'on' if ENFORCE_PROJECT_VISIBILITY else 'off'}")
