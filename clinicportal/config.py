import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

# Falls back to a local SQLite file so the service boots without Postgres
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./clinicportal.db")

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

# Stripe Configuration
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")
# Maximum age (seconds) of a Stripe-Signature timestamp
STRIPE_WEBHOOK_TOLERANCE = int(os.getenv("STRIPE_WEBHOOK_TOLERANCE", "300"))
# How long a processed webhook event id is remembered for idempotency
WEBHOOK_IDEMPOTENCY_TTL = int(os.getenv("WEBHOOK_IDEMPOTENCY_TTL", "86400"))

# Redis (optional - cache is fail-open without it)
REDIS_URL = os.getenv("REDIS_URL")

# Licensing
LICENSE_KEY_PREFIX = os.getenv("LICENSE_KEY_PREFIX", "LIC")

# Feedback
FEEDBACK_EDIT_WINDOW_DAYS = int(os.getenv("FEEDBACK_EDIT_WINDOW_DAYS", "7"))

# HTTP
ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "http://localhost:5173,http://localhost:3000",
).split(",")
SECURITY_HEADERS_ENABLED = os.getenv("SECURITY_HEADERS_ENABLED", "true").lower() == "true"
