"""
Environment configuration for the billing backend.
Values are read once at import; .env is loaded first so local runs pick it up.
"""
import os

from dotenv import load_dotenv

load_dotenv()

# Prefer the new env var name, but fall back to the old one for safety.
# Strip whitespace to avoid invisible copy/paste errors.
DODO_API_KEY = (
    os.getenv("DODO_PAYMENTS_API_KEY")
    or os.getenv("DODO_API_KEY", "")
).strip()
DODO_BASE_URL = os.getenv("DODO_BASE_URL", "").strip().rstrip("/")
DODO_WEBHOOK_SECRET = os.getenv("DODO_WEBHOOK_SECRET", "").strip()
DODO_TEST_BASE_URL = "https://test.dodopayments.com"
DODO_LIVE_BASE_URL = "https://live.dodopayments.com"
DODO_API_KEY_PLACEHOLDER = "your-dodo-api-key"

SUPABASE_URL = os.getenv("SUPABASE_URL", "").rstrip("/")
SUPABASE_JWT_SECRET = os.getenv("SUPABASE_JWT_SECRET", "")
# Empty means the aud claim is not checked
SUPABASE_JWT_AUDIENCE = os.getenv("SUPABASE_JWT_AUDIENCE", "")

DATABASE_URL = os.getenv("DATABASE_URL", "")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000").rstrip("/")
ENVIRONMENT = os.getenv("ENVIRONMENT", os.getenv("NODE_ENV", "production"))
RUN_MIGRATIONS = os.getenv("RUN_MIGRATIONS", "true").lower() not in ("0", "false", "no")

# Webhook + checkout freshness windows (seconds)
WEBHOOK_TOLERANCE_SECONDS = 5 * 60
CHECKOUT_MAX_AGE_SECONDS = 5 * 60

# (max requests, window seconds)
GLOBAL_RATE_LIMIT = (100, 15 * 60)
CHECKOUT_RATE_LIMIT = (10, 60)
# JSON API bodies; webhook deliveries are read raw and not capped here
MAX_JSON_BODY_BYTES = 10 * 1024


def config_summary() -> dict:
    """Which settings are present, without leaking values."""
    return {
        "DODO_PAYMENTS_API_KEY": "LOADED" if DODO_API_KEY else "MISSING",
        "DODO_BASE_URL": DODO_BASE_URL or "DEFAULT",
        "DODO_WEBHOOK_SECRET": "LOADED" if DODO_WEBHOOK_SECRET else "MISSING",
        "SUPABASE_URL": "LOADED" if SUPABASE_URL else "MISSING",
        "SUPABASE_JWT_SECRET": "LOADED" if SUPABASE_JWT_SECRET else "MISSING",
        "DATABASE_URL": "LOADED" if DATABASE_URL else "MISSING",
        "FRONTEND_URL": FRONTEND_URL,
        "ENVIRONMENT": ENVIRONMENT,
    }
