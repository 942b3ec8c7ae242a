import os
from pathlib import Path

# data/ lives next to the backend/ directory (repo root)
DATA_DIR = Path(os.getenv("SAVEQUEST_DATA_DIR", Path(__file__).parent.parent.parent / "data"))

DATABASE_URL = os.getenv("SAVEQUEST_DATABASE_URL", f"sqlite:///{DATA_DIR / 'savequest.db'}")

# Bearer token used for all API requests when set.
API_TOKEN = os.getenv("SAVEQUEST_API_TOKEN")

# Days a transaction date must age before a check-in may grade it.
SETTLEMENT_LAG_DAYS = int(os.getenv("SAVEQUEST_SETTLEMENT_LAG_DAYS", "1"))

DEFAULT_SYNC_DAYS = int(os.getenv("SAVEQUEST_DEFAULT_SYNC_DAYS", "30"))
MAX_SYNC_DAYS = 730

# When set, startup seeds fictional transactions for this user id.
SEED_DEMO_USER = os.getenv("SAVEQUEST_SEED_DEMO_USER")

LOG_LEVEL = os.getenv("SAVEQUEST_LOG_LEVEL", "INFO").upper()

CORS_ORIGINS = [
    o.strip()
    for o in os.getenv("SAVEQUEST_CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",")
    if o.strip()
]

# ── Plaid ─────────────────────────────────────────────────────────────────────

PLAID_CLIENT_ID = os.getenv("PLAID_CLIENT_ID", "")
PLAID_SECRET = os.getenv("PLAID_SECRET", "")
PLAID_ENV = os.getenv("PLAID_ENV", "sandbox")
PLAID_WEBHOOK_URL = os.getenv("PLAID_WEBHOOK_URL")

PLAID_HOSTS = {
    "sandbox": "https://sandbox.plaid.com",
    "development": "https://development.plaid.com",
    "production": "https://production.plaid.com",
}

# Plaid caps /transactions/get pages at 500 rows.
PLAID_PAGE_SIZE = 500
PLAID_TIMEOUT_SECONDS = float(os.getenv("PLAID_TIMEOUT_SECONDS", "30"))
