"""Normalization of provider transaction payloads into store rows.

Covers:
  - Date parsing (ISO dates, ISO datetimes, a few US formats)
  - Amount conversion to integer cents (ROUND_HALF_UP)
  - Plaid transaction → ``Transaction`` column mapping
"""

import decimal
from datetime import date, datetime
from typing import Any, Optional, Union

# ─────────────────────────────────────────────────────────────────────────────
# Date parsing
# ─────────────────────────────────────────────────────────────────────────────

_DATE_FORMATS = [
    "%Y-%m-%d",             # 2026-01-15
    "%Y-%m-%dT%H:%M:%S",    # 2026-01-15T12:00:00
    "%Y-%m-%dT%H:%M:%SZ",   # 2026-01-15T12:00:00Z
    "%Y-%m-%dT%H:%M:%S.%f", # 2026-01-15T12:00:00.000000
    "%m/%d/%Y",             # 01/15/2026
    "%Y/%m/%d",             # 2026/01/15
]


def parse_date(value: Union[str, date, None]) -> Optional[str]:
    """Return an ISO ``YYYY-MM-DD`` string, or None for empty input.

    Raises ValueError for strings in no known format: a transaction whose
    day cannot be determined cannot be graded.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    v = value.strip()
    if not v:
        return None
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(v, fmt).strftime("%Y-%m-%d")
        except ValueError:
            continue
    raise ValueError(f"Unrecognised date: {value!r}")


# ─────────────────────────────────────────────────────────────────────────────
# Amounts
# ─────────────────────────────────────────────────────────────────────────────


def to_cents(amount: Union[float, int, str, decimal.Decimal]) -> int:
    """Convert dollars to integer cents (ROUND_HALF_UP)."""
    return int(
        (decimal.Decimal(str(amount)) * 100).quantize(
            decimal.Decimal("1"), rounding=decimal.ROUND_HALF_UP
        )
    )


def cents_to_str(cents: int) -> str:
    sign = "-" if cents < 0 else ""
    return f"{sign}${abs(cents) // 100:,}.{abs(cents) % 100:02d}"


# ─────────────────────────────────────────────────────────────────────────────
# Plaid payloads
# ─────────────────────────────────────────────────────────────────────────────


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def _as_code(label: str) -> str:
    """'Food and Drink' -> 'FOOD_AND_DRINK', the shape of personal-finance codes."""
    return label.strip().upper().replace(" ", "_")


def normalize_plaid_transaction(raw: dict) -> dict:
    """Map one Plaid ``/transactions/get`` row onto ``Transaction`` columns.

    Plaid's sign convention (positive = money leaving the account) is kept
    as-is.  The legacy ``category`` list is used as a fallback when the
    personal-finance category is absent.
    """
    txn_id = _clean(raw.get("transaction_id"))
    if not txn_id:
        raise ValueError("transaction_id is required")
    posted = parse_date(raw.get("date"))
    if not posted:
        raise ValueError(f"transaction {txn_id} has no date")
    if raw.get("amount") is None:
        raise ValueError(f"transaction {txn_id} has no amount")
    try:
        amount_cents = to_cents(raw["amount"])
    except decimal.InvalidOperation as exc:
        raise ValueError(f"transaction {txn_id} has an invalid amount: {raw['amount']!r}") from exc

    pfc = raw.get("personal_finance_category") or {}
    primary = _clean(pfc.get("primary"))
    detailed = _clean(pfc.get("detailed"))
    if primary is None and raw.get("category"):
        legacy = [c for c in raw["category"] if c]
        if legacy:
            primary = _as_code(legacy[0])
            detailed = detailed or _as_code("_".join(legacy))

    return {
        "transaction_id": txn_id,
        "account_id": _clean(raw.get("account_id")),
        "posted_date": posted,
        "authorized_date": parse_date(raw.get("authorized_date")),
        "amount_cents": amount_cents,
        "name": _clean(raw.get("name")),
        "merchant_name": _clean(raw.get("merchant_name")),
        "category_primary": primary,
        "category_detailed": detailed,
        "pending": bool(raw.get("pending", False)),
    }
