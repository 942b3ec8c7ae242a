"""Database seeder — idempotent challenge catalog and demo transactions."""

import hashlib
from datetime import date, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ..models import ChallengeTemplate, Transaction
from ..schemas import ChallengeTemplateIn
from .normalizer import to_cents

# ─────────────────────────────────────────────────────────────────────────────
# Default challenge templates
#
# Category targets are Plaid personal-finance-category codes and are matched
# as substrings, so FOOD_AND_DRINK_FAST_FOOD also covers any finer code that
# contains it.
# ─────────────────────────────────────────────────────────────────────────────

_DEFAULT_CHALLENGES: list[dict] = [
    # ── spend_block ──────────────────────────────────────────────────────────
    {
        "id": "no-fast-food-7d",
        "title": "No Fast Food for 7 Days",
        "description": "Avoid all fast food purchases for one week",
        "rule_type": "spend_block",
        "duration_days": 7,
        "difficulty": "easy",
        "rule_params": {
            "category": "FOOD_AND_DRINK_FAST_FOOD",
            "merchants": ["McDonald's", "KFC", "Burger King", "Taco Bell"],
        },
        "reward": {"type": "badge", "value": "Fast Food Fighter",
                   "description": "Completed 7 days without fast food"},
    },
    {
        "id": "no-uber-7d",
        "title": "No Uber for 7 Days",
        "description": "Skip ride-sharing for a week",
        "rule_type": "spend_block",
        "duration_days": 7,
        "difficulty": "medium",
        "rule_params": {"merchants": ["Uber", "Lyft", "Uber Technologies"]},
        "reward": {"type": "badge", "value": "Public Transit Hero",
                   "description": "Avoided ride-sharing for 7 days"},
    },
    {
        "id": "no-coffee-shops-7d",
        "title": "No Coffee Shop Visits for 7 Days",
        "description": "Make your coffee at home for one week",
        "rule_type": "spend_block",
        "duration_days": 7,
        "difficulty": "medium",
        "rule_params": {
            "category": "FOOD_AND_DRINK_COFFEE",
            "merchants": ["Starbucks", "Dunkin'", "Peet's Coffee"],
        },
        "reward": {"type": "badge", "value": "Home Barista",
                   "description": "Skipped coffee shops for 7 days"},
    },
    # ── spend_cap ────────────────────────────────────────────────────────────
    {
        "id": "retail-cap-50-14d",
        "title": "Retail Spending Cap: $50 in 14 Days",
        "description": "Keep general merchandise spending under $50 for two weeks",
        "rule_type": "spend_cap",
        "duration_days": 14,
        "difficulty": "medium",
        "rule_params": {"category": "GENERAL_MERCHANDISE", "cap_amount": "50.00"},
        "reward": {"type": "badge", "value": "Budget Master",
                   "description": "Stayed under retail spending limit"},
    },
    {
        "id": "food-delivery-cap-25-7d",
        "title": "Food Delivery Cap: $25 in 7 Days",
        "description": "Limit food delivery spending to $25 this week",
        "rule_type": "spend_cap",
        "duration_days": 7,
        "difficulty": "hard",
        "rule_params": {"category": "FOOD_AND_DRINK_RESTAURANT", "cap_amount": "25.00"},
        "reward": {"type": "badge", "value": "Delivery Discipline",
                   "description": "Controlled food delivery spending"},
    },
    # ── replacement ──────────────────────────────────────────────────────────
    {
        "id": "gym-for-fast-food-7d",
        "title": "Replace Fast Food with Gym Visits",
        "description": "Skip fast food and hit the gym instead for 7 days",
        "rule_type": "replacement",
        "duration_days": 7,
        "difficulty": "hard",
        "rule_params": {"from_category": "FOOD_AND_DRINK_FAST_FOOD", "to_category": "PERSONAL_CARE_GYMS_AND_FITNESS_CENTERS"},
        "reward": {"type": "badge", "value": "Health Warrior",
                   "description": "Successfully replaced bad habits with good ones"},
    },
    {
        "id": "savings-for-impulse-14d",
        "title": "Replace Impulse Buys with Savings",
        "description": "Skip unnecessary purchases and save money instead",
        "rule_type": "replacement",
        "duration_days": 14,
        "difficulty": "medium",
        "rule_params": {"from_category": "GENERAL_MERCHANDISE", "to_category": "TRANSFER_OUT_SAVINGS"},
        "reward": {"type": "badge", "value": "Smart Saver",
                   "description": "Chose savings over spending"},
    },
    # ── streak_goal ──────────────────────────────────────────────────────────
    {
        "id": "daily-savings-5d",
        "title": "5-Day Savings Streak",
        "description": "Make at least one savings transfer every day for 5 days",
        "rule_type": "streak_goal",
        "duration_days": 5,
        "difficulty": "medium",
        "rule_params": {"category": "TRANSFER_OUT_SAVINGS", "duration": 5},
        "reward": {"type": "badge", "value": "Savings Streak",
                   "description": "Saved money 5 days in a row"},
    },
]


# ─────────────────────────────────────────────────────────────────────────────
# Public API
# ─────────────────────────────────────────────────────────────────────────────


def seed_challenges(db: Session, challenges: Optional[list[dict]] = None) -> dict:
    """Upsert challenge templates by id.

    Every template is validated (rule parameters included) before anything is
    written, so one malformed entry aborts the whole seed.
    """
    validated = [ChallengeTemplateIn(**c) for c in (challenges or _DEFAULT_CHALLENGES)]
    inserted = updated = 0
    for tmpl in validated:
        existing = db.get(ChallengeTemplate, tmpl.id)
        if existing is None:
            db.add(ChallengeTemplate(**tmpl.model_dump()))
            inserted += 1
            continue
        changed = False
        for field, val in tmpl.model_dump(exclude={"id"}).items():
            if getattr(existing, field) != val:
                setattr(existing, field, val)
                changed = True
        updated += int(changed)
    db.commit()
    return {"inserted": inserted, "updated": updated}


# ─────────────────────────────────────────────────────────────────────────────
# Demo transactions  (fictional data only)
#
# Uses rolling dates relative to *today* so a demo user always has a recent
# history to check in against.
# ─────────────────────────────────────────────────────────────────────────────

# (days_ago, merchant, amount, primary, detailed)
_DEMO_ROWS: list[tuple[int, str, str, str, str]] = [
    (1,  "Trader Joe's",  "54.12", "FOOD_AND_DRINK",   "FOOD_AND_DRINK_GROCERIES"),
    (1,  "Ally Bank",     "20.00", "TRANSFER_OUT",     "TRANSFER_OUT_SAVINGS"),
    (2,  "Target",        "23.49", "GENERAL_MERCHANDISE", "GENERAL_MERCHANDISE_SUPERSTORES"),
    (2,  "Ally Bank",     "20.00", "TRANSFER_OUT",     "TRANSFER_OUT_SAVINGS"),
    (3,  "Chipotle",      "13.85", "FOOD_AND_DRINK",   "FOOD_AND_DRINK_RESTAURANT"),
    (4,  "Planet Fitness", "24.99", "PERSONAL_CARE",   "PERSONAL_CARE_GYMS_AND_FITNESS_CENTERS"),
    (5,  "Shell",         "41.30", "TRANSPORTATION",   "TRANSPORTATION_GAS"),
    (6,  "Target",        "-23.49", "GENERAL_MERCHANDISE", "GENERAL_MERCHANDISE_SUPERSTORES"),
    (8,  "McDonald's",    "9.47", "FOOD_AND_DRINK",    "FOOD_AND_DRINK_FAST_FOOD"),
    (10, "Comcast",       "79.99", "RENT_AND_UTILITIES", "RENT_AND_UTILITIES_INTERNET_AND_CABLE"),
    (12, "Payroll",       "-2150.00", "INCOME",        "INCOME_WAGES"),
]


def seed_demo_transactions(db: Session, user_id: str = "demo", today: Optional[date] = None) -> int:
    """Insert fictional demo transactions for *user_id*; idempotent by id."""
    today = today or date.today()
    added = 0
    for days_ago, merchant, amount, primary, detailed in _DEMO_ROWS:
        day = (today - timedelta(days=days_ago)).isoformat()
        key = f"{user_id}|{day}|{merchant}|{amount}"
        txn_id = "demo-" + hashlib.sha256(key.encode()).hexdigest()[:16]
        if db.get(Transaction, (user_id, txn_id)) is not None:
            continue
        db.add(Transaction(
            user_id=user_id,
            transaction_id=txn_id,
            account_id="demo-checking",
            posted_date=day,
            amount_cents=to_cents(amount),
            name=merchant.upper(),
            merchant_name=merchant,
            category_primary=primary,
            category_detailed=detailed,
            pending=False,
        ))
        added += 1
    db.commit()
    return added
