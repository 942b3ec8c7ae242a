"""Transaction sync — pulls a trailing window from Plaid into the store.

The provider fetch completes (all pages) before anything is written, so a
failed or timed-out fetch leaves the store exactly as it was.
"""

import logging
from datetime import date, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from .. import config
from ..errors import InvalidRequestError, ProviderError
from .normalizer import normalize_plaid_transaction
from .plaid_client import PlaidClient
from .stores import LinkedAccountStore, TransactionStore

logger = logging.getLogger(__name__)

_SYNC_WEBHOOK_CODES = {"DEFAULT_UPDATE", "INITIAL_UPDATE", "HISTORICAL_UPDATE"}


def sync_transactions(
    db: Session,
    plaid: PlaidClient,
    user_id: str,
    days: int = config.DEFAULT_SYNC_DAYS,
    today: Optional[date] = None,
) -> dict:
    """Refresh the user's transactions for the trailing *days* and upsert them.

    Returns ``{"transaction_count", "start_date", "end_date"}``.
    """
    if not 1 <= days <= config.MAX_SYNC_DAYS:
        raise InvalidRequestError(f"days must be between 1 and {config.MAX_SYNC_DAYS}.")
    account = LinkedAccountStore(db).for_user(user_id)
    if account is None:
        raise InvalidRequestError(
            "No Plaid account found for this user. Please link your bank account first."
        )

    today = today or date.today()
    end_date = today.isoformat()
    start_date = (today - timedelta(days=days)).isoformat()

    raw = plaid.get_transactions(account.access_token, start_date, end_date)
    rows = []
    superseded: set[str] = set()
    for item in raw:
        try:
            rows.append(normalize_plaid_transaction(item))
        except ValueError as exc:
            logger.warning("Skipping malformed Plaid transaction for user=%s: %s", user_id, exc)
            continue
        if item.get("pending_transaction_id") and not item.get("pending"):
            superseded.add(item["pending_transaction_id"])
    if superseded:
        rows = [r for r in rows if r["transaction_id"] not in superseded]

    count = TransactionStore(db).upsert_many(user_id, rows, superseded)
    if superseded:
        logger.debug("Dropped up to %d superseded pending rows for user=%s", len(superseded), user_id)
    logger.info("Synced %d transactions for user=%s (%s..%s)", count, user_id, start_date, end_date)
    return {"transaction_count": count, "start_date": start_date, "end_date": end_date}


def handle_webhook(db: Session, plaid: PlaidClient, event: dict) -> str:
    """React to a Plaid webhook; always returns a status line for the 200 reply."""
    webhook_type = event.get("webhook_type")
    webhook_code = event.get("webhook_code")
    if webhook_type != "TRANSACTIONS" or webhook_code not in _SYNC_WEBHOOK_CODES:
        logger.info("Webhook received: %s %s", webhook_type, webhook_code)
        return "Webhook event received."

    item_id = event.get("item_id")
    account = LinkedAccountStore(db).get(item_id) if item_id else None
    if account is None:
        logger.warning("No linked account for item_id=%s", item_id)
        return "Webhook received: no mapping found for item_id."

    try:
        sync_transactions(db, plaid, account.user_id, days=config.DEFAULT_SYNC_DAYS)
    except ProviderError as exc:
        # The webhook reply is always 200; the failure only shows up in the log.
        logger.error("Webhook sync failed for item_id=%s: %s", item_id, exc.message)
        return "Webhook error: failed to process transaction update."
    return "Webhook processed: transactions updated for user."
