"""Plaid client — link tokens, token exchange and transaction fetches over httpx.

One ``PlaidClient`` is opened in the app lifespan and closed at shutdown;
routers receive it through the ``get_plaid`` dependency.
"""

import logging
from typing import Optional

import httpx

from .. import config
from ..errors import ProviderError

logger = logging.getLogger(__name__)


class PlaidClient:
    def __init__(
        self,
        client_id: str = config.PLAID_CLIENT_ID,
        secret: str = config.PLAID_SECRET,
        env: str = config.PLAID_ENV,
        *,
        timeout: float = config.PLAID_TIMEOUT_SECONDS,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        if env not in config.PLAID_HOSTS:
            raise ValueError(f"Unknown Plaid environment: {env!r}")
        self.env = env
        self._http = httpx.Client(
            base_url=config.PLAID_HOSTS[env],
            timeout=timeout,
            transport=transport,
            headers={"PLAID-CLIENT-ID": client_id, "PLAID-SECRET": secret},
        )

    def close(self) -> None:
        self._http.close()

    # ── Low-level ────────────────────────────────────────────────────────────

    def _post(self, path: str, body: dict) -> dict:
        try:
            r = self._http.post(path, json=body)
        except httpx.HTTPError as exc:
            logger.warning("Plaid %s transport error: %s", path, exc)
            raise ProviderError(f"Plaid request to {path} failed: {exc}") from exc

        if r.status_code >= 400:
            try:
                data = r.json()
            except ValueError:
                data = {}
            logger.warning(
                "Plaid %s returned %s (%s)", path, r.status_code, data.get("error_code", "no error_code")
            )
            raise ProviderError(
                data.get("error_message") or f"Plaid returned HTTP {r.status_code}",
                error_code=data.get("error_code"),
                error_type=data.get("error_type"),
                display_message=data.get("display_message"),
            )
        return r.json()

    # ── Link flow ────────────────────────────────────────────────────────────

    def create_link_token(self, user_id: str, webhook: Optional[str] = config.PLAID_WEBHOOK_URL) -> dict:
        body = {
            "user": {"client_user_id": user_id},
            "client_name": "SaveQuest",
            "products": ["transactions"],
            "country_codes": ["US"],
            "language": "en",
        }
        if webhook:
            body["webhook"] = webhook
        return self._post("/link/token/create", body)

    def exchange_public_token(self, public_token: str) -> dict:
        """Returns Plaid's ``{"access_token", "item_id", ...}`` payload."""
        return self._post("/item/public_token/exchange", {"public_token": public_token})

    # ── Data ─────────────────────────────────────────────────────────────────

    def get_accounts(self, access_token: str) -> dict:
        return self._post("/accounts/get", {"access_token": access_token})

    def get_transactions(self, access_token: str, start_date: str, end_date: str) -> list[dict]:
        """Fetch every transaction between the two dates (inclusive), all pages."""
        transactions: list[dict] = []
        while True:
            page = self._post("/transactions/get", {
                "access_token": access_token,
                "start_date": start_date,
                "end_date": end_date,
                "options": {"count": config.PLAID_PAGE_SIZE, "offset": len(transactions)},
            })
            batch = page.get("transactions", [])
            transactions.extend(batch)
            total = page.get("total_transactions", len(transactions))
            if not batch or len(transactions) >= total:
                return transactions
