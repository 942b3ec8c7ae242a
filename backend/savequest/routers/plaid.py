from typing import Any

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..deps import get_plaid
from ..errors import ProviderError
from ..schemas import (
    ExchangeRequest,
    ExchangeResponse,
    LinkTokenRequest,
    LinkTokenResponse,
    WebhookResponse,
)
from ..security import RequireAPIAuth
from ..services.plaid_client import PlaidClient
from ..services.stores import LinkedAccountStore
from ..services.sync import handle_webhook

router = APIRouter(prefix="/plaid", tags=["plaid"])


@router.post(
    "/link-token",
    response_model=LinkTokenResponse,
    dependencies=[RequireAPIAuth],
    summary="Create a Plaid Link token for the bank-linking widget",
)
def create_link_token(payload: LinkTokenRequest, plaid: PlaidClient = Depends(get_plaid)):
    data = plaid.create_link_token(payload.user_id)
    return LinkTokenResponse(link_token=data["link_token"], expiration=data.get("expiration"))


@router.post(
    "/exchange",
    response_model=ExchangeResponse,
    dependencies=[RequireAPIAuth],
    summary="Exchange a Link public token and remember the linked item",
)
def exchange_public_token(
    payload: ExchangeRequest,
    db: Session = Depends(get_db),
    plaid: PlaidClient = Depends(get_plaid),
):
    data = plaid.exchange_public_token(payload.public_token)
    access_token, item_id = data.get("access_token"), data.get("item_id")
    if not access_token or not item_id:
        raise ProviderError("Plaid token exchange returned no access token.")
    LinkedAccountStore(db).save(item_id, payload.user_id, access_token, payload.institution_name)
    return ExchangeResponse(item_id=item_id)


@router.post("/webhook", response_model=WebhookResponse, summary="Plaid webhook receiver")
def plaid_webhook(
    event: dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    plaid: PlaidClient = Depends(get_plaid),
):
    return WebhookResponse(message=handle_webhook(db, plaid, event))
