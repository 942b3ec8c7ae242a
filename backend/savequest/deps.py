from fastapi import Depends, Request
from sqlalchemy.orm import Session

from .database import get_db
from .services.challenge_engine import ChallengeEngine
from .services.plaid_client import PlaidClient


def get_plaid(request: Request) -> PlaidClient:
    return request.app.state.plaid


def get_engine(db: Session = Depends(get_db)) -> ChallengeEngine:
    return ChallengeEngine(db)
