from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..database import get_db
from ..deps import get_engine, get_plaid
from ..models import Enrollment
from ..schemas import (
    CheckInResponse,
    DateRange,
    EnrollmentRequest,
    EnrollmentSchema,
    EvaluationSchema,
    JoinResponse,
    StreakResponse,
    SyncRequest,
    SyncResponse,
    TransactionSchema,
    UserChallengesResponse,
)
from ..security import RequireAPIAuth
from ..services.challenge_engine import ChallengeEngine, Window
from ..services.plaid_client import PlaidClient
from ..services.rule_evaluator import Evaluation
from ..services.sync import sync_transactions

router = APIRouter(prefix="/user-challenges", tags=["user-challenges"], dependencies=[RequireAPIAuth])


def _enrollment_to_schema(e: Enrollment) -> EnrollmentSchema:
    return EnrollmentSchema(
        id=e.id,
        user_id=e.user_id,
        challenge_id=e.template_id,
        status=e.status,
        joined_at=e.joined_at,
        streak=e.streak,
        last_checked_at=e.last_checked_at,
        evaluated_through=e.evaluated_through,
        failure_reason=e.failure_reason,
        failed_at=e.failed_at,
        completed_at=e.completed_at,
    )


def _evaluation_to_schema(evaluation: Evaluation, window: Window) -> EvaluationSchema:
    return EvaluationSchema(
        rule_type=evaluation.rule_type,
        rule_broken=evaluation.broken,
        reason=evaluation.reason,
        evaluated_transactions=evaluation.evaluated_count,
        violated_transactions=[TransactionSchema.model_validate(t) for t in evaluation.violating_transactions],
        window_start=window.start.isoformat(),
        window_end=window.end.isoformat(),
    )


@router.post("/join", response_model=JoinResponse, status_code=201, summary="Enroll a user in a challenge")
def join_challenge(payload: EnrollmentRequest, engine: ChallengeEngine = Depends(get_engine)):
    enrollment = engine.join(payload.user_id, payload.challenge_id)
    return JoinResponse(data=_enrollment_to_schema(enrollment))


@router.post(
    "/check-in",
    response_model=CheckInResponse,
    summary="Re-grade the challenge period to date and advance the streak",
    responses={400: {"description": "Not enrolled, already failed, too early, or rule violated"}},
)
def check_in(payload: EnrollmentRequest, engine: ChallengeEngine = Depends(get_engine)):
    result = engine.check_in(payload.user_id, payload.challenge_id)
    body = CheckInResponse(
        success=not result.rule_broken,
        status=result.status,
        streak=result.streak,
        rule_broken=result.rule_broken,
        challenge_failed=result.rule_broken,
        is_completed=result.is_completed,
        message=result.message,
        evaluation=_evaluation_to_schema(result.evaluation, result.window),
    )
    if result.rule_broken:
        return JSONResponse(status_code=400, content=body.model_dump(mode="json", by_alias=True))
    return body


@router.post(
    "/sync-transactions",
    response_model=SyncResponse,
    summary="Refresh a user's transactions from the linked bank account",
)
def sync_user_transactions(
    payload: SyncRequest,
    db: Session = Depends(get_db),
    plaid: PlaidClient = Depends(get_plaid),
):
    result = sync_transactions(db, plaid, payload.user_id, payload.days)
    return SyncResponse(
        message=f"Transactions synced successfully for {payload.days} days.",
        transaction_count=result["transaction_count"],
        date_range=DateRange(start_date=result["start_date"], end_date=result["end_date"]),
    )


@router.get("/{user_id}", response_model=UserChallengesResponse, summary="List a user's enrollments, newest first")
def list_user_challenges(user_id: str, engine: ChallengeEngine = Depends(get_engine)):
    return UserChallengesResponse(challenges=[_enrollment_to_schema(e) for e in engine.list_for_user(user_id)])


@router.get("/{user_id}/{challenge_id}/streak", response_model=StreakResponse, summary="Current streak")
def get_streak(user_id: str, challenge_id: str, engine: ChallengeEngine = Depends(get_engine)):
    view = engine.get_streak(user_id, challenge_id)
    return StreakResponse(streak=view.streak, last_check_in=view.last_check_in, status=view.status)


@router.get(
    "/{user_id}/{challenge_id}/evaluate",
    response_model=EvaluationSchema,
    summary="Grade the current window without checking in",
)
def evaluate_challenge(user_id: str, challenge_id: str, engine: ChallengeEngine = Depends(get_engine)):
    graded = engine.evaluate(user_id, challenge_id)
    return _evaluation_to_schema(graded.evaluation, graded.window)
