"""Challenge engine — enrollment state machine, windows and streaks.

States: ``active`` → ``failed`` | ``completed``.  Both end states are terminal
for an enrollment row; joining again after a failure (or a completion)
creates a fresh row and the old one stays as history.

Every check-in re-grades the whole period from the join date up to the last
settled day, so a late-posting transaction on an earlier day is still caught
before the challenge can complete.

Check-ins for the same (user, template) pair are serialized by an in-process
lock, and the final write is a compare-and-swap on ``Enrollment.version`` so
a second worker process cannot overwrite a newer state either.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Iterator, Optional

from sqlalchemy.orm import Session

from .. import config
from ..errors import ChallengeFailedError, ConflictError, NotFoundError, TooEarlyError
from ..models import (
    ENROLLMENT_ACTIVE,
    ENROLLMENT_COMPLETED,
    ENROLLMENT_FAILED,
    ChallengeTemplate,
    Enrollment,
    Transaction,
)
from ..schemas import RuleParams, parse_rule_params
from .normalizer import cents_to_str
from .rule_evaluator import Evaluation, evaluate
from .stores import ChallengeCatalog, EnrollmentStore, TransactionStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(dt: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt.astimezone(timezone.utc)


# ─────────────────────────────────────────────────────────────────────────────
# Per-enrollment serialization
# ─────────────────────────────────────────────────────────────────────────────

_locks: dict[tuple[str, str], threading.Lock] = {}
_locks_guard = threading.Lock()


@contextmanager
def enrollment_lock(user_id: str, template_id: str) -> Iterator[None]:
    with _locks_guard:
        lock = _locks.setdefault((user_id, template_id), threading.Lock())
    with lock:
        yield


# ─────────────────────────────────────────────────────────────────────────────
# Value types
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Window:
    """Inclusive range of settled days graded by one check-in."""

    start: date
    end: date
    last_day: date          # join day + duration

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    @property
    def is_final(self) -> bool:
        return self.end >= self.last_day

    def contains(self, txn: Transaction) -> bool:
        # ISO strings compare in calendar order; no timezone arithmetic involved.
        return self.start.isoformat() <= txn.effective_date <= self.end.isoformat()


@dataclass(frozen=True)
class EnrollmentEvaluation:
    evaluation: Evaluation
    window: Window


@dataclass(frozen=True)
class CheckInResult:
    enrollment: Enrollment
    evaluation: Evaluation
    window: Window
    message: str

    @property
    def status(self) -> str:
        return self.enrollment.status

    @property
    def streak(self) -> int:
        return self.enrollment.streak

    @property
    def rule_broken(self) -> bool:
        return self.evaluation.broken

    @property
    def is_completed(self) -> bool:
        return self.enrollment.status == ENROLLMENT_COMPLETED


@dataclass(frozen=True)
class StreakView:
    streak: int
    last_check_in: Optional[datetime]
    status: str


# ─────────────────────────────────────────────────────────────────────────────
# Engine
# ─────────────────────────────────────────────────────────────────────────────


class ChallengeEngine:
    def __init__(
        self,
        db: Session,
        *,
        clock: Callable[[], datetime] = _utcnow,
        settlement_lag_days: Optional[int] = None,
        transactions: Optional[TransactionStore] = None,
        catalog: Optional[ChallengeCatalog] = None,
        enrollments: Optional[EnrollmentStore] = None,
    ) -> None:
        self.db = db
        self.clock = clock
        self.settlement_lag_days = (
            config.SETTLEMENT_LAG_DAYS if settlement_lag_days is None else settlement_lag_days
        )
        self.transactions = transactions or TransactionStore(db)
        self.catalog = catalog or ChallengeCatalog(db)
        self.enrollments = enrollments or EnrollmentStore(db)

    # ── Join / rejoin ────────────────────────────────────────────────────────

    def join(self, user_id: str, template_id: str) -> Enrollment:
        """Start a new enrollment; rejoining after a failure goes through here too."""
        template = self._require_template(template_id)
        parse_rule_params(template.rule_type, template.rule_params)

        with enrollment_lock(user_id, template_id):
            current = self.enrollments.current(user_id, template_id)
            if current is not None and current.status == ENROLLMENT_ACTIVE:
                raise ConflictError("User already joined this challenge.")
            enrollment = self.enrollments.add(Enrollment(
                user_id=user_id,
                template_id=template_id,
                status=ENROLLMENT_ACTIVE,
                joined_at=self.clock(),
                streak=0,
                version=0,
            ))
        logger.info(
            "user=%s joined challenge=%s enrollment=%s%s",
            user_id, template_id, enrollment.id,
            f" (rejoin after {current.status})" if current is not None else "",
        )
        return enrollment

    # ── Check-in ─────────────────────────────────────────────────────────────

    def check_in(self, user_id: str, template_id: str) -> CheckInResult:
        with enrollment_lock(user_id, template_id):
            try:
                return self._check_in(user_id, template_id)
            except Exception:
                self.db.rollback()
                raise

    def _check_in(self, user_id: str, template_id: str) -> CheckInResult:
        enrollment = self._require_enrollment(user_id, template_id, status_code=400)
        if enrollment.status == ENROLLMENT_FAILED:
            raise ChallengeFailedError(
                "This challenge has failed. Please rejoin to start over.", challenge_failed=True
            )
        if enrollment.status == ENROLLMENT_COMPLETED:
            raise ConflictError("This challenge is already completed.")

        template = self._require_template(template_id)
        params = parse_rule_params(template.rule_type, template.rule_params)
        window = self.window_for(enrollment, template)
        if enrollment.evaluated_through == window.end.isoformat():
            raise ConflictError(
                f"Already checked in through {window.end.isoformat()}; "
                f"the next day settles on {(window.end + timedelta(days=1 + self.settlement_lag_days)).isoformat()}."
            )

        evaluation = self._grade(user_id, template, params, window)
        now = self.clock()
        expected_version = enrollment.version

        if evaluation.broken:
            values = {
                "status": ENROLLMENT_FAILED,
                "streak": 0,
                "failure_reason": evaluation.reason,
                "failed_at": now,
                "last_checked_at": now,
                "evaluated_through": window.end.isoformat(),
                "violations": [_evidence(t) for t in evaluation.violating_transactions],
            }
            message = f"Challenge failed! {evaluation.reason}"
        else:
            streak = min(window.days, template.duration_days)
            values = {
                "streak": streak,
                "last_checked_at": now,
                "evaluated_through": window.end.isoformat(),
            }
            if window.is_final:
                values["status"] = ENROLLMENT_COMPLETED
                values["completed_at"] = now
                message = f"Congratulations! Challenge completed with {streak} day streak!"
            else:
                message = f"Check-in successful! Current streak: {streak} days"

        if not self.enrollments.compare_and_swap(enrollment.id, expected_version, values):
            raise ConflictError("Enrollment changed during check-in; please retry.")
        self.db.commit()
        self.db.refresh(enrollment)

        logger.info(
            "check-in user=%s challenge=%s window=%s..%s status=%s streak=%s",
            user_id, template_id, window.start, window.end, enrollment.status, enrollment.streak,
        )
        return CheckInResult(enrollment=enrollment, evaluation=evaluation, window=window, message=message)

    # ── Read-only operations ─────────────────────────────────────────────────

    def evaluate(self, user_id: str, template_id: str) -> EnrollmentEvaluation:
        """Grade the current enrollment's window without changing any state."""
        enrollment = self._require_enrollment(user_id, template_id)
        template = self._require_template(template_id)
        params = parse_rule_params(template.rule_type, template.rule_params)
        window = self.window_for(enrollment, template)
        return EnrollmentEvaluation(self._grade(user_id, template, params, window), window)

    def get_streak(self, user_id: str, template_id: str) -> StreakView:
        enrollment = self._require_enrollment(user_id, template_id)
        return StreakView(
            streak=enrollment.streak or 0,
            last_check_in=enrollment.last_checked_at,
            status=enrollment.status,
        )

    def list_for_user(self, user_id: str) -> list[Enrollment]:
        return self.enrollments.list_for_user(user_id)

    # ── Windows ──────────────────────────────────────────────────────────────

    def settled_through(self) -> date:
        """Latest day old enough to trust; anything newer may still be pending."""
        return _as_utc(self.clock()).date() - timedelta(days=self.settlement_lag_days)

    def window_for(self, enrollment: Enrollment, template: ChallengeTemplate) -> Window:
        join_day = _as_utc(enrollment.joined_at).date()
        # The period runs through join day + duration, inclusive; the streak is capped at duration.
        last_day = join_day + timedelta(days=template.duration_days)
        settled = self.settled_through()
        if settled < join_day:
            raise TooEarlyError(
                f"Too early to check in: transactions for {join_day.isoformat()} are still settling. "
                f"Try again on or after {(join_day + timedelta(days=self.settlement_lag_days)).isoformat()}."
            )
        return Window(start=join_day, end=min(settled, last_day), last_day=last_day)

    # ── Helpers ──────────────────────────────────────────────────────────────

    def _grade(
        self, user_id: str, template: ChallengeTemplate, params: RuleParams, window: Window
    ) -> Evaluation:
        in_window = [t for t in self.transactions.list_for_user(user_id) if window.contains(t)]
        logger.debug(
            "grading user=%s challenge=%s rule=%s over %d transactions in %s..%s",
            user_id, template.id, template.rule_type, len(in_window), window.start, window.end,
        )
        return evaluate(
            template.rule_type,
            in_window,
            params,
            as_of=window.end,
            period_start=window.start,
        )

    def _require_template(self, template_id: str) -> ChallengeTemplate:
        template = self.catalog.get(template_id)
        if template is None:
            raise NotFoundError("Challenge template not found.")
        return template

    def _require_enrollment(self, user_id: str, template_id: str, *, status_code: int = 404) -> Enrollment:
        enrollment = self.enrollments.current(user_id, template_id)
        if enrollment is None:
            raise NotFoundError("User is not enrolled in this challenge.", status_code=status_code)
        return enrollment


def _evidence(txn: Transaction) -> dict:
    return {
        "transaction_id": txn.transaction_id,
        "date": txn.effective_date,
        "merchant_name": txn.merchant_name,
        "amount": cents_to_str(txn.amount_cents),
        "category_detailed": txn.category_detailed,
    }
