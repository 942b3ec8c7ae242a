"""Persistence adapters used by the challenge engine and the sync service.

Each store is a thin wrapper over a SQLAlchemy ``Session`` exposing only the
key/scan operations the engine needs, so the engine never builds queries
itself.
"""

from typing import Iterable, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from ..models import ChallengeTemplate, Enrollment, LinkedAccount, Transaction


class TransactionStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    def list_for_user(self, user_id: str) -> list[Transaction]:
        return (
            self.db.query(Transaction)
            .filter(Transaction.user_id == user_id)
            .order_by(Transaction.posted_date.asc(), Transaction.transaction_id.asc())
            .all()
        )

    def recent(self, user_id: str, limit: int = 10) -> list[Transaction]:
        txns = self.list_for_user(user_id)
        txns.sort(key=lambda t: (t.effective_date, t.transaction_id), reverse=True)
        return txns[:limit]

    def qualifying_payments(self, user_id: str, day: str) -> list[Transaction]:
        """Debits (money out) whose effective date is *day*."""
        return [
            t for t in self.list_for_user(user_id)
            if t.effective_date == day and t.amount_cents > 0
        ]

    def upsert_many(self, user_id: str, rows: Iterable[dict], superseded: Iterable[str] = ()) -> int:
        """Merge normalized rows by (user_id, transaction_id); returns rows written.

        Pending rows named in *superseded* are deleted, since their posted copy
        arrives under a new id.  Commits once at the end so a batch lands
        all-or-nothing.
        """
        for txn_id in superseded:
            stale = self.db.get(Transaction, (user_id, txn_id))
            if stale is not None and stale.pending:
                self.db.delete(stale)
        count = 0
        for row in rows:
            existing = self.db.get(Transaction, (user_id, row["transaction_id"]))
            if existing is None:
                self.db.add(Transaction(user_id=user_id, **row))
            else:
                for field, val in row.items():
                    setattr(existing, field, val)
            count += 1
        self.db.commit()
        return count


class ChallengeCatalog:
    """Read-only view of the seeded challenge templates."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, template_id: str) -> Optional[ChallengeTemplate]:
        return self.db.get(ChallengeTemplate, template_id)

    def list_all(self) -> list[ChallengeTemplate]:
        return (
            self.db.query(ChallengeTemplate)
            .order_by(ChallengeTemplate.rule_type.asc(), ChallengeTemplate.id.asc())
            .all()
        )


class EnrollmentStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    def current(self, user_id: str, template_id: str) -> Optional[Enrollment]:
        """Most recent enrollment for the pair; earlier rows are history."""
        return (
            self.db.query(Enrollment)
            .filter(Enrollment.user_id == user_id, Enrollment.template_id == template_id)
            .order_by(Enrollment.id.desc())
            .first()
        )

    def list_for_user(self, user_id: str) -> list[Enrollment]:
        return (
            self.db.query(Enrollment)
            .filter(Enrollment.user_id == user_id)
            .order_by(Enrollment.joined_at.desc(), Enrollment.id.desc())
            .all()
        )

    def add(self, enrollment: Enrollment) -> Enrollment:
        self.db.add(enrollment)
        self.db.commit()
        self.db.refresh(enrollment)
        return enrollment

    def compare_and_swap(self, enrollment_id: int, expected_version: int, values: dict) -> bool:
        """Apply *values* only if the row is still at *expected_version*.

        Bumps ``version`` on success.  Does not commit.
        """
        result = self.db.execute(
            update(Enrollment)
            .where(Enrollment.id == enrollment_id, Enrollment.version == expected_version)
            .values(**values, version=expected_version + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class LinkedAccountStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    def for_user(self, user_id: str) -> Optional[LinkedAccount]:
        return (
            self.db.query(LinkedAccount)
            .filter(LinkedAccount.user_id == user_id)
            .order_by(LinkedAccount.created_at.desc())
            .first()
        )

    def get(self, item_id: str) -> Optional[LinkedAccount]:
        return self.db.get(LinkedAccount, item_id)

    def save(self, item_id: str, user_id: str, access_token: str, institution_name: Optional[str] = None) -> LinkedAccount:
        account = self.get(item_id)
        if account is None:
            account = LinkedAccount(item_id=item_id, user_id=user_id, access_token=access_token)
            self.db.add(account)
        else:
            account.user_id = user_id
            account.access_token = access_token
        if institution_name:
            account.institution_name = institution_name
        self.db.commit()
        return account
