from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, JSON, String, Text
from sqlalchemy.orm import relationship

from .database import Base

ENROLLMENT_ACTIVE = "active"
ENROLLMENT_FAILED = "failed"
ENROLLMENT_COMPLETED = "completed"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id = Column(String(128), primary_key=True)
    email = Column(String(255), nullable=True)
    display_name = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)


class LinkedAccount(Base):
    __tablename__ = "linked_accounts"

    item_id = Column(String(128), primary_key=True)
    user_id = Column(String(128), nullable=False, index=True)
    access_token = Column(Text, nullable=False)
    institution_name = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=_utcnow)


class Transaction(Base):
    __tablename__ = "transactions"

    user_id = Column(String(128), primary_key=True)
    transaction_id = Column(String(128), primary_key=True)
    account_id = Column(String(128), nullable=True)
    posted_date = Column(String(10), nullable=False)
    authorized_date = Column(String(10), nullable=True)
    amount_cents = Column(Integer, nullable=False)        # positive = money out
    name = Column(Text, nullable=True)
    merchant_name = Column(String(255), nullable=True)
    category_primary = Column(String(100), nullable=True)
    category_detailed = Column(String(150), nullable=True)
    pending = Column(Boolean, nullable=False, default=False)
    synced_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (Index("ix_transactions_user_posted", "user_id", "posted_date"),)

    @property
    def effective_date(self) -> str:
        return self.authorized_date or self.posted_date


class ChallengeTemplate(Base):
    __tablename__ = "challenge_templates"

    id = Column(String(100), primary_key=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    rule_type = Column(String(20), nullable=False)      # spend_block | spend_cap | replacement | streak_goal
    duration_days = Column(Integer, nullable=False)
    rule_params = Column(JSON, nullable=False, default=dict)
    difficulty = Column(String(20), nullable=True)      # easy | medium | hard
    reward = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=_utcnow)

    enrollments = relationship("Enrollment", back_populates="template")


class Enrollment(Base):
    __tablename__ = "enrollments"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(128), nullable=False)
    template_id = Column(String(100), ForeignKey("challenge_templates.id"), nullable=False)
    status = Column(String(20), nullable=False, default=ENROLLMENT_ACTIVE)
    joined_at = Column(DateTime, nullable=False, default=_utcnow)
    streak = Column(Integer, nullable=False, default=0)
    last_checked_at = Column(DateTime, nullable=True)
    evaluated_through = Column(String(10), nullable=True)   # last settled day graded
    failure_reason = Column(Text, nullable=True)
    failed_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    violations = Column(JSON, nullable=True)
    version = Column(Integer, nullable=False, default=0)

    template = relationship("ChallengeTemplate", back_populates="enrollments")

    __table_args__ = (Index("ix_enrollments_user_template", "user_id", "template_id"),)
