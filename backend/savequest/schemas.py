from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, computed_field, model_validator
from pydantic.alias_generators import to_camel

from .errors import InvalidRuleError
from .services.normalizer import to_cents

RULE_TYPES = ("spend_block", "spend_cap", "replacement", "streak_goal")


class _ApiModel(BaseModel):
    """Snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# ─────────────────────────────────────────────────────────────────────────────
# Rule parameters  (one record per rule type)
# ─────────────────────────────────────────────────────────────────────────────


class SpendBlockParams(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    rule_type: Literal["spend_block"] = "spend_block"
    category: Optional[str] = None
    merchants: tuple[str, ...] = ()


class SpendCapParams(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    rule_type: Literal["spend_cap"] = "spend_cap"
    category: str = Field(min_length=1)
    cap_amount: Decimal = Field(ge=0)

    @property
    def cap_cents(self) -> int:
        return to_cents(self.cap_amount)


class ReplacementParams(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    rule_type: Literal["replacement"] = "replacement"
    from_category: str = Field(min_length=1)
    to_category: str = Field(min_length=1)
    # strict: any from-category purchase breaks the rule, and so does a window
    # without a to-category transaction.
    strict: bool = False


class StreakGoalParams(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    rule_type: Literal["streak_goal"] = "streak_goal"
    category: str = Field(min_length=1)
    duration: Optional[int] = Field(default=None, ge=1)


RuleParams = Annotated[
    Union[SpendBlockParams, SpendCapParams, ReplacementParams, StreakGoalParams],
    Field(discriminator="rule_type"),
]

_RULE_PARAMS_ADAPTER: TypeAdapter = TypeAdapter(RuleParams)


def parse_rule_params(rule_type: str, raw: Any) -> RuleParams:
    """Validate *raw* against the parameter record for *rule_type*.

    Accepts an already-parsed record (it must carry the same rule type) or a
    plain mapping.  Raises ``InvalidRuleError`` on any mismatch.
    """
    if rule_type not in RULE_TYPES:
        raise InvalidRuleError(f"Unknown rule type: {rule_type!r}")
    if isinstance(raw, BaseModel):
        if getattr(raw, "rule_type", None) != rule_type:
            raise InvalidRuleError(
                f"Parameters for {getattr(raw, 'rule_type', '?')!r} given to a {rule_type!r} rule"
            )
        return raw
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise InvalidRuleError(f"Rule parameters must be an object, got {type(raw).__name__}")
    if raw.get("rule_type", rule_type) != rule_type:
        raise InvalidRuleError(f"Parameters for {raw['rule_type']!r} given to a {rule_type!r} rule")
    try:
        return _RULE_PARAMS_ADAPTER.validate_python({**raw, "rule_type": rule_type})
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'][1:]) or rule_type}: {err['msg']}" for err in exc.errors()
        )
        raise InvalidRuleError(f"Invalid {rule_type} parameters: {problems}") from exc


# ─────────────────────────────────────────────────────────────────────────────
# Challenge catalog
# ─────────────────────────────────────────────────────────────────────────────


class ChallengeTemplateIn(BaseModel):
    """Seed/catalog input — validated before it reaches the database."""

    id: str = Field(min_length=1, max_length=100)
    title: str
    description: str = ""
    rule_type: Literal["spend_block", "spend_cap", "replacement", "streak_goal"]
    duration_days: int = Field(ge=1)
    rule_params: dict[str, Any] = Field(default_factory=dict)
    difficulty: Optional[Literal["easy", "medium", "hard"]] = None
    reward: Optional[dict[str, Any]] = None

    @model_validator(mode="after")
    def _check_rule_params(self) -> "ChallengeTemplateIn":
        parse_rule_params(self.rule_type, self.rule_params)
        return self


class ChallengeTemplateSchema(_ApiModel):
    id: str
    title: str
    description: Optional[str] = None
    rule_type: str
    duration_days: int
    rule_params: dict[str, Any]
    difficulty: Optional[str] = None
    reward: Optional[dict[str, Any]] = None


class ChallengeListResponse(_ApiModel):
    success: bool = True
    challenges: list[ChallengeTemplateSchema]


class SeedResponse(_ApiModel):
    success: bool = True
    inserted: int
    updated: int


# ─────────────────────────────────────────────────────────────────────────────
# Transactions
# ─────────────────────────────────────────────────────────────────────────────


class TransactionSchema(_ApiModel):
    transaction_id: str
    account_id: Optional[str] = None
    posted_date: str
    authorized_date: Optional[str] = None
    amount_cents: int
    name: Optional[str] = None
    merchant_name: Optional[str] = None
    category_primary: Optional[str] = None
    category_detailed: Optional[str] = None
    pending: bool = False

    @computed_field
    @property
    def amount(self) -> float:
        return round(self.amount_cents / 100, 2)

    @computed_field
    @property
    def effective_date(self) -> str:
        return self.authorized_date or self.posted_date


class TransactionListResponse(_ApiModel):
    success: bool = True
    transactions: list[TransactionSchema]


class QualifyingPaymentResponse(_ApiModel):
    success: bool = True
    transaction: TransactionSchema
    total_qualifying: int


# ─────────────────────────────────────────────────────────────────────────────
# Enrollments / check-in
# ─────────────────────────────────────────────────────────────────────────────


class EnrollmentRequest(_ApiModel):
    user_id: str = Field(min_length=1)
    challenge_id: str = Field(min_length=1)


class EnrollmentSchema(_ApiModel):
    id: int
    user_id: str
    challenge_id: str
    status: str
    joined_at: datetime
    streak: int
    last_checked_at: Optional[datetime] = None
    evaluated_through: Optional[str] = None
    failure_reason: Optional[str] = None
    failed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class JoinResponse(_ApiModel):
    success: bool = True
    data: EnrollmentSchema


class UserChallengesResponse(_ApiModel):
    success: bool = True
    challenges: list[EnrollmentSchema]


class EvaluationSchema(_ApiModel):
    success: bool = True
    rule_type: str
    rule_broken: bool
    reason: str
    evaluated_transactions: int
    violated_transactions: list[TransactionSchema]
    window_start: str
    window_end: str


class CheckInResponse(_ApiModel):
    success: bool
    status: str
    streak: int
    rule_broken: bool
    challenge_failed: bool = False
    is_completed: bool = False
    message: str
    evaluation: EvaluationSchema


class StreakResponse(_ApiModel):
    success: bool = True
    streak: int
    last_check_in: Optional[datetime] = None
    status: str


class SyncRequest(_ApiModel):
    user_id: str = Field(min_length=1)
    days: int = Field(default=30, ge=1, le=730)


class DateRange(_ApiModel):
    start_date: str
    end_date: str


class SyncResponse(_ApiModel):
    success: bool = True
    message: str
    transaction_count: int
    date_range: DateRange


class ErrorResponse(_ApiModel):
    success: bool = False
    message: str
    challenge_failed: Optional[bool] = None


# ─────────────────────────────────────────────────────────────────────────────
# Plaid
# ─────────────────────────────────────────────────────────────────────────────


class LinkTokenRequest(_ApiModel):
    user_id: str = Field(min_length=1)


class LinkTokenResponse(_ApiModel):
    link_token: str
    expiration: Optional[str] = None


class ExchangeRequest(_ApiModel):
    user_id: str = Field(min_length=1)
    public_token: str = Field(min_length=1)
    institution_name: Optional[str] = None


class ExchangeResponse(_ApiModel):
    success: bool = True
    item_id: str


class WebhookResponse(_ApiModel):
    message: str


# ─────────────────────────────────────────────────────────────────────────────
# Users
# ─────────────────────────────────────────────────────────────────────────────


class UserCreate(_ApiModel):
    id: str = Field(min_length=1, max_length=128)
    email: Optional[str] = None
    display_name: Optional[str] = None


class UserUpdate(_ApiModel):
    email: Optional[str] = None
    display_name: Optional[str] = None


class UserSchema(_ApiModel):
    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class HealthResponse(BaseModel):
    status: str
    version: str
