"""Rule evaluation service.

Grades an already-windowed set of transactions against one challenge rule.
Everything here is pure: no database, no clock, no provider calls.  The same
transactions and parameters always yield the same ``Evaluation``.

Transactions are duck-typed; anything exposing ``transaction_id``,
``effective_date``, ``amount_cents``, ``merchant_name``, ``category_primary``
and ``category_detailed`` works (ORM rows in production, plain objects in
tests).
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Callable, Iterable, Optional, Sequence, Union

from ..errors import InvalidRuleError
from ..schemas import (
    ReplacementParams,
    RuleParams,
    SpendBlockParams,
    SpendCapParams,
    StreakGoalParams,
    parse_rule_params,
)
from .normalizer import cents_to_str


@dataclass(frozen=True)
class Evaluation:
    rule_type: str
    broken: bool
    reason: str
    violating_transactions: tuple = field(default_factory=tuple)
    evaluated_count: int = 0


# ─────────────────────────────────────────────────────────────────────────────
# Core matching
# ─────────────────────────────────────────────────────────────────────────────


def category_matches(txn: Any, target: Optional[str]) -> bool:
    """Substring match of *target* against the detailed or primary category.

    Deliberately a ``contains`` test so a target such as
    ``FOOD_AND_DRINK_FAST_FOOD`` also catches ``FOOD_AND_DRINK_FAST_FOOD_BURGERS``.
    This can also match unrelated categories sharing the substring.
    """
    if not target:
        return False
    detailed = txn.category_detailed or ""
    primary = txn.category_primary or ""
    return target in detailed or target in primary


def merchant_matches(txn: Any, merchants: Sequence[str]) -> bool:
    return bool(merchants) and txn.merchant_name is not None and txn.merchant_name in merchants


def _ordered(transactions: Iterable[Any]) -> tuple:
    return tuple(sorted(transactions, key=lambda t: (t.effective_date, t.transaction_id)))


def _describe(txn: Any) -> str:
    who = txn.merchant_name or getattr(txn, "name", None) or "unknown merchant"
    return f"{who} {cents_to_str(abs(txn.amount_cents))} on {txn.effective_date}"


def _as_date(value: Union[str, date]) -> date:
    return value if isinstance(value, date) else date.fromisoformat(value)


# ─────────────────────────────────────────────────────────────────────────────
# One evaluator per rule type
# ─────────────────────────────────────────────────────────────────────────────


def _spend_block(txns: tuple, params: SpendBlockParams, **_: Any) -> Evaluation:
    hits = tuple(
        t for t in txns if category_matches(t, params.category) or merchant_matches(t, params.merchants)
    )
    if not hits:
        return Evaluation("spend_block", False, "", (), len(txns))
    target = params.category or ", ".join(params.merchants) or "unknown"
    reason = f"Spent on blocked category/merchant {target}: {_describe(hits[0])}"
    if len(hits) > 1:
        reason += f" (+{len(hits) - 1} more)"
    return Evaluation("spend_block", True, reason, hits, len(txns))


def _spend_cap(txns: tuple, params: SpendCapParams, **_: Any) -> Evaluation:
    hits = tuple(t for t in txns if category_matches(t, params.category))
    # Absolute values: credits and refunds count toward the cap, they never offset it.
    total = sum(abs(t.amount_cents) for t in hits)
    if total <= params.cap_cents:
        return Evaluation("spend_cap", False, "", (), len(txns))
    reason = (
        f"Exceeded spending cap of {cents_to_str(params.cap_cents)} on {params.category}: "
        f"spent {cents_to_str(total)}, first purchase {_describe(hits[0])}"
    )
    return Evaluation("spend_cap", True, reason, hits, len(txns))


def _replacement(txns: tuple, params: ReplacementParams, **_: Any) -> Evaluation:
    from_hits = tuple(t for t in txns if category_matches(t, params.from_category))
    swapped = any(category_matches(t, params.to_category) for t in txns)
    if params.strict:
        broken = bool(from_hits) or not swapped
    else:
        # A from-category purchase only breaks the rule when nothing replaced it.
        broken = bool(from_hits) and not swapped
    if not broken:
        return Evaluation("replacement", False, "", (), len(txns))
    if from_hits:
        detail = _describe(from_hits[0])
    else:
        detail = f"no {params.to_category} transaction found"
    reason = f"Failed to replace {params.from_category} with {params.to_category}: {detail}"
    return Evaluation("replacement", True, reason, from_hits, len(txns))


def _streak_goal(
    txns: tuple,
    params: StreakGoalParams,
    *,
    as_of: Optional[Union[str, date]] = None,
    period_start: Optional[Union[str, date]] = None,
) -> Evaluation:
    if as_of is None:
        raise InvalidRuleError("streak_goal evaluation needs an as_of date")
    end = _as_date(as_of)
    if period_start is not None:
        start = _as_date(period_start)
    elif params.duration is not None:
        start = end - timedelta(days=params.duration - 1)
    else:
        raise InvalidRuleError("streak_goal needs either a duration or a period start")

    covered = {t.effective_date for t in txns if category_matches(t, params.category)}
    missed: list[str] = []
    day = start
    while day <= end:
        if day.isoformat() not in covered:
            missed.append(day.isoformat())
        day += timedelta(days=1)

    if not missed:
        return Evaluation("streak_goal", False, "", (), len(txns))
    reason = f"Missed daily goal for {params.category} on {missed[0]}"
    if len(missed) > 1:
        reason += f" ({len(missed)} days missed)"
    return Evaluation("streak_goal", True, reason, (), len(txns))


_EVALUATORS: dict[str, Callable[..., Evaluation]] = {
    "spend_block": _spend_block,
    "spend_cap": _spend_cap,
    "replacement": _replacement,
    "streak_goal": _streak_goal,
}


def evaluate(
    rule_type: str,
    transactions: Iterable[Any],
    params: Union[RuleParams, dict],
    *,
    as_of: Optional[Union[str, date]] = None,
    period_start: Optional[Union[str, date]] = None,
) -> Evaluation:
    """Return the verdict of *rule_type* over *transactions*.

    *params* may be a parsed parameter record or a raw mapping; either way it
    must fit *rule_type* or ``InvalidRuleError`` is raised.  ``as_of`` and
    ``period_start`` only matter to ``streak_goal``: with ``period_start`` every
    day from it through ``as_of`` is checked, otherwise the trailing
    ``duration`` days ending on ``as_of``.
    """
    parsed = parse_rule_params(rule_type, params)
    return _EVALUATORS[rule_type](_ordered(transactions), parsed, as_of=as_of, period_start=period_start)
