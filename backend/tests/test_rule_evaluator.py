import pytest

from savequest.errors import InvalidRuleError
from savequest.services.rule_evaluator import category_matches, evaluate

FAST_FOOD = "FOOD_AND_DRINK_FAST_FOOD"
GYM = "PERSONAL_CARE_GYMS_AND_FITNESS_CENTERS"


class TestCategoryMatching:
    def test_detailed_substring(self, make_txn):
        t = make_txn("2026-03-01", detailed="FOOD_AND_DRINK_FAST_FOOD_BURGERS")
        assert category_matches(t, FAST_FOOD)

    def test_primary_substring(self, make_txn):
        t = make_txn("2026-03-01", primary="GENERAL_MERCHANDISE")
        assert category_matches(t, "GENERAL_MERCHANDISE")

    def test_no_category_never_matches(self, make_txn):
        assert not category_matches(make_txn("2026-03-01"), FAST_FOOD)

    def test_empty_target_never_matches(self, make_txn):
        assert not category_matches(make_txn("2026-03-01", detailed=FAST_FOOD), "")

    def test_shared_substring_is_a_match(self, make_txn):
        # Substring matching can reach unrelated codes that share the text.
        t = make_txn("2026-03-01", detailed="GENERAL_SERVICES_INSURANCE")
        assert category_matches(t, "SERVICES")


class TestSpendBlock:
    def test_category_hit_breaks(self, make_txn):
        txns = [make_txn("2026-03-01", detailed=FAST_FOOD, merchant="Five Guys")]
        result = evaluate("spend_block", txns, {"category": FAST_FOOD})
        assert result.broken
        assert "Five Guys" in result.reason
        assert [t.transaction_id for t in result.violating_transactions] == [txns[0].transaction_id]

    def test_merchant_hit_breaks_without_category(self, make_txn):
        txns = [make_txn("2026-03-01", merchant="Uber")]
        assert evaluate("spend_block", txns, {"merchants": ["Uber", "Lyft"]}).broken

    def test_merchant_match_is_exact(self, make_txn):
        txns = [make_txn("2026-03-01", merchant="Uber Eats")]
        assert not evaluate("spend_block", txns, {"merchants": ["Uber"]}).broken

    def test_clean_window(self, make_txn):
        txns = [make_txn("2026-03-01", detailed="FOOD_AND_DRINK_GROCERIES")]
        result = evaluate("spend_block", txns, {"category": FAST_FOOD})
        assert not result.broken
        assert result.reason == ""
        assert result.evaluated_count == 1

    def test_no_category_and_no_merchants_never_breaks(self, make_txn):
        txns = [make_txn("2026-03-01", detailed=FAST_FOOD, merchant="KFC")]
        result = evaluate("spend_block", txns, {})
        assert not result.broken
        assert result.violating_transactions == ()

    def test_extra_hits_counted_in_reason(self, make_txn):
        txns = [make_txn(d, detailed=FAST_FOOD) for d in ("2026-03-01", "2026-03-02", "2026-03-03")]
        assert "(+2 more)" in evaluate("spend_block", txns, {"category": FAST_FOOD}).reason


class TestSpendCap:
    PARAMS = {"category": "GENERAL_MERCHANDISE", "cap_amount": "50.00"}

    def test_exactly_at_cap_is_not_broken(self, make_txn):
        txns = [
            make_txn("2026-03-01", 3000, detailed="GENERAL_MERCHANDISE_SUPERSTORES"),
            make_txn("2026-03-02", 2000, detailed="GENERAL_MERCHANDISE_SUPERSTORES"),
        ]
        assert not evaluate("spend_cap", txns, self.PARAMS).broken

    def test_one_cent_over_is_broken(self, make_txn):
        txns = [make_txn("2026-03-01", 5001, detailed="GENERAL_MERCHANDISE_SUPERSTORES")]
        result = evaluate("spend_cap", txns, self.PARAMS)
        assert result.broken
        assert "$50.00" in result.reason
        assert "$50.01" in result.reason

    def test_refund_counts_toward_cap(self, make_txn):
        txns = [
            make_txn("2026-03-01", 3000, detailed="GENERAL_MERCHANDISE_SUPERSTORES"),
            make_txn("2026-03-02", -2500, detailed="GENERAL_MERCHANDISE_SUPERSTORES"),
        ]
        assert evaluate("spend_cap", txns, self.PARAMS).broken

    def test_other_categories_ignored(self, make_txn):
        txns = [make_txn("2026-03-01", 99999, detailed="TRAVEL_FLIGHTS")]
        assert not evaluate("spend_cap", txns, self.PARAMS).broken

    def test_numeric_cap_accepted(self, make_txn):
        txns = [make_txn("2026-03-01", 2501, detailed="FOOD_AND_DRINK_RESTAURANT")]
        assert evaluate("spend_cap", txns, {"category": "FOOD_AND_DRINK_RESTAURANT", "cap_amount": 25}).broken


class TestReplacement:
    PARAMS = {"from_category": FAST_FOOD, "to_category": GYM}

    @pytest.mark.parametrize(
        "has_from, has_to, broken",
        [
            (False, False, False),
            (False, True, False),
            (True, True, False),
            (True, False, True),
        ],
    )
    def test_default_table(self, make_txn, has_from, has_to, broken):
        txns = []
        if has_from:
            txns.append(make_txn("2026-03-01", detailed=FAST_FOOD))
        if has_to:
            txns.append(make_txn("2026-03-02", detailed=GYM))
        assert evaluate("replacement", txns, self.PARAMS).broken is broken

    @pytest.mark.parametrize(
        "has_from, has_to, broken",
        [
            (False, False, True),
            (False, True, False),
            (True, True, True),
            (True, False, True),
        ],
    )
    def test_strict_table(self, make_txn, has_from, has_to, broken):
        txns = []
        if has_from:
            txns.append(make_txn("2026-03-01", detailed=FAST_FOOD))
        if has_to:
            txns.append(make_txn("2026-03-02", detailed=GYM))
        assert evaluate("replacement", txns, {**self.PARAMS, "strict": True}).broken is broken

    def test_reason_names_missing_replacement(self, make_txn):
        result = evaluate("replacement", [], {**self.PARAMS, "strict": True})
        assert f"no {GYM} transaction found" in result.reason
        assert result.violating_transactions == ()


class TestStreakGoal:
    PARAMS = {"category": "TRANSFER_OUT_SAVINGS", "duration": 3}

    def _daily(self, make_txn, days):
        return [make_txn(d, detailed="TRANSFER_OUT_SAVINGS") for d in days]

    def test_every_day_covered(self, make_txn):
        txns = self._daily(make_txn, ["2026-03-01", "2026-03-02", "2026-03-03"])
        assert not evaluate("streak_goal", txns, self.PARAMS, as_of="2026-03-03").broken

    def test_gap_breaks_and_names_first_missed_day(self, make_txn):
        txns = self._daily(make_txn, ["2026-03-01", "2026-03-03"])
        result = evaluate("streak_goal", txns, self.PARAMS, as_of="2026-03-03")
        assert result.broken
        assert "2026-03-02" in result.reason

    def test_period_start_overrides_duration(self, make_txn):
        txns = self._daily(make_txn, ["2026-03-02", "2026-03-03"])
        result = evaluate("streak_goal", txns, self.PARAMS, as_of="2026-03-03", period_start="2026-03-02")
        assert not result.broken

    def test_authorized_date_is_the_covered_day(self, make_txn):
        txns = [make_txn("2026-03-02", detailed="TRANSFER_OUT_SAVINGS", authorized="2026-03-01")]
        result = evaluate("streak_goal", txns, {"category": "TRANSFER_OUT_SAVINGS", "duration": 1}, as_of="2026-03-01")
        assert not result.broken

    def test_missing_as_of_rejected(self):
        with pytest.raises(InvalidRuleError):
            evaluate("streak_goal", [], self.PARAMS)

    def test_no_duration_and_no_period_start_rejected(self):
        with pytest.raises(InvalidRuleError):
            evaluate("streak_goal", [], {"category": "TRANSFER_OUT_SAVINGS"}, as_of="2026-03-03")


class TestDeterminism:
    def test_input_order_does_not_change_verdict(self, make_txn):
        txns = [
            make_txn("2026-03-03", detailed=FAST_FOOD, merchant="KFC"),
            make_txn("2026-03-01", detailed=FAST_FOOD, merchant="Wendy's"),
        ]
        forward = evaluate("spend_block", txns, {"category": FAST_FOOD})
        backward = evaluate("spend_block", list(reversed(txns)), {"category": FAST_FOOD})
        assert forward == backward
        assert "Wendy's" in forward.reason


class TestInvalidParams:
    def test_unknown_rule_type(self):
        with pytest.raises(InvalidRuleError):
            evaluate("no_such_rule", [], {})

    def test_missing_required_field(self):
        with pytest.raises(InvalidRuleError):
            evaluate("spend_cap", [], {"category": "GENERAL_MERCHANDISE"})

    def test_params_for_another_rule(self):
        with pytest.raises(InvalidRuleError):
            evaluate("spend_block", [], {"from_category": "A", "to_category": "B"})
