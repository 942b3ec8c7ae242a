from datetime import date

import pytest

from savequest.errors import InvalidRuleError
from savequest.models import ChallengeTemplate, Transaction
from savequest.services.seeder import seed_challenges, seed_demo_transactions


class TestSeedChallenges:
    def test_first_run_inserts_catalog(self, db):
        result = seed_challenges(db)
        assert result["inserted"] == db.query(ChallengeTemplate).count()
        assert result["updated"] == 0
        rule_types = {t.rule_type for t in db.query(ChallengeTemplate)}
        assert rule_types == {"spend_block", "spend_cap", "replacement", "streak_goal"}

    def test_second_run_is_a_no_op(self, db):
        seed_challenges(db)
        assert seed_challenges(db) == {"inserted": 0, "updated": 0}

    def test_changed_template_updated(self, db):
        seed_challenges(db)
        changed = {
            "id": "no-fast-food-7d",
            "title": "No Fast Food for 10 Days",
            "rule_type": "spend_block",
            "duration_days": 10,
            "rule_params": {"category": "FOOD_AND_DRINK_FAST_FOOD"},
        }
        assert seed_challenges(db, [changed]) == {"inserted": 0, "updated": 1}
        assert db.get(ChallengeTemplate, "no-fast-food-7d").duration_days == 10

    def test_invalid_entry_aborts_whole_seed(self, db):
        good = {"id": "ok", "title": "Ok", "rule_type": "spend_block", "duration_days": 3,
                "rule_params": {"category": "X"}}
        bad = {"id": "bad", "title": "Bad", "rule_type": "spend_cap", "duration_days": 3,
               "rule_params": {"category": "X"}}
        with pytest.raises(InvalidRuleError):
            seed_challenges(db, [good, bad])
        assert db.query(ChallengeTemplate).count() == 0


class TestSeedDemoTransactions:
    def test_rolling_dates_and_idempotent(self, db):
        today = date(2026, 3, 15)
        added = seed_demo_transactions(db, "demo", today=today)
        assert added > 0
        assert seed_demo_transactions(db, "demo", today=today) == 0

        days = {t.posted_date for t in db.query(Transaction).filter(Transaction.user_id == "demo")}
        assert max(days) == "2026-03-14"
        assert all(d < today.isoformat() for d in days)
