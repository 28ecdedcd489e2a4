"""Tests for settlement decisions."""

import random
import re

from coffeeshop.payment.settlement import (
    FAILURE_REASON,
    FixedSettlement,
    RandomSettlement,
    new_transaction_id,
)


class TestRandomSettlement:
    def test_always_succeeds_at_full_rate(self):
        settler = RandomSettlement(success_rate=1.0)
        assert all(settler.decide("order-1", 5.0).success for _ in range(50))

    def test_always_fails_at_zero_rate(self):
        outcome = RandomSettlement(success_rate=0.0).decide("order-1", 5.0)
        assert not outcome.success
        assert outcome.failure_reason == FAILURE_REASON

    def test_default_rate_mostly_succeeds(self):
        settler = RandomSettlement(rng=random.Random(42))
        outcomes = [settler.decide("order-1", 5.0).success for _ in range(1000)]
        assert 900 < sum(outcomes) < 1000

    def test_seeded_rng_is_deterministic(self):
        a = RandomSettlement(0.5, rng=random.Random(7))
        b = RandomSettlement(0.5, rng=random.Random(7))
        assert [a.decide("o", 1).success for _ in range(20)] == [
            b.decide("o", 1).success for _ in range(20)
        ]


class TestFixedSettlement:
    def test_success(self):
        outcome = FixedSettlement(success=True).decide("order-1", 5.0)
        assert outcome.success
        assert outcome.failure_reason is None

    def test_custom_failure_reason(self):
        outcome = FixedSettlement(success=False, failure_reason="Card expired").decide("o", 1)
        assert outcome.failure_reason == "Card expired"


def test_transaction_ids_are_unique():
    ids = {new_transaction_id() for _ in range(100)}
    assert len(ids) == 100
    assert all(re.fullmatch(r"TXN\d+[0-9A-F]{9}", i) for i in ids)
