"""
test_settlement.py - Unit tests for pro-rata distribution
"""

import pytest

from cronledger import (
    compute_share_bps, compute_token_ownership, compute_distribution, shortfall_bound,
    InvalidAmount, NothingToSell,
)


class TestShareBps:

    def test_known_shares(self):
        assert compute_share_bps(58, 150) == 3866
        assert compute_share_bps(16, 150) == 1066
        assert compute_share_bps(76, 150) == 5066

    def test_whole_batch(self):
        assert compute_share_bps(150, 150) == 10_000

    def test_zero_contribution(self):
        assert compute_share_bps(0, 150) == 0

    def test_allocation_above_batch(self):
        with pytest.raises(InvalidAmount):
            compute_share_bps(151, 150)

    def test_empty_batch(self):
        with pytest.raises(InvalidAmount):
            compute_share_bps(0, 0)


class TestTokenOwnership:

    def test_known_ownership(self):
        assert compute_token_ownership(58, 150, 300) == 115
        assert compute_token_ownership(16, 150, 300) == 31
        assert compute_token_ownership(76, 150, 300) == 151

    def test_nothing_bought(self):
        assert compute_token_ownership(58, 150, 0) == 0

    def test_negative_bought(self):
        with pytest.raises(InvalidAmount):
            compute_token_ownership(58, 150, -1)


class TestDistribution:

    def test_three_participants(self):
        distribution = compute_distribution([("alice", 58), ("bob", 16), ("carol", 76)], 300)
        assert [s.credited for s in distribution.shares] == [115, 31, 151]
        assert [s.participant for s in distribution.shares] == ["alice", "bob", "carol"]
        assert distribution.from_sold == 150
        assert distribution.credited_total == 297
        assert distribution.residual == 3
        assert distribution.residual < shortfall_bound(3, 300)

    def test_single_participant_exact(self):
        distribution = compute_distribution([("alice", 100)], 200)
        assert distribution.residual == 0

    def test_no_contributions(self):
        with pytest.raises(NothingToSell):
            compute_distribution([], 100)

    def test_zero_contributions(self):
        with pytest.raises(NothingToSell):
            compute_distribution([("alice", 0)], 100)


class TestShortfallBound:

    def test_known_bounds(self):
        assert shortfall_bound(3, 300) == 4
        assert shortfall_bound(1, 0) == 1
        assert shortfall_bound(2, 10_000) == 4

    def test_no_participants(self):
        assert shortfall_bound(0, 1_000) == 0
