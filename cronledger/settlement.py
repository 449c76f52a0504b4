"""
settlement.py - Pro-rata distribution of a batch's proceeds

Pure functions splitting one swap's output among the participants who funded
it. Each participant's credit depends only on their own contribution and the
batch totals:

    share_bps = floor(contribution * BPS_DENOMINATOR / from_sold)
    credited  = floor(share_bps * to_bought / BPS_DENOMINATOR)

Both steps truncate, so the credited total never exceeds to_bought. The
difference (the residual) stays with whoever custodies the proceeds.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Sequence, Tuple

from .core import BPS_DENOMINATOR, InvalidAmount, NothingToSell, require_amount


@dataclass(frozen=True, slots=True)
class Share:
    """One participant's slice of a batch."""
    participant: str
    contributed: int
    share_bps: int
    credited: int


@dataclass(frozen=True, slots=True)
class Distribution:
    """
    Result of splitting to_bought across contributions.

    Attributes:
        shares: One Share per contribution, in input order
        from_sold: Sum of contributions
        to_bought: Proceeds being split
    """
    shares: Tuple[Share, ...]
    from_sold: int
    to_bought: int

    @property
    def credited_total(self) -> int:
        return sum(s.credited for s in self.shares)

    @property
    def residual(self) -> int:
        """Proceeds not credited to anyone due to truncation."""
        return self.to_bought - self.credited_total


def compute_share_bps(allocation: int, from_sold: int) -> int:
    """Participant's share of a batch in basis points, truncated."""
    require_amount(from_sold, "from_sold")
    if allocation < 0 or allocation > from_sold:
        raise InvalidAmount(f"allocation {allocation} outside [0, {from_sold}]")
    return allocation * BPS_DENOMINATOR // from_sold


def compute_token_ownership(allocation: int, from_sold: int, to_bought: int) -> int:
    """
    Amount of the bought token a contribution of `allocation` is entitled to.

    Example:
        compute_token_ownership(58, 150, 300)   # 3866 bps -> 115
    """
    if to_bought < 0:
        raise InvalidAmount(f"to_bought must be non-negative, got {to_bought}")
    return compute_share_bps(allocation, from_sold) * to_bought // BPS_DENOMINATOR


def compute_distribution(
    contributions: Sequence[Tuple[str, int]],
    to_bought: int,
) -> Distribution:
    """
    Split to_bought pro rata across (participant, contribution) pairs.

    Raises:
        NothingToSell: contributions sum to zero
    """
    from_sold = sum(amount for _, amount in contributions)
    if from_sold == 0:
        raise NothingToSell("No contributions to distribute")
    shares = tuple(
        Share(
            participant=participant,
            contributed=amount,
            share_bps=compute_share_bps(amount, from_sold),
            credited=compute_token_ownership(amount, from_sold, to_bought),
        )
        for participant, amount in contributions
    )
    return Distribution(shares=shares, from_sold=from_sold, to_bought=to_bought)


def shortfall_bound(participants: int, to_bought: int) -> int:
    """
    Strict upper bound on Distribution.residual.

    Each share loses under one basis point of to_bought to the first
    truncation and under one unit to the second, so
    residual < participants * (to_bought / BPS_DENOMINATOR + 1).
    """
    if participants <= 0:
        return 0
    return -(-participants * (to_bought + BPS_DENOMINATOR) // BPS_DENOMINATOR)
