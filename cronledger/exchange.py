"""
exchange.py - In-process exchange capabilities

Both classes implement the Exchange protocol against a TokenLedger: the
exchange owns a liquidity wallet, pulls the sold amount from the trader
through the trader's allowance and pushes the bought amount back, both legs
in one atomic custody batch.

Classes:
- FixedRateExchange: Time-independent rates per token pair
- TimeSeriesRateExchange: Time-varying rates with historical data

Rates are quoted as buy-token base units per sell-token base unit.
"""

from datetime import datetime
from decimal import Decimal, ROUND_DOWN
from typing import Dict, List, Optional, Tuple
from bisect import bisect_right

from .core import (
    Move, SwapResult, TokenPair,
    LedgerError, UnsupportedAsset,
    require_amount,
)
from .ledger import TokenLedger


class FixedRateExchange:
    """
    Exchange with static rates (time-independent).

    Example:
        exchange = FixedRateExchange(ledger, rates={("USDC", "WBTC"): Decimal("2")})
        ledger.mint(exchange.wallet_id, "WBTC", 10_000)
        ledger.approve("alice", exchange.wallet_id, "USDC", 100)
        exchange.swap("alice", "USDC", "WBTC", 100)   # SwapResult(100, 200, 2)
    """

    def __init__(
        self,
        ledger: TokenLedger,
        wallet_id: str = "exchange",
        rates: Optional[Dict[TokenPair, Decimal]] = None,
    ):
        """
        Initialize with a static rate map.

        Args:
            ledger: Custody ledger both legs settle on
            wallet_id: Liquidity wallet of the exchange (registered if needed)
            rates: Dictionary mapping (sell, buy) pairs to rates
        """
        self.ledger = ledger
        self.wallet_id = ledger.ensure_wallet(wallet_id)
        self.rates: Dict[TokenPair, Decimal] = {}
        self.swaps: List[SwapResult] = []
        if rates:
            self.set_rates(rates)

    def get_rate(self, sell_token: str, buy_token: str) -> Optional[Decimal]:
        return self.rates.get((sell_token, buy_token))

    def set_rate(self, sell_token: str, buy_token: str, rate) -> None:
        """Update the rate of a pair."""
        self.rates[(sell_token, buy_token)] = _as_rate(rate)

    def set_rates(self, rates: Dict[TokenPair, Decimal]) -> None:
        """Update multiple rates at once."""
        for (sell_token, buy_token), rate in rates.items():
            self.set_rate(sell_token, buy_token, rate)

    def quote(self, sell_token: str, buy_token: str, amount: int) -> Tuple[int, Decimal]:
        """
        Amount of buy_token `amount` of sell_token buys now, and the rate used.

        Raises:
            InvalidAmount: amount is not a positive int
            UnsupportedAsset: no rate for the pair
        """
        require_amount(amount)
        rate = self.get_rate(sell_token, buy_token)
        if rate is None:
            raise UnsupportedAsset(f"No rate for {sell_token}->{buy_token}")
        bought = int((Decimal(amount) * rate).to_integral_value(rounding=ROUND_DOWN))
        return bought, rate

    def swap(self, trader: str, sell_token: str, buy_token: str, amount: int) -> SwapResult:
        """
        Sell `amount` of the trader's sell_token for buy_token.

        The trader must have approved this exchange's wallet for at least
        `amount`. Either both legs settle or the call raises and nothing moves.
        """
        bought, rate = self.quote(sell_token, buy_token, amount)
        if bought == 0:
            raise LedgerError(f"Selling {amount} {sell_token} buys no {buy_token}")

        reference = f"swap:{sell_token}->{buy_token}"
        self.ledger.execute([
            Move(amount, sell_token, trader, self.wallet_id, reference, spender=self.wallet_id),
            Move(bought, buy_token, self.wallet_id, trader, reference),
        ], reference)

        result = SwapResult(sold=amount, bought=bought, price=rate)
        self.swaps.append(result)
        return result

    def __repr__(self):
        return f"{type(self).__name__}({len(self.rates)} pairs, wallet={self.wallet_id})"


class TimeSeriesRateExchange(FixedRateExchange):
    """
    Exchange with time-varying rates.

    Uses the most recent rate at or before the ledger clock's current time.

    Example:
        exchange = TimeSeriesRateExchange(ledger)
        exchange.add_rate("USDC", "WBTC", datetime(2025, 1, 1), Decimal("2"))
        exchange.add_rate("USDC", "WBTC", datetime(2025, 1, 3), Decimal("3"))
    """

    def __init__(
        self,
        ledger: TokenLedger,
        wallet_id: str = "exchange",
        rate_paths: Optional[Dict[TokenPair, List[Tuple[datetime, Decimal]]]] = None,
    ):
        super().__init__(ledger, wallet_id)
        self.rate_history: Dict[TokenPair, List[Tuple[datetime, Decimal]]] = {}
        if rate_paths:
            for pair, path in rate_paths.items():
                for timestamp, rate in path:
                    self.add_rate(pair[0], pair[1], timestamp, rate)

    def add_rate(self, sell_token: str, buy_token: str, timestamp: datetime, rate) -> None:
        """Add a rate observation, keeping history sorted by timestamp."""
        history = self.rate_history.setdefault((sell_token, buy_token), [])
        history.append((timestamp, _as_rate(rate)))
        history.sort(key=lambda x: x[0])

    def get_rate(self, sell_token: str, buy_token: str) -> Optional[Decimal]:
        return self.get_rate_at(sell_token, buy_token, self.ledger.clock.current_time)

    def get_rate_at(self, sell_token: str, buy_token: str, timestamp: datetime) -> Optional[Decimal]:
        """
        Rate at or before the specified timestamp, or None before the first observation.

        Uses binary search for O(log n) lookup.
        """
        history = self.rate_history.get((sell_token, buy_token))
        if not history:
            return None
        timestamps = [ts for ts, _ in history]
        idx = bisect_right(timestamps, timestamp)
        if idx == 0:
            return None
        return history[idx - 1][1]


def _as_rate(rate) -> Decimal:
    if not isinstance(rate, Decimal):
        rate = Decimal(str(rate))
    if not rate.is_finite() or rate <= 0:
        raise ValueError(f"Rate must be a positive finite number, got {rate}")
    return rate
