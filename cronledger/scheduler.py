"""
scheduler.py - Recurring Swap Scheduler

A CronSwapper owns one (sell, buy) token pair and one exchange. Participants
enter allocations ("sell `amount` every day for `duration` days"); once per
calendar day an operator executes a single swap for the aggregate of all
active allocations.

Allocation accounting is O(1) per operation:
    daily_amount        running aggregate of per-day amounts currently active
    remove_amount[day]  per-day amount retiring once `day` has been executed

    enter:    daily_amount += amount; remove_amount[end_day] += amount
    execute:  sell daily_amount, then for every day in
              (previous last_execution, today] subtract remove_amount[day]

Selling before draining means an allocation's end day still contributes to
that day's swap. A single execute after skipped days sells the aggregate once
and retires every allocation that ended in the gap.
"""

from __future__ import annotations
from collections import defaultdict
from decimal import Decimal
from typing import Dict, List, Optional

from .core import (
    Allocation, DaySource, Exchange, TokenPair,
    AlreadyExecutedToday, InvalidDuration, NothingToSell, UnknownAllocation,
    UnsupportedAsset, ZeroAddress,
    is_null, require_amount,
)
from .events import Enter, EventLog, Swap
from .guards import Ownable, ReentrancyGuard, non_reentrant, only_operator
from .ledger import TokenLedger


class CronSwapper(Ownable, ReentrancyGuard):
    """
    Once-per-day batch seller for a single token pair.

    Example:
        swapper = CronSwapper(ledger, "USDC", "WBTC", exchange, owner="deployer")
        ledger.approve("alice", swapper.wallet_id, "USDC", 700)
        swapper.enter("alice", 100, 7)          # starts tomorrow (deployed today)

        clock.advance_days(1)
        swapper.execute("deployer")             # Swap(sold=100, bought=..., price=...)
    """

    def __init__(
        self,
        ledger: TokenLedger,
        to_sell: str,
        to_buy: str,
        exchange: Exchange,
        owner: str,
        wallet_id: Optional[str] = None,
        clock: Optional[DaySource] = None,
        verbose: bool = False,
    ):
        """
        Create a scheduler. The deployment day counts as already executed.

        Args:
            ledger: Custody ledger holding participants' and the swapper's funds
            to_sell: Symbol of the token sold every day
            to_buy: Symbol of the token bought
            exchange: Exchange capability used once per execution
            owner: Identity allowed to manage operators (and execute)
            wallet_id: Custody wallet of this swapper (default derived from the pair)
            clock: Day source (default: the ledger's clock)
            verbose: Print a line per enter and execute
        """
        Ownable.__init__(self, owner)
        ReentrancyGuard.__init__(self)
        if is_null(to_sell) or is_null(to_buy):
            raise ZeroAddress("Swapper tokens cannot be empty")
        if exchange is None:
            raise ZeroAddress("Swapper exchange cannot be empty")
        if to_sell == to_buy:
            raise UnsupportedAsset(f"Cannot swap {to_sell} for itself")
        ledger.get_token(to_sell)
        ledger.get_token(to_buy)

        self.ledger = ledger
        self.to_sell = to_sell
        self.to_buy = to_buy
        self.exchange = exchange
        self.clock = clock or ledger.clock
        self.verbose = verbose
        self.wallet_id = ledger.ensure_wallet(wallet_id or f"swapper:{to_sell}->{to_buy}")
        self.events = EventLog()

        self.daily_amount: int = 0
        self._remove_amount: Dict[int, int] = defaultdict(int)
        self.allocations: List[Allocation] = []
        self._allocations_by_owner: Dict[str, List[int]] = defaultdict(list)
        self.last_execution: int = self.clock.current_day()
        self.price_history: Dict[int, Decimal] = {}

    # ========================================================================
    # READ-ONLY ACCESS
    # ========================================================================

    @property
    def pair(self) -> TokenPair:
        return self.to_sell, self.to_buy

    @property
    def next_allocation_id(self) -> int:
        return len(self.allocations)

    def remove_amount(self, day: int) -> int:
        """Per-day amount scheduled to retire once `day` has been executed."""
        return self._remove_amount.get(day, 0)

    def to_buy_price(self, day: int) -> Optional[Decimal]:
        """Price recorded by the execution on `day`, if any."""
        return self.price_history.get(day)

    def get_allocation(self, allocation_id: int) -> Allocation:
        if not isinstance(allocation_id, int) or not 0 <= allocation_id < len(self.allocations):
            raise UnknownAllocation(f"Allocation {allocation_id} doesn't exist")
        return self.allocations[allocation_id]

    def allocations_of(self, owner: str) -> List[Allocation]:
        return [self.allocations[i] for i in self._allocations_by_owner.get(owner, [])]

    def active_allocations(self, day: Optional[int] = None) -> List[Allocation]:
        """Allocations whose range covers `day` (default: today). Scans the arena."""
        if day is None:
            day = self.clock.current_day()
        return [a for a in self.allocations if a.covers(day)]

    # ========================================================================
    # ENTRY POINTS (Mutating)
    # ========================================================================

    @non_reentrant
    def enter(self, caller: str, amount: int, duration_days: int) -> Allocation:
        """
        Commit to selling `amount` per day for `duration_days` days.

        The allocation starts today unless today's batch already ran, in which
        case it starts tomorrow. The full `amount * duration_days` is pulled
        from the caller through the allowance granted to this swapper's wallet.

        Raises:
            InvalidAmount: amount is not a positive int
            InvalidDuration: duration_days is not a positive int
            InsufficientAllowance / InsufficientFunds: custody pull failed
        """
        require_amount(amount)
        if isinstance(duration_days, bool) or not isinstance(duration_days, int) or duration_days <= 0:
            raise InvalidDuration(f"Duration must be a positive integer, got {duration_days!r}")
        if is_null(caller):
            raise ZeroAddress("Caller cannot be empty")

        today = self.clock.current_day()
        start_day = today if self.last_execution != today else today + 1
        # The start day is itself a selling day
        end_day = start_day + duration_days - 1

        allocation = Allocation(
            allocation_id=self.next_allocation_id,
            amount=amount,
            start_day=start_day,
            end_day=end_day,
            owner=caller,
        )

        self.ledger.transfer_from(
            self.wallet_id, caller, self.wallet_id, self.to_sell, allocation.total,
            f"enter:{allocation.allocation_id}",
        )

        self.daily_amount += amount
        self._remove_amount[end_day] += amount
        self.allocations.append(allocation)
        self._allocations_by_owner[caller].append(allocation.allocation_id)

        self.events.emit(Enter(allocation.allocation_id, caller, amount, start_day, end_day))
        if self.verbose:
            print(f"➕ Enter #{allocation.allocation_id}: {caller} sells {amount} {self.to_sell}/day "
                  f"days {start_day}..{end_day}")
        return allocation

    @only_operator
    @non_reentrant
    def execute(self, caller: str) -> Swap:
        """
        Run today's batch: one swap for the whole active aggregate.

        Raises:
            Unauthorized: caller is not an operator
            AlreadyExecutedToday: the batch already ran today
            NothingToSell: no allocation is active
        """
        today = self.clock.current_day()
        if self.last_execution == today:
            raise AlreadyExecutedToday(f"Batch already executed on day {today}")

        to_sell_amount = self.daily_amount
        if to_sell_amount == 0:
            raise NothingToSell("Nothing to sell")

        self.ledger.approve(self.wallet_id, self.exchange.wallet_id, self.to_sell, to_sell_amount)
        try:
            result = self.exchange.swap(self.wallet_id, self.to_sell, self.to_buy, to_sell_amount)
        finally:
            self.ledger.approve(self.wallet_id, self.exchange.wallet_id, self.to_sell, 0)

        price = result.effective_price
        self.price_history[today] = price

        # Retire allocations that ended on any day since the previous execution
        for day in range(self.last_execution + 1, today + 1):
            self.daily_amount -= self._remove_amount.get(day, 0)
        self.last_execution = today

        event = self.events.emit(Swap(result.sold, result.bought, price))
        if self.verbose:
            print(f"🔁 Swap day {today}: sold {result.sold} {self.to_sell}, "
                  f"bought {result.bought} {self.to_buy} @ {price}")
        return event

    def __repr__(self):
        return (f"CronSwapper({self.to_sell}->{self.to_buy}, daily={self.daily_amount}, "
                f"last_execution={self.last_execution})")
