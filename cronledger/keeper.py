"""
keeper.py - Operator driver

Advances a clock and triggers every registered batch target once per step.

Execution order each step():
1. Advance clock time
2. Trigger targets in sorted-name order (execute() for schedulers, buy() for vaults)
3. Record expected refusals (already executed, nothing to sell, empty vault)

Any other failure propagates. The targets' event logs are the audit trail.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List

from .clock import Clock
from .core import AlreadyExecutedToday, EmptyBalance, LedgerError, NothingToSell

# Refusals a keeper retries on a later step instead of failing
EXPECTED_REFUSALS = (AlreadyExecutedToday, NothingToSell, EmptyBalance)


@dataclass(frozen=True, slots=True)
class Skip:
    """A target declined to run at a step."""
    timestamp: datetime
    target: str
    reason: LedgerError


class Keeper:
    """
    Operator that runs registered batch targets as time advances.

    Example:
        keeper = Keeper(clock, operator="deployer")
        keeper.register("usdc-wbtc", swapper)
        keeper.run([datetime(2025, 1, d) for d in range(2, 9)])
    """

    def __init__(self, clock: Clock, operator: str, verbose: bool = False):
        """
        Args:
            clock: Clock shared with the targets' ledger
            operator: Identity the targets authorize for batch execution
            verbose: Print a line per run and skip
        """
        self.clock = clock
        self.operator = operator
        self.verbose = verbose
        self.targets: Dict[str, Any] = {}
        self.skipped: List[Skip] = []

    def register(self, name: str, target: Any) -> None:
        """
        Register a batch target.

        Args:
            name: Unique name; targets run in sorted-name order
            target: CronSwapper (or anything with execute(caller)) or Vault
                    (or anything with buy(caller))
        """
        if name in self.targets:
            raise ValueError(f"Target {name} already registered")
        if not (hasattr(target, 'execute') or hasattr(target, 'buy')):
            raise TypeError(f"Target {name} has neither execute() nor buy()")
        self.targets[name] = target

    def step(self, timestamp: datetime) -> List[Any]:
        """
        Advance time and trigger every target once.

        Returns:
            Completion events (Swap / Buy) of the targets that ran
        """
        self.clock.advance_time(timestamp)
        completed: List[Any] = []

        for name in sorted(self.targets):
            target = self.targets[name]
            try:
                if hasattr(target, 'execute'):
                    event = target.execute(self.operator)
                else:
                    event = target.buy(self.operator)
            except EXPECTED_REFUSALS as exc:
                self.skipped.append(Skip(timestamp, name, exc))
                if self.verbose:
                    print(f"[KEEPER] {name} skipped: {exc}")
                continue

            if self.verbose:
                print(f"[KEEPER] {name}: {event}")
            completed.append(event)

        return completed

    def run(self, timestamps: List[datetime]) -> List[Any]:
        """Step through timestamps in order and return all completion events."""
        events: List[Any] = []
        for timestamp in timestamps:
            events.extend(self.step(timestamp))
        return events

    def skips_for(self, name: str) -> List[Skip]:
        return [s for s in self.skipped if s.target == name]
