"""
events.py - Observable events

Every state-changing entry point appends one immutable event to its
component's EventLog. Events are just data; the log is the audit trail
external consumers read.
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterator, List, Optional, Type, TypeVar


# ============================================================================
# EVENT DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class Enter:
    """An allocation was created."""
    allocation_id: int
    owner: str
    amount: int
    start_day: int
    end_day: int


@dataclass(frozen=True, slots=True)
class Swap:
    """A daily batch was executed."""
    sold: int
    bought: int
    price: Decimal


@dataclass(frozen=True, slots=True)
class Deposit:
    owner: str
    amount: int


@dataclass(frozen=True, slots=True)
class Withdraw:
    owner: str
    token: str
    amount: int


@dataclass(frozen=True, slots=True)
class Allocate:
    owner: str
    amount_per_day: int


@dataclass(frozen=True, slots=True)
class Buy:
    """A vault batch was executed and its proceeds distributed."""
    from_sold: int
    to_bought: int


@dataclass(frozen=True, slots=True)
class TransferOwnership:
    old_owner: str
    new_owner: str


@dataclass(frozen=True, slots=True)
class OperatorGranted:
    operator: str


@dataclass(frozen=True, slots=True)
class OperatorRevoked:
    operator: str


@dataclass(frozen=True, slots=True)
class AddVault:
    vault_id: int
    vault: Any
    from_token: str
    to_token: str


@dataclass(frozen=True, slots=True)
class RemoveVault:
    vault_id: int
    vault: Any
    from_token: str
    to_token: str


# ============================================================================
# EVENT LOG
# ============================================================================

E = TypeVar("E")


class EventLog:
    """Append-only, in-order record of emitted events."""

    def __init__(self):
        self._events: List[Any] = []

    def emit(self, event: E) -> E:
        self._events.append(event)
        return event

    def of_type(self, event_type: Type[E]) -> List[E]:
        """All events of one type, in emission order."""
        return [e for e in self._events if isinstance(e, event_type)]

    def last(self, event_type: Optional[Type[E]] = None) -> Optional[E]:
        """Most recent event (of event_type, if given), or None."""
        for event in reversed(self._events):
            if event_type is None or isinstance(event, event_type):
                return event
        return None

    def __iter__(self) -> Iterator[Any]:
        return iter(list(self._events))

    def __len__(self) -> int:
        return len(self._events)

    def __repr__(self):
        return f"EventLog({len(self._events)} events)"
