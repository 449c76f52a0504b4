"""
Core types and pure functions for the recurring swap ledger.

This module provides the foundational data structures and protocols:
1. Protocols: DaySource and Exchange capabilities consumed by the ledgers
2. Immutable data structures: Token, Move, Transaction, Allocation, SwapResult
3. Exceptions: LedgerError and the domain-specific error taxonomy
4. Calendar arithmetic: day_of()

All amounts are integers in token base units. Nothing in this module
mutates state.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Dict, Optional, Protocol, Tuple, Union, runtime_checkable
import calendar


# ============================================================================
# CONSTANTS
# ============================================================================

# Length of a calendar day. Day numbers are floor(unix_seconds / SECONDS_PER_DAY).
SECONDS_PER_DAY = 24 * 60 * 60

# Fixed-point denominator for pro-rata shares (1 bps = 1 / BPS_DENOMINATOR).
BPS_DENOMINATOR = 10_000

# Reserved wallet for issuance. The system wallet is exempt from balance
# validation and mirrors the total supply of every token with a negative balance.
SYSTEM_WALLET = "system"

# Default precision of a token when none is given.
DEFAULT_TOKEN_DECIMALS = 18


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Mapping from token symbol to quantity held in a single wallet.
BalanceMap = Dict[str, int]

# (sell token, buy token)
TokenPair = Tuple[str, str]

Moment = Union[datetime, int, float]


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all ledger-related errors."""
    pass


class InvalidAmount(LedgerError):
    """Raised when an amount is zero, negative or not an integer."""
    pass


class InvalidDuration(LedgerError):
    """Raised when an allocation duration is zero, negative or not an integer."""
    pass


class AlreadyExecutedToday(LedgerError):
    """Raised when the daily batch has already run for the current day."""
    pass


class NothingToSell(LedgerError):
    """Raised when a batch would sell a zero amount."""
    pass


class EmptyBalance(LedgerError):
    """Raised when a vault holds none of its sell token."""
    pass


class InsufficientBalance(LedgerError):
    """Raised when a participant's internal balance cannot cover a request."""
    pass


class UnsupportedAsset(LedgerError):
    """Raised when a token is not part of the pair a component trades."""
    pass


class UnknownAllocation(LedgerError):
    """Raised when an allocation id has never been issued."""
    pass


class UnknownVault(LedgerError):
    """Raised when a registry id does not refer to a registered instance."""
    pass


class DuplicateVault(LedgerError):
    """Raised when a token pair or instance is already registered."""
    pass


class ZeroAddress(LedgerError):
    """Raised when a required token, wallet or instance reference is null."""
    pass


class Reentrancy(LedgerError):
    """Raised when a guarded entry point is re-entered on the same instance."""
    pass


class Unauthorized(LedgerError):
    """Raised when the caller lacks the role an entry point requires."""
    pass


class InsufficientFunds(LedgerError):
    """Raised when a custody transfer would overdraw a wallet."""
    pass


class InsufficientAllowance(LedgerError):
    """Raised when a pull transfer exceeds what the source approved."""
    pass


class TokenNotRegistered(LedgerError):
    """Raised when attempting to operate on a token that has not been registered."""
    pass


class WalletNotRegistered(LedgerError):
    """Raised when attempting to operate on a wallet that has not been registered."""
    pass


# ============================================================================
# VALIDATION HELPERS
# ============================================================================

def is_null(reference: Optional[str]) -> bool:
    """True for None and for empty or blank identifiers."""
    return reference is None or (isinstance(reference, str) and not reference.strip())


def is_amount(value) -> bool:
    """True for positive integers (bool excluded)."""
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def require_amount(value, what: str = "amount") -> int:
    """Return value if it is a positive integer, otherwise raise InvalidAmount."""
    if not is_amount(value):
        raise InvalidAmount(f"{what} must be a positive integer, got {value!r}")
    return value


# ============================================================================
# CALENDAR
# ============================================================================

def unix_seconds(moment: Moment) -> int:
    """
    Whole unix seconds of a moment.

    Naive datetimes are interpreted as UTC so results never depend on the
    host's local timezone.
    """
    if isinstance(moment, datetime):
        if moment.tzinfo is not None:
            moment = moment.astimezone(timezone.utc)
        return calendar.timegm(moment.timetuple())
    return int(moment)


def day_of(moment: Moment) -> int:
    """Calendar day number: floor(timestamp / SECONDS_PER_DAY)."""
    return unix_seconds(moment) // SECONDS_PER_DAY


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class DaySource(Protocol):
    """
    Monotonic source of the current calendar day.

    The ledgers never store "a day has passed" as state; every transition is
    derived from the stored last-execution day and current_day() at call time.
    """

    @property
    def current_time(self) -> datetime:
        """Return the current logical time."""
        ...

    def current_day(self) -> int:
        """Return floor(current timestamp / SECONDS_PER_DAY)."""
        ...


@runtime_checkable
class Exchange(Protocol):
    """
    Opaque swap capability.

    swap() moves `amount` of sell_token out of the trader's custody and the
    bought amount of buy_token into it atomically, or raises and moves nothing.
    The trader approves wallet_id for the sold amount beforehand.
    """

    wallet_id: str

    def swap(self, trader: str, sell_token: str, buy_token: str, amount: int) -> 'SwapResult':
        ...


# ============================================================================
# CORE DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class Token:
    """
    Definition of a fungible token held in custody.

    Attributes:
        symbol: Short identifier for the token (e.g., "USDC", "WBTC").
        name: Human-readable name.
        decimals: Number of decimal places one whole token is split into.
    """
    symbol: str
    name: str
    decimals: int = DEFAULT_TOKEN_DECIMALS

    def __post_init__(self):
        if is_null(self.symbol):
            raise ValueError("Token symbol cannot be empty")
        if not isinstance(self.decimals, int) or self.decimals < 0:
            raise ValueError(f"Token decimals must be a non-negative int, got {self.decimals!r}")

    @property
    def one(self) -> int:
        """Base units in one whole token."""
        return 10 ** self.decimals

    def parse_units(self, value) -> int:
        """
        Convert a human amount to base units.

        Example:
            usdc = Token("USDC", "USD Coin", 6)
            usdc.parse_units("100")    # 100_000_000
            usdc.parse_units("0.5")    # 500_000
        """
        try:
            amount = Decimal(str(value))
        except InvalidOperation:
            raise ValueError(f"Cannot parse {value!r} as a {self.symbol} amount")
        scaled = amount.scaleb(self.decimals)
        if scaled != scaled.to_integral_value():
            raise ValueError(
                f"{value} has more precision than {self.symbol} supports ({self.decimals} decimals)"
            )
        return int(scaled)

    def format_units(self, quantity: int) -> Decimal:
        """Convert base units back to a whole-token Decimal."""
        return Decimal(quantity).scaleb(-self.decimals)


@dataclass(frozen=True, slots=True)
class Move:
    """
    A single transfer of base units between two wallets.

    Attributes:
        quantity: Amount to transfer in base units (positive int).
        token: Symbol of the token being transferred.
        source: Wallet debited.
        dest: Wallet credited.
        reference: Identifier of the operation generating this move.
        spender: Wallet pulling the funds. When set and different from source,
                 the move consumes source's allowance for spender.
    """
    quantity: int
    token: str
    source: str
    dest: str
    reference: str
    spender: Optional[str] = None

    def __post_init__(self):
        if is_null(self.source):
            raise ValueError("Move source cannot be empty")
        if is_null(self.dest):
            raise ValueError("Move dest cannot be empty")
        if is_null(self.token):
            raise ValueError("Move token cannot be empty")
        if is_null(self.reference):
            raise ValueError("Move reference cannot be empty")
        if not is_amount(self.quantity):
            raise ValueError(f"Move quantity must be a positive int, got {self.quantity!r}")
        if self.source == self.dest:
            raise ValueError("Source and dest must be different")

    @property
    def uses_allowance(self) -> bool:
        return self.spender is not None and self.spender != self.source

    def __repr__(self) -> str:
        return f"Move({self.quantity} {self.token}: {self.source}→{self.dest})"


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    An executed, immutable record of custody changes.

    Attributes:
        moves: Tuple of transfers applied together
        reference: Operation that requested the batch
        exec_id: Unique execution identifier (ledger + sequence)
        ledger_name: Name of the ledger that executed this
        execution_time: Clock time when applied
        sequence_number: Monotonic sequence within the ledger
    """
    moves: Tuple[Move, ...]
    reference: str
    exec_id: str
    ledger_name: str
    execution_time: datetime
    sequence_number: int

    def __post_init__(self):
        if not self.moves:
            raise ValueError("Transaction must have moves")

    def __repr__(self) -> str:
        legs = ", ".join(repr(m) for m in self.moves)
        return f"Transaction({self.exec_id} [{self.reference}] {legs})"


@dataclass(frozen=True, slots=True)
class Allocation:
    """
    One participant's commitment to sell `amount` per day over an inclusive day range.

    Allocations are never mutated or deleted; expiry is implicit once the
    current day passes end_day.
    """
    allocation_id: int
    amount: int
    start_day: int
    end_day: int
    owner: str

    def __post_init__(self):
        if not is_amount(self.amount):
            raise InvalidAmount(f"Allocation amount must be a positive int, got {self.amount!r}")
        if self.start_day > self.end_day:
            raise InvalidDuration(
                f"Allocation start_day {self.start_day} is after end_day {self.end_day}"
            )

    @property
    def duration(self) -> int:
        return self.end_day - self.start_day + 1

    @property
    def total(self) -> int:
        """Total sell amount taken into custody on entry."""
        return self.amount * self.duration

    def covers(self, day: int) -> bool:
        return self.start_day <= day <= self.end_day

    def is_expired(self, day: int) -> bool:
        return day > self.end_day


@dataclass(frozen=True, slots=True)
class SwapResult:
    """
    Outcome of one exchange call.

    Attributes:
        sold: Amount of the sell token that left the trader's custody
        bought: Amount of the buy token that entered it
        price: Quoted buy-per-sell price, if the exchange reports one
    """
    sold: int
    bought: int
    price: Optional[Decimal] = None

    @property
    def effective_price(self) -> Decimal:
        """The quoted price, or bought / sold when the exchange did not quote one."""
        if self.price is not None:
            return self.price
        return Decimal(self.bought) / Decimal(self.sold)
