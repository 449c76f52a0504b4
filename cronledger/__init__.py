"""
cronledger - Recurring Batch Swaps with Pro-Rata Settlement

Depositors commit to selling a fixed daily amount of one token for another; an
operator runs one aggregate swap per day and the proceeds are split back
pro rata.

Usage:
    from datetime import datetime
    from decimal import Decimal
    from cronledger import Clock, TokenLedger, Token, FixedRateExchange, CronSwapper

    clock = Clock(datetime(2025, 1, 1))
    ledger = TokenLedger("main", clock, verbose=False)
    ledger.register_token(Token("USDC", "USD Coin", 6))
    ledger.register_token(Token("WBTC", "Wrapped Bitcoin", 8))
    ledger.register_wallet("alice")
    ledger.mint("alice", "USDC", 700)

    exchange = FixedRateExchange(ledger, rates={("USDC", "WBTC"): Decimal("2")})
    ledger.mint(exchange.wallet_id, "WBTC", 10_000)

    swapper = CronSwapper(ledger, "USDC", "WBTC", exchange, owner="keeper")
    ledger.approve("alice", swapper.wallet_id, "USDC", 700)
    swapper.enter("alice", 100, 7)

    clock.advance_days(1)
    swapper.execute("keeper")
"""

# Core types
from .core import (
    Token,
    Move,
    Transaction,
    Allocation,
    SwapResult,
    DaySource,
    Exchange,
    day_of,
    SECONDS_PER_DAY,
    BPS_DENOMINATOR,
    SYSTEM_WALLET,
    LedgerError,
    InvalidAmount,
    InvalidDuration,
    AlreadyExecutedToday,
    NothingToSell,
    EmptyBalance,
    InsufficientBalance,
    UnsupportedAsset,
    UnknownAllocation,
    UnknownVault,
    DuplicateVault,
    ZeroAddress,
    Reentrancy,
    Unauthorized,
    InsufficientFunds,
    InsufficientAllowance,
    TokenNotRegistered,
    WalletNotRegistered,
)

# Time
from .clock import Clock, SystemClock

# Custody
from .ledger import TokenLedger

# Exchanges
from .exchange import FixedRateExchange, TimeSeriesRateExchange

# Guards
from .guards import Ownable, ReentrancyGuard, non_reentrant, only_owner, only_operator

# Events
from .events import (
    EventLog,
    Enter,
    Swap,
    Deposit,
    Withdraw,
    Allocate,
    Buy,
    TransferOwnership,
    OperatorGranted,
    OperatorRevoked,
    AddVault,
    RemoveVault,
)

# Ledgers
from .scheduler import CronSwapper
from .settlement import (
    Share,
    Distribution,
    compute_share_bps,
    compute_token_ownership,
    compute_distribution,
    shortfall_bound,
)
from .vault import Vault
from .registry import Registry, VaultRecord

# Operator
from .keeper import Keeper, Skip

__all__ = [
    # Core
    'Token', 'Move', 'Transaction', 'Allocation', 'SwapResult',
    'DaySource', 'Exchange', 'day_of',
    'SECONDS_PER_DAY', 'BPS_DENOMINATOR', 'SYSTEM_WALLET',
    'LedgerError', 'InvalidAmount', 'InvalidDuration', 'AlreadyExecutedToday',
    'NothingToSell', 'EmptyBalance', 'InsufficientBalance', 'UnsupportedAsset',
    'UnknownAllocation', 'UnknownVault', 'DuplicateVault', 'ZeroAddress',
    'Reentrancy', 'Unauthorized', 'InsufficientFunds', 'InsufficientAllowance',
    'TokenNotRegistered', 'WalletNotRegistered',
    # Time
    'Clock', 'SystemClock',
    # Custody
    'TokenLedger',
    # Exchanges
    'FixedRateExchange', 'TimeSeriesRateExchange',
    # Guards
    'Ownable', 'ReentrancyGuard', 'non_reentrant', 'only_owner', 'only_operator',
    # Events
    'EventLog', 'Enter', 'Swap', 'Deposit', 'Withdraw', 'Allocate', 'Buy',
    'TransferOwnership', 'OperatorGranted', 'OperatorRevoked', 'AddVault', 'RemoveVault',
    # Scheduler
    'CronSwapper',
    # Settlement
    'Share', 'Distribution', 'compute_share_bps', 'compute_token_ownership',
    'compute_distribution', 'shortfall_bound',
    # Vault
    'Vault',
    # Registry
    'Registry', 'VaultRecord',
    # Operator
    'Keeper', 'Skip',
]

__version__ = '1.0.0'
