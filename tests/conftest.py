"""
conftest.py - Shared pytest fixtures for cronledger tests

Provides common fixtures used across unit, functional and conformance tests:
- Clock and custody ledger with USDC / WBTC registered and wallets funded
- A 2x fixed-rate exchange seeded with liquidity
- A CronSwapper and a Vault on the USDC -> WBTC pair with an operator granted
"""

import pytest
from datetime import datetime
from decimal import Decimal

from cronledger import (
    Clock, TokenLedger, Token,
    FixedRateExchange,
    CronSwapper, Vault,
)


START = datetime(2025, 1, 1, 12, 0)

USDC = Token("USDC", "USD Coin", 6)
WBTC = Token("WBTC", "Wrapped Bitcoin", 8)

PARTICIPANTS = ("alice", "bob", "carol")


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def build_ledger(clock: Clock) -> TokenLedger:
    """Ledger with USDC, WBTC and funded participants."""
    ledger = TokenLedger("test", clock, verbose=False)
    ledger.register_token(USDC)
    ledger.register_token(WBTC)
    for wallet in PARTICIPANTS + ("user", "keeper", "deployer"):
        ledger.register_wallet(wallet)
    for wallet in PARTICIPANTS:
        ledger.mint(wallet, "USDC", USDC.parse_units("100"))
    ledger.mint("user", "USDC", USDC.parse_units("1000000"))
    return ledger


def build_exchange(ledger: TokenLedger, rate: Decimal = Decimal("2")) -> FixedRateExchange:
    """Exchange returning `rate` WBTC base units per USDC base unit, with liquidity."""
    exchange = FixedRateExchange(ledger, rates={("USDC", "WBTC"): rate})
    ledger.mint(exchange.wallet_id, "WBTC", WBTC.parse_units("1000000"))
    ledger.mint(exchange.wallet_id, "USDC", USDC.parse_units("1000"))
    return exchange


def build_swapper(ledger: TokenLedger, exchange: FixedRateExchange) -> CronSwapper:
    swapper = CronSwapper(ledger, "USDC", "WBTC", exchange, owner="deployer")
    swapper.grant_operator("deployer", "keeper")
    return swapper


def build_vault(ledger: TokenLedger, exchange: FixedRateExchange) -> Vault:
    vault = Vault(ledger, "USDC", "WBTC", exchange, owner="deployer")
    vault.grant_operator("deployer", "keeper")
    return vault


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def clock():
    return Clock(START)


@pytest.fixture
def ledger(clock):
    return build_ledger(clock)


@pytest.fixture
def exchange(ledger):
    return build_exchange(ledger)


@pytest.fixture
def swapper(ledger, exchange):
    """CronSwapper deployed at START; keeper holds the operator role."""
    return build_swapper(ledger, exchange)


@pytest.fixture
def vault(ledger, exchange):
    """Vault on USDC -> WBTC; keeper holds the operator role."""
    return build_vault(ledger, exchange)


@pytest.fixture
def enter(ledger, swapper):
    """Approve the full commitment, then enter."""
    def _enter(who: str, amount: int, duration: int):
        ledger.approve(who, swapper.wallet_id, "USDC", amount * duration)
        return swapper.enter(who, amount, duration)
    return _enter


@pytest.fixture
def deposit(ledger, vault):
    """Approve, then deposit into the vault."""
    def _deposit(who: str, amount: int):
        ledger.approve(who, vault.wallet_id, "USDC", amount)
        return vault.deposit(who, amount)
    return _deposit
