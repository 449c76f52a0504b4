"""
test_vault.py - Unit tests for the pro-rata vault

Tests:
- Deposits, withdrawals and allocations against internal balances
- buy(): eligibility, single swap, pro-rata credit, retained residual
- Refusals and failure isolation
"""

import pytest
from decimal import Decimal

from cronledger import (
    Vault, FixedRateExchange, Buy, Deposit, Withdraw, Allocate,
    EmptyBalance, InsufficientAllowance, InsufficientBalance, InsufficientFunds,
    InvalidAmount, NothingToSell, Reentrancy, Unauthorized, UnsupportedAsset, ZeroAddress,
)


def fund(deposit, vault, who, amount, per_day):
    deposit(who, amount)
    vault.allocate(who, per_day)


class TestConstruction:

    def test_defaults(self, vault):
        assert vault.pair == ("USDC", "WBTC")
        assert vault.wallet_id == "vault:USDC->WBTC"
        assert vault.participants == []

    def test_same_token_rejected(self, ledger, exchange):
        with pytest.raises(UnsupportedAsset):
            Vault(ledger, "WBTC", "WBTC", exchange, owner="deployer")

    def test_null_token_rejected(self, ledger, exchange):
        with pytest.raises(ZeroAddress):
            Vault(ledger, None, "WBTC", exchange, owner="deployer")


class TestDeposit:

    def test_deposit_credits_caller(self, vault, deposit, ledger):
        event = deposit("alice", 500)
        assert event == Deposit("alice", 500)
        assert vault.balance_of("alice", "USDC") == 500
        assert vault.custody_balance("USDC") == 500
        assert ledger.get_balance("alice", "USDC") == 100_000_000 - 500
        assert vault.is_participant("alice")

    def test_second_deposit_registers_once(self, vault, deposit):
        deposit("alice", 500)
        deposit("bob", 10)
        deposit("alice", 250)
        assert vault.participants == ["alice", "bob"]
        assert vault.balance_of("alice", "USDC") == 750

    def test_deposit_without_allowance(self, vault):
        with pytest.raises(InsufficientAllowance):
            vault.deposit("alice", 500)
        assert not vault.is_participant("alice")
        assert vault.events.last(Deposit) is None

    def test_invalid_amount(self, vault):
        with pytest.raises(InvalidAmount):
            vault.deposit("alice", 0)

    def test_unknown_participant_balance(self, vault):
        assert vault.balance_of("nobody", "WBTC") == 0

    def test_unsupported_token_balance(self, vault):
        with pytest.raises(UnsupportedAsset):
            vault.balance_of("alice", "DOGE")


class TestWithdraw:

    def test_withdraw_from_token(self, vault, deposit, ledger):
        deposit("alice", 500)
        assert vault.withdraw("alice", "USDC", 200) == Withdraw("alice", "USDC", 200)
        assert vault.balance_of("alice", "USDC") == 300
        assert ledger.get_balance("alice", "USDC") == 100_000_000 - 300

    def test_withdraw_more_than_balance(self, vault, deposit):
        deposit("alice", 500)
        with pytest.raises(InsufficientBalance):
            vault.withdraw("alice", "USDC", 501)
        assert vault.balance_of("alice", "USDC") == 500

    def test_withdraw_unsupported_token(self, vault, deposit):
        deposit("alice", 500)
        with pytest.raises(UnsupportedAsset):
            vault.withdraw("alice", "DOGE", 1)

    def test_withdraw_zero(self, vault, deposit):
        deposit("alice", 500)
        with pytest.raises(InvalidAmount):
            vault.withdraw("alice", "USDC", 0)

    def test_withdraw_proceeds(self, vault, deposit, ledger):
        fund(deposit, vault, "alice", 100, 100)
        vault.buy("keeper")
        vault.withdraw("alice", "WBTC", 200)
        assert ledger.get_balance("alice", "WBTC") == 200
        assert vault.balance_of("alice", "WBTC") == 0


class TestAllocate:

    def test_allocate(self, vault, deposit):
        deposit("alice", 500)
        assert vault.allocate("alice", 50) == Allocate("alice", 50)
        vault.allocate("alice", 70)
        assert vault.allocation_of("alice") == 70

    def test_allocate_above_balance(self, vault, deposit):
        deposit("alice", 50)
        with pytest.raises(InsufficientBalance):
            vault.allocate("alice", 51)
        assert vault.allocation_of("alice") == 0

    def test_allocate_zero(self, vault, deposit):
        deposit("alice", 50)
        with pytest.raises(InvalidAmount):
            vault.allocate("alice", 0)


class TestBuy:

    def test_pro_rata_distribution(self, vault, deposit):
        fund(deposit, vault, "alice", 58, 58)
        fund(deposit, vault, "bob", 16, 16)
        fund(deposit, vault, "carol", 76, 76)

        event = vault.buy("keeper")

        assert event == Buy(150, 300)
        assert vault.balance_of("alice", "WBTC") == 115
        assert vault.balance_of("bob", "WBTC") == 31
        assert vault.balance_of("carol", "WBTC") == 151
        assert vault.total_internal_balance("USDC") == 0
        assert vault.residual("WBTC") == 3

        solvency = vault.verify_solvency()
        assert solvency['valid'], solvency['discrepancies']
        assert solvency['residuals'] == {"USDC": 0, "WBTC": 3}

    def test_ineligible_participant_skipped(self, vault, deposit):
        fund(deposit, vault, "alice", 50, 50)
        fund(deposit, vault, "bob", 100, 60)
        vault.withdraw("bob", "USDC", 50)

        assert vault.eligible_participants() == [("alice", 50)]
        event = vault.buy("keeper")

        assert event.from_sold == 50
        assert vault.balance_of("bob", "USDC") == 50
        assert vault.balance_of("bob", "WBTC") == 0
        assert vault.balance_of("alice", "WBTC") == 100

    def test_participant_without_allocation_skipped(self, vault, deposit):
        fund(deposit, vault, "alice", 50, 25)
        deposit("bob", 80)
        assert vault.buy("keeper").from_sold == 25
        assert vault.balance_of("bob", "USDC") == 80

    def test_repeated_buys_until_exhausted(self, vault, deposit):
        fund(deposit, vault, "alice", 100, 40)
        vault.buy("keeper")
        vault.buy("keeper")
        assert vault.balance_of("alice", "USDC") == 20
        with pytest.raises(NothingToSell):
            vault.buy("keeper")
        assert vault.balance_of("alice", "WBTC") == 160

    def test_empty_vault(self, vault):
        with pytest.raises(EmptyBalance):
            vault.buy("keeper")

    def test_nothing_allocated(self, vault, deposit):
        deposit("alice", 100)
        with pytest.raises(NothingToSell):
            vault.buy("keeper")

    def test_unauthorized(self, vault, deposit):
        fund(deposit, vault, "alice", 100, 40)
        with pytest.raises(Unauthorized):
            vault.buy("alice")
        assert vault.balance_of("alice", "USDC") == 100

    def test_exchange_failure_changes_nothing(self, ledger):
        dry = FixedRateExchange(ledger, "dry", {("USDC", "WBTC"): Decimal("2")})
        vault = Vault(ledger, "USDC", "WBTC", dry, owner="deployer", wallet_id="dry-vault")
        ledger.approve("alice", vault.wallet_id, "USDC", 100)
        vault.deposit("alice", 100)
        vault.allocate("alice", 40)

        with pytest.raises(InsufficientFunds):
            vault.buy("deployer")
        assert vault.balance_of("alice", "USDC") == 100
        assert vault.custody_balance("USDC") == 100
        assert ledger.get_allowance(vault.wallet_id, dry.wallet_id, "USDC") == 0
        assert vault.events.last(Buy) is None

    def test_verbose(self, ledger, exchange, capsys):
        vault = Vault(ledger, "USDC", "WBTC", exchange, owner="deployer", verbose=True)
        ledger.approve("alice", vault.wallet_id, "USDC", 10)
        vault.deposit("alice", 10)
        vault.allocate("alice", 10)
        vault.buy("deployer")
        out = capsys.readouterr().out
        assert "Deposit: alice 10 USDC" in out
        assert "residual 0" in out


class CallbackExchange(FixedRateExchange):
    """Exchange that calls back into the vault mid-swap."""

    def __init__(self, ledger, callback, **kwargs):
        super().__init__(ledger, **kwargs)
        self.callback = callback

    def swap(self, trader, sell_token, buy_token, amount):
        self.callback()
        return super().swap(trader, sell_token, buy_token, amount)


class TestReentrancy:

    @pytest.fixture
    def reentrant(self, ledger):
        holder = {}
        exchange = CallbackExchange(
            ledger, lambda: holder["vault"].deposit("alice", 10),
            wallet_id="cb", rates={("USDC", "WBTC"): Decimal("2")},
        )
        ledger.mint(exchange.wallet_id, "WBTC", 10_000)
        vault = holder["vault"] = Vault(ledger, "USDC", "WBTC", exchange, owner="deployer",
                                        wallet_id="cb-vault")
        ledger.approve("alice", vault.wallet_id, "USDC", 60)
        vault.deposit("alice", 50)
        vault.allocate("alice", 20)
        return exchange, vault

    def test_deposit_during_buy_rejected(self, ledger, reentrant):
        exchange, vault = reentrant
        with pytest.raises(Reentrancy):
            vault.buy("deployer")

        assert vault.balance_of("alice", "USDC") == 50
        assert vault.balance_of("alice", "WBTC") == 0
        assert vault.custody_balance("USDC") == 50
        assert ledger.get_allowance("alice", vault.wallet_id, "USDC") == 10
        assert ledger.get_allowance(vault.wallet_id, exchange.wallet_id, "USDC") == 0
        assert vault.events.last(Buy) is None
        assert not vault.entered

    def test_guard_released_after_rejection(self, reentrant):
        exchange, vault = reentrant
        with pytest.raises(Reentrancy):
            vault.buy("deployer")

        vault.deposit("alice", 10)
        assert vault.balance_of("alice", "USDC") == 60

        exchange.callback = lambda: None
        assert vault.buy("deployer") == Buy(20, 40)
