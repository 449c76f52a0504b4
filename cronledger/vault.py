"""
vault.py - Pro-Rata Vault Ledger

A Vault pools many participants' deposits of one token ("from") and, on each
batch, sells every eligible participant's per-day allocation in a single
exchange call, crediting the proceeds ("to") back pro rata.

Eligibility is recomputed from live balances on every buy(): a participant is
included when their allocation is non-zero and their from-balance covers it.
Everyone else is skipped for that batch without failing it.
"""

from __future__ import annotations
from collections import defaultdict
from typing import Any, Dict, List, Optional, Set, Tuple

from .core import (
    Exchange, TokenPair,
    EmptyBalance, InsufficientBalance, NothingToSell, UnsupportedAsset, ZeroAddress,
    is_null, require_amount,
)
from .events import Allocate, Buy, Deposit, EventLog, Withdraw
from .guards import Ownable, ReentrancyGuard, non_reentrant, only_operator
from .ledger import TokenLedger
from .settlement import Distribution, compute_distribution


class Vault(Ownable, ReentrancyGuard):
    """
    Multi-participant recurring buyer with pro-rata settlement.

    Example:
        vault = Vault(ledger, "USDC", "WBTC", exchange, owner="deployer")
        ledger.approve("alice", vault.wallet_id, "USDC", 1_000)
        vault.deposit("alice", 1_000)
        vault.allocate("alice", 100)
        vault.buy("deployer")          # sells 100 USDC, credits alice's WBTC
        vault.withdraw("alice", "WBTC", vault.balance_of("alice", "WBTC"))
    """

    def __init__(
        self,
        ledger: TokenLedger,
        from_token: str,
        to_token: str,
        exchange: Exchange,
        owner: str,
        wallet_id: Optional[str] = None,
        verbose: bool = False,
    ):
        Ownable.__init__(self, owner)
        ReentrancyGuard.__init__(self)
        if is_null(from_token) or is_null(to_token):
            raise ZeroAddress("Vault tokens cannot be empty")
        if exchange is None:
            raise ZeroAddress("Vault exchange cannot be empty")
        if from_token == to_token:
            raise UnsupportedAsset(f"Cannot swap {from_token} for itself")
        ledger.get_token(from_token)
        ledger.get_token(to_token)

        self.ledger = ledger
        self.from_token = from_token
        self.to_token = to_token
        self.exchange = exchange
        self.verbose = verbose
        self.wallet_id = ledger.ensure_wallet(wallet_id or f"vault:{from_token}->{to_token}")
        self.events = EventLog()

        # participant -> token -> internal balance
        self._balances: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))
        # participant -> per-day amount of from_token
        self._allocations: Dict[str, int] = {}
        # Append-only registry of everyone who ever deposited
        self.participants: List[str] = []
        self._participant_set: Set[str] = set()

    # ========================================================================
    # READ-ONLY ACCESS
    # ========================================================================

    @property
    def pair(self) -> TokenPair:
        return self.from_token, self.to_token

    def balance_of(self, participant: str, token: str) -> int:
        self._require_supported(token)
        if participant not in self._balances:
            return 0
        return self._balances[participant].get(token, 0)

    def allocation_of(self, participant: str) -> int:
        return self._allocations.get(participant, 0)

    def is_participant(self, participant: str) -> bool:
        return participant in self._participant_set

    def eligible_participants(self) -> List[Tuple[str, int]]:
        """(participant, amount_per_day) for everyone the next buy() would include."""
        eligible = []
        for participant in self.participants:
            amount = self._allocations.get(participant, 0)
            if amount and self.balance_of(participant, self.from_token) >= amount:
                eligible.append((participant, amount))
        return eligible

    def custody_balance(self, token: str) -> int:
        """Amount of `token` the vault's wallet actually holds."""
        self._require_supported(token)
        return self.ledger.get_balance(self.wallet_id, token)

    def total_internal_balance(self, token: str) -> int:
        self._require_supported(token)
        return sum(self.balance_of(p, token) for p in self.participants)

    def residual(self, token: str) -> int:
        """Custody not owed to any participant (truncation residue from distributions)."""
        return self.custody_balance(token) - self.total_internal_balance(token)

    def verify_solvency(self) -> Dict[str, Any]:
        """
        Check internal balances against custody.

        The from-token must match exactly; the to-token may only be over-held
        by the retained distribution residual.

        Returns:
            Dict with 'valid', 'residuals' (token -> custody minus owed) and
            'discrepancies'.
        """
        residuals = {}
        discrepancies = []
        for token in self.pair:
            residual = self.residual(token)
            residuals[token] = residual
            if residual < 0:
                discrepancies.append({'token': token, 'residual': residual, 'error': 'undercollateralised'})
            elif token == self.from_token and residual != 0:
                discrepancies.append({'token': token, 'residual': residual, 'error': 'untracked deposit'})
        return {
            'valid': len(discrepancies) == 0,
            'residuals': residuals,
            'discrepancies': discrepancies,
        }

    # ========================================================================
    # ENTRY POINTS (Mutating)
    # ========================================================================

    @non_reentrant
    def deposit(self, caller: str, amount: int) -> Deposit:
        """
        Pull `amount` of the from-token into the vault and credit the caller.

        Registers the caller as a participant on their first deposit.
        """
        require_amount(amount)
        if is_null(caller):
            raise ZeroAddress("Caller cannot be empty")

        self.ledger.transfer_from(
            self.wallet_id, caller, self.wallet_id, self.from_token, amount, f"deposit:{caller}"
        )

        self._balances[caller][self.from_token] += amount
        if caller not in self._participant_set:
            self._participant_set.add(caller)
            self.participants.append(caller)

        if self.verbose:
            print(f"⬇ Deposit: {caller} {amount} {self.from_token}")
        return self.events.emit(Deposit(caller, amount))

    @non_reentrant
    def withdraw(self, caller: str, token: str, amount: int) -> Withdraw:
        """
        Release `amount` of either pair token from the caller's balance.

        Raises:
            InvalidAmount, UnsupportedAsset, InsufficientBalance
        """
        require_amount(amount)
        self._require_supported(token)
        balance = self.balance_of(caller, token)
        if amount > balance:
            raise InsufficientBalance(f"{caller} holds {balance} {token} in the vault, asked for {amount}")

        self.ledger.transfer(self.wallet_id, caller, token, amount, f"withdraw:{caller}")
        self._balances[caller][token] = balance - amount

        if self.verbose:
            print(f"⬆ Withdraw: {caller} {amount} {token}")
        return self.events.emit(Withdraw(caller, token, amount))

    @non_reentrant
    def allocate(self, caller: str, amount_per_day: int) -> Allocate:
        """
        Set (or overwrite) how much of the caller's from-balance each buy() sells.

        Checked against the balance now only; buy() re-checks eligibility.
        """
        require_amount(amount_per_day, "amount_per_day")
        balance = self.balance_of(caller, self.from_token)
        if amount_per_day > balance:
            raise InsufficientBalance(
                f"{caller} allocates {amount_per_day} {self.from_token}/day but holds {balance}"
            )
        self._allocations[caller] = amount_per_day
        return self.events.emit(Allocate(caller, amount_per_day))

    @only_operator
    @non_reentrant
    def buy(self, caller: str) -> Buy:
        """
        Sell every eligible allocation in one swap and distribute the proceeds.

        Raises:
            Unauthorized: caller is not an operator
            EmptyBalance: the vault holds no from-token
            NothingToSell: no participant is eligible
        """
        if self.custody_balance(self.from_token) == 0:
            raise EmptyBalance(f"Vault holds no {self.from_token}")
        eligible = self.eligible_participants()
        from_sold = sum(amount for _, amount in eligible)
        if from_sold == 0:
            raise NothingToSell("Nothing to sell")

        self.ledger.approve(self.wallet_id, self.exchange.wallet_id, self.from_token, from_sold)
        try:
            result = self.exchange.swap(self.wallet_id, self.from_token, self.to_token, from_sold)
        finally:
            self.ledger.approve(self.wallet_id, self.exchange.wallet_id, self.from_token, 0)

        distribution = compute_distribution(eligible, result.bought)
        self._settle(distribution)

        if self.verbose:
            print(f"🔁 Buy: sold {from_sold} {self.from_token} for {result.bought} {self.to_token} "
                  f"across {len(eligible)} participants (residual {distribution.residual})")
        return self.events.emit(Buy(from_sold, result.bought))

    def _settle(self, distribution: Distribution) -> None:
        for share in distribution.shares:
            balances = self._balances[share.participant]
            balances[self.from_token] -= share.contributed
            balances[self.to_token] += share.credited

    def _require_supported(self, token: str) -> None:
        if token not in (self.from_token, self.to_token):
            raise UnsupportedAsset(f"Vault trades {self.from_token}->{self.to_token}, not {token}")

    def __repr__(self):
        return f"Vault({self.from_token}->{self.to_token}, participants={len(self.participants)})"
