"""
ledger.py - Stateful Token Custody Ledger

The TokenLedger is the asset custody capability every component moves funds
through. It is the only module that mutates token balances, ensuring
controlled and auditable changes.

Key responsibilities:
    - Maintains wallet balances, allowances and token definitions
    - Executes batches of moves atomically (all moves succeed or all fail)
    - Pull transfers (transfer_from) consume allowances the source granted
    - Every executed batch is appended to the transaction log
"""

from __future__ import annotations
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Set, Tuple, Any

from .clock import Clock
from .core import (
    # Types
    Move, Token, Transaction, BalanceMap, DaySource,
    # Constants
    SYSTEM_WALLET,
    # Exceptions
    InsufficientFunds, InsufficientAllowance, TokenNotRegistered,
    WalletNotRegistered, ZeroAddress,
    # Helpers
    is_null, require_amount,
)


class TokenLedger:
    """
    Double-entry token ledger with allowances and an audit trail.

    Design Principles:
        - Always validates: every batch is checked against registration,
          allowances and balances (net of the whole batch) before anything
          is applied. No shortcuts.
        - Always logs: every applied batch is recorded in transaction_log.
        - Conservation: tokens enter circulation only from SYSTEM_WALLET, so the
          sum of every token's balances across all wallets is always zero.

    Thread Safety:
        Not thread-safe. Each thread should maintain its own TokenLedger instance.

    Example:
        ledger = TokenLedger("main")
        ledger.register_token(Token("USDC", "USD Coin", 6))
        ledger.register_wallet("alice")
        ledger.register_wallet("bob")
        ledger.mint("alice", "USDC", 1_000_000)

        ledger.transfer("alice", "bob", "USDC", 250_000, "payment_001")
    """

    def __init__(
        self,
        name: str,
        clock: Optional[DaySource] = None,
        verbose: bool = True,
    ):
        """
        Create a ledger.

        Args:
            name: Ledger identifier
            clock: Time source stamped on executed transactions (default: Clock at 1970-01-01)
            verbose: Print a line per registration and executed batch (default: True)
        """
        self.name = name
        self.clock = clock or Clock()
        self.verbose = verbose
        self.tokens: Dict[str, Token] = {}
        self.balances: Dict[str, Dict[str, int]] = {}
        self.allowances: Dict[Tuple[str, str, str], int] = {}
        self.registered_wallets: Set[str] = set()
        self.transaction_log: List[Transaction] = []
        # Monotonic sequence counter for execution ordering
        self._next_sequence: int = 0

        # Auto-register the system wallet (used for issuance)
        self.registered_wallets.add(SYSTEM_WALLET)
        self.balances[SYSTEM_WALLET] = defaultdict(int)

    # ========================================================================
    # READ-ONLY ACCESS
    # ========================================================================

    def get_balance(self, wallet_id: str, symbol: str) -> int:
        """
        Get the balance of a token in a wallet.

        Raises:
            WalletNotRegistered: If wallet is not registered
            TokenNotRegistered: If token is not registered
        """
        self._require_wallet(wallet_id)
        self._require_token(symbol)
        return self.balances[wallet_id].get(symbol, 0)

    def get_allowance(self, owner: str, spender: str, symbol: str) -> int:
        """Amount of `symbol` that spender may still pull from owner."""
        return self.allowances.get((owner, spender, symbol), 0)

    def get_wallet_balances(self, wallet_id: str) -> BalanceMap:
        """Get all balances for a wallet."""
        self._require_wallet(wallet_id)
        return dict(self.balances[wallet_id])

    def get_token(self, symbol: str) -> Token:
        self._require_token(symbol)
        return self.tokens[symbol]

    def list_wallets(self) -> Set[str]:
        """List all registered wallet IDs."""
        return self.registered_wallets.copy()

    def list_tokens(self) -> List[str]:
        """List all registered token symbols."""
        return sorted(self.tokens.keys())

    def is_registered(self, wallet_id: str) -> bool:
        return wallet_id in self.registered_wallets

    def total_supply(self, symbol: str) -> int:
        """
        Sum of a token's balances across all wallets, system wallet included.

        Always zero for a consistent ledger; use circulating_supply() for the
        amount issued to non-system wallets.
        """
        self._require_token(symbol)
        return sum(self.balances[w].get(symbol, 0) for w in sorted(self.registered_wallets))

    def circulating_supply(self, symbol: str) -> int:
        """Amount of a token issued out of the system wallet."""
        self._require_token(symbol)
        return -self.balances[SYSTEM_WALLET].get(symbol, 0)

    def verify_conservation(
        self,
        expected_supplies: Optional[Dict[str, int]] = None,
    ) -> Dict[str, Any]:
        """
        Verify that conservation laws hold for all tokens.

        Every token's balances must sum to zero across all wallets. When
        expected_supplies is given, each token's circulating supply must also
        match the expected amount.

        Returns:
            Dict with keys:
            - 'valid': bool - True if all conservation laws hold
            - 'supplies': Dict[str, int] - Circulating supply for each token
            - 'discrepancies': List[Dict] - Details of any violations

        Example:
            result = ledger.verify_conservation({"USDC": 300_000_000})
            assert result['valid'], result['discrepancies']
        """
        supplies = {}
        discrepancies = []

        for symbol in sorted(self.tokens):
            net = self.total_supply(symbol)
            supplies[symbol] = self.circulating_supply(symbol)
            if net != 0:
                discrepancies.append({
                    'token': symbol,
                    'expected': 0,
                    'actual': net,
                    'error': 'balances do not net to zero',
                })
            if expected_supplies and symbol in expected_supplies:
                expected = expected_supplies[symbol]
                if supplies[symbol] != expected:
                    discrepancies.append({
                        'token': symbol,
                        'expected': expected,
                        'actual': supplies[symbol],
                        'difference': supplies[symbol] - expected,
                    })

        if expected_supplies:
            for symbol, expected in expected_supplies.items():
                if symbol not in supplies:
                    discrepancies.append({
                        'token': symbol,
                        'expected': expected,
                        'actual': 0,
                        'error': 'token not registered',
                    })

        return {
            'valid': len(discrepancies) == 0,
            'supplies': supplies,
            'discrepancies': discrepancies,
        }

    # ========================================================================
    # REGISTRATION (Mutating)
    # ========================================================================

    def register_wallet(self, wallet_id: str) -> str:
        """
        Register a new wallet.

        Raises:
            ZeroAddress: If wallet_id is empty
            ValueError: If wallet is already registered
        """
        if is_null(wallet_id):
            raise ZeroAddress("Wallet id cannot be empty")
        if wallet_id in self.registered_wallets:
            raise ValueError(f"Wallet {wallet_id} already registered")
        self.registered_wallets.add(wallet_id)
        self.balances[wallet_id] = defaultdict(int)
        return wallet_id

    def ensure_wallet(self, wallet_id: str) -> str:
        """Register wallet_id unless it already is."""
        if wallet_id not in self.registered_wallets:
            self.register_wallet(wallet_id)
        return wallet_id

    def register_token(self, token: Token) -> None:
        """
        Register a new token.

        Raises:
            ValueError: If token symbol is already registered
        """
        if token.symbol in self.tokens:
            raise ValueError(f"Token {token.symbol} already registered")
        self.tokens[token.symbol] = token
        if self.verbose:
            print(f"📝 Registered: {token.symbol} ({token.name}) [{token.decimals} decimals]")

    # ========================================================================
    # TRANSFERS (Mutating)
    # ========================================================================

    def mint(self, wallet_id: str, symbol: str, quantity: int, reference: str = "mint") -> Transaction:
        """Issue new tokens to a wallet out of SYSTEM_WALLET."""
        return self.execute([Move(quantity, symbol, SYSTEM_WALLET, wallet_id, reference)], reference)

    def approve(self, owner: str, spender: str, symbol: str, quantity: int) -> None:
        """
        Allow spender to pull up to `quantity` of symbol from owner.

        Overwrites any previous allowance; a quantity of 0 revokes it.
        """
        self._require_wallet(owner)
        self._require_token(symbol)
        if is_null(spender):
            raise ZeroAddress("Spender cannot be empty")
        if quantity != 0:
            require_amount(quantity, "allowance")
        if quantity == 0:
            self.allowances.pop((owner, spender, symbol), None)
        else:
            self.allowances[(owner, spender, symbol)] = quantity

    def transfer(self, source: str, dest: str, symbol: str, quantity: int, reference: str) -> Transaction:
        """Push funds from source to dest."""
        return self.execute([Move(quantity, symbol, source, dest, reference)], reference)

    def transfer_from(
        self,
        spender: str,
        source: str,
        dest: str,
        symbol: str,
        quantity: int,
        reference: str,
    ) -> Transaction:
        """Pull funds from source to dest on behalf of spender, consuming its allowance."""
        return self.execute([Move(quantity, symbol, source, dest, reference, spender=spender)], reference)

    def execute(self, moves: Iterable[Move], reference: str) -> Transaction:
        """
        Apply a batch of moves atomically.

        All moves succeed together or the batch raises and nothing changes.

        Raises:
            TokenNotRegistered / WalletNotRegistered: unknown token or wallet
            InsufficientAllowance: a pull move exceeds the remaining allowance
            InsufficientFunds: a wallet would go negative after the whole batch
        """
        moves = tuple(moves)
        self._validate(moves)

        sequence = self._next_sequence
        self._next_sequence += 1
        tx = Transaction(
            moves=moves,
            reference=reference,
            exec_id=f"exec:{self.name}:{sequence:012d}",
            ledger_name=self.name,
            execution_time=self.clock.current_time,
            sequence_number=sequence,
        )

        self._apply(moves)

        # Log transaction (always - audit trail is mandatory)
        self.transaction_log.append(tx)
        if self.verbose:
            print(f"✓ {tx!r}")
        return tx

    def _validate(self, moves: Tuple[Move, ...]) -> None:
        """
        Validate a batch against all constraints.

        Checks performed:
        1. Token and wallet registration
        2. Allowances, summed per (owner, spender, token) across the batch
        3. Balances, netted per (wallet, token) across the batch
        """
        spend: Dict[Tuple[str, str, str], int] = defaultdict(int)
        net: Dict[Tuple[str, str], int] = defaultdict(int)

        for move in moves:
            self._require_token(move.token)
            self._require_wallet(move.source)
            self._require_wallet(move.dest)
            if move.uses_allowance:
                spend[(move.source, move.spender, move.token)] += move.quantity
            net[(move.source, move.token)] -= move.quantity
            net[(move.dest, move.token)] += move.quantity

        for key, needed in spend.items():
            available = self.allowances.get(key, 0)
            if needed > available:
                owner, spender, symbol = key
                raise InsufficientAllowance(
                    f"{spender} may pull {available} {symbol} from {owner}, needs {needed}"
                )

        # SYSTEM_WALLET is exempt from balance validation (issuance)
        for (wallet, symbol), delta in net.items():
            if wallet == SYSTEM_WALLET:
                continue
            proposed = self.balances[wallet].get(symbol, 0) + delta
            if proposed < 0:
                raise InsufficientFunds(
                    f"{wallet} {symbol}: balance {self.balances[wallet].get(symbol, 0)} "
                    f"cannot cover {-delta}"
                )

    def _apply(self, moves: Tuple[Move, ...]) -> None:
        for move in moves:
            if move.uses_allowance:
                key = (move.source, move.spender, move.token)
                remaining = self.allowances[key] - move.quantity
                if remaining:
                    self.allowances[key] = remaining
                else:
                    del self.allowances[key]
            self.balances[move.source][move.token] -= move.quantity
            self.balances[move.dest][move.token] += move.quantity

    def _require_wallet(self, wallet_id: str) -> None:
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")

    def _require_token(self, symbol: str) -> None:
        if symbol not in self.tokens:
            raise TokenNotRegistered(f"Token {symbol} not registered")
