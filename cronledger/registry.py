"""
registry.py - Token pair registry

Maps a (sell, buy) token pair to the one ledger instance (Vault or
CronSwapper) that trades it. Instances are identified by monotonically
increasing ids that are never reused.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .core import TokenPair, DuplicateVault, UnknownVault, ZeroAddress, is_null
from .events import AddVault, EventLog, RemoveVault
from .guards import Ownable, only_owner


@dataclass(frozen=True, slots=True)
class VaultRecord:
    vault_id: int
    vault: Any
    from_token: str
    to_token: str

    @property
    def pair(self) -> TokenPair:
        return self.from_token, self.to_token


class Registry(Ownable):
    """
    Owner-managed registry of one instance per token pair.

    Example:
        registry = Registry(owner="deployer")
        record = registry.add_vault("deployer", vault)
        registry.tokens_to_vault("USDC", "WBTC") is vault   # True
    """

    def __init__(self, owner: str):
        Ownable.__init__(self, owner)
        self.events = EventLog()
        self._vaults: Dict[int, VaultRecord] = {}
        self._by_pair: Dict[TokenPair, int] = {}
        self.next_vault_id: int = 0

    @only_owner
    def add_vault(self, caller: str, vault) -> VaultRecord:
        """
        Register an instance under its token pair.

        Raises:
            ZeroAddress: vault is None or either of its tokens is null
            DuplicateVault: the pair or the instance is already registered
        """
        if vault is None:
            raise ZeroAddress("Vault is the zero address")
        from_token, to_token = vault.pair
        if is_null(from_token) or is_null(to_token):
            raise ZeroAddress("Vault token is the zero address")
        if (from_token, to_token) in self._by_pair:
            raise DuplicateVault(f"A vault for {from_token}->{to_token} was already added")
        if any(record.vault is vault for record in self._vaults.values()):
            raise DuplicateVault("Vault already added")

        record = VaultRecord(self.next_vault_id, vault, from_token, to_token)
        self._vaults[record.vault_id] = record
        self._by_pair[record.pair] = record.vault_id
        self.next_vault_id += 1
        self.events.emit(AddVault(record.vault_id, vault, from_token, to_token))
        return record

    @only_owner
    def remove_vault(self, caller: str, vault_id: int) -> VaultRecord:
        """Unregister an instance and free its pair. Its id is not reused."""
        record = self.get_vault(vault_id)
        del self._vaults[vault_id]
        del self._by_pair[record.pair]
        self.events.emit(RemoveVault(record.vault_id, record.vault, record.from_token, record.to_token))
        return record

    def get_vault(self, vault_id: int) -> VaultRecord:
        if vault_id not in self._vaults:
            raise UnknownVault(f"Vault {vault_id} doesn't exist")
        return self._vaults[vault_id]

    def tokens_to_vault(self, from_token: str, to_token: str) -> Optional[Any]:
        """Instance registered for the pair, or None."""
        vault_id = self._by_pair.get((from_token, to_token))
        if vault_id is None:
            return None
        return self._vaults[vault_id].vault

    def list_vaults(self) -> List[VaultRecord]:
        return [self._vaults[i] for i in sorted(self._vaults)]
