"""
guards.py - Reentrancy guard and access control

Entry points are gated with decorators that wrap the method:
- non_reentrant: one guarded call per instance at a time
- only_owner / only_operator: caller identity checks

Guarded methods take the calling identity as their first argument.
"""

from __future__ import annotations
from functools import wraps
from typing import Set

from .core import Reentrancy, Unauthorized, ZeroAddress, is_null
from .events import TransferOwnership, OperatorGranted, OperatorRevoked


# ============================================================================
# REENTRANCY
# ============================================================================

class ReentrancyGuard:
    """
    Mixin holding the per-instance held/not-held flag.

    The exchange and custody capabilities are external calls; if one of them
    calls back into a guarded method of the same instance mid-operation the
    nested call raises Reentrancy.
    """

    def __init__(self):
        self._entered = False

    @property
    def entered(self) -> bool:
        return self._entered


def non_reentrant(func):
    """Reject nested entry into any guarded method of the same instance."""

    @wraps(func)
    def wrapper(self, *args, **kwargs):
        if self._entered:
            raise Reentrancy(f"{type(self).__name__}.{func.__name__}: reentrant call")
        self._entered = True
        try:
            return func(self, *args, **kwargs)
        finally:
            self._entered = False

    return wrapper


# ============================================================================
# ACCESS CONTROL
# ============================================================================

class Ownable:
    """
    Mixin providing an owner and an operator role.

    The owner may transfer ownership and grant or revoke operators. The owner
    is always an operator. Subclasses must provide an `events` EventLog.
    """

    def __init__(self, owner: str):
        if is_null(owner):
            raise ZeroAddress("Owner cannot be empty")
        self._owner = owner
        self._operators: Set[str] = set()

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def operators(self) -> Set[str]:
        return set(self._operators)

    def is_operator(self, identity: str) -> bool:
        return identity == self._owner or identity in self._operators

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        self._require_owner(caller, "transfer_ownership")
        if is_null(new_owner):
            raise ZeroAddress("New owner cannot be empty")
        old_owner = self._owner
        self._owner = new_owner
        self.events.emit(TransferOwnership(old_owner, new_owner))

    def grant_operator(self, caller: str, operator: str) -> None:
        self._require_owner(caller, "grant_operator")
        if is_null(operator):
            raise ZeroAddress("Operator cannot be empty")
        self._operators.add(operator)
        self.events.emit(OperatorGranted(operator))

    def revoke_operator(self, caller: str, operator: str) -> None:
        self._require_owner(caller, "revoke_operator")
        if operator not in self._operators:
            return
        self._operators.remove(operator)
        self.events.emit(OperatorRevoked(operator))

    def _require_owner(self, caller: str, action: str) -> None:
        if caller != self._owner:
            raise Unauthorized(f"{action}: only owner, got {caller!r}")


def only_owner(func):
    @wraps(func)
    def wrapper(self, caller, *args, **kwargs):
        self._require_owner(caller, func.__name__)
        return func(self, caller, *args, **kwargs)

    return wrapper


def only_operator(func):
    @wraps(func)
    def wrapper(self, caller, *args, **kwargs):
        if not self.is_operator(caller):
            raise Unauthorized(f"{func.__name__}: only operator, got {caller!r}")
        return func(self, caller, *args, **kwargs)

    return wrapper
