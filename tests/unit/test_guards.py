"""
test_guards.py - Unit tests for reentrancy guard and access control
"""

import pytest

from cronledger import (
    EventLog, Ownable, ReentrancyGuard, non_reentrant, only_owner, only_operator,
    Reentrancy, Unauthorized, ZeroAddress,
    TransferOwnership, OperatorGranted, OperatorRevoked,
)


class ReentrancyMock(ReentrancyGuard):
    """Counts completed calls; protected_call may recurse into itself."""

    def __init__(self):
        super().__init__()
        self.invoke_count = 0

    @non_reentrant
    def protected_call(self, depth=0):
        if depth:
            self.protected_call(depth - 1)
        self.invoke_count += 1

    @non_reentrant
    def other_protected_call(self):
        self.protected_call()

    def unprotected_call(self, depth=0):
        if depth:
            self.protected_call()
        self.invoke_count += 1

    @non_reentrant
    def failing_call(self):
        raise RuntimeError("boom")


class OwnableMock(Ownable):

    def __init__(self, owner):
        super().__init__(owner)
        self.events = EventLog()
        self.counter = 0

    @only_owner
    def owner_action(self, caller):
        self.counter += 1

    @only_operator
    def operator_action(self, caller, step=1):
        self.counter += step
        return self.counter


class TestReentrancyGuard:

    def test_single_call(self):
        mock = ReentrancyMock()
        mock.protected_call()
        assert mock.invoke_count == 1
        assert not mock.entered

    def test_recursive_call_rejected(self):
        mock = ReentrancyMock()
        with pytest.raises(Reentrancy, match="protected_call"):
            mock.protected_call(depth=1)
        assert mock.invoke_count == 0

    def test_cross_method_reentry_rejected(self):
        mock = ReentrancyMock()
        with pytest.raises(Reentrancy):
            mock.other_protected_call()

    def test_unprotected_may_call_protected(self):
        mock = ReentrancyMock()
        mock.unprotected_call(depth=1)
        assert mock.invoke_count == 2

    def test_guard_released_after_failure(self):
        mock = ReentrancyMock()
        with pytest.raises(RuntimeError):
            mock.failing_call()
        assert not mock.entered
        mock.protected_call()
        assert mock.invoke_count == 1

    def test_guard_is_per_instance(self):
        first, second = ReentrancyMock(), ReentrancyMock()
        first._entered = True
        second.protected_call()
        assert second.invoke_count == 1

    def test_wraps_preserves_name(self):
        assert ReentrancyMock.protected_call.__name__ == "protected_call"


class TestOwnable:

    def test_owner_set(self):
        assert OwnableMock("deployer").owner == "deployer"

    def test_empty_owner_rejected(self):
        with pytest.raises(ZeroAddress):
            OwnableMock("")

    def test_only_owner(self):
        mock = OwnableMock("deployer")
        mock.owner_action("deployer")
        with pytest.raises(Unauthorized, match="only owner"):
            mock.owner_action("mallory")
        assert mock.counter == 1

    def test_transfer_ownership(self):
        mock = OwnableMock("deployer")
        mock.transfer_ownership("deployer", "alice")
        assert mock.owner == "alice"
        assert mock.events.last() == TransferOwnership("deployer", "alice")
        with pytest.raises(Unauthorized):
            mock.owner_action("deployer")

    def test_transfer_ownership_by_non_owner(self):
        mock = OwnableMock("deployer")
        with pytest.raises(Unauthorized):
            mock.transfer_ownership("alice", "alice")
        assert mock.owner == "deployer"

    def test_transfer_to_empty_rejected(self):
        mock = OwnableMock("deployer")
        with pytest.raises(ZeroAddress):
            mock.transfer_ownership("deployer", None)


class TestOperators:

    def test_owner_is_operator(self):
        mock = OwnableMock("deployer")
        assert mock.is_operator("deployer")
        assert mock.operator_action("deployer") == 1

    def test_grant_and_revoke(self):
        mock = OwnableMock("deployer")
        mock.grant_operator("deployer", "keeper")
        assert mock.operators == {"keeper"}
        assert mock.operator_action("keeper", step=2) == 2

        mock.revoke_operator("deployer", "keeper")
        with pytest.raises(Unauthorized, match="only operator"):
            mock.operator_action("keeper")
        assert mock.events.of_type(OperatorGranted) == [OperatorGranted("keeper")]
        assert mock.events.of_type(OperatorRevoked) == [OperatorRevoked("keeper")]

    def test_non_owner_cannot_grant(self):
        mock = OwnableMock("deployer")
        with pytest.raises(Unauthorized):
            mock.grant_operator("keeper", "keeper")
        assert not mock.is_operator("keeper")

    def test_revoke_unknown_operator_is_silent(self):
        mock = OwnableMock("deployer")
        mock.revoke_operator("deployer", "stranger")
        assert mock.events.of_type(OperatorRevoked) == []
        assert mock.operators == set()

    def test_operators_copy(self):
        mock = OwnableMock("deployer")
        mock.operators.add("mallory")
        assert not mock.is_operator("mallory")
