"""
Test suite for the account entity

Covers the balance rules: no negative amounts, no overdraft, and pure
state transitions that never touch storage.
"""

import pytest

from account_ledger.accounts import (
    Account, AccountError, AccountExistsError, RejectedError, MAX_HOLDER_NAME_LENGTH
)


class TestAccountCreation:
    """Test Account.create"""

    def test_create_with_zero_balance(self):
        account = Account.create("alice")
        assert account.holder_name == "alice"
        assert account.balance == 0

    def test_create_with_initial_balance(self):
        assert Account.create("bob", 250).balance == 250

    def test_negative_initial_balance_rejected(self):
        with pytest.raises(RejectedError):
            Account.create("bob", -1)

    @pytest.mark.parametrize("holder_name", [None, "", "   "])
    def test_missing_holder_rejected(self, holder_name):
        with pytest.raises(RejectedError):
            Account.create(holder_name)

    def test_oversized_holder_rejected(self):
        with pytest.raises(RejectedError):
            Account.create("x" * (MAX_HOLDER_NAME_LENGTH + 1))

    def test_holder_name_is_stripped(self):
        assert Account.create("  alice ").holder_name == "alice"

    @pytest.mark.parametrize("holder_name", [42, b"alice", ["alice"]])
    def test_non_string_holder_rejected(self, holder_name):
        with pytest.raises(RejectedError, match="must be a string"):
            Account.create(holder_name)


class TestBalanceRules:
    """Test deposit and withdraw invariants"""

    def test_deposit_returns_new_state(self):
        account = Account("alice", 100)
        updated = account.deposit(50)
        assert updated.balance == 150
        assert account.balance == 100  # original value untouched

    def test_negative_deposit_rejected(self):
        with pytest.raises(RejectedError, match="negative"):
            Account("alice", 100).deposit(-5)

    def test_withdraw_returns_new_state(self):
        assert Account("alice", 100).withdraw(40).balance == 60

    def test_withdraw_entire_balance(self):
        assert Account("alice", 100).withdraw(100).balance == 0

    def test_overdraft_rejected(self):
        with pytest.raises(RejectedError, match="Overdraft"):
            Account("alice", 100).withdraw(101)

    def test_negative_withdraw_rejected(self):
        with pytest.raises(RejectedError, match="negative"):
            Account("alice", 100).withdraw(-1)

    @pytest.mark.parametrize("amount", [1.5, "10", True, None])
    def test_non_integer_amount_rejected(self, amount):
        with pytest.raises(RejectedError):
            Account("alice", 100).deposit(amount)

    def test_deposit_then_withdraw_round_trip(self):
        account = Account("alice", 37)
        assert account.deposit(25).withdraw(25) == account

    def test_balance_never_negative_over_sequence(self):
        account = Account("alice", 0)
        for amount in [5, 20, 3, 50, 1, 0, 7]:
            account = account.deposit(amount)
            try:
                account = account.withdraw(amount * 2)
            except RejectedError:
                pass
            assert account.balance >= 0


class TestAccountRepresentation:
    """Test transport helpers and error taxonomy"""

    def test_to_dict(self):
        assert Account("alice", 60).to_dict() == {"holder_name": "alice", "balance": 60}

    def test_str(self):
        assert str(Account("alice", 60)) == "Account: [holder: alice, balance: 60]"

    def test_exists_error_is_a_rejection(self):
        assert issubclass(AccountExistsError, RejectedError)
        assert not issubclass(AccountError, RejectedError)

    def test_account_error_exposes_cause(self):
        cause = RuntimeError("boom")
        try:
            raise AccountError("failed") from cause
        except AccountError as e:
            assert e.cause is cause
