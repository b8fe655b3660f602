"""
Account Module

The account entity and the domain error taxonomy. An Account is an immutable
value: deposit and withdraw check the balance rules and return the next
state without touching storage, so invariant checking stays independent of
the store.
"""

from dataclasses import dataclass, replace
from typing import Any, Dict, Optional


MAX_HOLDER_NAME_LENGTH = 64


class RejectedError(Exception):
    """
    Business-rule violation: negative amount, overdraft, duplicate account
    or missing identity. The operation was not performed.
    """


class AccountExistsError(RejectedError):
    """An account for the holder already exists"""


class AccountError(Exception):
    """The system could not complete the requested operation"""

    @property
    def cause(self) -> Optional[BaseException]:
        """Underlying failure, if any"""
        return self.__cause__


def validate_holder_name(holder_name: Optional[str]) -> str:
    """
    Return the holder name with surrounding whitespace removed

    Raises:
        RejectedError: If the name is missing, blank, not a string or too long
    """
    if holder_name is None:
        raise RejectedError("Account holder name is required")
    if not isinstance(holder_name, str):
        raise RejectedError(f"Account holder name must be a string, illegal value: {holder_name!r}")
    holder_name = holder_name.strip()
    if not holder_name:
        raise RejectedError("Account holder name is required")
    if len(holder_name) > MAX_HOLDER_NAME_LENGTH:
        raise RejectedError(
            f"Account holder name longer than {MAX_HOLDER_NAME_LENGTH} characters: {holder_name}"
        )
    return holder_name


@dataclass(frozen=True)
class Account:
    """
    Bank account identified by its holder's name
    """
    holder_name: str
    balance: int = 0

    @classmethod
    def create(cls, holder_name: str, initial_balance: int = 0) -> 'Account':
        """
        Create a new account value

        Args:
            holder_name: Unique account holder name
            initial_balance: Opening balance, must not be negative

        Returns:
            New Account

        Raises:
            RejectedError: If the name is missing or the balance is negative
        """
        holder_name = validate_holder_name(holder_name)
        _check_amount(initial_balance, "open account with")
        if initial_balance < 0:
            raise RejectedError(
                f"Tried to open account with negative balance, illegal value: {initial_balance}"
            )
        return cls(holder_name=holder_name, balance=initial_balance)

    def deposit(self, amount: int) -> 'Account':
        """
        Deposit the specified amount

        Returns:
            Account carrying the new balance

        Raises:
            RejectedError: If the amount is negative
        """
        _check_amount(amount, "deposit")
        if amount < 0:
            raise RejectedError(
                f"Tried to deposit negative value, illegal value: {amount}, account: {self}"
            )
        return replace(self, balance=self.balance + amount)

    def withdraw(self, amount: int) -> 'Account':
        """
        Withdraw the specified amount

        Returns:
            Account carrying the new balance

        Raises:
            RejectedError: If the amount is negative or larger than the balance
        """
        _check_amount(amount, "withdraw")
        if amount < 0:
            raise RejectedError(
                f"Tried to withdraw negative value, illegal value: {amount}, account: {self}"
            )
        if amount > self.balance:
            raise RejectedError(
                f"Overdraft attempt, illegal value: {amount}, account: {self}"
            )
        return replace(self, balance=self.balance - amount)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for transport"""
        return {"holder_name": self.holder_name, "balance": self.balance}

    def __str__(self) -> str:
        return f"Account: [holder: {self.holder_name}, balance: {self.balance}]"


def _check_amount(amount: Any, verb: str) -> None:
    # bool is an int subclass but never a currency amount
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise RejectedError(f"Tried to {verb} non-integer value, illegal value: {amount!r}")
