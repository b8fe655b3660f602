"""
Account Service Module

The single entry point for callers. Every public operation runs under one
process-wide lock, so at most one logical operation touches the store at a
time; waiters block until the holder's commit or rollback completes. There is
no lock timeout: an operation stuck in I/O blocks all later callers.

Failure translation: business-rule violations surface as RejectedError,
store failures as AccountError carrying the original cause.
"""

from functools import wraps
from typing import List, Optional
import threading

from .accounts import (
    Account, AccountError, AccountExistsError, RejectedError, validate_holder_name
)
from .config import LedgerConfig
from .logging_config import get_logger, log_action
from .storage import DuplicateAccountError, LedgerStore, StoreError, create_store


def _exclusive(method):
    """Run the decorated operation while holding the service lock"""
    @wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)
    return wrapper


class AccountService:
    """
    Orchestrates Account and LedgerStore for create, read, update and delete
    """

    def __init__(self, store: LedgerStore):
        self.store = store
        self._lock = threading.Lock()
        self.logger = get_logger("account_ledger.service")

    @classmethod
    def from_config(cls, config: LedgerConfig) -> 'AccountService':
        """Open the configured store and wrap it in a service"""
        store = create_store(config.database_url, auto_create_schema=config.auto_create_schema)
        return cls(store)

    @_exclusive
    def create_account(self, holder_name: Optional[str], initial_balance: int = 0) -> Account:
        """
        Create a new account for the holder

        Raises:
            RejectedError: Missing name or negative initial balance
            AccountExistsError: The holder already has an account
            AccountError: The store failed
        """
        failure_msg = f"Could not create account for: {holder_name}"
        account = self._check("create", Account.create, holder_name, initial_balance)

        try:
            with self.store.atomic():
                if self.store.find_by_holder(account.holder_name) is not None:
                    raise AccountExistsError(f"Account for: {account.holder_name} already exists")
                created = self.store.create_account(account.holder_name, account.balance)
        except DuplicateAccountError as e:
            self._log_rejected("create", account.holder_name, str(e))
            raise AccountExistsError(f"Account for: {account.holder_name} already exists") from e
        except RejectedError as e:
            self._log_rejected("create", account.holder_name, str(e))
            raise
        except StoreError as e:
            raise self._failed(failure_msg, "create", account.holder_name, e) from e

        log_action(self.logger, "info", "Account created",
                   action="create", resource="account", holder=created.holder_name)
        return created

    @_exclusive
    def get_account(self, holder_name: Optional[str]) -> Optional[Account]:
        """Return the persisted account, or None if there is none"""
        holder_name = _lookup_name(holder_name)
        if holder_name is None:
            return None
        try:
            return self.store.find_by_holder(holder_name)
        except StoreError as e:
            raise self._failed("Could not search for account.", "get", holder_name, e) from e

    @_exclusive
    def list_accounts(self) -> List[Account]:
        """Return every account"""
        try:
            return self.store.find_all()
        except StoreError as e:
            raise self._failed("Unable to list accounts.", "list", None, e) from e

    @_exclusive
    def list_accounts_for_holder(self, holder_name: Optional[str]) -> List[Account]:
        """Return the holder's accounts; empty if the holder has none"""
        holder_name = _lookup_name(holder_name)
        if holder_name is None:
            return []
        try:
            account = self.store.find_by_holder(holder_name)
        except StoreError as e:
            raise self._failed("Could not search for account.", "list", holder_name, e) from e
        return [account] if account is not None else []

    @_exclusive
    def deposit(self, holder_name: Optional[str], amount: int) -> Account:
        """
        Deposit into the holder's account and persist the new balance

        Raises:
            RejectedError: Missing name or negative amount; nothing was written
            AccountError: No such account, or the update did not take effect
        """
        return self._change_balance("deposit", holder_name, amount)

    @_exclusive
    def withdraw(self, holder_name: Optional[str], amount: int) -> Account:
        """
        Withdraw from the holder's account and persist the new balance

        Raises:
            RejectedError: Missing name, negative amount or overdraft; nothing was written
            AccountError: No such account, or the update did not take effect
        """
        return self._change_balance("withdraw", holder_name, amount)

    @_exclusive
    def delete_account(self, holder_name: Optional[str]) -> None:
        """Delete the holder's account; no effect if it does not exist"""
        holder_name = self._check("delete", validate_holder_name, holder_name)
        try:
            deleted = self.store.delete(holder_name)
        except StoreError as e:
            raise self._failed(f"Could not delete account: {holder_name}", "delete", holder_name, e) from e

        if deleted:
            log_action(self.logger, "info", "Account deleted",
                       action="delete", resource="account", holder=holder_name)
        else:
            self.logger.debug("No account to delete for %s", holder_name)

    def close(self) -> None:
        """Close the underlying store"""
        with self._lock:
            self.store.close()

    def _change_balance(self, action: str, holder_name: Optional[str], amount: int) -> Account:
        failure_msg = f"Could not {action} account: {holder_name}"
        holder_name = self._check(action, validate_holder_name, holder_name)

        try:
            with self.store.atomic():
                account = self.store.find_by_holder(holder_name, lock=True)
                if account is None:
                    raise StoreError(f"No account for: {holder_name}")
                # Invariant check happens before any write is attempted
                updated = getattr(account, action)(amount)
                self.store.update_balance(holder_name, updated.balance)
        except RejectedError as e:
            self._log_rejected(action, holder_name, str(e))
            raise
        except StoreError as e:
            raise self._failed(failure_msg, action, holder_name, e) from e

        log_action(self.logger, "info", f"Balance changed by {action}",
                   action=action, resource="account", holder=holder_name,
                   extra={"amount": amount, "balance": updated.balance})
        return updated

    def _check(self, action: str, validator, holder_name, *args):
        try:
            return validator(holder_name, *args)
        except RejectedError as e:
            self._log_rejected(action, holder_name, str(e))
            raise

    def _log_rejected(self, action: str, holder_name: Optional[str], reason: str) -> None:
        log_action(self.logger, "warning", f"Rejected: {reason}",
                   action=action, resource="account", holder=holder_name)

    def _failed(self, failure_msg: str, action: str, holder_name: Optional[str],
                cause: StoreError) -> AccountError:
        self.logger.error("%s (%s)", failure_msg, cause, exc_info=cause,
                          extra={"action": action, "holder": holder_name})
        return AccountError(f"{failure_msg}: {cause}")


def _lookup_name(holder_name: Optional[str]) -> Optional[str]:
    # Reads never reject: a name that could not identify an account finds nothing
    try:
        return validate_holder_name(holder_name)
    except RejectedError:
        return None
