"""
Command Dispatch Module

Boundary between a line-oriented front end and the AccountService. A
CommandLine is a resolved command plus index-addressable string parameters;
CommandDispatcher executes it and always returns a CommandResult. Unknown
input and failed operations become unsuccessful results, never exceptions.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

from .accounts import Account, AccountError, RejectedError
from .service import AccountService


class Command(Enum):
    """Commands understood by the ledger front ends"""
    NEW = "new"
    DELETE = "delete"
    LIST = "list"
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    BALANCE = "balance"
    HELP = "help"
    QUIT = "quit"
    ILLEGAL_COMMAND = "illegal_command"

    @classmethod
    def from_str(cls, value: Optional[str]) -> 'Command':
        """Resolve a command name in any casing; unknown names are illegal"""
        try:
            command = cls(value.strip().lower())
        except (ValueError, AttributeError):
            return cls.ILLEGAL_COMMAND
        return command


@dataclass(frozen=True)
class CommandLine:
    """A command and its parameters"""
    command: Command
    parameters: Sequence[str] = ()

    @classmethod
    def parse(cls, entered_line: Optional[str]) -> 'CommandLine':
        """Split a line on whitespace into a command and its parameters"""
        tokens = entered_line.split() if entered_line else []
        if not tokens:
            return cls(Command.ILLEGAL_COMMAND)
        return cls(Command.from_str(tokens[0]), tuple(tokens[1:]))

    def parameter(self, index: int) -> Optional[str]:
        """Return the parameter at index, or None if there is none"""
        if 0 <= index < len(self.parameters):
            return self.parameters[index]
        return None


@dataclass
class CommandResult:
    """Outcome of one dispatched command"""
    success: bool
    message: str = ""
    accounts: List[Account] = field(default_factory=list)
    quit: bool = False

    def lines(self) -> List[str]:
        """Render the result for a console"""
        output = [f"{account.holder_name}: {account.balance}" for account in self.accounts]
        if not self.success:
            output.insert(0, "Operation failed")
        if self.message:
            output.append(self.message)
        return output


HELP_TEXT = "\n".join(
    command.value for command in Command if command is not Command.ILLEGAL_COMMAND
)


class CommandDispatcher:
    """Executes commands against an AccountService"""

    def __init__(self, service: AccountService):
        self.service = service

    def dispatch(self, entered_line: Optional[str]) -> CommandResult:
        """Parse and execute a raw line"""
        return self.execute(CommandLine.parse(entered_line))

    def execute(self, command_line: CommandLine) -> CommandResult:
        """Execute a parsed command"""
        command = command_line.command
        handler = getattr(self, f"_{command.value}", None)
        if handler is None or command is Command.ILLEGAL_COMMAND:
            return CommandResult(False, "illegal command")
        try:
            return handler(command_line)
        except (RejectedError, AccountError) as e:
            return CommandResult(False, str(e))

    def _help(self, command_line: CommandLine) -> CommandResult:
        return CommandResult(True, HELP_TEXT)

    def _quit(self, command_line: CommandLine) -> CommandResult:
        return CommandResult(True, quit=True)

    def _new(self, command_line: CommandLine) -> CommandResult:
        account = self.service.create_account(command_line.parameter(0))
        return CommandResult(True, f"Created account for {account.holder_name}")

    def _delete(self, command_line: CommandLine) -> CommandResult:
        self.service.delete_account(command_line.parameter(0))
        return CommandResult(True)

    def _list(self, command_line: CommandLine) -> CommandResult:
        holder_name = command_line.parameter(0)
        if holder_name is None:
            return CommandResult(True, accounts=self.service.list_accounts())
        return CommandResult(True, accounts=self.service.list_accounts_for_holder(holder_name))

    def _deposit(self, command_line: CommandLine) -> CommandResult:
        account = self.service.deposit(command_line.parameter(0), _parse_amount(command_line.parameter(1)))
        return CommandResult(True, str(account.balance))

    def _withdraw(self, command_line: CommandLine) -> CommandResult:
        account = self.service.withdraw(command_line.parameter(0), _parse_amount(command_line.parameter(1)))
        return CommandResult(True, str(account.balance))

    def _balance(self, command_line: CommandLine) -> CommandResult:
        holder_name = command_line.parameter(0)
        account = self.service.get_account(holder_name)
        if account is None:
            return CommandResult(False, f"No account for: {holder_name}")
        return CommandResult(True, str(account.balance))


def _parse_amount(value: Optional[str]) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise RejectedError(f"Amount must be an integer, illegal value: {value}") from e
