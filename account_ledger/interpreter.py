"""
Blocking command interpreter

Reads commands from a text stream, runs them through CommandDispatcher and
writes the results. Entry point for the ``account-ledger`` console script.
"""

import sys
from typing import Optional, TextIO

from .commands import CommandDispatcher
from .config import get_config
from .logging_config import setup_logging
from .service import AccountService
from .storage import StoreError


PROMPT = "> "


class BlockingInterpreter:
    """Interprets and performs user commands until quit or end of input"""

    def __init__(self, dispatcher: CommandDispatcher,
                 stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None):
        self.dispatcher = dispatcher
        self.stdin = stdin or sys.stdin
        self.stdout = stdout or sys.stdout
        self._running = False

    def stop(self) -> None:
        self._running = False

    def handle_commands(self) -> None:
        self._running = True
        while self._running:
            self.stdout.write(PROMPT)
            self.stdout.flush()
            line = self.stdin.readline()
            if not line:
                break
            result = self.dispatcher.dispatch(line)
            for output in result.lines():
                self.stdout.write(output + "\n")
            if result.quit:
                self.stop()


def main() -> None:
    config = get_config()
    setup_logging(config.log_level, config.log_format, log_file=config.log_file)
    try:
        service = AccountService.from_config(config)
    except StoreError as e:
        print(e, file=sys.stderr)
        sys.exit(1)
    try:
        BlockingInterpreter(CommandDispatcher(service)).handle_commands()
    except KeyboardInterrupt:
        pass
    finally:
        service.close()


if __name__ == "__main__":
    main()
