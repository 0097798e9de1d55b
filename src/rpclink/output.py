"""
Centralized progress output for rpclink.

All user-facing progress lines are prefixed with the elapsed time since the
Output object was created, in MM:SS.cc format (minutes:seconds.centiseconds),
followed by the current indentation and an action verb.

Example output:
    00:00.01 Linking RPC
    00:00.01   Found static WASM RPC dependencies (audit, billing) for api
    00:00.02   Linking static WASM RPC dependencies (audit, billing) into api
    00:00.40   Skipping linking RPC for billing, UP-TO-DATE

Indentation lives on the Output instance rather than in module globals, so
each build context carries its own state:

    output = Output()
    output.log_action("Linking", "RPC")
    with output.indent():
        output.log_action("Copying", "api without linking")
"""

import sys
import time
from contextlib import ExitStack, contextmanager
from typing import Iterator, Optional, TextIO

from rich.console import Console
from rich.markup import escape

INDENT_UNIT = "  "

ACTION_STYLE = "bold green"
WARN_ACTION_STYLE = "bold yellow"
ERROR_ACTION_STYLE = "bold red"
HIGHLIGHT_STYLE = "bold cyan"
OK_HIGHLIGHT_STYLE = "bold green"


def highlight(subject: object) -> str:
    """Wrap a subject (component name, path) in highlight markup."""
    return f"[{HIGHLIGHT_STYLE}]{escape(str(subject))}[/]"


def highlight_join(subjects: "list[str] | tuple[str, ...]") -> str:
    """Highlight and comma-join a list of names."""
    return ", ".join(highlight(s) for s in subjects)


class Output:
    """
    Timestamped, indented progress printer.

    Messages may contain rich markup (see highlight()); when the target stream
    is not a terminal the markup is stripped, so captured output is plain text.
    """

    def __init__(
        self,
        stream: Optional[TextIO] = None,
        verbose: bool = True,
        enabled: bool = True,
    ):
        """
        Initialize the output.

        Args:
            stream: Output stream (defaults to sys.stdout)
            verbose: If False, verbose_only messages are suppressed
            enabled: If False, nothing is printed
        """
        self._console = Console(
            file=stream if stream is not None else sys.stdout,
            highlight=False,
            emoji=False,
            soft_wrap=True,
        )
        self._start_time = time.time()
        self._indents: list[str] = []
        self.verbose = verbose
        self.enabled = enabled

    def get_elapsed(self) -> float:
        """Elapsed seconds since the Output was created."""
        return time.time() - self._start_time

    def format_timestamp(self) -> str:
        """Format the elapsed time as MM:SS.cc."""
        elapsed = self.get_elapsed()
        minutes = int(elapsed // 60)
        seconds = elapsed % 60
        return f"{minutes:02d}:{seconds:05.2f}"

    @property
    def indent_prefix(self) -> str:
        return "".join(self._indents)

    @contextmanager
    def indent(self, prefix: str = INDENT_UNIT) -> Iterator[None]:
        """
        Increase indentation for the duration of the with-block.

        The previous indentation is restored on exit, including when the
        block raises.

        Args:
            prefix: Text added to the indentation (default two spaces)
        """
        self._indents.append(prefix)
        try:
            yield
        finally:
            self._indents.pop()

    def _print(self, markup: str) -> None:
        if not self.enabled:
            return
        line = f"{self.format_timestamp()} {self.indent_prefix}{markup}"
        self._console.print(line)

    def log(self, message: str, verbose_only: bool = False) -> None:
        """
        Log a message at the current indentation.

        Args:
            message: Message text (may contain rich markup)
            verbose_only: If True, only print in verbose mode
        """
        if verbose_only and not self.verbose:
            return
        self._print(message)

    def log_action(self, action: str, subject: str, verbose_only: bool = False) -> None:
        """Log '<Action> <subject>' with the action verb styled."""
        if verbose_only and not self.verbose:
            return
        self._print(f"[{ACTION_STYLE}]{escape(action)}[/] {subject}")

    def log_warn_action(self, action: str, subject: str) -> None:
        self._print(f"[{WARN_ACTION_STYLE}]{escape(action)}[/] {subject}")

    def log_error_action(self, action: str, subject: str) -> None:
        self._print(f"[{ERROR_ACTION_STYLE}]{escape(action)}[/] {subject}")

    def log_skipping_up_to_date(self, subject: str) -> None:
        """Log that a step was skipped because its outputs are current."""
        self.log_warn_action("Skipping", f"{subject}, [{OK_HIGHLIGHT_STYLE}]UP-TO-DATE[/]")

    def log_error(self, message: str) -> None:
        self._print(f"[{ERROR_ACTION_STYLE}]ERROR:[/] {escape(message)}")


class TimedAction:
    """
    Context manager that logs an action and its duration.

    Usage:
        with TimedAction(output, "Linking", "RPC"):
            ...
        # Logs "Done (0.42s)" one level deeper when the block succeeds
    """

    def __init__(self, output: Output, action: str, subject: str):
        self.output = output
        self.action = action
        self.subject = subject
        self.start_time = 0.0
        self._stack = ExitStack()

    def __enter__(self) -> "TimedAction":
        self.start_time = time.time()
        self.output.log_action(self.action, self.subject)
        self._stack.enter_context(self.output.indent())
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self._stack.close()
        if exc_type is None:
            elapsed = time.time() - self.start_time
            with self.output.indent():
                self.output.log(f"Done ({elapsed:.2f}s)", verbose_only=True)
        return None
