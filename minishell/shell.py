"""The interactive loop: prompt, history, parsing and running each line."""

from __future__ import annotations

import contextlib
import os
import signal
import sys
import tempfile
from collections.abc import Callable, Mapping, Sequence

from minishell.builtins import ShellExit
from minishell.commands import build_pipeline
from minishell.environment import Environment, ShellState
from minishell.executor import INTERRUPTED, run_pipeline
from minishell.lexer import ShellSyntaxError, parse

try:
    import readline as _readline
except ImportError:
    _readline = None

PROMPT = "minishell : "
DEFAULT_HISTORY_PATH = os.path.join(tempfile.gettempdir(), "minishell_history")

LineReader = Callable[[str], "str | None"]


def _read_input(prompt: str) -> str | None:
    try:
        return input(prompt)
    except EOFError:
        return None


def drop_empty_words(words: Sequence[str], state: ShellState) -> list[str]:
    """Drop words left empty by an unquoted expansion of an unset variable.

    Empty words are kept unless such an expansion happened. The flag is
    cleared once a non-empty list is returned.
    """
    if "" not in words:
        return list(words)
    kept = [word for word in words if word or not state.unquoted_expansion]
    if kept:
        state.unquoted_expansion = False
    return kept


def load_history(path: str) -> list[str]:
    """Return the lines saved in the history file, creating it when missing."""
    with open(path, "a+", encoding="utf-8", errors="surrogateescape") as handle:
        handle.seek(0)
        return [line.strip("\n") for line in handle]


class Shell:
    """A shell session: its variables, its state and its history."""

    def __init__(
        self,
        environ: Mapping[str, str] | None = None,
        read_line: LineReader | None = None,
        history_path: str | None = None,
        heredoc_path: str | None = None,
    ) -> None:
        self.env = Environment.from_mapping(os.environ if environ is None else environ)
        self.state = ShellState()
        self.history_path = history_path or DEFAULT_HISTORY_PATH
        self.heredoc_path = heredoc_path
        self._interactive = read_line is None
        self._read_line = read_line or _read_input
        try:
            self.history = load_history(self.history_path)
        except OSError:
            self.history = []
        if self._interactive and _readline is not None:
            for line in self.history:
                _readline.add_history(line)

    def _read(self, prompt: str) -> str | None:
        try:
            return self._read_line(prompt)
        except EOFError:
            return None

    def _remember(self, line: str) -> None:
        self.history.append(line)
        if self._interactive and _readline is not None:
            _readline.add_history(line)
        with contextlib.suppress(OSError), open(
            self.history_path, "a", encoding="utf-8", errors="surrogateescape"
        ) as handle:
            handle.write(line + "\n")

    def read_command(self) -> str | None:
        """Prompt until a non-empty line is read; None at end of input."""
        while True:
            line = self._read(PROMPT)
            if line is None:
                return None
            if line:
                self._remember(line)
                return line

    def run_line(self, line: str) -> int:
        """Parse and run one line; return the resulting exit status.

        ShellExit raised by ``exit`` is passed on to the caller.
        """
        try:
            words = parse(line, self.env, self.state)
        except ShellSyntaxError as error:
            print(error)
            return self.state.exit_status
        words = drop_empty_words(words, self.state)
        if not words:
            return self.state.exit_status
        with build_pipeline(
            words, self.state, self._read_line, self.heredoc_path
        ) as pipeline:
            run_pipeline(pipeline, self.env, self.state)
        return self.state.exit_status

    def run(self) -> int:
        """Read and run lines until end of input or ``exit``; return the status."""
        if self._interactive and hasattr(signal, "SIGQUIT"):
            signal.signal(signal.SIGQUIT, signal.SIG_IGN)
        while True:
            try:
                line = self.read_command()
            except KeyboardInterrupt:
                print()
                self.state.exit_status = 1
                continue
            if line is None:
                return 0
            try:
                self.run_line(line)
            except ShellExit as exit_request:
                return exit_request.status
            except KeyboardInterrupt:
                print()
                self.state.exit_status = INTERRUPTED


def main(argv: Sequence[str] | None = None) -> int:
    """Start an interactive shell; arguments are ignored."""
    return Shell().run()


if __name__ == "__main__":
    sys.exit(main())