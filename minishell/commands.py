"""Group expanded words into the commands of a pipeline and open their redirections."""

from __future__ import annotations

import contextlib
import os
import tempfile
from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import TextIO

from minishell.environment import ShellState
from minishell.lexer import QUOTED_OPERATOR_MARK, REDIRECTIONS

PIPE = "|"
OPERATORS = (PIPE, *REDIRECTIONS)
HEREDOC_PROMPT = "> "
DEFAULT_HEREDOC_PATH = os.path.join(tempfile.gettempdir(), "minishell_heredoc")

LineReader = Callable[[str], "str | None"]


class RedirectionError(Exception):
    """A redirection that cannot be set up.

    ``status`` is the exit status the shell takes on. A non-fatal error
    marks the pipeline as failed but lets the remaining words be read.
    """

    def __init__(self, message: str, status: int, fatal: bool = True) -> None:
        super().__init__(message)
        self.status = status
        self.fatal = fatal


@dataclass
class Command:
    """One command of a pipeline with its arguments and open redirections."""

    command: str | None = None
    arguments: list[str] = field(default_factory=list)
    heredocs: list[str] = field(default_factory=list)
    stdin: TextIO | None = None
    stdout: TextIO | None = None

    @property
    def is_empty(self) -> bool:
        """True when the command has no name, no here-document and no redirection."""
        return (
            self.command is None
            and not self.heredocs
            and self.stdin is None
            and self.stdout is None
        )

    def replace_stdin(self, stream: TextIO) -> None:
        if self.stdin is not None:
            self.stdin.close()
        self.stdin = stream

    def replace_stdout(self, stream: TextIO) -> None:
        if self.stdout is not None:
            self.stdout.close()
        self.stdout = stream

    def close(self) -> None:
        """Close the redirection files this command holds."""
        for stream in (self.stdin, self.stdout):
            if stream is not None:
                stream.close()


@dataclass
class Pipeline:
    """The commands of one input line; ``error`` is set when it must not run."""

    commands: list[Command] = field(default_factory=list)
    error: bool = False

    def close(self) -> None:
        """Close every redirection file of every command."""
        for command in self.commands:
            command.close()

    def __enter__(self) -> Pipeline:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __iter__(self) -> Iterator[Command]:
        return iter(self.commands)

    def __len__(self) -> int:
        return len(self.commands)


def _strip_mark(word: str) -> str:
    return word.replace(QUOTED_OPERATOR_MARK, "")


def _read_input(prompt: str) -> str | None:
    try:
        return input(prompt)
    except EOFError:
        return None


def command_start_indices(words: Sequence[str]) -> list[int]:
    """Return the index at which each command of the pipeline starts."""
    return [0, *(position + 1 for position, word in enumerate(words) if word == PIPE)]


def read_heredoc(
    delimiters: Iterable[str], read_line: LineReader, stream: TextIO
) -> None:
    """Copy lines from ``read_line`` into ``stream`` until the delimiters are seen.

    Each delimiter is waited for in turn; the line matching the last one
    ends the input and is not written. End of input also ends it.
    """
    pending = iter(delimiters)
    current = next(pending, None)
    if current is None:
        return
    while True:
        try:
            line = read_line(HEREDOC_PROMPT)
        except EOFError:
            line = None
        if line is None:
            return
        if line == current:
            current = next(pending, None)
            if not current:
                return
        stream.write(line + "\n")


def _check_target(words: Sequence[str], position: int, state: ShellState) -> str:
    """Return the word after the operator at ``position`` or raise."""
    if position + 1 >= len(words):
        raise RedirectionError(
            "minishell: syntax error near unexpected token `newline'", 258
        )
    target = words[position + 1]
    if target in OPERATORS:
        raise RedirectionError(
            f"minishell: syntax error near unexpected token `{target}'", 258
        )
    if target == "":
        name = state.missing_variable or ""
        raise RedirectionError(f"minishell: ${name}: ambiguous redirect", 1)
    return target


def _open_output(command: Command, target: str, append: bool) -> None:
    flags = os.O_CREAT | os.O_RDWR | (os.O_APPEND if append else os.O_TRUNC)
    try:
        descriptor = os.open(target, flags, 0o777)
    except OSError as error:
        raise RedirectionError(
            f"minishell: {target}: {os.strerror(error.errno or 0)}", 1, fatal=False
        ) from error
    command.replace_stdout(os.fdopen(descriptor, "a" if append else "w"))


def _open_input(command: Command, target: str) -> None:
    try:
        stream = open(target, encoding="utf-8", errors="surrogateescape")
    except OSError as error:
        raise RedirectionError(
            f"minishell: {target}: {os.strerror(error.errno or 0)}", 1
        ) from error
    command.replace_stdin(stream)


def _open_heredoc(
    command: Command, delimiter: str, read_line: LineReader, path: str
) -> None:
    command.heredocs.append(delimiter)
    descriptor = os.open(path, os.O_CREAT | os.O_RDWR | os.O_TRUNC, 0o777)
    with os.fdopen(descriptor, "w", encoding="utf-8", errors="surrogateescape") as out:
        read_heredoc([delimiter], read_line, out)
    stream = open(path, encoding="utf-8", errors="surrogateescape")
    # The open stream keeps the text; the next here-document gets a fresh file.
    with contextlib.suppress(OSError):
        os.unlink(path)
    command.replace_stdin(stream)


def _redirect(
    command: Command,
    words: Sequence[str],
    position: int,
    state: ShellState,
    read_line: LineReader,
    heredoc_path: str,
) -> int:
    """Apply the redirection at ``position``; return the index of its target."""
    operator = words[position]
    target = _strip_mark(_check_target(words, position, state))
    if operator == "<<":
        _open_heredoc(command, target, read_line, heredoc_path)
    elif operator == "<":
        _open_input(command, target)
    else:
        _open_output(command, target, append=operator == ">>")
    return position + 1


def build_pipeline(
    words: Sequence[str],
    state: ShellState,
    read_line: LineReader | None = None,
    heredoc_path: str | None = None,
) -> Pipeline:
    """Build the pipeline of ``words``, opening files and reading here-documents.

    Errors are reported on standard output and leave ``error`` set on the
    returned pipeline; its open files are for the caller to close.
    """
    reader = read_line or _read_input
    path = heredoc_path or DEFAULT_HEREDOC_PATH
    words = list(words)
    starts = command_start_indices(words)
    pipeline = Pipeline([Command() for _ in starts])
    state.exit_status = 0
    for command, start in zip(pipeline.commands, starts):
        position = start
        while position < len(words) and words[position] != PIPE:
            word = words[position]
            if word in REDIRECTIONS:
                try:
                    position = _redirect(command, words, position, state, reader, path)
                except RedirectionError as error:
                    print(error)
                    state.exit_status = error.status
                    pipeline.error = True
                    if error.fatal:
                        return pipeline
                    position += 1
                except KeyboardInterrupt:
                    print()
                    state.exit_status = 130
                    pipeline.error = True
                    return pipeline
            elif position == start:
                command.command = _strip_mark(word)
            else:
                command.arguments.append(_strip_mark(word))
            position += 1
        if not pipeline.error and command.is_empty:
            token = words[position] if position < len(words) else "newline"
            print(f"minishell: syntax error near unexpected token `{token}'")
            state.exit_status = 258
            pipeline.error = True
            return pipeline
    return pipeline