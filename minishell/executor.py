"""Run the commands of a pipeline: builtins in the shell, the rest as child processes."""

from __future__ import annotations

import contextlib
import copy
import os
import signal
import subprocess
import sys
import tempfile
from typing import IO, Any, Union

from minishell.builtins import ShellExit, run_builtin
from minishell.commands import Command, Pipeline
from minishell.environment import Environment, ShellState
from minishell.lexer import split_words

INTERRUPTED = 130
NOT_FOUND = 127
NO_SUCH_FILE = 1
BUILTIN_NAMES = frozenset({"echo", "cd", "pwd", "env", "unset", "export", "exit"})

# A started stage is either a running process or the status it ended with at once.
_Stage = Union["subprocess.Popen[bytes]", int]


def find_executable(env: Environment, command: str, cwd: str) -> str | None:
    """Look ``command`` up in ``PATH``.

    Returns the first executable candidate, or ``command`` itself when no
    directory holds it. Without ``PATH`` only ``/bin`` is searched, and only
    when ``cwd`` is ``/bin``; otherwise None is returned, meaning the file
    does not exist. A command naming ``/bin/`` is then used as it is.
    """
    search = env.get("PATH")
    if search is not None:
        directories = split_words(search, ":")
    elif "/bin/" not in command:
        if cwd != "/bin":
            return None
        directories = ["/bin"]
    else:
        return command
    for directory in directories:
        candidate = f"{directory}/{command}"
        if os.access(candidate, os.X_OK):
            return candidate
    return command


def build_argv(command: Command) -> list[str]:
    """Return the argument vector of ``command``: its name, then its arguments."""
    if command.command is None:
        raise ValueError("command has no name")
    return [command.command, *command.arguments]


def _reset_child_signals() -> None:
    if hasattr(signal, "SIGQUIT"):
        signal.signal(signal.SIGQUIT, signal.SIG_DFL)


def _status(returncode: int) -> int:
    return 128 - returncode if returncode < 0 else returncode


def _current_dir() -> str:
    try:
        return os.getcwd()
    except OSError:
        return ""


def _spawn(command: Command, env: Environment, stdin: Any, stdout: Any) -> _Stage:
    """Start ``command``; return the process, or its status when it cannot start."""
    if command.command is None:
        return 0
    path = find_executable(env, command.command, _current_dir())
    if path is None:
        print(f"minishell: {command.command}: No such file or directory")
        return NO_SUCH_FILE
    sys.stdout.flush()
    try:
        return subprocess.Popen(
            build_argv(command),
            executable=path,
            stdin=stdin,
            stdout=stdout,
            env=env.to_envp(),
            preexec_fn=_reset_child_signals if os.name == "posix" else None,
        )
    except OSError:
        print(f"minishell: {command.command}: command not found")
        return NOT_FOUND


def _wait_all(stages: list[_Stage], state: ShellState) -> None:
    status = 0
    try:
        for stage in stages:
            status = stage if isinstance(stage, int) else _status(stage.wait())
    except KeyboardInterrupt:
        print()
        for stage in stages:
            if not isinstance(stage, int):
                stage.wait()
        state.exit_status = INTERRUPTED
        return
    if not state.exit_status:
        state.exit_status = status


def _run_single(command: Command, env: Environment, state: ShellState) -> None:
    out = command.stdout if command.stdout is not None else sys.stdout
    if run_builtin(command, env, state, out):
        out.flush()
        return
    _wait_all([_spawn(command, env, command.stdin, command.stdout)], state)


def _run_isolated_builtin(
    command: Command, env: Environment, state: ShellState, out: IO[str]
) -> int:
    """Run a builtin of a pipeline without touching the shell's own state."""
    cwd = _current_dir()
    try:
        run_builtin(command, copy.deepcopy(env), copy.copy(state), out)
    except ShellExit as exit_request:
        return exit_request.status
    finally:
        out.flush()
        if cwd:
            with contextlib.suppress(OSError):
                os.chdir(cwd)
    return 0


def _close_stream(stream: Any) -> None:
    if hasattr(stream, "close"):
        stream.close()


def _run_many(pipeline: Pipeline, env: Environment, state: ShellState) -> None:
    stages: list[_Stage] = []
    previous: Any = None
    last = len(pipeline) - 1
    for index, command in enumerate(pipeline):
        stdin = command.stdin if command.stdin is not None else previous
        following: Any = None
        if command.command in BUILTIN_NAMES:
            if command.stdout is not None:
                out: IO[str] = command.stdout
                following = subprocess.DEVNULL
            elif index == last:
                out = sys.stdout
            else:
                out = tempfile.TemporaryFile(
                    "w+", encoding="utf-8", errors="surrogateescape"
                )
                following = out
            stages.append(_run_isolated_builtin(command, env, state, out))
            if following is out:
                out.seek(0)
        else:
            if command.stdout is not None:
                target: Any = command.stdout
                following = subprocess.DEVNULL
            elif index == last:
                target = None
            else:
                target = subprocess.PIPE
            stage = _spawn(command, env, stdin, target)
            stages.append(stage)
            if target is subprocess.PIPE:
                following = (
                    stage.stdout if not isinstance(stage, int) else subprocess.DEVNULL
                )
        _close_stream(previous)
        previous = following
    _close_stream(previous)
    _wait_all(stages, state)


def run_pipeline(pipeline: Pipeline, env: Environment, state: ShellState) -> int:
    """Run every command of ``pipeline`` and return the shell's exit status.

    A lone builtin runs in the shell itself; in a longer pipeline each
    builtin works on a copy of the environment, as a child would.
    """
    if state.exit_status == INTERRUPTED or pipeline.error or not pipeline.commands:
        return state.exit_status
    if len(pipeline) == 1:
        _run_single(pipeline.commands[0], env, state)
    else:
        _run_many(pipeline, env, state)
    return state.exit_status