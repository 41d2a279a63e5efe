"""The commands the shell runs itself: echo, cd, pwd, env, export, unset and exit."""

from __future__ import annotations

import os
import string
from collections.abc import Callable, Sequence
from typing import TextIO

from minishell.commands import Command
from minishell.environment import (
    Environment,
    ShellState,
    is_name_only,
    parse_assignment,
)

_DIGITS = string.digits
_LETTERS = string.ascii_letters
_NAME_CHARS = string.ascii_letters + string.digits + "_"
_SPACES = " \t\n\v\f\r"
_LLONG_MAX = 2**63 - 1


class ShellExit(Exception):
    """Raised by ``exit``: the shell must stop with ``status``."""

    def __init__(self, status: int) -> None:
        super().__init__(f"exit {status}")
        self.status = status


def _invalid_identifier(builtin: str, word: str) -> str:
    return f"minishell: {builtin}: `{word}': not a valid identifier"


def _strerror(error: OSError) -> str:
    return error.strerror or os.strerror(error.errno or 0)


def parse_exit_code(text: str) -> int:
    """Read the numeric argument of ``exit`` and reduce it to a status 0-255.

    Leading blanks and any run of signs are accepted; two signs in a row
    make the value 0. Digits stop at the first other character. A value
    beyond the range of a signed 64-bit integer raises ValueError.
    """
    size = len(text)
    i = 0
    while i < size and text[i] in _SPACES:
        i += 1
    sign = 1
    while i < size and text[i] in "+-":
        if text[i] == "-":
            sign = -sign
        if i + 1 < size and text[i + 1] in "+-":
            sign = 0
        i += 1
    value = 0
    while i < size and text[i] in _DIGITS:
        value = value * 10 + int(text[i])
        if value > _LLONG_MAX:
            raise ValueError(f"minishell: exit: {text}: numeric argument required")
        i += 1
    return (sign * value) % 256


def is_echo_flag(word: str | None) -> bool:
    """Return True for ``-n``, ``-nn`` and so on; a missing word counts as one."""
    if word is None:
        return True
    return len(word) > 1 and word[0] == "-" and set(word[1:]) == {"n"}


def echo(arguments: Sequence[str], out: TextIO) -> None:
    """Write the arguments separated by spaces; leading ``-n`` flags drop the newline."""
    if not arguments:
        out.write("\n")
        return
    position = 0
    newline = True
    while position < len(arguments) and is_echo_flag(arguments[position]):
        newline = False
        position += 1
    if position == len(arguments):
        return
    out.write(" ".join(arguments[position:]))
    if newline:
        out.write("\n")


def _chdir_quietly(path: str | None) -> None:
    if path is None:
        return
    try:
        os.chdir(path)
    except OSError:
        pass


def _chdir_or_report(path: str, shown: str, state: ShellState, out: TextIO) -> None:
    try:
        os.chdir(path)
    except OSError as error:
        out.write(f"minishell: cd: {shown}: {_strerror(error)}\n")
        state.exit_status = 1


def cd(
    arguments: Sequence[str], env: Environment, state: ShellState, out: TextIO
) -> None:
    """Change the working directory and update every ``PWD`` variable."""
    target = arguments[0] if arguments else None
    home = env.get("HOME")
    if target is None or target == "~":
        _chdir_quietly(home)
    elif target.startswith("~") and len(target) > 2:
        _chdir_quietly(home)
        _chdir_or_report(target[1:].lstrip("/"), target, state, out)
    else:
        _chdir_or_report(target, target, state, out)
    try:
        cwd = os.getcwd()
    except OSError as error:
        out.write(
            "cd: error retrieving current directory: getcwd: cannot access "
            f"parent directories: {_strerror(error)}\n"
        )
        return
    for variable in env:
        if variable.name == "PWD":
            variable.value = cwd


def pwd(out: TextIO) -> None:
    """Write the working directory."""
    try:
        os.chdir(".")
    except OSError:
        return
    try:
        cwd = os.getcwd()
    except OSError as error:
        out.write(f"minishell: {_strerror(error)}\n")
        return
    out.write(cwd + "\n")


def print_env(env: Environment, out: TextIO) -> None:
    """Write ``NAME=VALUE`` for every variable that has a value."""
    for variable in env:
        if variable.assigned:
            out.write(f"{variable.name}={variable.value}\n")


def print_export(env: Environment, out: TextIO) -> None:
    """Write every variable in ``declare -x`` form."""
    for variable in env:
        if variable.assigned:
            out.write(f'declare -x {variable.name}="{variable.value}"\n')
        else:
            out.write(f"declare -x {variable.name}\n")


def export_variable(text: str, env: Environment, out: TextIO) -> None:
    """Define, assign or append to the variable described by ``text``.

    An invalid name raises ValueError carrying the message. A ``+`` not
    followed by ``=`` is reported on ``out`` and leaves the variable alone.
    """
    text = text.replace('"', "")
    if not text or text[0] not in _NAME_CHARS:
        raise ValueError(_invalid_identifier("export", text))
    cut = next((pos for pos, char in enumerate(text) if char in "=+"), len(text))
    name = text[:cut]
    if any(char not in _NAME_CHARS for char in name):
        raise ValueError(_invalid_identifier("export", text))
    rest = text[cut:]
    if rest.startswith("+") and not rest.startswith("+="):
        out.write(_invalid_identifier("export", text) + "\n")
        return
    existing = env.find(name)
    if existing is None:
        env.add_front(parse_assignment(text, is_name_only(text)))
    elif rest.startswith("+="):
        existing.value += rest[2:]
        existing.assigned = True
    elif rest.startswith("="):
        existing.value = rest[1:]
        existing.assigned = True


def export(
    arguments: Sequence[str], env: Environment, state: ShellState, out: TextIO
) -> None:
    """Export each argument; with none, sort the variables and list them."""
    if not arguments:
        env.sort()
        print_export(env, out)
        return
    first = arguments[0]
    if not first or first[0] not in _LETTERS:
        out.write(_invalid_identifier("export", first) + "\n")
        state.exit_status = 1
        return
    for argument in arguments:
        try:
            export_variable(argument, env, out)
        except ValueError as error:
            out.write(f"{error}\n")
            return


def unset(arguments: Sequence[str], env: Environment, out: TextIO) -> None:
    """Remove the named variables, stopping at the first invalid name."""
    for argument in arguments:
        if (argument and argument[0] in _DIGITS) or any(
            char not in _NAME_CHARS for char in argument
        ):
            out.write(_invalid_identifier("unset", argument) + "\n")
            return
        env.remove(argument)


def exit_shell(arguments: Sequence[str], out: TextIO) -> None:
    """Raise ShellExit with the status given by the first argument."""
    if not arguments:
        raise ShellExit(1)
    first = arguments[0]
    if any(char in _LETTERS for char in first):
        out.write(f"minishell: exit: {first}: numeric argument required\n")
        raise ShellExit(255)
    if len(arguments) > 1:
        out.write("minishell: exit: too many arguments\n")
    try:
        status = parse_exit_code(first)
    except ValueError as error:
        out.write(f"{error}\n")
        raise ShellExit(255) from error
    raise ShellExit(status)


def run_builtin(
    command: Command, env: Environment, state: ShellState, out: TextIO
) -> bool:
    """Run ``command`` when it is a builtin; return whether it was one."""
    handlers: dict[str, Callable[[], None]] = {
        "echo": lambda: echo(command.arguments, out),
        "cd": lambda: cd(command.arguments, env, state, out),
        "pwd": lambda: pwd(out),
        "env": lambda: print_env(env, out),
        "unset": lambda: unset(command.arguments, env, out),
        "export": lambda: export(command.arguments, env, state, out),
        "exit": lambda: exit_shell(command.arguments, out),
    }
    if command.command is None:
        return False
    handler = handlers.get(command.command)
    if handler is None:
        return False
    handler()
    return True