"""Shell variables, the environment list and the state shared between stages."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field


@dataclass
class ShellState:
    """Mutable state shared by the parser, the builtins and the executor."""

    exit_status: int = 0
    missing_variable: str | None = None
    unquoted_expansion: bool = False


@dataclass
class Variable:
    """One shell variable.

    ``assigned`` is false for a name that was declared with ``export NAME``
    but never given a value; such a variable is listed by ``export`` but
    not by ``env`` and is not passed to child processes.
    """

    name: str
    value: str = ""
    assigned: bool = True


def is_name_only(text: str) -> bool:
    """Return True when ``text`` holds no ``=``, i.e. it only names a variable."""
    return "=" not in text


def parse_assignment(text: str, declared_only: bool) -> Variable:
    """Build a variable from ``NAME=VALUE``, ``NAME+=VALUE`` or ``NAME``.

    The name runs up to the first ``=`` or ``+``. A ``+`` that is not
    followed by ``=`` is an error.
    """
    cut = len(text)
    for position, char in enumerate(text):
        if char in "=+":
            cut = position
            break
    name = text[:cut]
    rest = text[cut:]
    if rest.startswith("+"):
        if not rest.startswith("+="):
            raise ValueError(f"`{text}': not a valid identifier")
        rest = rest[1:]
    value = rest[1:] if rest else ""
    return Variable(name=name, value=value, assigned=not declared_only)


@dataclass
class Environment:
    """Ordered list of shell variables."""

    variables: list[Variable] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, str]) -> Environment:
        """Create an environment holding every entry of ``mapping`` in order."""
        return cls([Variable(name, value) for name, value in mapping.items()])

    def find(self, name: str) -> Variable | None:
        """Return the first variable called ``name``, or None."""
        return next((var for var in self.variables if var.name == name), None)

    def get(self, name: str) -> str | None:
        """Return the value of ``name``, or None when it is not defined."""
        variable = self.find(name)
        return None if variable is None else variable.value

    def add_front(self, variable: Variable) -> None:
        """Put ``variable`` at the head of the list."""
        self.variables.insert(0, variable)

    def remove(self, name: str) -> bool:
        """Remove the first variable called ``name``; return whether one was found."""
        for position, variable in enumerate(self.variables):
            if variable.name == name:
                del self.variables[position]
                return True
        return False

    def sort(self) -> None:
        """Order the variables by name, keeping equal names in their order."""
        self.variables.sort(key=lambda var: var.name.encode("utf-8", "surrogateescape"))

    def to_envp(self) -> dict[str, str]:
        """Return the assigned variables as a mapping for a child process."""
        envp: dict[str, str] = {}
        for variable in self.variables:
            if variable.assigned and variable.name not in envp:
                envp[variable.name] = variable.value
        return envp

    def extend(self, variables: Iterable[Variable]) -> None:
        """Append ``variables`` at the end of the list."""
        self.variables.extend(variables)

    def __iter__(self) -> Iterator[Variable]:
        return iter(self.variables)

    def __len__(self) -> int:
        return len(self.variables)