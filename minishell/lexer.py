"""Turn an input line into words: operator spacing, splitting and expansion."""

from __future__ import annotations

import re
import string

from minishell.environment import Environment, ShellState

REDIRECTIONS = (">", "<", ">>", "<<")
OPERATOR_CHARS = "<>|"

# Appended to a word whose quoted text held an operator character, so that
# the word is never mistaken for the operator itself. Stripped later.
QUOTED_OPERATOR_MARK = "\x01"

# Stand-ins used while a quoted section must survive splitting on spaces.
_M_SPACE = "\ufdd0"
_M_SINGLE = "\ufdd1"
_M_DOUBLE = "\ufdd2"
_M_LESS = "\ufdd3"
_M_GREATER = "\ufdd4"
_M_PIPE = "\ufdd5"

_IN_SINGLE = str.maketrans(
    {" ": _M_SPACE, '"': _M_DOUBLE, "<": _M_LESS, ">": _M_GREATER, "|": _M_PIPE}
)
_IN_DOUBLE = str.maketrans(
    {" ": _M_SPACE, "'": _M_SINGLE, "<": _M_LESS, ">": _M_GREATER, "|": _M_PIPE}
)
_RESTORE = str.maketrans(
    {
        _M_SPACE: " ",
        _M_SINGLE: "'",
        _M_DOUBLE: '"',
        _M_LESS: "<",
        _M_GREATER: ">",
        _M_PIPE: "|",
    }
)
_QUOTED_SECTION = re.compile(r"'[^']*'?|\"[^\"]*\"?")

_DIGITS = string.digits
_LETTERS = string.ascii_letters
_NAME_CHARS = string.ascii_letters + string.digits + "_"


class ShellSyntaxError(Exception):
    """A line that cannot be parsed.

    ``status`` is the exit status the shell takes on, or None when the
    error leaves it unchanged.
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


def _protect_quoted(text: str) -> str:
    def protect(match: re.Match[str]) -> str:
        section = match.group(0)
        table = _IN_SINGLE if section[0] == "'" else _IN_DOUBLE
        closed = len(section) > 1 and section[-1] == section[0]
        inner = section[1:-1] if closed else section[1:]
        tail = section[0] if closed else ""
        return section[0] + inner.translate(table) + tail

    return _QUOTED_SECTION.sub(protect, text)


def mark_operators(line: str) -> str:
    """Put spaces around unquoted operators and hide spaces inside quotes."""
    pieces: list[str] = []
    size = len(line)
    i = 0
    while i < size:
        char = line[i]
        following = line[i + 1] if i + 1 < size else ""
        if char in "'\"":
            end = line.find(char, i + 1)
            if end == -1:
                pieces.append(line[i:])
                break
            pieces.append(line[i : end + 1])
            i = end + 1
            continue
        if char not in OPERATOR_CHARS:
            pieces.append(char)
        elif char == following:
            pieces.append(f" {char}{char} ")
            i += 1
        elif char == "<" and following == ">":
            raise ShellSyntaxError(
                "minishell: syntax error near unexpected token `newline'", 258
            )
        else:
            if i and line[i - 1] != " ":
                pieces.append(" ")
            pieces.append(char)
            if following not in ("", " "):
                pieces.append(" ")
        i += 1
    return _protect_quoted("".join(pieces))


def restore_markers(words: list[str]) -> list[str]:
    """Turn the stand-ins left by :func:`mark_operators` back into characters."""
    return [word.translate(_RESTORE) for word in words]


def split_words(text: str, separator: str) -> list[str]:
    """Split ``text`` on ``separator``, dropping empty pieces."""
    return [piece for piece in text.split(separator) if piece]


def has_unclosed_quote(word: str) -> bool:
    """Return True when a quote in ``word`` is opened and never closed."""
    i = 0
    while i < len(word):
        char = word[i]
        if char in "'\"":
            end = word.find(char, i + 1)
            if end == -1:
                return True
            i = end
        i += 1
    return False


class _WordExpander:
    """Expands quotes and variables of one word."""

    def __init__(self, word: str, env: Environment, state: ShellState) -> None:
        self.word = word
        self.env = env
        self.state = state
        self.out: list[str] = []

    def _char(self, index: int) -> str:
        return self.word[index] if 0 <= index < len(self.word) else ""

    def expand(self, heredoc_delimiter: bool) -> str:
        i = 0
        while i < len(self.word):
            char = self.word[i]
            if char == "'":
                i = self._single(i)
            elif char in "\"$":
                i = self._literal(i) if heredoc_delimiter else self._double(i)
            else:
                self.out.append(char)
            i += 1
        return "".join(self.out)

    def _single(self, i: int) -> int:
        end = self.word.find("'", i + 1)
        if end == -1:
            raise ShellSyntaxError("ERROR!")
        section = self.word[i + 1 : end]
        self.out.append(section)
        if any(char in OPERATOR_CHARS for char in section):
            self.out.append(QUOTED_OPERATOR_MARK)
        return end

    def _double(self, i: int) -> int:
        if self.word[i] != '"':
            self.state.unquoted_expansion = True
            _, after = self._dollar(i, quoted=False)
            return after - 1
        size = len(self.word)
        has_operator = False
        j = i + 1
        while j < size and self.word[j] != '"':
            char = self.word[j]
            if char in OPERATOR_CHARS:
                has_operator = True
            if char == "$":
                aborted, after = self._dollar(j, quoted=True)
                if aborted:
                    return after - 1
                j = after - 1
            else:
                self.out.append(char)
            j += 1
        if has_operator:
            self.out.append(QUOTED_OPERATOR_MARK)
        return j

    def _dollar(self, i: int, quoted: bool) -> tuple[bool, int]:
        """Expand the ``$`` at ``i``; return (aborted, index after the expansion)."""
        j = i + 1
        char = self._char(j)
        if char == "?":
            self.out.append(str(self.state.exit_status))
            self.state.exit_status = 0
            return False, j + 1
        if char == "0":
            self.out.append("minishell")
            return False, j + 1
        if char == "$":
            self.out.append("$")
            return False, j + 1
        if char and char in _DIGITS:
            return True, j + 1
        if char and (char in _LETTERS or char == "_"):
            end = j
            while self._char(end) and self._char(end) in _NAME_CHARS:
                end += 1
            name = self.word[j:end]
            value = self.env.get(name)
            if value is None:
                self.state.missing_variable = name
            else:
                self.out.append(value)
            return False, end
        if not quoted and char and char in "\"'":
            return True, j
        self.out.append("$")
        return False, j

    def _literal(self, i: int) -> int:
        word = self.word
        size = len(word)
        if word[i] == '"':
            has_operator = False
            j = i + 1
            while j < size and word[j] != '"':
                if word[j] in "<>":
                    has_operator = True
                else:
                    self.out.append(word[j])
                j += 1
            if j >= size and word[j - 1] != '"':
                return j
            if has_operator:
                self.out.append(QUOTED_OPERATOR_MARK)
            return j
        if self._char(i + 1) == '"':
            end = word.find('"', i + 2)
            if end == -1:
                end = size
            self.out = [word[i + 2 : end]]
            return end
        self.out.append(word[i:].replace('"', ""))
        return size - 1


def expand_word(
    word: str, env: Environment, state: ShellState, heredoc_delimiter: bool
) -> str:
    """Remove quotes from ``word`` and expand its variables.

    A here-document delimiter keeps its ``$`` text unexpanded.
    """
    return _WordExpander(word, env, state).expand(heredoc_delimiter)


def move_command_first(words: list[str]) -> list[str]:
    """Move the first word that is neither a redirection nor its target to the front."""
    for position, word in enumerate(words):
        if word in REDIRECTIONS:
            continue
        if position and words[position - 1] in REDIRECTIONS:
            continue
        return [word, *words[:position], *words[position + 1 :]]
    return list(words)


def parse(line: str | None, env: Environment, state: ShellState) -> list[str]:
    """Split ``line`` into expanded words; an empty list means nothing to run."""
    if not line:
        return []
    try:
        marked = mark_operators(line)
    except ShellSyntaxError as error:
        if error.status is not None:
            state.exit_status = error.status
        raise
    words = restore_markers(split_words(marked, " "))
    expanded: list[str] = []
    for position, word in enumerate(words):
        delimiter = position > 0 and expanded[position - 1] == "<<"
        if has_unclosed_quote(word):
            raise ShellSyntaxError("Error!!, Unclosed Quote!")
        expanded.append(expand_word(word, env, state, delimiter))
    if expanded and expanded[0] in REDIRECTIONS:
        expanded = move_command_first(expanded)
    return expanded