import pytest

from minishell.environment import Environment, ShellState
from minishell.lexer import (
    QUOTED_OPERATOR_MARK,
    ShellSyntaxError,
    expand_word,
    has_unclosed_quote,
    mark_operators,
    move_command_first,
    parse,
    restore_markers,
    split_words,
)


@pytest.fixture
def env():
    return Environment.from_mapping({"HOME": "/home/user", "USER": "alice"})


@pytest.fixture
def state():
    return ShellState()


def words_of(line):
    return restore_markers(split_words(mark_operators(line), " "))


def test_pipe_gets_spaces():
    assert words_of("a|b") == ["a", "|", "b"]


def test_heredoc_operator_kept_together():
    assert words_of("cat<<eof") == ["cat", "<<", "eof"]


def test_append_operator_kept_together():
    assert words_of("echo x>>out") == ["echo", "x", ">>", "out"]


def test_quoted_operators_and_spaces_survive_splitting():
    assert words_of("echo 'a | b'") == ["echo", "'a | b'"]
    assert words_of('echo "x > y"') == ["echo", '"x > y"']


def test_marked_quote_has_no_plain_space():
    marked = mark_operators("'a b'")
    assert " " not in marked
    assert restore_markers([marked]) == ["'a b'"]


def test_less_greater_is_syntax_error():
    with pytest.raises(ShellSyntaxError) as info:
        mark_operators("cat <> f")
    assert info.value.status == 258


def test_parse_sets_status_on_syntax_error(env, state):
    with pytest.raises(ShellSyntaxError):
        parse("cat <> f", env, state)
    assert state.exit_status == 258


def test_split_words_drops_empty_pieces():
    assert split_words("  a  b ", " ") == ["a", "b"]
    assert split_words("", " ") == []


def test_has_unclosed_quote():
    assert has_unclosed_quote("'abc")
    assert has_unclosed_quote('a"b')
    assert not has_unclosed_quote("\"a'b\"")
    assert not has_unclosed_quote("abc")


def test_expand_variable(env, state):
    assert expand_word("$HOME", env, state, False) == "/home/user"
    assert state.unquoted_expansion


def test_expand_inside_double_quotes(env, state):
    assert expand_word('"$HOME"', env, state, False) == "/home/user"
    assert not state.unquoted_expansion


def test_single_quotes_are_literal(env, state):
    assert expand_word("'$HOME'", env, state, False) == "$HOME"


def test_program_name(env, state):
    assert expand_word("$0", env, state, False) == "minishell"


def test_exit_status_is_reset_after_expansion(env, state):
    state.exit_status = 42
    assert expand_word("$?", env, state, False) == "42"
    assert state.exit_status == 0


def test_positional_digit_is_dropped(env, state):
    assert expand_word("$1abc", env, state, False) == "abc"


def test_missing_variable_is_recorded(env, state):
    assert expand_word("$NOPE", env, state, False) == ""
    assert state.missing_variable == "NOPE"


def test_dollar_before_non_name_is_kept(env, state):
    assert expand_word("$-", env, state, False) == "$-"
    assert expand_word("$$", env, state, False) == "$"


def test_dollar_before_quote_is_dropped(env, state):
    assert expand_word('$"x"', env, state, False) == "x"


def test_quoted_operator_gets_mark(env, state):
    assert expand_word("'a|b'", env, state, False) == "a|b" + QUOTED_OPERATOR_MARK
    assert expand_word('"<"', env, state, False) == "<" + QUOTED_OPERATOR_MARK


def test_heredoc_delimiter_is_not_expanded(env, state):
    assert expand_word("$HOME", env, state, True) == "$HOME"
    assert expand_word('"eof"', env, state, True) == "eof"


def test_move_command_first():
    assert move_command_first([">", "f", "cat", "x"]) == ["cat", ">", "f", "x"]


def test_move_command_first_keeps_all_words():
    words = ["<<", "eof", ">", "out", "wc", "-l"]
    moved = move_command_first(words)
    assert sorted(moved) == sorted(words)
    assert moved[0] == "wc"


def test_parse_moves_command_before_redirection(env, state):
    assert parse("> out echo hi", env, state) == ["echo", ">", "out", "hi"]


def test_parse_keeps_spaces_in_quotes(env, state):
    assert parse('echo "a  b"', env, state) == ["echo", "a  b"]


def test_parse_expands_variables(env, state):
    assert parse("echo $USER", env, state) == ["echo", "alice"]


def test_parse_heredoc_delimiter(env, state):
    assert parse("cat << $HOME", env, state) == ["cat", "<<", "$HOME"]


def test_parse_unclosed_quote(env, state):
    with pytest.raises(ShellSyntaxError) as info:
        parse("echo 'x", env, state)
    assert str(info.value) == "Error!!, Unclosed Quote!"


def test_parse_blank_line(env, state):
    assert parse("   ", env, state) == []
    assert parse("", env, state) == []