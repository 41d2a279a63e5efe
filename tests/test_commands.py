import io

import pytest

from minishell.commands import (
    Command,
    Pipeline,
    RedirectionError,
    build_pipeline,
    command_start_indices,
    read_heredoc,
)
from minishell.environment import ShellState


def reader_from(lines):
    remaining = iter(lines)
    prompts = []

    def read(prompt):
        prompts.append(prompt)
        return next(remaining, None)

    read.prompts = prompts
    return read


def interrupting_reader(prompt):
    raise KeyboardInterrupt


@pytest.fixture
def state():
    return ShellState()


def test_command_start_indices_without_pipe():
    assert command_start_indices(["ls", "-l"]) == [0]


def test_command_start_indices_with_pipes():
    assert command_start_indices(["ls", "-l", "|", "wc", "|", "cat"]) == [0, 3, 5]


def test_simple_command(state):
    pipeline = build_pipeline(["echo", "hi", "there"], state, reader_from([]))
    assert not pipeline.error
    assert len(pipeline) == 1
    assert pipeline.commands[0].command == "echo"
    assert pipeline.commands[0].arguments == ["hi", "there"]


def test_exit_status_is_reset(state):
    state.exit_status = 5
    build_pipeline(["ls"], state, reader_from([]))
    assert state.exit_status == 0


def test_pipe_splits_commands(state):
    pipeline = build_pipeline(["ls", "|", "wc", "-l"], state, reader_from([]))
    assert [c.command for c in pipeline] == ["ls", "wc"]
    assert pipeline.commands[1].arguments == ["-l"]


def test_quoted_operator_mark_is_removed(state):
    pipeline = build_pipeline(["echo", "a|b\x01"], state, reader_from([]))
    assert pipeline.commands[0].arguments == ["a|b"]


def test_output_redirection_truncates(state, tmp_path):
    target = tmp_path / "out.txt"
    target.write_text("old content\n")
    with build_pipeline(["echo", "hi", ">", str(target)], state) as pipeline:
        pipeline.commands[0].stdout.write("new\n")
    assert target.read_text() == "new\n"
    assert pipeline.commands[0].stdout.closed


def test_output_redirection_appends(state, tmp_path):
    target = tmp_path / "out.txt"
    target.write_text("first\n")
    with build_pipeline(["echo", ">>", str(target)], state) as pipeline:
        pipeline.commands[0].stdout.write("second\n")
    assert target.read_text() == "first\nsecond\n"


def test_only_last_output_is_kept(state, tmp_path):
    first = tmp_path / "a"
    second = tmp_path / "b"
    words = ["echo", ">", str(first), ">", str(second)]
    with build_pipeline(words, state) as pipeline:
        assert not pipeline.error
        assert len(pipeline) == 1
        assert pipeline.commands[0].command == "echo"
        assert pipeline.commands[0].arguments == []
        pipeline.commands[0].stdout.write("x")
    assert pipeline.commands[0].stdout.closed
    assert first.exists()
    assert first.read_text() == ""
    assert second.read_text() == "x"


def test_input_redirection(state, tmp_path):
    source = tmp_path / "in.txt"
    source.write_text("line\n")
    with build_pipeline(["cat", "<", str(source)], state) as pipeline:
        assert pipeline.commands[0].stdin.read() == "line\n"
        assert not pipeline.error


def test_missing_input_file(state, tmp_path, capsys):
    missing = tmp_path / "missing"
    pipeline = build_pipeline(["cat", "<", str(missing)], state)
    assert pipeline.error
    assert state.exit_status == 1
    assert capsys.readouterr().out == f"minishell: {missing}: No such file or directory\n"


def test_failing_output_keeps_reading(state, tmp_path, capsys):
    target = tmp_path / "nodir" / "file"
    pipeline = build_pipeline(["echo", ">", str(target), "word"], state)
    assert pipeline.error
    assert state.exit_status == 1
    assert pipeline.commands[0].arguments == ["word"]
    assert "No such file or directory" in capsys.readouterr().out


def test_redirection_without_target(state, capsys):
    pipeline = build_pipeline(["ls", ">"], state)
    assert pipeline.error
    assert state.exit_status == 258
    assert (
        capsys.readouterr().out
        == "minishell: syntax error near unexpected token `newline'\n"
    )


def test_redirection_followed_by_operator(state, capsys):
    pipeline = build_pipeline(["cat", "<", "|", "wc"], state)
    assert pipeline.error
    assert state.exit_status == 258
    assert capsys.readouterr().out == "minishell: syntax error near unexpected token `|'\n"


def test_ambiguous_redirect(state, capsys):
    state.missing_variable = "FOO"
    pipeline = build_pipeline(["cat", "<", ""], state)
    assert pipeline.error
    assert state.exit_status == 1
    assert capsys.readouterr().out == "minishell: $FOO: ambiguous redirect\n"


def test_empty_command_before_pipe(state, capsys):
    pipeline = build_pipeline(["|", "ls"], state)
    assert pipeline.error
    assert state.exit_status == 258
    assert capsys.readouterr().out == "minishell: syntax error near unexpected token `|'\n"


def test_redirection_only_segment_has_no_command(state, tmp_path):
    source = tmp_path / "in"
    source.write_text("")
    words = ["ls", "|", "<", str(source), "cat"]
    with build_pipeline(words, state) as pipeline:
        second = pipeline.commands[1]
        assert not pipeline.error
        assert second.command is None
        assert second.arguments == ["cat"]


def test_heredoc_fills_stdin(state, tmp_path):
    path = tmp_path / "heredoc"
    reader = reader_from(["one", "two", "EOF", "after"])
    with build_pipeline(["cat", "<<", "EOF"], state, reader, str(path)) as pipeline:
        command = pipeline.commands[0]
        assert command.heredocs == ["EOF"]
        assert command.stdin.read() == "one\ntwo\n"
    assert reader.prompts == ["> ", "> ", "> "]
    assert not path.exists()


def test_heredoc_alone_is_not_a_syntax_error(state, tmp_path):
    path = tmp_path / "heredoc"
    with build_pipeline(["<<", "x"], state, reader_from(["x"]), str(path)) as pipeline:
        assert not pipeline.error
        assert pipeline.commands[0].stdin.read() == ""


def test_heredoc_interrupted(state, tmp_path):
    path = tmp_path / "heredoc"
    pipeline = build_pipeline(["cat", "<<", "EOF"], state, interrupting_reader, str(path))
    assert pipeline.error
    assert state.exit_status == 130
    pipeline.close()


def test_read_heredoc_stops_at_end_of_input():
    stream = io.StringIO()
    read_heredoc(["END"], reader_from(["a", "b"]), stream)
    assert stream.getvalue() == "a\nb\n"


def test_read_heredoc_waits_for_each_delimiter():
    stream = io.StringIO()
    read_heredoc(["a", "b"], reader_from(["x", "a", "y", "b", "z"]), stream)
    assert stream.getvalue() == "x\na\ny\n"


def test_read_heredoc_without_delimiters():
    stream = io.StringIO()
    reader = reader_from(["x"])
    read_heredoc([], reader, stream)
    assert stream.getvalue() == ""
    assert reader.prompts == []


def test_command_is_empty_property():
    assert Command().is_empty
    assert not Command(command="ls").is_empty
    assert not Command(heredocs=["EOF"]).is_empty


def test_pipeline_close_closes_streams():
    first = io.StringIO()
    second = io.StringIO()
    pipeline = Pipeline([Command(stdin=first), Command(stdout=second)])
    pipeline.close()
    assert first.closed and second.closed


def test_redirection_error_carries_status():
    error = RedirectionError("message", 258)
    assert error.status == 258
    assert error.fatal is True
    assert str(error) == "message"