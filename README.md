# minishell

A small interactive command shell. It reads a line at the `minishell : `
prompt and expands variables and quotes. It sets up pipes and redirections.
Then it runs either a built-in command or a program found on `PATH`.

## Installing

```
pip install .
```

## Running

```
minishell
```

Type commands at the prompt. Command-line arguments are ignored.

- Ctrl-D at the prompt leaves the shell with status 0.
- Ctrl-C throws away the line being typed and gives a fresh prompt. It also
  sets the exit status to 1.
- Ctrl-C while a command runs sets the status to 130.
- Ctrl-\ is ignored by the shell. Programs it starts get the default
  behaviour back.

## What it understands

- Pipelines: `ls -l | grep py | wc -l`
- Redirections: `< file`, `> file`, `>> file`
- Here-documents: `cat << END`. The shell reads lines at a `> ` prompt until
  it sees `END`. The delimiter is taken literally and `$` in it is not
  expanded. The text is stored in a temporary file in the system temporary
  directory while it is read.
- Quotes: single quotes keep their text exactly as written. Double quotes
  still expand variables.
- Variables: `$NAME`, `$?` for the last exit status, and `$0`, which expands
  to `minishell`.

An unquoted variable that expands to nothing is dropped from the argument
list. A redirection whose target is empty is reported as an ambiguous
redirect.

A command that cannot be found is reported as `command not found` and gets
status 127. When `PATH` is unset, a command gives `No such file or
directory` and status 1, unless the working directory is `/bin`.

Syntax errors set the exit status to 258. An unclosed quote is reported as
an error.

## Built-in commands

| Command  | What it does                                               |
|----------|------------------------------------------------------------|
| `echo`   | prints its arguments; `-n` (or `-nnn`) drops the newline   |
| `cd`     | changes directory; with no argument or `~` it goes to `$HOME`; it updates `PWD` |
| `pwd`    | prints the working directory                               |
| `env`    | prints the variables that have a value                     |
| `export` | sets variables; `NAME+=value` appends; with no arguments it sorts every variable and lists it as `declare -x` |
| `unset`  | removes variables                                          |
| `exit`   | leaves the shell with the given status, taken modulo 256. With no argument the status is 1. A non-numeric argument gives 255. |

When a built-in command runs on its own, it acts on the shell itself. Inside
a pipeline it works on a copy, so `cd` or `export` there leaves the shell
unchanged.

## History

Each non-empty line you enter is appended to `minishell_history` in the
system temporary directory. The file is read back when the shell starts. When
the standard `readline` module is available, the lines are loaded into its
line-editing history.

## Using it from Python

```python
from minishell.shell import Shell

shell = Shell()
status = shell.run_line("echo hello | tr a-z A-Z")
```

`Shell` takes these optional arguments:

- `environ`: the starting variables. It defaults to `os.environ`.
- `read_line`: a function that takes a prompt and returns a line, or None at
  end of input.
- `history_path`: the history file.
- `heredoc_path`: the temporary file for here-documents.

`Shell.run_line()` returns the exit status. It lets
`minishell.builtins.ShellExit` through when the line runs `exit`.
`Shell.run()` starts the loop and returns the final status.
`minishell.shell.main()` is what the `minishell` command calls.

The stages can also be used on their own:

- `minishell.lexer.parse()` turns a line into words.
- `minishell.commands.build_pipeline()` groups the words into commands and
  opens their redirections.
- `minishell.executor.run_pipeline()` runs the pipeline.

## What it does not do

It has none of these:

- `;`, `&&` or `||`
- subshells or background jobs
- filename wildcards
- numbered redirections such as `2>`
- scripts given as arguments or as a file

Each line holds a single pipeline.