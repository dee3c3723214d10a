# featurerun

`featurerun` builds a test runner executable for the Go package in the
current directory and runs it against feature files. It scans the package's
`_test.go` files for exported functions that take a `*TestSuiteContext` or
`*ScenarioContext` parameter, generates a `main` for the runner that
registers them, and compiles and links it with the Go toolchain.

A working `go` installation is needed for building and running: the package
calls `go mod tidy`, `go test -c -work`, and the toolchain's `compile` and
`link` tools.

## Installing

```
pip install featurerun
```

To run the package's own tests, install the `test` extra:

```
pip install "featurerun[test]"
pytest
```

## Command line

Run the command from the directory of the tested package:

```
featurerun run                       # build, run, then remove the runner
featurerun run features/eat.feature
featurerun run features/eat.feature:10
featurerun build                     # compile to featurerun.test (.exe on Windows)
featurerun build -o runner.test
featurerun version
```

`run` builds the runner, runs it with the remaining arguments, removes it,
and exits with the runner's exit status. The arguments after `run` are
handed to the runner unchanged. Options accepted by `run`:

| Option | Meaning |
| --- | --- |
| `--no-colors` | disable ANSI colours |
| `-c, --concurrency N` | run the suite with the given concurrency (default 1) |
| `-t, --tags EXPR` | filter scenarios by tags: `@wip`, `~@wip`, `@wip && ~@new`, `@wip,@undone` |
| `-f, --format NAME[:PATH]` | formatter for the report (default `pretty`) |
| `-d, --definitions` | print all available step definitions |
| `--stop-on-failure` | stop on the first failed scenario |
| `--strict` | fail the suite on pending or undefined steps |
| `--random[=SEED]` | shuffle scenario order; bare `--random` means seed `-1` (pick one) |

Boolean options may also be given as `--strict=false` and the like.

Called without a subcommand, `featurerun [options] [features]` behaves like
`run`; its hidden `--version` prints the version and `-o FILE` builds the
runner to `FILE` instead of running it.

## Library use

Run options and their flags (`featurerun.options`):

```python
from featurerun.options import Options, flag_set

opts = Options()
parser = flag_set(opts)        # sets concurrency=1, format="pretty" and binds the flags
parser.parse_args(["-f", "junit", "--random=42"])
assert opts.format == "junit" and opts.randomize == 42
```

`bind_run_cmd_flags(prefix, parser, opts)` binds the same flags with a
prefix on their long names to any `FlagParser`, and
`bind_command_line_flags(prefix, opts)` binds them to the process-wide parser
returned by `command_line_parser()`. `make_random_seed()` returns a seed
between 1 and 99998.

`featurerun.legacy_flags` offers the older single-dash flag set:
`legacy_flag_set(opts)`, `bind_flags(prefix, flag_set, opts)` onto a
`LegacyFlagSet`, and `usage(flag_set, output)`, which returns a function that
writes the coloured usage text, including every registered formatter.

Formatter registry (`featurerun.formatters`):

```python
from featurerun.formatters import register_format, find_fmt, available_formatters

register_format("mine", "my own output", lambda suite, out: None)
find_fmt("mine")          # the factory, or None for an unknown name
available_formatters()    # {"mine": "my own output"}
```

New formatters subclass the abstract `Formatter` class.

Colours (`featurerun.colors`):

```python
from featurerun.colors import bold, green, uncolored
import sys

print(bold(green)("passed"))
uncolored(sys.stdout).write(green("plain text"))
```

`uncolored(stream)` strips ANSI CSI sequences from what is written through
it; `colored(stream)` passes text through unchanged.

Builder pieces (`featurerun.builder`, `featurerun.goscan`): `build(bin_path)`
builds the runner and raises `BuildError` on failure; `import_package`,
`build_test_main`, `build_temp_file` and `process_package_test_files` expose
the steps; `goscan.ast_contexts(source, select_name)` lists the functions in
Go source text that take a `*select_name` parameter.

## What it does not do

The package does not parse or execute feature files itself: scenarios run
inside the compiled Go runner. The formatter registry starts empty; the
formatter names listed in the `--format` help (`progress`, `cucumber`,
`events`, `junit`, `pretty`) are provided by the runner, not registered in
this package.