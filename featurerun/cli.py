"""Command-line entry point: build, run and version commands."""

from __future__ import annotations

import argparse
import os
import subprocess
import sys
from typing import Optional, Sequence, TextIO

from . import builder
from .builder import BuildError
from .options import FlagParser, Options, bind_run_cmd_flags
from .version import version_string

PROG = "featurerun"
_COMMANDS = ("build", "run", "version")

_ROOT_DESCRIPTION = """Creates and runs test runner for the given feature files.
Command should be run from the directory of tested package
and contain buildable go source."""

_BUILD_DESCRIPTION = """Compiles a test runner. Command should be run from the directory of tested
package and contain buildable go source.

The test runner can be executed with the same flags as when using featurerun run."""

_RUN_DESCRIPTION = """Compiles and runs test runner for the given feature files.
Command should be run from the directory of tested package and contain
buildable go source."""

_RUN_EXAMPLE = """examples:
  featurerun run
  featurerun run <feature>
  featurerun run <feature> <feature>

  Optional feature(s) to run:
    dir (features/)
    feature (*.feature)
    scenario at specific line (*.feature:10)
  If no feature arguments are supplied, featurerun will use "features/" by default."""


def default_build_output() -> str:
    """Return the file name the runner is compiled to by default."""
    name = "featurerun.test"
    if sys.platform.startswith("win"):
        name += ".exe"
    return name


def _add_root_flags(parser: FlagParser) -> Options:
    """Bind the root command's flags, all hidden from its help text."""
    opts = Options()
    parser.add_argument("--output", "-o", dest="output", default="",
                        help="compiles the test runner to the named file")
    parser.add_argument("--version", dest="show_version", action="store_true",
                        help="show current version")
    bind_run_cmd_flags("", parser, opts)
    for action in parser._actions:
        if not isinstance(action, argparse._HelpAction):
            action.help = argparse.SUPPRESS
    parser.set_defaults(options=opts, command=None)
    return opts


def _legacy_parser() -> FlagParser:
    """Parser for the root command used directly with feature arguments."""
    parser = FlagParser(prog=PROG, description=_ROOT_DESCRIPTION)
    _add_root_flags(parser)
    parser.add_argument("features", nargs="*", help=argparse.SUPPRESS)
    return parser


def create_parser() -> FlagParser:
    """Return the root parser with the build, run and version subcommands."""
    parser = FlagParser(
        prog=PROG,
        description=_ROOT_DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    _add_root_flags(parser)
    commands = parser.add_subparsers(dest="command", metavar="command")

    build_parser = commands.add_parser(
        "build",
        help="Compiles a test runner",
        description=_BUILD_DESCRIPTION,
        epilog=f"examples:\n  {PROG} build\n  {PROG} build -o {default_build_output()}",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    build_parser.add_argument(
        "--output", "-o", dest="output", default=default_build_output(),
        help="compiles the test runner to the named file",
    )

    run_parser = commands.add_parser(
        "run",
        help="Compiles and runs a test runner",
        description=_RUN_DESCRIPTION,
        epilog=_RUN_EXAMPLE,
        formatter_class=argparse.RawTextHelpFormatter,
    )
    run_opts = Options()
    bind_run_cmd_flags("", run_parser, run_opts)
    run_parser.add_argument("features", nargs="*", help="feature paths to run")
    run_parser.set_defaults(options=run_opts)

    commands.add_parser("version", help="Show current version")
    return parser


def build_command(output: str) -> int:
    """Compile the runner to ``output``; return the exit status."""
    bin_path = os.path.abspath(output)
    try:
        builder.build(bin_path)
    except (BuildError, OSError) as exc:
        print("could not build binary at:", output, exc, file=sys.stderr)
        return 1
    return 0


def version_command(out: Optional[TextIO] = None) -> int:
    """Print the version line; return the exit status."""
    stream = sys.stdout if out is None else out
    stream.write(version_string() + "\n")
    return 0


def run_runner(bin_path: str, args: Sequence[str]) -> int:
    """Run the compiled runner with ``args`` and return its exit status.

    Raises OSError when the runner cannot be started.
    """
    proc = subprocess.run([bin_path, *args], env=dict(os.environ), check=False)
    if proc.returncode < 0:
        # terminated by a signal: no exit status of its own
        return -1
    return proc.returncode


def build_and_run(args: Sequence[str]) -> int:
    """Build the runner, run it with ``args`` and remove it afterwards."""
    bin_path = os.path.abspath(default_build_output())
    builder.build(bin_path)
    try:
        return run_runner(bin_path, args)
    finally:
        try:
            os.remove(bin_path)
        except OSError:
            pass


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Parse the command line and dispatch; return the process exit status."""
    args = list(sys.argv[1:] if argv is None else argv)

    if args and args[0] in _COMMANDS:
        namespace = create_parser().parse_args(args)
    else:
        namespace = _legacy_parser().parse_args(args)

    if namespace.command == "version":
        return version_command(sys.stdout)
    if namespace.command == "build":
        return build_command(namespace.output)
    if namespace.command is None:
        if namespace.show_version:
            return version_command(sys.stdout)
        if namespace.output:
            return build_command(namespace.output)

    run_args = args[1:] if args and args[0] == "run" else args
    try:
        return build_and_run(run_args)
    except (BuildError, OSError) as exc:
        print(exc, file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())