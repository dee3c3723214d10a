"""Suite run options and the command-line flags that set them."""

from __future__ import annotations

import argparse
import random
import sys
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence, TextIO

_TRUE_WORDS = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_WORDS = frozenset({"0", "f", "F", "FALSE", "false", "False"})

TAGS_HELP = """filter scenarios by tags, expression can be:
  "@wip"           run all scenarios with wip tag
  "~@wip"          exclude all scenarios with wip tag
  "@wip && ~@new"  run wip scenarios, but exclude new
  "@wip,@undone"   run wip or undone scenarios"""

FORMAT_HELP = """will write a report according to the selected formatter

usage:
  -f <formatter>
  will use the formatter and write the report on stdout
  -f <formatter>:<file_path>
  will use the formatter and write the report to the file path

built-in formatters are:
  progress  prints a character per step
  cucumber  produces a Cucumber JSON report
  events    produces JSON event stream, based on spec: 0.1.0
  junit     produces JUnit compatible XML report
  pretty    prints every feature with runtime statuses
 """

RANDOM_HELP = """randomly shuffle the scenario execution order
  --random
specify SEED to reproduce the shuffling from a previous run
  --random=5738"""


@dataclass
class Options:
    """Suite run options; command-line flags are mapped onto these fields.

    ``randomize`` of 0 keeps the declared scenario order, -1 asks for a
    seed to be picked at run time, and any other value is used as the seed.
    """

    show_step_definitions: bool = False
    randomize: int = 0
    stop_on_failure: bool = False
    strict: bool = False
    no_colors: bool = False
    tags: str = ""
    format: str = ""
    concurrency: int = 0
    paths: list[str] = field(default_factory=list)
    output: Optional[TextIO] = None
    default_context: Any = None


def _parse_bool(text: str) -> bool:
    if text in _TRUE_WORDS:
        return True
    if text in _FALSE_WORDS:
        return False
    raise ValueError(f"invalid boolean value {text!r}")


def _parse_int(text: str) -> int:
    return int(text, 0)


def make_random_seed() -> int:
    """Return a pseudo-random seed between 1 and 99998, easy to type back in."""
    return random.randint(1, 99998)


class FlagParser(argparse.ArgumentParser):
    """Argument parser whose flags may be given bare or as ``--flag=value``.

    A flag bound with an implicit value takes that value when it appears
    without ``=``, and never consumes the argument that follows it.
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("allow_abbrev", False)
        super().__init__(*args, **kwargs)
        self._implicit: dict[str, str] = {}

    def _expand_implicit(self, argv: Sequence[str]) -> list[str]:
        expanded: list[str] = []
        items = iter(argv)
        for arg in items:
            if arg == "--":
                expanded.append(arg)
                expanded.extend(items)
                break
            implicit = self._implicit.get(arg)
            expanded.append(arg if implicit is None else f"{arg}={implicit}")
        return expanded

    def parse_known_args(self, args=None, namespace=None):  # type: ignore[override]
        argv = sys.argv[1:] if args is None else list(args)
        return super().parse_known_args(self._expand_implicit(argv), namespace)


class _BindAction(argparse.Action):
    """Store a converted flag value straight onto an options object."""

    def __init__(
        self,
        option_strings: Sequence[str],
        dest: str,
        target: Any = None,
        attr: str = "",
        convert: Callable[[str], Any] = str,
        **kwargs: Any,
    ) -> None:
        super().__init__(option_strings, dest, **kwargs)
        self.target = target
        self.attr = attr
        self.convert = convert

    def __call__(self, parser, namespace, values, option_string=None):
        try:
            value = self.convert(values)
        except ValueError as exc:
            parser.error(f'invalid argument "{values}" for "{option_string}" flag: {exc}')
        setattr(self.target, self.attr, value)


def _add_flag(
    parser: FlagParser,
    opts: Options,
    attr: str,
    names: Sequence[str],
    convert: Callable[[str], Any],
    help_text: str,
    implicit: Optional[str] = None,
    metavar: Optional[str] = None,
) -> None:
    parser.add_argument(
        *names,
        action=_BindAction,
        default=argparse.SUPPRESS,
        target=opts,
        attr=attr,
        convert=convert,
        help=help_text,
        metavar=metavar,
    )
    if implicit is not None:
        for name in names:
            parser._implicit[name] = implicit


def bind_run_cmd_flags(prefix: str, parser: FlagParser, opts: Options) -> None:
    """Bind the run flags, each long name prefixed by ``prefix``, onto ``opts``."""
    if not isinstance(parser, FlagParser):
        raise TypeError("flags can only be bound to a FlagParser")

    if opts.concurrency == 0:
        opts.concurrency = 1
    if opts.format == "":
        opts.format = "pretty"

    _add_flag(parser, opts, "no_colors", [f"--{prefix}no-colors"], _parse_bool,
              "disable ansi colors", implicit="true", metavar="BOOL")
    _add_flag(parser, opts, "concurrency", [f"--{prefix}concurrency", "-c"], _parse_int,
              "run the test suite with concurrency", metavar="INT")
    _add_flag(parser, opts, "tags", [f"--{prefix}tags", "-t"], str, TAGS_HELP, metavar="TAGS")
    _add_flag(parser, opts, "format", [f"--{prefix}format", "-f"], str, FORMAT_HELP,
              metavar="FORMAT")
    _add_flag(parser, opts, "show_step_definitions", [f"--{prefix}definitions", "-d"],
              _parse_bool, "print all available step definitions", implicit="true",
              metavar="BOOL")
    _add_flag(parser, opts, "stop_on_failure", [f"--{prefix}stop-on-failure"], _parse_bool,
              "stop processing on first failed scenario", implicit="true", metavar="BOOL")
    _add_flag(parser, opts, "strict", [f"--{prefix}strict"], _parse_bool,
              "fail suite when there are pending or undefined steps", implicit="true",
              metavar="BOOL")
    _add_flag(parser, opts, "randomize", [f"--{prefix}random"], _parse_int, RANDOM_HELP,
              implicit="-1", metavar="SEED")


def flag_set(opts: Options) -> FlagParser:
    """Return a new parser with the run flags bound onto ``opts``."""
    parser = FlagParser(prog="featurerun")
    bind_run_cmd_flags("", parser, opts)
    return parser


_command_line = FlagParser()


def command_line_parser() -> FlagParser:
    """Return the process-wide parser that command-line flags are bound to."""
    return _command_line


def bind_command_line_flags(prefix: str, opts: Options) -> None:
    """Bind the run flags, prefixed by ``prefix``, to the process-wide parser."""
    bind_run_cmd_flags(prefix, command_line_parser(), opts)