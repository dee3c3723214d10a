"""Older single-dash flag set, with its own option spellings and usage text."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Any, Callable, Iterator, NamedTuple, NoReturn, Optional, Sequence, TextIO

from .colors import green, yellow
from .formatters import available_formatters
from .options import Options, make_random_seed

_TRUE_WORDS = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_WORDS = frozenset({"0", "f", "F", "FALSE", "false", "False"})


def _s(n: int) -> str:
    return " " * n


DESC_FEATURES_ARGUMENT = (
    "Optional feature(s) to run. Can be:\n"
    + _s(4) + "- dir " + yellow("(features/)") + "\n"
    + _s(4) + "- feature " + yellow("(*.feature)") + "\n"
    + _s(4) + "- scenario at specific line " + yellow("(*.feature:10)") + "\n"
    + "If no feature paths are listed, suite tries " + yellow("features") + " path by default.\n"
)

DESC_CONCURRENCY_OPTION = (
    "Run the test suite with concurrency level:\n"
    + _s(4) + "- " + yellow("= 1") + ": supports all types of formats.\n"
    + _s(4) + "- " + yellow(">= 2") + ": only supports " + yellow("progress") + ". Note, that\n"
    + _s(4) + "your context needs to support parallel execution."
)

DESC_TAGS_OPTION = (
    "Filter scenarios by tags. Expression can be:\n"
    + _s(4) + "- " + yellow('"@wip"') + ": run all scenarios with wip tag\n"
    + _s(4) + "- " + yellow('"~@wip"') + ": exclude all scenarios with wip tag\n"
    + _s(4) + "- " + yellow('"@wip && ~@new"') + ": run wip scenarios, but exclude new\n"
    + _s(4) + "- " + yellow('"@wip,@undone"') + ": run wip or undone scenarios"
)

DESC_RANDOM_OPTION = (
    "Randomly shuffle the scenario execution order.\n"
    "Specify SEED to reproduce the shuffling from a previous run.\n"
    + _s(4) + "e.g. " + yellow("--random") + " or " + yellow("--random=5738")
)


class FlagError(ValueError):
    """Raised when command-line flags cannot be parsed."""


def _parse_bool(text: str) -> bool:
    if text in _TRUE_WORDS:
        return True
    if text in _FALSE_WORDS:
        return False
    raise ValueError(f"parsing {text!r}: invalid syntax")


class _OptionValue:
    """A flag value stored in one attribute of an options object."""

    def __init__(self, opts: Options, attr: str, convert: Callable[[str], Any], is_bool: bool) -> None:
        self.opts = opts
        self.attr = attr
        self.convert = convert
        self.is_bool = is_bool

    def set(self, value: str) -> None:
        setattr(self.opts, self.attr, self.convert(value))

    def is_bool_flag(self) -> bool:
        return self.is_bool

    def __str__(self) -> str:
        current = getattr(self.opts, self.attr)
        if isinstance(current, bool):
            return "true" if current else "false"
        return str(current)


class RandomSeed:
    """The ``random`` flag value: a seed, ``true`` for a fresh one, ``false`` for none."""

    def __init__(self, opts: Optional[Options]) -> None:
        self.opts = opts

    def set(self, value: str) -> None:
        """Set the seed from ``value``; raise ValueError if it is not a number."""
        if value == "true":
            self.opts.randomize = make_random_seed()
            return
        if value == "false":
            self.opts.randomize = 0
            return
        try:
            self.opts.randomize = int(value, 10)
        except ValueError:
            self.opts.randomize = 0
            raise

    def is_bool_flag(self) -> bool:
        """A bare ``-random`` is allowed while no seed is set."""
        return self.opts.randomize == 0

    def __str__(self) -> str:
        if self.opts is None:
            return "0"
        return str(self.opts.randomize)


class _Flag(NamedTuple):
    name: str
    usage: str
    value: Any
    def_value: str


@dataclass
class Flagged:
    """One option in the usage listing, joining its short and long names."""

    short: str = ""
    long: str = ""
    descr: str = ""
    dflt: str = ""

    def name(self) -> str:
        """Return the option's names as shown in the usage text."""
        if self.short and self.long:
            name = f"-{self.short}, --{self.long}"
        elif self.long:
            name = f"--{self.long}"
        elif self.short:
            name = f"-{self.short}"
        else:
            name = ""

        if self.long == "random":
            # the seed is picked at run time, so its default would only confuse
            name += "[=SEED]"
        elif self.dflt not in ("true", "false"):
            name += "=" + self.dflt
        return name


class LegacyFlagSet:
    """A set of named flags parsed from ``-name``, ``--name`` and ``-name=value`` forms.

    Parsing stops at the first argument that is not a flag, or after ``--``.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self.exit_on_error = False
        self.output: Optional[TextIO] = None
        self.usage: Callable[[], None] = self._default_usage
        self.args: list[str] = []
        self._flags: dict[str, _Flag] = {}

    def _out(self) -> TextIO:
        return self.output if self.output is not None else sys.stderr

    def _define(self, name: str, value: Any, usage: str) -> None:
        if name in self._flags:
            raise ValueError(f"{self.name} flag redefined: {name}")
        self._flags[name] = _Flag(name, usage, value, str(value))

    def _default_usage(self) -> None:
        out = self._out()
        out.write(f"Usage of {self.name}:\n" if self.name else "Usage:\n")
        for flag in self.visit_all():
            out.write(f"  -{flag.name}\n    \t{flag.usage}\n")

    def _fail(self, message: str, help_requested: bool = False) -> NoReturn:
        if not help_requested:
            self._out().write(message + "\n")
        self.usage()
        if self.exit_on_error:
            raise SystemExit(0 if help_requested else 2)
        raise FlagError(message)

    def visit_all(self) -> Iterator[_Flag]:
        """Yield every defined flag in name order."""
        for name in sorted(self._flags):
            yield self._flags[name]

    def parse(self, args: Sequence[str]) -> list[str]:
        """Parse flags from ``args``; return and keep the arguments left over."""
        remaining = list(args)
        while remaining:
            arg = remaining[0]
            if len(arg) < 2 or arg[0] != "-":
                break
            if arg == "--":
                remaining.pop(0)
                break
            remaining.pop(0)
            name = arg[2:] if arg[1] == "-" else arg[1:]
            if not name or name[0] in "-=":
                self._fail(f"bad flag syntax: {arg}")

            name, sep, value = name.partition("=")
            has_value = bool(sep)
            flag = self._flags.get(name)
            if flag is None:
                if name in ("help", "h"):
                    self._fail("flag: help requested", help_requested=True)
                self._fail(f"flag provided but not defined: -{name}")

            if flag.value.is_bool_flag():
                try:
                    flag.value.set(value if has_value else "true")
                except ValueError as exc:
                    if has_value:
                        self._fail(f'invalid boolean value "{value}" for -{name}: {exc}')
                    self._fail(f"invalid boolean flag {name}: {exc}")
                continue

            if not has_value:
                if not remaining:
                    self._fail(f"flag needs an argument: -{name}")
                value = remaining.pop(0)
            try:
                flag.value.set(value)
            except ValueError as exc:
                self._fail(f'invalid value "{value}" for flag -{name}: {exc}')

        self.args = remaining
        return remaining


def _bind(
    flag_set: LegacyFlagSet,
    opts: Options,
    attr: str,
    names: Sequence[str],
    default: Any,
    usage_text: str,
    convert: Callable[[str], Any],
    is_bool: bool = False,
) -> None:
    for name in names:
        setattr(opts, attr, default)
        flag_set._define(name, _OptionValue(opts, attr, convert, is_bool), usage_text)


def bind_flags(prefix: str, flag_set: LegacyFlagSet, opts: Options) -> None:
    """Bind the flags, prefixed by ``prefix``, onto ``opts`` without touching usage."""
    formats = "".join(
        f"{_s(4)}- {yellow(name)}: {desc}\n"
        for name, desc in sorted(available_formatters().items())
    )
    desc_format = ("How to format tests output. Built-in formats:\n" + formats).strip()

    _bind(flag_set, opts, "format", [prefix + "format", prefix + "f"],
          opts.format or "pretty", desc_format, str)
    _bind(flag_set, opts, "tags", [prefix + "tags", prefix + "t"],
          opts.tags, DESC_TAGS_OPTION, str)
    _bind(flag_set, opts, "concurrency", [prefix + "concurrency", prefix + "c"],
          opts.concurrency or 1, DESC_CONCURRENCY_OPTION, lambda text: int(text, 0))
    _bind(flag_set, opts, "show_step_definitions", [prefix + "definitions", prefix + "d"],
          opts.show_step_definitions, "Print all available step definitions.", _parse_bool, True)
    _bind(flag_set, opts, "stop_on_failure", [prefix + "stop-on-failure"],
          opts.stop_on_failure, "Stop processing on first failed scenario.", _parse_bool, True)
    _bind(flag_set, opts, "strict", [prefix + "strict"],
          opts.strict, "Fail suite when there are pending or undefined steps.", _parse_bool, True)
    _bind(flag_set, opts, "no_colors", [prefix + "no-colors"],
          opts.no_colors, "Disable ansi colors.", _parse_bool, True)
    flag_set._define(prefix + "random", RandomSeed(opts), DESC_RANDOM_OPTION)


def usage(flag_set: LegacyFlagSet, output: Optional[Any]) -> Callable[[], None]:
    """Return a function that writes the usage text for ``flag_set`` to ``output``."""

    def print_usage() -> None:
        out = output if output is not None else sys.stderr
        entries: list[Flagged] = []
        for flag in flag_set.visit_all():
            entry = next((e for e in entries if e.descr == flag.usage), None)
            if entry is None:
                entry = Flagged(descr=flag.usage, dflt=flag.def_value)
                entries.append(entry)
            if len(flag.name) > 2:
                entry.long = flag.name
            else:
                entry.short = flag.name

        longest = max((len(entry.name()) for entry in entries), default=0)

        def opt(name: str, desc: str) -> str:
            first, *rest = desc.split("\n")
            lines = [_s(2) + green(name) + _s(longest + 2 - len(name)) + first]
            lines.extend(_s(2) + _s(longest + 2) + line for line in rest)
            return "\n".join(lines)

        out.write(yellow("Usage:") + "\n")
        out.write(_s(2) + "featurerun [options] [<features>]\n\n")
        out.write("Builds a test package and runs given feature files.\n")
        out.write(
            "Command should be run from the directory of tested package "
            "and contain buildable go source.\n\n"
        )
        out.write(yellow("Arguments:") + "\n")
        out.write(opt("features", DESC_FEATURES_ARGUMENT) + "\n")
        out.write(yellow("Options:") + "\n")
        for entry in entries:
            out.write(opt(entry.name(), entry.descr) + "\n")
        out.write("\n")

    return print_usage


def legacy_flag_set(opts: Options) -> LegacyFlagSet:
    """Return a flag set bound onto ``opts`` that exits on bad flags."""
    flag_set = LegacyFlagSet("featurerun")
    flag_set.exit_on_error = True
    bind_flags("", flag_set, opts)
    flag_set.usage = usage(flag_set, opts.output)
    return flag_set