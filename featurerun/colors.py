"""ANSI colour helpers and writers that keep or strip colour codes."""

from __future__ import annotations

from enum import IntEnum
from typing import Any, Callable, TextIO

ANSI_ESCAPE = "\x1b"

ColorFunc = Callable[[Any], str]


class Color(IntEnum):
    """ANSI foreground colour codes."""

    BLACK = 30
    RED = 31
    GREEN = 32
    YELLOW = 33
    BLUE = 34
    MAGENTA = 35
    CYAN = 36
    WHITE = 37


def colorize(value: Any, color: Color) -> str:
    """Wrap ``value`` in the escape codes for ``color`` and a reset."""
    return f"{ANSI_ESCAPE}[{int(color)}m{value}{ANSI_ESCAPE}[0m"


def bold(fn: ColorFunc) -> ColorFunc:
    """Return a colour function that also makes its text bold."""

    def _bold(value: Any) -> str:
        return fn(value).replace(ANSI_ESCAPE + "[", ANSI_ESCAPE + "[1;", 1)

    return _bold


def green(value: Any) -> str:
    """Return ``value`` coloured green."""
    return colorize(value, Color.GREEN)


def red(value: Any) -> str:
    """Return ``value`` coloured red."""
    return colorize(value, Color.RED)


def cyan(value: Any) -> str:
    """Return ``value`` coloured cyan."""
    return colorize(value, Color.CYAN)


def black(value: Any) -> str:
    """Return ``value`` coloured black."""
    return colorize(value, Color.BLACK)


def yellow(value: Any) -> str:
    """Return ``value`` coloured yellow."""
    return colorize(value, Color.YELLOW)


def white(value: Any) -> str:
    """Return ``value`` coloured white."""
    return colorize(value, Color.WHITE)


class UncoloredWriter:
    """A text writer that drops ANSI CSI escape sequences before writing.

    Escape sequences cut off at the end of a write, and an escape character
    not followed by ``[``, are held back and never written; the number
    returned by :meth:`write` leaves them out.
    """

    def __init__(self, out: TextIO) -> None:
        self.out = out
        self._held: list[str] = []

    def write(self, data: str) -> int:
        """Write ``data`` without colour codes; return the characters consumed."""
        kept: list[str] = []
        chars = iter(data)
        for first in chars:
            if first != ANSI_ESCAPE:
                kept.append(first)
                continue
            second = next(chars, None)
            if second is None:
                self._held.append(first)
                break
            if second != "[":
                self._held.extend((first, second))
                continue
            params: list[str] = []
            terminated = False
            for ch in chars:
                if ch.isascii() and (ch.isalpha() or ch == "@"):
                    terminated = True
                    break
                params.append(ch)
            if not terminated:
                self._held.extend((first, second, *params))
                break
        if kept:
            self.out.write("".join(kept))
        return len(data) - len(self._held)


class ColoredWriter:
    """A text writer that passes colour codes through to the terminal."""

    def __init__(self, out: TextIO) -> None:
        self.out = out

    def write(self, data: str) -> int:
        """Write ``data`` unchanged; return the number of characters written."""
        written = self.out.write(data)
        return len(data) if written is None else written


def uncolored(out: TextIO) -> UncoloredWriter:
    """Wrap ``out`` in a writer that strips colours."""
    return UncoloredWriter(out)


def colored(out: Any) -> ColoredWriter:
    """Wrap ``out`` in a colour-preserving writer, unless it already is one."""
    if isinstance(out, ColoredWriter):
        return out
    return ColoredWriter(out)