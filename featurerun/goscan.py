"""Find suite context functions declared in Go source text."""

from __future__ import annotations

import re
from typing import Iterator, NamedTuple, Optional, Sequence

_OPENERS = {"(": ")", "[": "]", "{": "}"}
_CLOSERS = frozenset(_OPENERS.values())
_TYPE_KEYWORDS = frozenset({"chan", "map", "func", "interface", "struct"})
_SELECTOR_PACKAGE = "godog"

_LEXEME = re.compile(
    r"""
      (?P<ws>[ \t\r\f]+)
    | (?P<nl>\n)
    | (?P<line_comment>//[^\n]*)
    | (?P<block_comment>/\*.*?\*/)
    | (?P<raw>`[^`]*`)
    | (?P<str>"(?:\\.|[^"\\\n])*")
    | (?P<rune>'(?:\\.|[^'\\\n])*')
    | (?P<bad>/\*|["'`])
    | (?P<ident>[^\W\d]\w*)
    | (?P<number>(?:\d|\.\d)(?:[eEpP][+-]|[\w.])*)
    | (?P<ellipsis>\.\.\.)
    | (?P<op>[^\s\w])
    """,
    re.VERBOSE | re.DOTALL,
)


class GoSyntaxError(ValueError):
    """Raised when Go source cannot be scanned."""


class _Lexeme(NamedTuple):
    kind: str
    text: str
    line: int
    newline_before: bool


def _lex(source: str) -> Iterator[_Lexeme]:
    pos = 0
    line = 1
    newline = False
    while pos < len(source):
        match = _LEXEME.match(source, pos)
        if match is None or match.lastgroup == "bad":
            raise GoSyntaxError(f"line {line}: unterminated literal or comment")
        kind = match.lastgroup
        text = match.group()
        pos = match.end()
        if kind in ("ws", "nl", "line_comment", "block_comment"):
            if "\n" in text:
                newline = True
                line += text.count("\n")
            continue
        yield _Lexeme(kind, text, line, newline)
        newline = False
        line += text.count("\n")


def _skip_group(items: Sequence[_Lexeme], start: int) -> int:
    """Return the index just past the bracket that closes the one at ``start``."""
    depth = 0
    for index in range(start, len(items)):
        text = items[index].text
        if items[index].kind != "op":
            continue
        if text in _OPENERS:
            depth += 1
        elif text in _CLOSERS:
            depth -= 1
            if depth == 0:
                return index + 1
    raise GoSyntaxError(f"line {items[start].line}: unbalanced '{items[start].text}'")


def _expect(items: Sequence[_Lexeme], index: int, what: str) -> _Lexeme:
    if index >= len(items):
        raise GoSyntaxError(f"unexpected end of file, expected {what}")
    return items[index]


def _func_signature(items: Sequence[_Lexeme], start: int) -> tuple[str, list[_Lexeme], int]:
    index = start + 1
    if _expect(items, index, "function name").text == "(":
        index = _skip_group(items, index)
    name_lex = _expect(items, index, "function name")
    if name_lex.kind != "ident":
        raise GoSyntaxError(f"line {name_lex.line}: expected function name")
    index += 1
    if _expect(items, index, "parameters").text == "[":
        index = _skip_group(items, index)
    if _expect(items, index, "parameters").text != "(":
        raise GoSyntaxError(f"line {items[index].line}: expected '('")
    end = _skip_group(items, index)
    return name_lex.text, list(items[index + 1 : end - 1]), end


def _split_params(params: Sequence[_Lexeme]) -> list[list[_Lexeme]]:
    groups: list[list[_Lexeme]] = [[]]
    depth = 0
    for lex in params:
        if lex.kind == "op" and lex.text in _OPENERS:
            depth += 1
        elif lex.kind == "op" and lex.text in _CLOSERS:
            depth -= 1
        elif lex.text == "," and depth == 0:
            groups.append([])
            continue
        groups[-1].append(lex)
    return [group for group in groups if group]


def _is_named(group: Sequence[_Lexeme]) -> bool:
    return (
        len(group) >= 2
        and group[0].kind == "ident"
        and group[0].text not in _TYPE_KEYWORDS
        and group[1].text != "."
    )


def _param_types(params: Sequence[_Lexeme]) -> list[list[str]]:
    groups = _split_params(params)
    if any(_is_named(group) for group in groups):
        return [[lex.text for lex in group[1:]] for group in groups if len(group) > 1]
    return [[lex.text for lex in group] for group in groups]


def ast_contexts(source: str, select_name: str) -> list[str]:
    """Return the names of functions taking a ``*select_name`` parameter.

    The parameter type may be unqualified or selected from the ``godog``
    package. A function is listed once for every such parameter field.
    """
    items = list(_lex(source))
    if len(items) < 2 or items[0].text != "package" or items[1].kind != "ident":
        raise GoSyntaxError("expected 'package' clause")

    wanted = (["*", select_name], ["*", _SELECTOR_PACKAGE, ".", select_name])
    contexts: list[str] = []
    depth = 0
    prev: Optional[_Lexeme] = None
    index = 0
    while index < len(items):
        lex = items[index]
        if lex.kind == "op" and lex.text in _OPENERS:
            depth += 1
        elif lex.kind == "op" and lex.text in _CLOSERS:
            depth -= 1
            if depth < 0:
                raise GoSyntaxError(f"line {lex.line}: unexpected '{lex.text}'")
        elif (
            lex.kind == "ident"
            and lex.text == "func"
            and depth == 0
            and (prev is None or lex.newline_before or prev.text == ";")
        ):
            name, params, index = _func_signature(items, index)
            contexts.extend(name for param_type in _param_types(params) if param_type in wanted)
            prev = items[index - 1]
            continue
        prev = lex
        index += 1

    if depth != 0:
        raise GoSyntaxError("unexpected end of file")
    return contexts