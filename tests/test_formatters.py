import re

import pytest

from featurerun import formatters
from featurerun.formatters import (
    Formatter,
    StepDefinition,
    available_formatters,
    find_fmt,
    register_format,
)

BUILT_IN = {
    "cucumber": "Produces cucumber JSON format output.",
    "events": "Produces JSON event stream, based on spec: 0.1.0.",
    "junit": "Prints junit compatible xml to stdout",
    "pretty": "Prints every feature with runtime statuses.",
    "progress": "Prints a character per step.",
}


def _record_started(self):
    self.events.append("started")


class RecordingFormatter(Formatter):
    def __init__(self, suite, out):
        self.suite = suite
        self.out = out
        self.events = []

    test_run_started = _record_started

    def feature(self, document, uri, content):
        self.events.append(("feature", uri))

    def pickle(self, pickle):
        self.events.append(("pickle", pickle))

    def defined(self, pickle, step, definition):
        self.events.append("defined")

    def failed(self, pickle, step, definition, error):
        self.events.append(("failed", str(error)))

    def passed(self, pickle, step, definition):
        self.events.append("passed")

    def skipped(self, pickle, step, definition):
        self.events.append("skipped")

    def undefined(self, pickle, step, definition):
        self.events.append("undefined")

    def pending(self, pickle, step, definition):
        self.events.append("pending")

    def summary(self):
        self.events.append("summary")


def _formatter_factory(suite_name, out):
    return None


@pytest.fixture(autouse=True)
def isolated_registry(monkeypatch):
    monkeypatch.setattr(formatters, "_registry", [])
    for name, desc in BUILT_IN.items():
        register_format(name, desc, RecordingFormatter)


@pytest.mark.parametrize(
    "name, expected",
    [
        ("cucumber", True),
        ("events", True),
        ("junit", True),
        ("pretty", True),
        ("progress", True),
        ("unknown", False),
        ("undef", False),
    ],
)
def test_find_fmt(name, expected):
    assert (find_fmt(name) is not None) == expected


def test_available_formatters():
    assert available_formatters() == BUILT_IN


def test_available_formatters_with_custom():
    register_format("custom", "custom format description", RecordingFormatter)
    expected = dict(BUILT_IN, custom="custom format description")
    assert available_formatters() == expected


def test_format_registers_new_formatter():
    assert find_fmt("Test_Format") is None
    register_format("Test_Format", "...", _formatter_factory)
    assert find_fmt("Test_Format") is _formatter_factory


def test_find_fmt_returns_first_registration():
    def other(suite, out):
        return None

    register_format("pretty", "replacement", other)
    assert find_fmt("pretty") is RecordingFormatter
    assert available_formatters()["pretty"] == "replacement"


def test_registered_factory_builds_formatter():
    factory = find_fmt("progress")
    fmt = factory("suite", None)
    fmt.test_run_started()
    fmt.failed(None, None, None, ValueError("boom"))
    fmt.summary()
    assert fmt.suite == "suite"
    assert fmt.events == ["started", ("failed", "boom"), "summary"]


def test_incomplete_formatter_cannot_be_instantiated():
    class Partial(Formatter):
        def summary(self):
            pass

    register_format("partial", "incomplete", Partial)
    factory = find_fmt("partial")
    assert factory is Partial
    with pytest.raises(TypeError):
        factory()


def test_step_definition_holds_pattern_and_handler():
    def handler(count):
        return int(count)

    definition = StepDefinition(re.compile(r"^there are (\d+) godogs$"), handler)
    match = definition.expr.match("there are 12 godogs")
    assert definition.handler(*match.groups()) == 12