"""Formatter interface and the registry of named output formatters."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional, TextIO


@dataclass
class StepDefinition:
    """A registered step: the pattern it matches and its handler."""

    expr: re.Pattern
    handler: Callable[..., Any]


class Formatter(ABC):
    """Receives suite events and presents the results."""

    @abstractmethod
    def test_run_started(self) -> None:
        """Called once before any feature runs."""

    @abstractmethod
    def feature(self, document: Any, uri: str, content: bytes) -> None:
        """Called when a feature file starts."""

    @abstractmethod
    def pickle(self, pickle: Any) -> None:
        """Called when a scenario starts."""

    @abstractmethod
    def defined(self, pickle: Any, step: Any, definition: Optional[StepDefinition]) -> None:
        """Called when a step is matched to a definition."""

    @abstractmethod
    def failed(
        self,
        pickle: Any,
        step: Any,
        definition: Optional[StepDefinition],
        error: BaseException,
    ) -> None:
        """Called when a step fails."""

    @abstractmethod
    def passed(self, pickle: Any, step: Any, definition: Optional[StepDefinition]) -> None:
        """Called when a step passes."""

    @abstractmethod
    def skipped(self, pickle: Any, step: Any, definition: Optional[StepDefinition]) -> None:
        """Called when a step is skipped."""

    @abstractmethod
    def undefined(self, pickle: Any, step: Any, definition: Optional[StepDefinition]) -> None:
        """Called when a step has no definition."""

    @abstractmethod
    def pending(self, pickle: Any, step: Any, definition: Optional[StepDefinition]) -> None:
        """Called when a step is pending."""

    @abstractmethod
    def summary(self) -> None:
        """Called once after the run to print the summary."""


FormatterFactory = Callable[[str, TextIO], Optional[Formatter]]


@dataclass(frozen=True)
class _RegisteredFormatter:
    name: str
    description: str
    factory: FormatterFactory


_registry: list[_RegisteredFormatter] = []


def find_fmt(name: str) -> Optional[FormatterFactory]:
    """Return the first factory registered under ``name``, or None."""
    return next((entry.factory for entry in _registry if entry.name == name), None)


def register_format(name: str, description: str, factory: FormatterFactory) -> None:
    """Register a formatter factory under a name with a description."""
    _registry.append(_RegisteredFormatter(name, description, factory))


def available_formatters() -> dict[str, str]:
    """Map every registered formatter name to its description."""
    return {entry.name: entry.description for entry in _registry}