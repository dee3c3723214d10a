"""Build and run Go feature-suite test runners, with run flags, a formatter registry and colour helpers."""

__version__ = "0.12.0"