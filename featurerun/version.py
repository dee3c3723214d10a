"""Package version information."""

VERSION = "v0.12.0"


def version_string() -> str:
    """Return the line printed by the ``version`` command."""
    return f"Featurerun version is: {VERSION}"