"""Version information for goog-cli."""

from pathlib import Path


def _get_version() -> str:
    """Get version from a VERSION file next to the package or at the project root."""
    for candidate in (
        Path(__file__).parent / "VERSION",
        Path(__file__).parent.parent.parent / "VERSION",
    ):
        if candidate.exists():
            return candidate.read_text().strip()

    return "0.1.0"


__version__ = _get_version()
