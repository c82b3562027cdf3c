"""goog-cli: a command-line tool for multiple Google accounts."""

from goog_cli.__version__ import __version__

__all__ = ["__version__"]
