"""Command-line interface for goog-cli."""
