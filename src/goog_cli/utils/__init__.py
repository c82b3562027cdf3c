"""Shared helpers for goog-cli."""
