"""Command-line interface for registry sync."""
