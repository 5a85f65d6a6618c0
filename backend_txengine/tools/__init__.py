"""Command-line debug tools."""
