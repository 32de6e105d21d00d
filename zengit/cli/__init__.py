"""Command-line interface for zengit."""
