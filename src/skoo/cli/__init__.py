"""Command-line interface for the Skoo backend."""
