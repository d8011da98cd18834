"""Prompt templates bundled with the package."""
