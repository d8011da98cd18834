"""Web API for the Skoo backend."""
