"""Command-line interface for the podcast library service."""
