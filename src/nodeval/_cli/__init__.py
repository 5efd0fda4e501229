"""Command line interface for nodeval."""
