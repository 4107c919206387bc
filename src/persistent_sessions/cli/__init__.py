"""Command-line interface for persistent-sessions."""
