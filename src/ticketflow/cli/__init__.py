"""Typer CLI and rich output helpers."""
