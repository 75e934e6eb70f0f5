"""Layered settings and config file loading."""
