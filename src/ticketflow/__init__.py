"""ticketflow: dependency-aware ticket tracking backed by a versioned JSON file."""

__version__ = "0.2.0"
