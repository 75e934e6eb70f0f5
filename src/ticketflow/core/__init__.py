"""Ticket models, dependency validation and the ticket service."""
