"""Shared infrastructure: configuration, logging and errors."""
