"""Relay open tracker issues into chat channels and resolve them from chat."""

__version__ = "0.1.0"
