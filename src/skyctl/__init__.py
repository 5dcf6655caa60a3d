"""skyctl - operator CLI for multi-service cloud accounts."""

__version__ = "0.6.0"
