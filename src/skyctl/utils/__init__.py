"""Shared utilities for the skyctl CLI."""
