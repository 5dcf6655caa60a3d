"""Packaged resources for skyctl."""
