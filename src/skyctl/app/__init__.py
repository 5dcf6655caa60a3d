"""Dispatch core: command registry, pipeline, error taxonomy and lifecycle."""
