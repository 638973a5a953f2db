"""Entrypoints - Outer surfaces of the system."""
