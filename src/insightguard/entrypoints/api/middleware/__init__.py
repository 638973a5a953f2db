"""API middleware and security dependencies."""
