"""Persistence backends and repositories."""
