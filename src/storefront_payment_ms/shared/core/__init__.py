"""Shared core module - Settings and logging."""
