"""Shared infrastructure module."""
