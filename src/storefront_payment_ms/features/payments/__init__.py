"""Payments feature - gateways, checkout and capture."""
