"""Webhook HTTP presentation layer."""
