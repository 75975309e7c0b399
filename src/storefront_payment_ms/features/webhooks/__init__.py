"""Inbound gateway webhooks."""
