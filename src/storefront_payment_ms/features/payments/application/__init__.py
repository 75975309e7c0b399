"""Payment application layer - ports and use cases."""
