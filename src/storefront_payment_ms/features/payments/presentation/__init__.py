"""Payment HTTP presentation layer."""
