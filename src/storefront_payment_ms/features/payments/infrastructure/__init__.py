"""Payment infrastructure - gateways, clients and persistence."""
