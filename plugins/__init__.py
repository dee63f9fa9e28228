"""Payment processor plugins."""
