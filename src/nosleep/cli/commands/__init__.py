"""nosleep CLI command groups."""
