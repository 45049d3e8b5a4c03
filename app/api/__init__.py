"""HTTP API for Atlantic Pool."""
