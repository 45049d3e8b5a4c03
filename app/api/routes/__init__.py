"""API routers for Atlantic Pool."""
