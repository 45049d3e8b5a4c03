"""Domain services for Atlantic Pool."""
