"""Domain services for lending, items and administration."""
