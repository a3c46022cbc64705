"""Gmail import HTTP routes (user and admin)."""
