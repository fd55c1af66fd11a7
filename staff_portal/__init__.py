"""Restaurant staff portal API."""
