"""Business logic and persistence."""
