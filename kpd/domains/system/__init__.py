"""System endpoints (health, statistics)."""
