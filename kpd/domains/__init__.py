"""Business domains of the KPD service."""
