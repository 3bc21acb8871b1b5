"""Pathing — marker pack ingestion and query engine."""
