"""Escape-time iteration and work partitioning."""
