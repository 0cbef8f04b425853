"""Domain types, configuration and shared helpers."""
