"""Metric collection, loop scheduling and system orchestration."""
