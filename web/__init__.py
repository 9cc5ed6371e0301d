"""Health query surface."""
