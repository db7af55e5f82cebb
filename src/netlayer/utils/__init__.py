"""Shared utilities: counters, channels, disk access, logging and sanitization."""
