"""Core infrastructure: logging, errors, configuration and constants."""
