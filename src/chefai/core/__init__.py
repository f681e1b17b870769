"""Core configuration, errors and state publishing."""
