"""Inspire: a motivational quotes service with optional AI generation."""

__version__ = "0.1.0"
