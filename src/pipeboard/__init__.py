"""Pipeboard - pipeline dashboard state from build events."""
