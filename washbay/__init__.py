"""Slot availability and booking allocation engine for car-wash partners."""

__version__ = "0.1.0"
