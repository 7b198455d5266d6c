"""Lendtrack: inventory lending tracker with an auditable history."""

__version__ = "0.1.0"
