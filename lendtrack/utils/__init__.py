"""Utility helpers for Lendtrack."""
