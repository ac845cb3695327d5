"""Dealflow: deal scoring engine and proposal intake lifecycle."""

__version__ = "0.1.0"
