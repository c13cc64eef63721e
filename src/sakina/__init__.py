"""Sakina: core logic for an anxiety companion app."""

__version__ = "0.1.0"
