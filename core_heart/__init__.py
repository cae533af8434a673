"""Core heart: breath -> purify -> meeting -> central memory, plus the ha-coin ledgers."""

__version__ = "0.1.0"
