"""Futures strategy rule extraction and validation service."""

__version__ = "0.1.0"
