"""
PURPOSE: Export configuration settings for the strategy service.
"""

from .settings import Settings, settings

__all__ = ["Settings", "settings"]
