"""
PURPOSE: Version information for the strategy service.

Combines the package version with the pattern registry version that saved
strategies are stamped with. The result is cached after the first call.
"""

from typing import Any, Dict, Optional

from strategy_core import __version__
from strategy_core.strategy_builder.patterns import REGISTRY_VERSION, CanonicalPattern

_version_cache: Optional[Dict[str, Any]] = None


def get_version() -> Dict[str, Any]:
    """
    PURPOSE: Retrieve version information.

    Returns:
        Dict[str, Any]: version, registry_version and supported patterns.
    """
    global _version_cache

    if _version_cache is not None:
        return _version_cache

    _version_cache = {
        "version": __version__,
        "registry_version": REGISTRY_VERSION,
        "patterns": [pattern.value for pattern in CanonicalPattern],
    }
    return _version_cache
