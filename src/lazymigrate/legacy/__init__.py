"""Access to content still owned by the legacy store."""

from lazymigrate.legacy.locator import (
    DEFAULT_FETCH_SCHEME,
    DEFAULT_LEGACY_PREFIX,
    LegacyContentLocator,
)

__all__ = [
    "LegacyContentLocator",
    "DEFAULT_LEGACY_PREFIX",
    "DEFAULT_FETCH_SCHEME",
]
