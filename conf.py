"""
Starman configuration.

Usage in settings.py:
    STARMAN = {
        "ALL_CATEGORIES": "all",
        "AUTO_RECONCILE_ON_EDIT": False,
    }
"""

from dataclasses import dataclass
from typing import Any

from django.conf import settings


@dataclass
class StarmanSettings:
    """Starman configuration settings."""

    # Campaign category token that matches every category (case-insensitive)
    ALL_CATEGORIES: str = "all"

    # Run a scoped reconciliation of the staff member after every sale edit
    AUTO_RECONCILE_ON_EDIT: bool = False

    # Reconciliation only reconsiders stacking services unless asked otherwise
    RECONCILE_STACKING_ONLY: bool = True

    # Default page size for ledger history
    HISTORY_LIMIT: int = 50


def get_starman_settings() -> StarmanSettings:
    """Load settings from Django settings."""
    user_settings: dict[str, Any] = getattr(settings, "STARMAN", {})
    return StarmanSettings(**user_settings)


class _LazySettings:
    """Lazy proxy that re-reads settings on every attribute access."""

    def __getattr__(self, name):
        return getattr(get_starman_settings(), name)


starman_settings = _LazySettings()
