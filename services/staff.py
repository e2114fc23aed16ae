"""Staff service - staff registry.

All write operations that touch >1 record use transaction.atomic().
"""

import logging

from starman.models import Staff

logger = logging.getLogger(__name__)


def get(code: str) -> Staff | None:
    """Get active staff member by unique code."""
    try:
        return Staff.objects.get(code=code, is_active=True)
    except Staff.DoesNotExist:
        return None


def create(code: str, name: str, **kwargs) -> Staff:
    """Register a staff member with an empty star total."""
    staff = Staff.objects.create(code=code, name=name, **kwargs)
    logger.info("Staff %s registered", staff.code)
    return staff


def deactivate(code: str) -> bool:
    """
    Deactivate a staff member. Their sales stay in the ledger.

    Returns:
        True if an active staff member was deactivated
    """
    updated = Staff.objects.filter(code=code, is_active=True).update(is_active=False)
    return bool(updated)


def search(query: str | None = None, only_active: bool = True, limit: int = 20) -> list[Staff]:
    """Search staff by code or name."""
    from django.db.models import Q

    qs = Staff.objects.all()
    if only_active:
        qs = qs.filter(is_active=True)
    if query:
        qs = qs.filter(Q(code__icontains=query) | Q(name__icontains=query))
    return list(qs[:limit])


def leaderboard(limit: int = 10) -> list[Staff]:
    """Active staff ordered by star total (highest first)."""
    return list(Staff.objects.filter(is_active=True).order_by("-stars", "name")[:limit])
