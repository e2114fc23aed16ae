"""Starman models (CORE only).

CORE models are exported here. Contrib models are in their respective modules:
- starman.contrib.approvals: SaleRequest, RequestStatus
"""

from starman.models.staff import Staff
from starman.models.catalog import CatalogEntry
from starman.models.campaign import BonusCampaign
from starman.models.sale import Sale, SaleKind

__all__ = [
    "Staff",
    # Reward rules
    "CatalogEntry",
    "BonusCampaign",
    # Ledger
    "Sale",
    "SaleKind",
]
