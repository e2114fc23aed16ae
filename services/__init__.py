"""Starman services (CORE only).

CORE services are exported here. Contrib services are in their respective modules:
- starman.contrib.approvals: ApprovalService
"""

from starman.services import staff
from starman.services import catalog
from starman.services import campaign
from starman.services import ledger
from starman.services import reconciliation

__all__ = ["staff", "catalog", "campaign", "ledger", "reconciliation"]
