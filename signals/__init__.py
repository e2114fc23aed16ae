"""
Starman signals - public event API.

Emitted signals:
- sale_recorded: Emitted by services.ledger.record_sale() and award_manual()
- sale_changed: Emitted by services.ledger.edit_sale()
- sale_deleted: Emitted by services.ledger.delete_sale()
- ledger_reconciled: Emitted by services.reconciliation.reconcile() per committed staff
"""

from django.dispatch import Signal

# Ledger signals (emitted by services, after commit)
sale_recorded = Signal()  # sender=Sale, sale=Sale, warnings=list
sale_changed = Signal()  # sender=Sale, sale=Sale, old_stars=int, delta=int
sale_deleted = Signal()  # sender=Sale, sale_id=int, staff=Staff, stars=int
ledger_reconciled = Signal()  # sender=Staff, staff=Staff, delta=int, corrections=list
