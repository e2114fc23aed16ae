"""
Starman Approvals - Staff-submitted sales awaiting moderation.

Staff submit a sale with its receipt number; a moderator approves it
(the sale is then recorded through the ledger) or declines it.

Usage:
    INSTALLED_APPS = [
        ...
        "starman",
        "starman.contrib.approvals",
    ]

    from starman.contrib.approvals import ApprovalService

    req = ApprovalService.submit("ANS-001", "AVS/Support", "Teletime15 x3", reference="B-1001")
    sale = ApprovalService.approve(req.pk, decided_by="moderator")
"""


def __getattr__(name):
    if name == "ApprovalService":
        from starman.contrib.approvals.service import ApprovalService

        return ApprovalService
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["ApprovalService"]
