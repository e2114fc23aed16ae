"""Starman exceptions."""

from dataclasses import dataclass, field


class StarmanError(Exception):
    """
    Structured exception for star ledger operations.

    Carries a machine-readable code, a human message and free-form data.

    Usage:
        try:
            sale = LedgerService.record_sale("ANS-001", "AVS/Support", "Teletime15 x3")
        except StarmanError as e:
            if e.code == "CATALOG_ENTRY_NOT_FOUND":
                handle_unknown_service()
    """

    _default_messages = {
        "STAFF_NOT_FOUND": "Staff member not found",
        "SALE_NOT_FOUND": "Sale not found",
        "REQUEST_NOT_FOUND": "Sale request not found",
        "CATALOG_ENTRY_NOT_FOUND": "Service not found in catalog",
        "BRACKET_NOT_FOUND": "No bracket matches the amount",
        "INVALID_AMOUNT": "Amount must be a finite, non-negative number",
        "INVALID_TIMESTAMP": "Timestamp is malformed",
        "INVALID_STARS": "Stars must be a positive integer",
        "INVALID_ADJUSTMENT": "Adjustment must be a non-zero integer",
        "INVALID_PERIOD": "Period start must not be after its end",
        "MISSING_SERVICE": "Either a service or an amount is required",
        "MISSING_REFERENCE": "A receipt number or comment is required",
        "MANUAL_SALE_NOT_EDITABLE": "Manual awards cannot be moved to a catalog service",
        "REQUEST_NOT_PENDING": "Sale request is no longer pending",
        "COMMIT_FAILED": "Write could not be committed",
        "VERSION_CONFLICT": "Sale was modified concurrently",
    }

    def __init__(self, code: str, message: str | None = None, **data):
        self.code = code
        self.message = message or self._default_messages.get(code, code)
        self.data = data
        super().__init__(f"[{code}] {self.message}")

    def as_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "data": self.data}


class ConfigurationError(StarmanError):
    """Unknown staff, catalog entry, bracket or record. Rejects the single write."""


class ValidationError(StarmanError):
    """Malformed input (amount, timestamp, stars). Rejects the single write."""


class CommitError(StarmanError):
    """
    The store failed mid-unit. The whole atomic unit was rolled back;
    callers retry it as a whole.
    """


@dataclass(frozen=True)
class ConsistencyWarning:
    """
    A correction the engine applied, or a problem it could not repair.

    Reported on results and logged, never raised.
    Codes: MULTIPLIER_FLOORED, AGGREGATE_CLAMPED, ENTRY_MISSING, RECONCILE_FAILED.
    """

    code: str
    message: str
    data: dict = field(default_factory=dict)

    def as_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "data": dict(self.data)}
