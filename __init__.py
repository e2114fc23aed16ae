"""
Django Starman - Staff incentive stars.

Usage:
    from starman import StarService
    from starman.gates import Gates, GateError, GateResult

    sale = StarService.record_sale("ANS-001", "AVS/Support", "Teletime15 x3")
    StarService.record_sale("ANS-001", "Forsikring", amount=250)
    report = StarService.reconcile("ANS-001")

    # Gates validation
    Gates.bracket_integrity("Forsikring")
    Gates.aggregate_consistency(staff.pk)
"""


def __getattr__(name):
    if name == "StarService":
        from starman.service import StarService

        return StarService
    if name == "Gates":
        from starman.gates import Gates

        return Gates
    if name == "GateError":
        from starman.gates import GateError

        return GateError
    if name == "GateResult":
        from starman.gates import GateResult

        return GateResult
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["StarService", "Gates", "GateError", "GateResult"]
__version__ = "0.1.0"
