"""
Django Stampman - Stamp cards and reward unlocks.

Usage:
    from stampman import StampService
    from stampman.gates import Gates, GateError, GateResult

    customer = StampService.enroll(business_id, "Ana", phone="+5491155550000")
    grant = StampService.stamp(business_id, customer.pk, 3, "pos-7781")
    record = StampService.redeem(business_id, customer.pk)

    # Scanner channel
    access = StampService.validate_scanner(token_secret)
    StampService.scanner_stamp(token_secret, customer.pk, 1, "scan-0042")
"""


def __getattr__(name):
    if name == "StampService":
        from stampman.service import StampService

        return StampService
    if name == "StampmanError":
        from stampman.exceptions import StampmanError

        return StampmanError
    if name == "Gates":
        from stampman.gates import Gates

        return Gates
    if name == "GateError":
        from stampman.gates import GateError

        return GateError
    if name == "GateResult":
        from stampman.gates import GateResult

        return GateResult
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["StampService", "StampmanError", "Gates", "GateError", "GateResult"]
__version__ = "0.1.0"
