"""Stampman services.

Module-level functions, one module per engine component. The orchestrated
public API (guard + ledger + signals) is stampman.service.StampService.
"""

from stampman.services import business
from stampman.services import campaigns
from stampman.services import idempotency
from stampman.services import redemption
from stampman.services import scanner
from stampman.services import stamps

__all__ = ["business", "campaigns", "idempotency", "redemption", "scanner", "stamps"]
