"""Stampman exceptions."""


class StampmanError(Exception):
    """
    Structured exception for stamp card operations.

    Every error carries a stable ``code``. The ``kind`` groups codes the way
    callers react to them: fix the input (validation), treat as already done
    or retry later (conflict), report missing (not_found), reject the
    credential (invalid), or fail closed (unavailable).

    Usage:
        try:
            StampService.redeem(business_id, customer_id)
        except StampmanError as e:
            if e.code == "NO_REWARD_AVAILABLE":
                show_progress_instead()
    """

    _default_messages = {
        # validation
        "INVALID_QUANTITY": "Stamp quantity out of range",
        "IDEMPOTENCY_KEY_REQUIRED": "An idempotency key is required",
        "INVALID_TRIGGER_CONFIG": "Campaign trigger configuration is invalid",
        "INVALID_THRESHOLD": "Stamps required must be at least 1",
        "INVALID_STATUS_TRANSITION": "Campaign status transition not allowed",
        # conflict
        "ALREADY_REDEEMED": "Reward already redeemed",
        "CONTENTION": "Concurrent update detected, retry the operation",
        # not found
        "BUSINESS_NOT_FOUND": "Business not found",
        "CUSTOMER_NOT_FOUND": "Customer not found",
        "TOKEN_NOT_FOUND": "Scanner token not found",
        "CAMPAIGN_NOT_FOUND": "Campaign not found",
        "BUSINESS_MISMATCH": "Customer does not belong to this business",
        "NO_REWARD_AVAILABLE": "No reward available to redeem",
        # invalid
        "INVALID_TOKEN": "Invalid or expired scanner token",
        "BUSINESS_INACTIVE": "Business is not active",
        # unavailable
        "STORAGE_UNAVAILABLE": "Storage temporarily unavailable",
        "GATEWAY_UNAVAILABLE": "Messaging gateway unavailable",
    }

    _kinds = {
        "validation": {
            "INVALID_QUANTITY",
            "IDEMPOTENCY_KEY_REQUIRED",
            "INVALID_TRIGGER_CONFIG",
            "INVALID_THRESHOLD",
            "INVALID_STATUS_TRANSITION",
        },
        "conflict": {"ALREADY_REDEEMED", "CONTENTION"},
        "not_found": {
            "BUSINESS_NOT_FOUND",
            "CUSTOMER_NOT_FOUND",
            "TOKEN_NOT_FOUND",
            "CAMPAIGN_NOT_FOUND",
            "BUSINESS_MISMATCH",
            "NO_REWARD_AVAILABLE",
        },
        "invalid": {"INVALID_TOKEN", "BUSINESS_INACTIVE"},
        "unavailable": {"STORAGE_UNAVAILABLE", "GATEWAY_UNAVAILABLE"},
    }

    def __init__(self, code: str, message: str | None = None, **data):
        self.code = code
        self.message = message or self._default_messages.get(code, code)
        self.data = data
        super().__init__(f"[{code}] {self.message}")

    @property
    def kind(self) -> str:
        for kind, codes in self._kinds.items():
            if self.code in codes:
                return kind
        return "unavailable"

    @property
    def retryable(self) -> bool:
        """Contention and outages may succeed on a plain retry."""
        return self.code == "CONTENTION" or self.kind == "unavailable"

    def as_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "kind": self.kind,
            "data": self.data,
        }
