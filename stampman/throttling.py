"""Per-IP request limits for the public scanner endpoints.

Rates come from STAMPMAN settings ("10/min", "100/hour"); None disables
a limit. Counters live in the default Django cache.
"""

from rest_framework.throttling import SimpleRateThrottle

from stampman.conf import stampman_settings


class ScannerRateThrottle(SimpleRateThrottle):
    """Stamp and redeem requests per client IP, shared by both endpoints."""

    scope = "stampman_scanner"
    rate_setting = "SCANNER_RATE"

    def get_rate(self):
        return getattr(stampman_settings, self.rate_setting)

    def get_cache_key(self, request, view):
        return self.cache_format % {
            "scope": self.scope,
            "ident": self.get_ident(request),
        }


class ScannerValidateThrottle(ScannerRateThrottle):
    """Token validation requests per client IP."""

    scope = "stampman_scanner_validate"
    rate_setting = "SCANNER_VALIDATE_RATE"
