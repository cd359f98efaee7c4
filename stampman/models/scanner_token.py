"""
ScannerToken model - scoped, revocable credentials for the public scanner.

Only the SHA-256 digest of the secret is stored. The raw secret is shown
once, when the token is created.
"""

import hashlib
import uuid as uuid_lib

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


def hash_token(secret: str) -> str:
    return hashlib.sha256(secret.encode()).hexdigest()


class ScannerToken(models.Model):
    """
    Bearer credential for stamping/redeeming without a dashboard login.

    Lifecycle:
        active -> revoked   (manual; only an explicit reactivate undoes it)
        active -> expired   (expires_at passed; checked at validation time)
    """

    id = models.UUIDField(primary_key=True, default=uuid_lib.uuid4, editable=False)
    business = models.ForeignKey(
        "stampman.Business",
        on_delete=models.CASCADE,
        related_name="scanner_tokens",
        verbose_name=_("negocio"),
    )
    location = models.ForeignKey(
        "stampman.BusinessLocation",
        on_delete=models.SET_NULL,
        related_name="scanner_tokens",
        null=True,
        blank=True,
        verbose_name=_("sucursal"),
    )
    name = models.CharField(_("nombre"), max_length=100)

    token_hash = models.CharField(max_length=64, unique=True, editable=False)
    token_prefix = models.CharField(_("prefijo"), max_length=8, editable=False)

    is_active = models.BooleanField(_("activo"), default=True)
    usage_count = models.PositiveIntegerField(_("usos"), default=0)
    last_used_at = models.DateTimeField(_("último uso"), null=True, blank=True)
    expires_at = models.DateTimeField(_("expira en"), null=True, blank=True)

    created_by = models.CharField(_("creado por"), max_length=100, blank=True)
    created_at = models.DateTimeField(_("creado en"), auto_now_add=True)

    class Meta:
        db_table = "stampman_scanner_token"
        verbose_name = _("token de escáner")
        verbose_name_plural = _("tokens de escáner")
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.name} ({self.token_prefix}...)"

    def is_expired(self, now=None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at <= (now or timezone.now())

    @property
    def location_name(self) -> str | None:
        return self.location.name if self.location_id else None
