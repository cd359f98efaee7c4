"""Customer model.

Card state:
    stamps_count
        Stamps in the current card cycle. Only written by
        services.stamps.grant_stamps, always together with a ledger entry
        and a version bump.

    total_rewards_earned
        Monotonic counter of rewards ever unlocked.

    version
        Incremented on every card write. Writers update with
        ``WHERE version = <read version>`` and retry on a miss.
"""

import uuid as uuid_lib

from django.db import models
from django.utils.translation import gettext_lazy as _


class Customer(models.Model):
    """A stamp card holder, owned by exactly one Business."""

    id = models.UUIDField(primary_key=True, default=uuid_lib.uuid4, editable=False)
    business = models.ForeignKey(
        "stampman.Business",
        on_delete=models.CASCADE,
        related_name="customers",
        verbose_name=_("negocio"),
    )

    name = models.CharField(_("nombre"), max_length=200)
    phone = models.CharField(
        _("teléfono"),
        max_length=20,
        blank=True,
        db_index=True,
        help_text=_("E.164, destino de los mensajes de campaña"),
    )

    # Card state
    stamps_count = models.PositiveIntegerField(_("sellos"), default=0)
    total_rewards_earned = models.PositiveIntegerField(_("recompensas ganadas"), default=0)
    last_stamp_at = models.DateTimeField(_("último sello"), null=True, blank=True)
    version = models.PositiveIntegerField(default=0, editable=False)

    is_active = models.BooleanField(_("activo"), default=True, db_index=True)
    enrolled_at = models.DateTimeField(_("inscrito en"), auto_now_add=True, db_index=True)

    class Meta:
        db_table = "stampman_customer"
        verbose_name = _("cliente")
        verbose_name_plural = _("clientes")
        ordering = ["-enrolled_at"]
        indexes = [
            models.Index(fields=["business", "last_stamp_at"], name="stampman_cust_last_stamp_idx"),
        ]

    def __str__(self):
        return f"{self.name} ({self.stamps_count} sellos)"

    @property
    def stamps_remaining(self) -> int:
        """Stamps remaining to unlock the next reward."""
        return max(0, self.business.stamps_required - self.stamps_count)
