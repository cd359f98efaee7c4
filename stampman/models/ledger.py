"""Stamp ledger and reward unlock models.

StampLedgerEntry and RewardUnlockEvent are append-only. The only later
write allowed is RewardUnlockEvent.redeemed_at, done once by the
redemption service with a conditional UPDATE.
"""

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _


class StampLedgerEntry(models.Model):
    """
    Immutable record of a stamp grant.

    (business, idempotency_key) is unique: the same physical transaction
    can never be applied twice, even if the idempotency guard is bypassed.
    """

    customer = models.ForeignKey(
        "stampman.Customer",
        on_delete=models.CASCADE,
        related_name="ledger_entries",
        verbose_name=_("cliente"),
    )
    business = models.ForeignKey(
        "stampman.Business",
        on_delete=models.CASCADE,
        related_name="ledger_entries",
        verbose_name=_("negocio"),
    )

    quantity = models.PositiveSmallIntegerField(
        _("cantidad"),
        validators=[MinValueValidator(1), MaxValueValidator(10)],
    )
    idempotency_key = models.CharField(_("clave de idempotencia"), max_length=255)

    stamps_before = models.PositiveIntegerField(_("sellos antes"))
    stamps_after = models.PositiveIntegerField(_("sellos después"))
    rewards_unlocked = models.PositiveSmallIntegerField(_("recompensas desbloqueadas"), default=0)

    actor = models.CharField(
        _("actor"),
        max_length=100,
        help_text=_("user:<id> o scanner:<token id>"),
    )
    created_at = models.DateTimeField(_("creado en"), auto_now_add=True, db_index=True)

    class Meta:
        db_table = "stampman_stamp_ledger_entry"
        verbose_name = _("sello")
        verbose_name_plural = _("sellos")
        ordering = ["-created_at", "-id"]
        constraints = [
            models.UniqueConstraint(
                fields=["business", "idempotency_key"],
                name="stampman_ledger_unique_idempotency_key",
            ),
        ]
        indexes = [
            models.Index(fields=["customer", "-created_at"], name="stampman_ledger_cust_idx"),
        ]

    def __str__(self):
        return f"+{self.quantity} ({self.stamps_before}→{self.stamps_after})"


class RewardUnlockEvent(models.Model):
    """A reward made available when a card crossed its threshold."""

    customer = models.ForeignKey(
        "stampman.Customer",
        on_delete=models.CASCADE,
        related_name="unlock_events",
        verbose_name=_("cliente"),
    )
    business = models.ForeignKey(
        "stampman.Business",
        on_delete=models.CASCADE,
        related_name="unlock_events",
        verbose_name=_("negocio"),
    )
    source_entry = models.ForeignKey(
        StampLedgerEntry,
        on_delete=models.PROTECT,
        related_name="unlock_events",
        verbose_name=_("sello de origen"),
    )
    reward_description = models.CharField(_("recompensa"), max_length=255, blank=True)

    unlocked_at = models.DateTimeField(_("desbloqueada en"), auto_now_add=True, db_index=True)
    redeemed_at = models.DateTimeField(_("canjeada en"), null=True, blank=True)

    class Meta:
        db_table = "stampman_reward_unlock_event"
        verbose_name = _("recompensa desbloqueada")
        verbose_name_plural = _("recompensas desbloqueadas")
        ordering = ["unlocked_at", "id"]
        indexes = [
            models.Index(fields=["customer", "redeemed_at"], name="stampman_unlock_outst_idx"),
        ]

    def __str__(self):
        state = "canjeada" if self.redeemed_at else "pendiente"
        return f"{self.reward_description or 'Recompensa'} ({state})"

    @property
    def is_redeemed(self) -> bool:
        return self.redeemed_at is not None


class RedemptionRecord(models.Model):
    """Redemption history row, one per consumed unlock event."""

    unlock_event = models.OneToOneField(
        RewardUnlockEvent,
        on_delete=models.PROTECT,
        related_name="redemption",
        verbose_name=_("recompensa"),
    )
    customer = models.ForeignKey(
        "stampman.Customer",
        on_delete=models.CASCADE,
        related_name="redemptions",
        verbose_name=_("cliente"),
    )
    business = models.ForeignKey(
        "stampman.Business",
        on_delete=models.CASCADE,
        related_name="redemptions",
        verbose_name=_("negocio"),
    )
    actor = models.CharField(_("actor"), max_length=100)
    stamps_at_redemption = models.PositiveIntegerField(_("sellos al canjear"))
    redeemed_at = models.DateTimeField(_("canjeada en"), auto_now_add=True, db_index=True)

    class Meta:
        db_table = "stampman_redemption_record"
        verbose_name = _("canje")
        verbose_name_plural = _("canjes")
        ordering = ["-redeemed_at", "-id"]

    def __str__(self):
        return f"{self.customer_id} canjeó {self.unlock_event_id}"
