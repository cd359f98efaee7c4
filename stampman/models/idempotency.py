"""
IdempotencyRecord model for the idempotency guard.

Stores caller-supplied keys together with the result of the operation they
guarded, so replays can be answered without re-running it.
"""

from datetime import timedelta

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class IdempotencyRecord(models.Model):
    """
    One applied operation per (business, key).

    The row is inserted and its result stored in the same transaction as the
    operation itself, so a committed row always has its result.
    """

    business = models.ForeignKey(
        "stampman.Business",
        on_delete=models.CASCADE,
        related_name="idempotency_records",
        verbose_name=_("negocio"),
    )
    key = models.CharField(verbose_name=_("clave"), max_length=255)
    operation = models.CharField(verbose_name=_("operación"), max_length=50, blank=True)
    result = models.JSONField(verbose_name=_("resultado"), null=True, blank=True)
    created_at = models.DateTimeField(verbose_name=_("creado en"), auto_now_add=True)

    class Meta:
        db_table = "stampman_idempotency_record"
        verbose_name = _("registro de idempotencia")
        verbose_name_plural = _("registros de idempotencia")
        constraints = [
            models.UniqueConstraint(
                fields=["business", "key"],
                name="stampman_idempotency_unique_key",
            ),
        ]
        indexes = [
            models.Index(fields=["created_at"], name="stampman_idem_created_idx"),
        ]

    def __str__(self):
        return f"{self.operation}:{self.key[:20]}"

    @classmethod
    def cleanup_old_records(cls, days: int | None = None):
        """Remove records older than N days."""
        if days is None:
            from stampman.conf import stampman_settings
            days = stampman_settings.IDEMPOTENCY_CLEANUP_DAYS
        cutoff = timezone.now() - timedelta(days=days)
        return cls.objects.filter(created_at__lt=cutoff).delete()
