"""Business and location models.

A Business owns its customers, campaigns and scanner tokens. The reward
threshold (stamps_required) applies to the current card cycle of every
customer; changing it never rescales progress already earned.
"""

import uuid as uuid_lib

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _


class Business(models.Model):
    """A merchant running a stamp card program."""

    id = models.UUIDField(primary_key=True, default=uuid_lib.uuid4, editable=False)
    name = models.CharField(_("nombre"), max_length=200)

    # Reward structure
    stamps_required = models.PositiveIntegerField(
        _("sellos requeridos"),
        default=10,
        validators=[MinValueValidator(1)],
        help_text=_("Sellos necesarios para desbloquear la recompensa"),
    )
    reward_description = models.CharField(
        _("recompensa"),
        max_length=255,
        blank=True,
        help_text=_("Ej: Café gratis"),
    )

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="stampman_businesses",
        null=True,
        blank=True,
        verbose_name=_("dueño"),
    )

    is_active = models.BooleanField(_("activo"), default=True, db_index=True)
    created_at = models.DateTimeField(_("creado en"), auto_now_add=True)
    updated_at = models.DateTimeField(_("actualizado en"), auto_now=True)

    class Meta:
        db_table = "stampman_business"
        verbose_name = _("negocio")
        verbose_name_plural = _("negocios")
        ordering = ["name"]

    def __str__(self):
        return f"{self.name} ({self.stamps_required} sellos)"


class BusinessLocation(models.Model):
    """A physical point of sale. Scanner tokens may be scoped to one."""

    id = models.UUIDField(primary_key=True, default=uuid_lib.uuid4, editable=False)
    business = models.ForeignKey(
        Business,
        on_delete=models.CASCADE,
        related_name="locations",
        verbose_name=_("negocio"),
    )
    name = models.CharField(_("nombre"), max_length=200)
    is_active = models.BooleanField(_("activo"), default=True)
    created_at = models.DateTimeField(_("creado en"), auto_now_add=True)

    class Meta:
        db_table = "stampman_business_location"
        verbose_name = _("sucursal")
        verbose_name_plural = _("sucursales")
        ordering = ["name"]

    def __str__(self):
        return f"{self.business.name} / {self.name}"
