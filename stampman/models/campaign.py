"""Campaign models - trigger rules, firing dedup, and outbound message outbox."""

import uuid as uuid_lib

from django.db import models
from django.utils.translation import gettext_lazy as _


class TriggerType(models.TextChoices):
    CUSTOMER_ENROLLED = "customer_enrolled", _("Cliente inscrito")
    STAMPS_REACHED = "stamps_reached", _("Sellos alcanzados")
    REWARD_UNLOCKED = "reward_unlocked", _("Recompensa desbloqueada")
    DAYS_INACTIVE = "days_inactive", _("Días de inactividad")
    STAMP_EARNED = "stamp_earned", _("Sello ganado")


class CampaignStatus(models.TextChoices):
    DRAFT = "draft", _("Borrador")
    ACTIVE = "active", _("Activa")
    PAUSED = "paused", _("Pausada")
    COMPLETED = "completed", _("Completada")


class Campaign(models.Model):
    """
    An automated message rule.

    trigger_config holds the payload of count/day triggers ({"value": N}).
    Use the ``trigger`` property for the typed variant.
    """

    id = models.UUIDField(primary_key=True, default=uuid_lib.uuid4, editable=False)
    business = models.ForeignKey(
        "stampman.Business",
        on_delete=models.CASCADE,
        related_name="campaigns",
        verbose_name=_("negocio"),
    )
    name = models.CharField(_("nombre"), max_length=255)

    trigger_type = models.CharField(
        _("disparador"),
        max_length=30,
        choices=TriggerType.choices,
    )
    trigger_config = models.JSONField(_("configuración"), default=dict, blank=True)
    message_template = models.TextField(
        _("plantilla"),
        max_length=1600,
        help_text=_("Variables: {nombre}, {sellos}, {sellos_faltantes}, {recompensa}, {negocio}, {dias_inactivo}"),
    )

    status = models.CharField(
        _("estado"),
        max_length=20,
        choices=CampaignStatus.choices,
        default=CampaignStatus.DRAFT,
        db_index=True,
    )
    sent_count = models.PositiveIntegerField(_("enviados"), default=0)
    failed_count = models.PositiveIntegerField(_("fallidos"), default=0)

    created_at = models.DateTimeField(_("creado en"), auto_now_add=True)
    updated_at = models.DateTimeField(_("actualizado en"), auto_now=True)

    class Meta:
        db_table = "stampman_campaign"
        verbose_name = _("campaña")
        verbose_name_plural = _("campañas")
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["business", "status", "trigger_type"], name="stampman_campaign_match_idx"),
        ]

    def __str__(self):
        return f"{self.name} [{self.trigger_type}]"

    @property
    def trigger(self):
        from stampman.triggers import parse_trigger

        return parse_trigger(self.trigger_type, self.trigger_config)


class CampaignFiring(models.Model):
    """
    Dedup record: a campaign fired for a customer because of one event.

    Unique on (campaign, customer, fired_for_event_id). Inserting it is the
    claim to send; a conflict means the event was already handled.
    """

    campaign = models.ForeignKey(
        Campaign,
        on_delete=models.CASCADE,
        related_name="firings",
        verbose_name=_("campaña"),
    )
    customer = models.ForeignKey(
        "stampman.Customer",
        on_delete=models.CASCADE,
        related_name="campaign_firings",
        verbose_name=_("cliente"),
    )
    fired_for_event_id = models.CharField(_("evento"), max_length=255)
    fired_at = models.DateTimeField(_("disparada en"), auto_now_add=True)

    class Meta:
        db_table = "stampman_campaign_firing"
        verbose_name = _("disparo de campaña")
        verbose_name_plural = _("disparos de campaña")
        constraints = [
            models.UniqueConstraint(
                fields=["campaign", "customer", "fired_for_event_id"],
                name="stampman_firing_unique_event",
            ),
        ]

    def __str__(self):
        return f"{self.campaign_id}:{self.customer_id}:{self.fired_for_event_id}"


class MessageStatus(models.TextChoices):
    PENDING = "pending", _("Pendiente")
    SENDING = "sending", _("Enviando")
    SENT = "sent", _("Enviado")
    FAILED = "failed", _("Fallido")


class ScheduledMessage(models.Model):
    """Rendered message waiting for (or done with) gateway dispatch."""

    firing = models.OneToOneField(
        CampaignFiring,
        on_delete=models.CASCADE,
        related_name="message",
        verbose_name=_("disparo"),
    )
    campaign = models.ForeignKey(
        Campaign,
        on_delete=models.CASCADE,
        related_name="messages",
        verbose_name=_("campaña"),
    )
    customer = models.ForeignKey(
        "stampman.Customer",
        on_delete=models.CASCADE,
        related_name="messages",
        verbose_name=_("cliente"),
    )
    recipient_phone = models.CharField(_("destinatario"), max_length=20)
    body = models.TextField(_("mensaje"))

    status = models.CharField(
        _("estado"),
        max_length=20,
        choices=MessageStatus.choices,
        default=MessageStatus.PENDING,
        db_index=True,
    )
    attempts = models.PositiveSmallIntegerField(_("intentos"), default=0)
    error_message = models.CharField(_("error"), max_length=500, blank=True)
    provider_message_id = models.CharField(max_length=255, blank=True)

    created_at = models.DateTimeField(_("creado en"), auto_now_add=True)
    claimed_at = models.DateTimeField(
        _("tomado en"),
        null=True,
        blank=True,
        help_text=_("Momento en que un despachador lo pasó a enviando"),
    )
    sent_at = models.DateTimeField(_("enviado en"), null=True, blank=True)

    class Meta:
        db_table = "stampman_scheduled_message"
        verbose_name = _("mensaje programado")
        verbose_name_plural = _("mensajes programados")
        ordering = ["created_at", "id"]

    def __str__(self):
        return f"{self.recipient_phone}: {self.body[:30]}"
