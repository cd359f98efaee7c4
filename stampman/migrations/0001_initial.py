# Generated migration for the stamp card engine

import uuid

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Business",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=200, verbose_name="nombre")),
                (
                    "stamps_required",
                    models.PositiveIntegerField(
                        default=10,
                        help_text="Sellos necesarios para desbloquear la recompensa",
                        validators=[django.core.validators.MinValueValidator(1)],
                        verbose_name="sellos requeridos",
                    ),
                ),
                (
                    "reward_description",
                    models.CharField(
                        blank=True,
                        help_text="Ej: Café gratis",
                        max_length=255,
                        verbose_name="recompensa",
                    ),
                ),
                ("is_active", models.BooleanField(db_index=True, default=True, verbose_name="activo")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="creado en")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="actualizado en")),
                (
                    "owner",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="stampman_businesses",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="dueño",
                    ),
                ),
            ],
            options={
                "verbose_name": "negocio",
                "verbose_name_plural": "negocios",
                "db_table": "stampman_business",
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="BusinessLocation",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=200, verbose_name="nombre")),
                ("is_active", models.BooleanField(default=True, verbose_name="activo")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="creado en")),
                (
                    "business",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="locations",
                        to="stampman.business",
                        verbose_name="negocio",
                    ),
                ),
            ],
            options={
                "verbose_name": "sucursal",
                "verbose_name_plural": "sucursales",
                "db_table": "stampman_business_location",
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="Customer",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=200, verbose_name="nombre")),
                (
                    "phone",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        help_text="E.164, destino de los mensajes de campaña",
                        max_length=20,
                        verbose_name="teléfono",
                    ),
                ),
                ("stamps_count", models.PositiveIntegerField(default=0, verbose_name="sellos")),
                ("total_rewards_earned", models.PositiveIntegerField(default=0, verbose_name="recompensas ganadas")),
                ("last_stamp_at", models.DateTimeField(blank=True, null=True, verbose_name="último sello")),
                ("version", models.PositiveIntegerField(default=0, editable=False)),
                ("is_active", models.BooleanField(db_index=True, default=True, verbose_name="activo")),
                ("enrolled_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="inscrito en")),
                (
                    "business",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="customers",
                        to="stampman.business",
                        verbose_name="negocio",
                    ),
                ),
            ],
            options={
                "verbose_name": "cliente",
                "verbose_name_plural": "clientes",
                "db_table": "stampman_customer",
                "ordering": ["-enrolled_at"],
                "indexes": [
                    models.Index(fields=["business", "last_stamp_at"], name="stampman_cust_last_stamp_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="StampLedgerEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "quantity",
                    models.PositiveSmallIntegerField(
                        validators=[
                            django.core.validators.MinValueValidator(1),
                            django.core.validators.MaxValueValidator(10),
                        ],
                        verbose_name="cantidad",
                    ),
                ),
                ("idempotency_key", models.CharField(max_length=255, verbose_name="clave de idempotencia")),
                ("stamps_before", models.PositiveIntegerField(verbose_name="sellos antes")),
                ("stamps_after", models.PositiveIntegerField(verbose_name="sellos después")),
                (
                    "rewards_unlocked",
                    models.PositiveSmallIntegerField(default=0, verbose_name="recompensas desbloqueadas"),
                ),
                (
                    "actor",
                    models.CharField(
                        help_text="user:<id> o scanner:<token id>",
                        max_length=100,
                        verbose_name="actor",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="creado en")),
                (
                    "business",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="ledger_entries",
                        to="stampman.business",
                        verbose_name="negocio",
                    ),
                ),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="ledger_entries",
                        to="stampman.customer",
                        verbose_name="cliente",
                    ),
                ),
            ],
            options={
                "verbose_name": "sello",
                "verbose_name_plural": "sellos",
                "db_table": "stampman_stamp_ledger_entry",
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(fields=["customer", "-created_at"], name="stampman_ledger_cust_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("business", "idempotency_key"),
                        name="stampman_ledger_unique_idempotency_key",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="RewardUnlockEvent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("reward_description", models.CharField(blank=True, max_length=255, verbose_name="recompensa")),
                ("unlocked_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="desbloqueada en")),
                ("redeemed_at", models.DateTimeField(blank=True, null=True, verbose_name="canjeada en")),
                (
                    "business",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="unlock_events",
                        to="stampman.business",
                        verbose_name="negocio",
                    ),
                ),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="unlock_events",
                        to="stampman.customer",
                        verbose_name="cliente",
                    ),
                ),
                (
                    "source_entry",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="unlock_events",
                        to="stampman.stampledgerentry",
                        verbose_name="sello de origen",
                    ),
                ),
            ],
            options={
                "verbose_name": "recompensa desbloqueada",
                "verbose_name_plural": "recompensas desbloqueadas",
                "db_table": "stampman_reward_unlock_event",
                "ordering": ["unlocked_at", "id"],
                "indexes": [
                    models.Index(fields=["customer", "redeemed_at"], name="stampman_unlock_outst_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="RedemptionRecord",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("actor", models.CharField(max_length=100, verbose_name="actor")),
                ("stamps_at_redemption", models.PositiveIntegerField(verbose_name="sellos al canjear")),
                ("redeemed_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="canjeada en")),
                (
                    "business",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="redemptions",
                        to="stampman.business",
                        verbose_name="negocio",
                    ),
                ),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="redemptions",
                        to="stampman.customer",
                        verbose_name="cliente",
                    ),
                ),
                (
                    "unlock_event",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="redemption",
                        to="stampman.rewardunlockevent",
                        verbose_name="recompensa",
                    ),
                ),
            ],
            options={
                "verbose_name": "canje",
                "verbose_name_plural": "canjes",
                "db_table": "stampman_redemption_record",
                "ordering": ["-redeemed_at", "-id"],
            },
        ),
        migrations.CreateModel(
            name="ScannerToken",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=100, verbose_name="nombre")),
                ("token_hash", models.CharField(editable=False, max_length=64, unique=True)),
                ("token_prefix", models.CharField(editable=False, max_length=8, verbose_name="prefijo")),
                ("is_active", models.BooleanField(default=True, verbose_name="activo")),
                ("usage_count", models.PositiveIntegerField(default=0, verbose_name="usos")),
                ("last_used_at", models.DateTimeField(blank=True, null=True, verbose_name="último uso")),
                ("expires_at", models.DateTimeField(blank=True, null=True, verbose_name="expira en")),
                ("created_by", models.CharField(blank=True, max_length=100, verbose_name="creado por")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="creado en")),
                (
                    "business",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="scanner_tokens",
                        to="stampman.business",
                        verbose_name="negocio",
                    ),
                ),
                (
                    "location",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="scanner_tokens",
                        to="stampman.businesslocation",
                        verbose_name="sucursal",
                    ),
                ),
            ],
            options={
                "verbose_name": "token de escáner",
                "verbose_name_plural": "tokens de escáner",
                "db_table": "stampman_scanner_token",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Campaign",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=255, verbose_name="nombre")),
                (
                    "trigger_type",
                    models.CharField(
                        choices=[
                            ("customer_enrolled", "Cliente inscrito"),
                            ("stamps_reached", "Sellos alcanzados"),
                            ("reward_unlocked", "Recompensa desbloqueada"),
                            ("days_inactive", "Días de inactividad"),
                            ("stamp_earned", "Sello ganado"),
                        ],
                        max_length=30,
                        verbose_name="disparador",
                    ),
                ),
                ("trigger_config", models.JSONField(blank=True, default=dict, verbose_name="configuración")),
                (
                    "message_template",
                    models.TextField(
                        help_text="Variables: {nombre}, {sellos}, {sellos_faltantes}, {recompensa}, {negocio}, {dias_inactivo}",
                        max_length=1600,
                        verbose_name="plantilla",
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("draft", "Borrador"),
                            ("active", "Activa"),
                            ("paused", "Pausada"),
                            ("completed", "Completada"),
                        ],
                        db_index=True,
                        default="draft",
                        max_length=20,
                        verbose_name="estado",
                    ),
                ),
                ("sent_count", models.PositiveIntegerField(default=0, verbose_name="enviados")),
                ("failed_count", models.PositiveIntegerField(default=0, verbose_name="fallidos")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="creado en")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="actualizado en")),
                (
                    "business",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="campaigns",
                        to="stampman.business",
                        verbose_name="negocio",
                    ),
                ),
            ],
            options={
                "verbose_name": "campaña",
                "verbose_name_plural": "campañas",
                "db_table": "stampman_campaign",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["business", "status", "trigger_type"],
                        name="stampman_campaign_match_idx",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="CampaignFiring",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("fired_for_event_id", models.CharField(max_length=255, verbose_name="evento")),
                ("fired_at", models.DateTimeField(auto_now_add=True, verbose_name="disparada en")),
                (
                    "campaign",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="firings",
                        to="stampman.campaign",
                        verbose_name="campaña",
                    ),
                ),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="campaign_firings",
                        to="stampman.customer",
                        verbose_name="cliente",
                    ),
                ),
            ],
            options={
                "verbose_name": "disparo de campaña",
                "verbose_name_plural": "disparos de campaña",
                "db_table": "stampman_campaign_firing",
                "constraints": [
                    models.UniqueConstraint(
                        fields=("campaign", "customer", "fired_for_event_id"),
                        name="stampman_firing_unique_event",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="ScheduledMessage",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("recipient_phone", models.CharField(max_length=20, verbose_name="destinatario")),
                ("body", models.TextField(verbose_name="mensaje")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pendiente"),
                            ("sending", "Enviando"),
                            ("sent", "Enviado"),
                            ("failed", "Fallido"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=20,
                        verbose_name="estado",
                    ),
                ),
                ("attempts", models.PositiveSmallIntegerField(default=0, verbose_name="intentos")),
                ("error_message", models.CharField(blank=True, max_length=500, verbose_name="error")),
                ("provider_message_id", models.CharField(blank=True, max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="creado en")),
                ("sent_at", models.DateTimeField(blank=True, null=True, verbose_name="enviado en")),
                (
                    "campaign",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="messages",
                        to="stampman.campaign",
                        verbose_name="campaña",
                    ),
                ),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="messages",
                        to="stampman.customer",
                        verbose_name="cliente",
                    ),
                ),
                (
                    "firing",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="message",
                        to="stampman.campaignfiring",
                        verbose_name="disparo",
                    ),
                ),
            ],
            options={
                "verbose_name": "mensaje programado",
                "verbose_name_plural": "mensajes programados",
                "db_table": "stampman_scheduled_message",
                "ordering": ["created_at", "id"],
            },
        ),
        migrations.CreateModel(
            name="IdempotencyRecord",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("key", models.CharField(max_length=255, verbose_name="clave")),
                ("operation", models.CharField(blank=True, max_length=50, verbose_name="operación")),
                ("result", models.JSONField(blank=True, null=True, verbose_name="resultado")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="creado en")),
                (
                    "business",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="idempotency_records",
                        to="stampman.business",
                        verbose_name="negocio",
                    ),
                ),
            ],
            options={
                "verbose_name": "registro de idempotencia",
                "verbose_name_plural": "registros de idempotencia",
                "db_table": "stampman_idempotency_record",
                "indexes": [
                    models.Index(fields=["created_at"], name="stampman_idem_created_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("business", "key"),
                        name="stampman_idempotency_unique_key",
                    ),
                ],
            },
        ),
    ]
