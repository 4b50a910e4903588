from __future__ import annotations

import uuid
from datetime import datetime

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone


class PaymentType(models.TextChoices):
    LP_UNLOCK = "lp_unlock", "Liberação de landing page"
    SUBSCRIPTION = "subscription", "Assinatura"
    MARKETPLACE_ORDER = "marketplace_order", "Pedido do marketplace"
    STORE_PLAN = "store_plan", "Plano de loja"
    PROFESSIONAL_SERVICE = "professional_service", "Serviço profissional"


class PaymentProvider(models.TextChoices):
    MANUAL = "manual", "PIX manual"
    GATEWAY = "gateway", "Gateway"


class PaymentMethod(models.TextChoices):
    PIX = "pix", "PIX"
    CARD = "card", "Cartão"


class PaymentStatus(models.TextChoices):
    PENDING = "pending", "Pendente"
    PAID = "paid", "Pago"
    EXPIRED = "expired", "Expirado"
    CANCELLED = "cancelled", "Cancelado"
    FAILED = "failed", "Falhou"
    REFUNDED = "refunded", "Reembolsado"


TERMINAL_STATUSES = frozenset(
    {
        PaymentStatus.PAID,
        PaymentStatus.EXPIRED,
        PaymentStatus.CANCELLED,
        PaymentStatus.FAILED,
        PaymentStatus.REFUNDED,
    }
)


class ConfirmationSource(models.TextChoices):
    WEBHOOK = "webhook", "Webhook do gateway"
    ADMIN = "admin", "Confirmação da equipe"
    POLL = "poll", "Consulta do cliente"
    REALTIME = "realtime", "Notificação em tempo real"
    READ = "read", "Expiração na leitura"
    USER = "user", "Ação do usuário"


# Somente estas origens podem marcar um pagamento como pago.
AUTHORITATIVE_SOURCES = frozenset({ConfirmationSource.WEBHOOK, ConfirmationSource.ADMIN})


class PaymentIntentQuerySet(models.QuerySet):
    def for_user(self, user) -> PaymentIntentQuerySet:
        return self.filter(user=user)

    def pending(self) -> PaymentIntentQuerySet:
        return self.filter(status=PaymentStatus.PENDING)

    def stale(self, now: datetime | None = None) -> PaymentIntentQuerySet:
        return self.pending().filter(expires_at__lt=now or timezone.now())


class PaymentIntent(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="payment_intents",
    )
    amount = models.DecimalField("valor", max_digits=10, decimal_places=2)
    payment_type = models.CharField("tipo", max_length=30, choices=PaymentType.choices)
    reference_id = models.CharField(
        "referência",
        max_length=64,
        blank=True,
        help_text="Pedido, contratação, profissional ou loja afetada, conforme o tipo.",
    )
    provider = models.CharField(
        "provedor",
        max_length=10,
        choices=PaymentProvider.choices,
        default=PaymentProvider.MANUAL,
    )
    payment_method = models.CharField(
        "meio",
        max_length=10,
        choices=PaymentMethod.choices,
        default=PaymentMethod.PIX,
    )
    gateway_backend = models.CharField("gateway", max_length=30, blank=True)
    status = models.CharField(
        "status",
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
    )
    description = models.CharField("descrição", max_length=255, blank=True)
    desired_plan = models.CharField("plano desejado", max_length=12, blank=True)
    payload = models.TextField("PIX copia e cola", blank=True)
    qr_image = models.TextField("QR code (data URL)", blank=True)
    payment_url = models.URLField("link de pagamento", max_length=500, blank=True)
    external_transaction_id = models.CharField("transação no gateway", max_length=120, blank=True)
    receipt_url = models.URLField("comprovante", max_length=500, blank=True)
    capture_method = models.CharField("forma de captura", max_length=30, blank=True)
    raw_payload = models.JSONField("payload", blank=True, null=True)
    expires_at = models.DateTimeField("expira em")
    paid_at = models.DateTimeField("pago em", blank=True, null=True)
    created_at = models.DateTimeField("criado em", auto_now_add=True)
    updated_at = models.DateTimeField("atualizado em", auto_now=True)

    objects = PaymentIntentQuerySet.as_manager()

    class Meta:
        verbose_name = "pagamento"
        verbose_name_plural = "pagamentos"
        ordering = ("-created_at",)
        indexes = [
            models.Index(fields=["external_transaction_id"], name="payments_pi_ext_tx_idx"),
            models.Index(fields=["reference_id", "payment_type"], name="payments_pi_ref_type_idx"),
            models.Index(fields=["status", "expires_at"], name="payments_pi_status_exp_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(amount__gt=0),
                name="payments_pi_amount_positive",
            ),
            models.CheckConstraint(
                condition=(
                    Q(status=PaymentStatus.PAID, paid_at__isnull=False)
                    | (~Q(status=PaymentStatus.PAID) & Q(paid_at__isnull=True))
                ),
                name="payments_pi_paid_at_iff_paid",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.user} - {self.payment_type} - {self.amount} - {self.status}"

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def transaction_reference(self) -> str:
        """TXID usado no payload PIX (até 25 caracteres alfanuméricos)."""
        return self.id.hex[:25]


class PaymentTransition(models.Model):
    intent = models.ForeignKey(
        PaymentIntent,
        on_delete=models.CASCADE,
        related_name="transitions",
    )
    from_status = models.CharField("de", max_length=20, choices=PaymentStatus.choices)
    to_status = models.CharField("para", max_length=20, choices=PaymentStatus.choices)
    source = models.CharField("origem", max_length=20, choices=ConfirmationSource.choices)
    evidence = models.JSONField("evidência", blank=True, null=True)
    created_at = models.DateTimeField("registrado em", auto_now_add=True)

    class Meta:
        verbose_name = "transição de pagamento"
        verbose_name_plural = "transições de pagamento"
        ordering = ("created_at", "id")

    def __str__(self) -> str:
        return f"{self.intent_id}: {self.from_status} -> {self.to_status} ({self.source})"
