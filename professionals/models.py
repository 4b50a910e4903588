from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models


class HirePaymentStatus(models.TextChoices):
    PENDING = "pending", "Pendente"
    PAID = "paid", "Pago"


class Professional(models.Model):
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="professional",
    )
    display_name = models.CharField("nome de exibição", max_length=120)
    balance = models.DecimalField(
        "saldo",
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Valor líquido a repassar, já descontada a taxa da plataforma.",
    )
    lp_unlocked = models.BooleanField("landing page liberada?", default=False)
    lp_unlocked_at = models.DateTimeField("liberada em", blank=True, null=True)
    lp_payment_id = models.CharField("pagamento da landing page", max_length=64, blank=True)
    created_at = models.DateTimeField("criado em", auto_now_add=True)
    updated_at = models.DateTimeField("atualizado em", auto_now=True)

    class Meta:
        verbose_name = "profissional"
        verbose_name_plural = "profissionais"
        ordering = ("display_name",)

    def __str__(self) -> str:
        return self.display_name


class ProfessionalHire(models.Model):
    professional = models.ForeignKey(
        Professional,
        on_delete=models.PROTECT,
        related_name="hires",
    )
    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="professional_hires",
    )
    paid_amount = models.DecimalField(
        "valor contratado",
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    is_paid = models.BooleanField("pago?", default=False)
    payment_status = models.CharField(
        "status do pagamento",
        max_length=20,
        choices=HirePaymentStatus.choices,
        default=HirePaymentStatus.PENDING,
    )
    platform_fee = models.DecimalField(
        "taxa da plataforma",
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    created_at = models.DateTimeField("criado em", auto_now_add=True)
    updated_at = models.DateTimeField("atualizado em", auto_now=True)

    class Meta:
        verbose_name = "contratação"
        verbose_name_plural = "contratações"
        ordering = ("-created_at",)

    def __str__(self) -> str:
        return f"{self.student} - {self.professional} - {self.payment_status}"


class ProfessionalChatRoom(models.Model):
    professional = models.ForeignKey(
        Professional,
        on_delete=models.CASCADE,
        related_name="chat_rooms",
    )
    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="professional_chat_rooms",
    )
    last_message_at = models.DateTimeField("última mensagem", blank=True, null=True)
    created_at = models.DateTimeField("criado em", auto_now_add=True)

    class Meta:
        verbose_name = "sala de chat"
        verbose_name_plural = "salas de chat"
        constraints = [
            models.UniqueConstraint(
                fields=["professional", "student"],
                name="uniq_chat_room_professional_student",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.professional} / {self.student}"
