from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone


class StorePlan(models.TextChoices):
    FREE = "FREE", "Gratuito"
    PRO = "PRO", "Pro"


class OrderStatus(models.TextChoices):
    PENDING = "pending", "Aguardando pagamento"
    PAID = "paid", "Pago"
    SHIPPED = "shipped", "Enviado"
    DELIVERED = "delivered", "Entregue"
    CANCELLED = "cancelled", "Cancelado"


class MarketplaceStore(models.Model):
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="stores",
    )
    name = models.CharField("nome", max_length=120)
    subscription_plan = models.CharField(
        "plano",
        max_length=12,
        choices=StorePlan.choices,
        default=StorePlan.FREE,
    )
    plan_expires_at = models.DateTimeField("plano expira em", blank=True, null=True)
    plan_payment_id = models.CharField("pagamento do plano", max_length=64, blank=True)
    created_at = models.DateTimeField("criado em", auto_now_add=True)
    updated_at = models.DateTimeField("atualizado em", auto_now=True)

    class Meta:
        verbose_name = "loja"
        verbose_name_plural = "lojas"
        ordering = ("name",)

    def __str__(self) -> str:
        return self.name

    def has_active_plan(self) -> bool:
        if self.subscription_plan == StorePlan.FREE:
            return False
        return bool(self.plan_expires_at and self.plan_expires_at > timezone.now())


class MarketplaceOrder(models.Model):
    store = models.ForeignKey(
        MarketplaceStore,
        on_delete=models.PROTECT,
        related_name="orders",
    )
    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="marketplace_orders",
    )
    total = models.DecimalField(
        "total",
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    status = models.CharField(
        "status",
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
    )
    created_at = models.DateTimeField("criado em", auto_now_add=True)
    updated_at = models.DateTimeField("atualizado em", auto_now=True)

    class Meta:
        verbose_name = "pedido"
        verbose_name_plural = "pedidos"
        ordering = ("-created_at",)

    def __str__(self) -> str:
        return f"Pedido {self.pk} - {self.store} - {self.status}"
