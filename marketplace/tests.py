"""
Testes do app marketplace - lojas e pedidos.
"""

from datetime import timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone

from accounts.tests import create_user

from .models import MarketplaceOrder, MarketplaceStore, OrderStatus, StorePlan

# ---------------------------------------------------------------------------
# Factories / Fixtures
# ---------------------------------------------------------------------------


def create_store(owner=None, name: str = "Loja Fit", **kwargs) -> MarketplaceStore:
    owner = owner or create_user(email="lojista@example.com", first_name="Lojista")
    return MarketplaceStore.objects.create(owner=owner, name=name, **kwargs)


def create_order(customer=None, store=None, total: Decimal = Decimal("89.90"), **kwargs) -> MarketplaceOrder:
    store = store or create_store()
    customer = customer or create_user(email="cliente@example.com", first_name="Cliente")
    return MarketplaceOrder.objects.create(store=store, customer=customer, total=total, **kwargs)


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class MarketplaceStoreModelTest(TestCase):
    """Testes do modelo MarketplaceStore."""

    def test_loja_nova_comeca_no_plano_gratuito(self):
        store = create_store()
        self.assertEqual(store.subscription_plan, StorePlan.FREE)
        self.assertFalse(store.has_active_plan())

    def test_plano_pro_vigente(self):
        store = create_store(
            subscription_plan=StorePlan.PRO,
            plan_expires_at=timezone.now() + timedelta(days=5),
        )
        self.assertTrue(store.has_active_plan())

    def test_plano_pro_expirado(self):
        store = create_store(
            subscription_plan=StorePlan.PRO,
            plan_expires_at=timezone.now() - timedelta(minutes=1),
        )
        self.assertFalse(store.has_active_plan())


class MarketplaceOrderModelTest(TestCase):
    """Testes do modelo MarketplaceOrder."""

    def test_pedido_comeca_aguardando_pagamento(self):
        order = create_order()
        self.assertEqual(order.status, OrderStatus.PENDING)

    def test_str_contem_loja_e_status(self):
        order = create_order()
        self.assertIn("Loja Fit", str(order))
        self.assertIn("pending", str(order))
