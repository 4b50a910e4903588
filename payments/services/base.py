"""Tipos trocados entre a fábrica de pagamentos, as estratégias e os gateways."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any


@dataclass(frozen=True)
class PaymentRequest:
    user: Any
    amount: Decimal
    payment_type: str
    payment_method: str
    payer_email: str
    payer_name: str
    reference_id: str = ""
    description: str = ""
    desired_plan: str = ""

    @property
    def display_description(self) -> str:
        return self.description or f"Pagamento Nexfit: {self.payment_type}"

    def payer_names(self) -> tuple[str, str]:
        parts = (self.payer_name or "").split()
        first_name = parts[0] if parts else "Cliente"
        last_name = " ".join(parts[1:]) or "Nexfit"
        return first_name, last_name

    def metadata(self) -> dict[str, Any]:
        """Metadados enviados ao gateway para correlacionar o webhook."""
        return {
            "payment_type": self.payment_type,
            "reference_id": self.reference_id,
            "user_id": self.user.pk,
            "desired_plan": self.desired_plan,
        }


@dataclass(frozen=True)
class GatewayCharge:
    """Resposta do gateway já normalizada."""

    transaction_id: str
    payload: str = ""
    qr_image: str = ""
    payment_url: str = ""
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PaymentResult:
    """Formato único devolvido ao consumidor, seja PIX manual ou gateway."""

    payment_id: str
    provider: str
    payload: str
    qr_image: str
    expires_at: datetime
    payment_url: str = ""

    def as_dict(self) -> dict[str, Any]:
        return {
            "payment_id": self.payment_id,
            "provider": self.provider,
            "payload": self.payload,
            "qr_image": self.qr_image,
            "expires_at": self.expires_at.isoformat(),
            "payment_url": self.payment_url or None,
        }
