from __future__ import annotations


class PaymentError(Exception):
    """Erro base do fluxo de pagamentos."""


class PaymentValidationError(PaymentError):
    """Dados de criação inválidos; nenhum registro é gravado."""

    def __init__(self, errors: dict[str, list[str]]):
        self.errors = errors
        super().__init__("; ".join(f"{field}: {' '.join(msgs)}" for field, msgs in errors.items()))


class GatewayError(PaymentError):
    """Gateway recusou a operação, não respondeu ou não está configurado."""


class PaymentNotFound(PaymentError):
    def __init__(self, payment_id: object):
        self.payment_id = payment_id
        super().__init__(f"Pagamento não encontrado: {payment_id}")


class SettlementError(PaymentError):
    """Efeito de liquidação impossível (agregado de referência ausente)."""
