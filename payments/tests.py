"""
Testes do app payments - PIX, provedores, confirmação, liquidação, webhooks e views.
"""

import hashlib
import hmac
import json
import threading
from datetime import timedelta
from decimal import Decimal
from io import StringIO
from unittest.mock import MagicMock, patch

import requests
from django.core.management import CommandError, call_command
from django.db import DatabaseError, OperationalError, connection
from django.test import TestCase, TransactionTestCase, override_settings
from django.urls import reverse
from django.utils import timezone

from accounts.models import Plan
from accounts.tests import create_user
from marketplace.models import OrderStatus, StorePlan
from marketplace.tests import create_order, create_store
from professionals.models import HirePaymentStatus, ProfessionalChatRoom
from professionals.tests import create_hire, create_professional

from . import realtime
from .exceptions import GatewayError, PaymentError, PaymentNotFound, PaymentValidationError
from .models import (
    ConfirmationSource,
    PaymentIntent,
    PaymentProvider,
    PaymentStatus,
    PaymentType,
)
from .services import pix
from .services.base import PaymentRequest
from .services.expiration import expire_if_stale
from .services.intents import create_payment, get_payment_by_reference, list_payments
from .services.mercadopago import extract_payment_id, validate_webhook_signature
from .services.providers import GatewayProvider, ManualPixProvider, get_provider
from .services.reconciler import Evidence, cancel_payment, check_status, confirm
from .services.settlement import settle, split_platform_fee
from .services.transitions import transition
from .services.watcher import PaymentWatcher
from .tasks import expire_stale_payments

INFINITEPAY_SECRET = "ci-infinitepay-secret"
MERCADOPAGO_SECRET = "ci-mercadopago-secret"

MP_PIX_RESPONSE = {
    "id": 123456789,
    "status": "pending",
    "point_of_interaction": {
        "transaction_data": {
            "qr_code": "00020101021226830014br.gov.bcb.pix2561qrcodes.mercadopago.com",
            "qr_code_base64": "iVBORw0KGgoAAAANSUhEUg==",
            "ticket_url": "https://www.mercadopago.com.br/payments/123456789/ticket",
        }
    },
}

# ---------------------------------------------------------------------------
# Factories / Fixtures
# ---------------------------------------------------------------------------


def create_intent(
    user,
    payment_type: str = PaymentType.LP_UNLOCK,
    amount: Decimal = Decimal("49.90"),
    reference_id="",
    expires_at=None,
    **kwargs,
) -> PaymentIntent:
    """Cria o pagamento direto no banco, sem passar pelo provedor."""
    return PaymentIntent.objects.create(
        user=user,
        amount=amount,
        payment_type=payment_type,
        reference_id=str(reference_id),
        expires_at=expires_at or timezone.now() + timedelta(hours=24),
        **kwargs,
    )


def payment_data(**overrides) -> dict:
    data = {
        "amount": "49.90",
        "payment_type": PaymentType.LP_UNLOCK,
        "payer_email": "user@example.com",
        "payer_name": "João Silva",
    }
    data.update(overrides)
    return data


def sign_infinitepay(body: str, secret: str = INFINITEPAY_SECRET) -> str:
    return hmac.new(secret.encode(), body.encode(), hashlib.sha256).hexdigest()


def sign_mercadopago(data_id: str, ts: str = "1704908010", secret: str = MERCADOPAGO_SECRET) -> str:
    manifest = f"id:{data_id};ts:{ts};"
    digest = hmac.new(secret.encode(), manifest.encode(), hashlib.sha256).hexdigest()
    return f"ts={ts},v1={digest}"


class WebhookClientMixin:
    def post_webhook(self, payload, secret: str = INFINITEPAY_SECRET, signature: str | None = None):
        body = payload if isinstance(payload, str) else json.dumps(payload)
        return self.client.post(
            reverse("payments:webhook"),
            data=body,
            content_type="application/json",
            HTTP_X_INFINITEPAY_SIGNATURE=signature if signature is not None else sign_infinitepay(body, secret),
        )

    def succeeded(self, intent, **extra) -> dict:
        payload = {
            "event": "payment.succeeded",
            "order_nsu": str(intent.pk),
            "transaction_nsu": "tx-001",
            "receipt_url": "https://comprovante.infinitepay.io/tx-001",
            "capture_method": "pix",
        }
        payload.update(extra)
        return payload


# ---------------------------------------------------------------------------
# Services - PIX (BR Code)
# ---------------------------------------------------------------------------


class Crc16Test(TestCase):
    """Testes de crc16_ccitt."""

    def test_valor_de_referencia_ccitt_false(self):
        self.assertEqual(pix.crc16_ccitt("123456789"), "29B1")

    def test_aceita_bytes(self):
        self.assertEqual(pix.crc16_ccitt(b"123456789"), "29B1")

    def test_sempre_quatro_digitos_maiusculos(self):
        crc = pix.crc16_ccitt("")
        self.assertEqual(crc, "FFFF")
        self.assertRegex(pix.crc16_ccitt("qualquer coisa"), r"^[0-9A-F]{4}$")


class BuildPayloadTest(TestCase):
    """Testes de build_payload / parse_payload / verify_payload."""

    def build(self, **kwargs):
        params = {
            "pix_key": "admin@nexfit.com",
            "receiver_name": "NEXFIT TECNOLOGIA",
            "amount": Decimal("10.00"),
            "description": "Pagamento Nexfit",
            "txid": "abc123",
            "city": "SAO PAULO",
        }
        params.update(kwargs)
        return pix.build_payload(**params)

    def test_payload_deterministico(self):
        self.assertEqual(self.build(), self.build())

    def test_campos_na_ordem_e_crc_confere(self):
        payload = self.build()
        fields = pix.parse_payload(payload)
        self.assertEqual(
            [f.id for f in fields],
            ["00", "26", "52", "53", "54", "58", "59", "60", "62", "63"],
        )
        values = {f.id: f.value for f in fields}
        self.assertEqual(values["00"], "01")
        self.assertEqual(values["53"], "986")
        self.assertEqual(values["54"], "10.00")
        self.assertEqual(values["58"], "BR")
        self.assertEqual(values["63"], pix.crc16_ccitt(payload[:-4]))
        self.assertTrue(pix.verify_payload(payload))

    def test_templates_aninhados(self):
        fields = {f.id: f for f in pix.parse_payload(self.build())}
        merchant = {c.id: c.value for c in fields["26"].children}
        self.assertEqual(merchant["00"], "br.gov.bcb.pix")
        self.assertEqual(merchant["01"], "admin@nexfit.com")
        self.assertEqual(merchant["02"], "Pagamento Nexfit")
        additional = {c.id: c.value for c in fields["62"].children}
        self.assertEqual(additional["05"], "abc123")

    def test_mutacao_de_um_bit_invalida_o_crc(self):
        payload = self.build()
        mutated = payload[:10] + chr(ord(payload[10]) ^ 1) + payload[11:]
        self.assertNotEqual(mutated, payload)
        self.assertFalse(pix.verify_payload(mutated))

    def test_nome_e_descricao_longos_sao_truncados_sem_quebrar_o_enquadramento(self):
        payload = self.build(receiver_name="A" * 40, description="D" * 200, city="C" * 30)
        fields = {f.id: f for f in pix.parse_payload(payload)}
        self.assertEqual(fields["59"].value, "A" * 25)
        self.assertEqual(fields["60"].value, "C" * 15)
        self.assertLessEqual(len(fields["26"].value), 99)
        self.assertTrue(fields["26"].children[-1].value.startswith("DDD"))
        self.assertTrue(pix.verify_payload(payload))

    def test_txid_limitado_a_25_alfanumericos(self):
        payload = self.build(txid="pedido-123/" + "x" * 40)
        fields = {f.id: f for f in pix.parse_payload(payload)}
        txid = fields["62"].children[0].value
        self.assertEqual(len(txid), 25)
        self.assertTrue(txid.isalnum())
        self.assertTrue(txid.startswith("pedido123"))

    def test_txid_vazio_vira_asteriscos(self):
        self.assertEqual(pix.sanitize_txid(""), "***")

    def test_acentos_sao_removidos(self):
        payload = self.build(receiver_name="José Conceição")
        fields = {f.id: f.value for f in pix.parse_payload(payload)}
        self.assertEqual(fields["59"], "Jose Conceicao")

    def test_valor_formatado_com_duas_casas(self):
        self.assertEqual(pix.format_amount(Decimal("89.9")), "89.90")
        self.assertEqual(pix.format_amount("0.005"), "0.01")

    def test_valor_nao_positivo_e_rejeitado(self):
        with self.assertRaises(pix.PixPayloadError):
            self.build(amount=Decimal("0"))

    def test_chave_vazia_e_rejeitada(self):
        with self.assertRaises(pix.PixPayloadError):
            self.build(pix_key="")

    def test_payload_truncado_nao_decodifica(self):
        with self.assertRaises(pix.PixPayloadError):
            pix.parse_payload(self.build()[:-6])

    def test_verify_rejeita_payload_sem_campo_63(self):
        self.assertFalse(pix.verify_payload("000201"))


# ---------------------------------------------------------------------------
# Services - extract_payment_id / assinaturas de webhook
# ---------------------------------------------------------------------------


class ExtractPaymentIdTest(TestCase):
    """Testes de extract_payment_id."""

    def test_extrai_de_query_params_data_id(self):
        self.assertEqual(extract_payment_id({"data.id": "12345"}, {}), "12345")

    def test_extrai_de_query_params_id(self):
        self.assertEqual(extract_payment_id({"id": "67890"}, {}), "67890")

    def test_extrai_de_payload_data_id(self):
        self.assertEqual(extract_payment_id({}, {"data": {"id": 99999}}), "99999")

    def test_retorna_none_quando_ausente(self):
        self.assertIsNone(extract_payment_id({}, {}))
        self.assertIsNone(extract_payment_id({}, {"data": {}}))


class ValidateWebhookSignatureTest(TestCase):
    """Testes de validate_webhook_signature (Mercado Pago)."""

    def test_rejeita_quando_secret_vazio(self):
        self.assertFalse(validate_webhook_signature("ts=1,v1=abc", None, "123", ""))

    def test_retorna_false_quando_x_signature_ausente(self):
        self.assertFalse(validate_webhook_signature(None, None, "123", "my_secret"))

    def test_retorna_false_quando_data_id_ausente(self):
        self.assertFalse(validate_webhook_signature("ts=1,v1=abc", None, None, "my_secret"))

    def test_valida_assinatura_correta(self):
        x_signature = sign_mercadopago("12345", secret="test_secret")
        self.assertTrue(validate_webhook_signature(x_signature, None, "12345", "test_secret"))

    def test_valida_assinatura_com_request_id(self):
        manifest = "id:12345;request-id:req-1;ts:1704908010;"
        digest = hmac.new(b"test_secret", manifest.encode(), hashlib.sha256).hexdigest()
        x_signature = f"ts=1704908010,v1={digest}"
        self.assertTrue(validate_webhook_signature(x_signature, "req-1", "12345", "test_secret"))

    def test_rejeita_assinatura_invalida(self):
        x_signature = "ts=1704908010,v1=invalid_hash"
        self.assertFalse(validate_webhook_signature(x_signature, None, "12345", "my_secret"))


class InfinitePaySignatureTest(TestCase):
    """Testes de verify_webhook_signature (InfinitePay)."""

    def test_assinatura_correta_com_e_sem_prefixo(self):
        from .services.infinitepay import verify_webhook_signature

        body = b'{"event": "payment.succeeded"}'
        digest = hmac.new(b"segredo", body, hashlib.sha256).hexdigest()
        self.assertTrue(verify_webhook_signature(body, digest, "segredo"))
        self.assertTrue(verify_webhook_signature(body, f"sha256={digest}", "segredo"))

    def test_rejeita_sem_secret_ou_sem_cabecalho(self):
        from .services.infinitepay import verify_webhook_signature

        self.assertFalse(verify_webhook_signature(b"{}", "qualquer", ""))
        self.assertFalse(verify_webhook_signature(b"{}", None, "segredo"))


# ---------------------------------------------------------------------------
# Services - provedores e criação
# ---------------------------------------------------------------------------


class PaymentRequestTest(TestCase):
    """Testes de PaymentRequest."""

    def test_nome_do_pagador_separado_em_nome_e_sobrenome(self):
        request = PaymentRequest(
            user=None,
            amount=Decimal("1.00"),
            payment_type=PaymentType.SUBSCRIPTION,
            payment_method="pix",
            payer_email="a@b.com",
            payer_name="Maria da Silva",
        )
        self.assertEqual(request.payer_names(), ("Maria", "da Silva"))

    def test_nome_vazio_usa_padrao(self):
        request = PaymentRequest(
            user=None,
            amount=Decimal("1.00"),
            payment_type=PaymentType.SUBSCRIPTION,
            payment_method="pix",
            payer_email="a@b.com",
            payer_name="",
        )
        self.assertEqual(request.payer_names(), ("Cliente", "Nexfit"))


class ProviderSelectionTest(TestCase):
    """Testes da tabela tipo -> provedor."""

    def test_tipos_de_gateway(self):
        for payment_type in (
            PaymentType.SUBSCRIPTION,
            PaymentType.STORE_PLAN,
            PaymentType.MARKETPLACE_ORDER,
        ):
            self.assertIsInstance(get_provider(payment_type), GatewayProvider)

    def test_tipos_manuais(self):
        for payment_type in (PaymentType.LP_UNLOCK, PaymentType.PROFESSIONAL_SERVICE):
            self.assertIsInstance(get_provider(payment_type), ManualPixProvider)

    def test_provedor_pedido_vence_a_tabela(self):
        provider = get_provider(PaymentType.SUBSCRIPTION, PaymentProvider.MANUAL)
        self.assertIsInstance(provider, ManualPixProvider)

    @override_settings(PAYMENTS_GATEWAY_BACKEND="inexistente")
    def test_gateway_desconhecido(self):
        with self.assertRaises(GatewayError):
            GatewayProvider()


class ManualCreatePaymentTest(TestCase):
    """Testes do caminho PIX manual."""

    def setUp(self):
        self.user = create_user()
        self.professional = create_professional()

    def test_cria_pendente_com_payload_valido_e_qr(self):
        result = create_payment(self.user, payment_data(reference_id=str(self.professional.pk)))

        intent = PaymentIntent.objects.get(pk=result.payment_id)
        self.assertEqual(intent.status, PaymentStatus.PENDING)
        self.assertEqual(intent.provider, PaymentProvider.MANUAL)
        self.assertEqual(result.provider, PaymentProvider.MANUAL)
        self.assertTrue(pix.verify_payload(result.payload))
        self.assertIn(f"0525{intent.id.hex[:25]}", result.payload)
        self.assertTrue(result.qr_image.startswith("data:image/png;base64,"))
        self.assertIsNone(result.as_dict()["payment_url"])

    def test_expira_em_24_horas(self):
        before = timezone.now()
        result = create_payment(self.user, payment_data(reference_id=str(self.professional.pk)))
        self.assertAlmostEqual(
            result.expires_at,
            before + timedelta(hours=24),
            delta=timedelta(seconds=5),
        )

    @patch("payments.services.providers.render_data_url", side_effect=RuntimeError("sem PIL"))
    def test_falha_no_qr_nao_impede_a_criacao(self, mock_render):
        result = create_payment(self.user, payment_data(reference_id=str(self.professional.pk)))
        self.assertEqual(result.qr_image, "")
        self.assertTrue(pix.verify_payload(result.payload))
        self.assertEqual(PaymentIntent.objects.count(), 1)

    @patch("payments.services.providers.pix.build_payload", side_effect=pix.PixPayloadError("chave"))
    def test_falha_no_payload_nao_deixa_linha_orfa(self, mock_build):
        with self.assertRaises(PaymentError):
            create_payment(self.user, payment_data(reference_id=str(self.professional.pk)))
        self.assertEqual(PaymentIntent.objects.count(), 0)

    def test_servico_profissional_referencia_a_contratacao(self):
        hire = create_hire(student=self.user, professional=self.professional)
        result = create_payment(
            self.user,
            payment_data(
                amount="200.00",
                payment_type=PaymentType.PROFESSIONAL_SERVICE,
                reference_id=str(hire.pk),
            ),
        )
        intent = PaymentIntent.objects.get(pk=result.payment_id)
        self.assertEqual(intent.reference_id, str(hire.pk))
        self.assertEqual(intent.amount, Decimal("200.00"))


class CreatePaymentValidationTest(TestCase):
    """Erros de validação não gravam nada."""

    def setUp(self):
        self.user = create_user()
        self.professional = create_professional()

    def assertInvalid(self, data, field):
        with self.assertRaises(PaymentValidationError) as ctx:
            create_payment(self.user, data)
        self.assertIn(field, ctx.exception.errors)
        self.assertEqual(PaymentIntent.objects.count(), 0)

    def test_valor_zero(self):
        self.assertInvalid(payment_data(amount="0", reference_id=str(self.professional.pk)), "amount")

    def test_valor_malformado(self):
        self.assertInvalid(payment_data(amount="abc", reference_id=str(self.professional.pk)), "amount")

    def test_tipo_desconhecido(self):
        self.assertInvalid(payment_data(payment_type="doacao"), "payment_type")

    def test_sem_email_do_pagador(self):
        data = payment_data(reference_id=str(self.professional.pk))
        del data["payer_email"]
        self.assertInvalid(data, "payer_email")

    def test_referencia_obrigatoria(self):
        self.assertInvalid(payment_data(), "reference_id")

    def test_referencia_inexistente(self):
        self.assertInvalid(payment_data(reference_id="999999"), "reference_id")

    def test_referencia_nao_numerica(self):
        self.assertInvalid(
            payment_data(payment_type=PaymentType.MARKETPLACE_ORDER, reference_id="order-123"),
            "reference_id",
        )

    def test_manual_nao_aceita_cartao(self):
        self.assertInvalid(
            payment_data(reference_id=str(self.professional.pk), payment_method="card"),
            "payment_method",
        )

    def test_plano_fora_de_assinatura(self):
        self.assertInvalid(
            payment_data(reference_id=str(self.professional.pk), desired_plan=Plan.ELITE),
            "desired_plan",
        )


class GatewayCreatePaymentTest(TestCase):
    """Testes do caminho gateway (Mercado Pago e InfinitePay)."""

    def setUp(self):
        self.user = create_user()

    @patch("payments.services.mercadopago.create_payment")
    def test_pix_mercadopago_normaliza_resposta(self, mock_create):
        mock_create.return_value = MP_PIX_RESPONSE
        result = create_payment(
            self.user,
            payment_data(
                amount="59.90",
                payment_type=PaymentType.SUBSCRIPTION,
                desired_plan=Plan.ELITE,
            ),
        )

        intent = PaymentIntent.objects.get(pk=result.payment_id)
        self.assertEqual(intent.provider, PaymentProvider.GATEWAY)
        self.assertEqual(intent.gateway_backend, "mercadopago")
        self.assertEqual(intent.external_transaction_id, "123456789")
        self.assertEqual(intent.desired_plan, Plan.ELITE)
        self.assertEqual(result.payload, MP_PIX_RESPONSE["point_of_interaction"]["transaction_data"]["qr_code"])
        self.assertTrue(result.qr_image.startswith("data:image/png;base64,"))
        self.assertIn("ticket", result.payment_url)

        sent_payload = mock_create.call_args.args[0]
        self.assertEqual(mock_create.call_args.kwargs["idempotency_key"], result.payment_id)
        self.assertEqual(sent_payload["external_reference"], result.payment_id)
        self.assertEqual(sent_payload["metadata"]["payment_type"], PaymentType.SUBSCRIPTION)
        self.assertEqual(sent_payload["metadata"]["user_id"], self.user.pk)
        self.assertEqual(sent_payload["payer"]["first_name"], "João")
        self.assertEqual(sent_payload["payer"]["last_name"], "Silva")

    @patch("payments.services.mercadopago.create_preference")
    def test_cartao_mercadopago_usa_checkout(self, mock_preference):
        mock_preference.return_value = {
            "id": "pref-1",
            "init_point": "https://www.mercadopago.com.br/checkout/v1/redirect?pref_id=pref-1",
        }
        result = create_payment(
            self.user,
            payment_data(payment_type=PaymentType.SUBSCRIPTION, payment_method="card"),
        )
        self.assertIn("pref_id=pref-1", result.payment_url)
        self.assertEqual(result.payload, "")
        self.assertEqual(
            PaymentIntent.objects.get(pk=result.payment_id).payment_method,
            "card",
        )

    @patch("payments.services.mercadopago.create_payment", side_effect=GatewayError("recusado"))
    def test_falha_no_gateway_nao_cria_linha(self, mock_create):
        with self.assertRaises(GatewayError):
            create_payment(self.user, payment_data(payment_type=PaymentType.SUBSCRIPTION))
        self.assertEqual(PaymentIntent.objects.count(), 0)

    @patch("payments.services.mercadopago.requests.post")
    def test_erro_de_rede_vira_gateway_error(self, mock_post):
        mock_post.side_effect = requests.ConnectionError("timeout")
        with self.assertRaises(GatewayError):
            create_payment(self.user, payment_data(payment_type=PaymentType.SUBSCRIPTION))
        self.assertEqual(PaymentIntent.objects.count(), 0)

    @override_settings(MERCADOPAGO_ACCESS_TOKEN="")
    def test_sem_token_vira_gateway_error(self):
        with self.assertRaises(GatewayError):
            create_payment(self.user, payment_data(payment_type=PaymentType.SUBSCRIPTION))

    @override_settings(PAYMENTS_GATEWAY_BACKEND="infinitepay")
    @patch("payments.services.infinitepay.requests.post")
    def test_infinitepay_envia_centavos_e_order_nsu(self, mock_post):
        store = create_store(owner=self.user)
        mock_post.return_value = MagicMock(
            ok=True,
            json=MagicMock(
                return_value={
                    "slug": "link-abc",
                    "payment_url": "https://pay.infinitepay.io/nexfit/link-abc",
                    "pix_code": "00020126...",
                    "qr_code_url": "https://pay.infinitepay.io/qr/link-abc.png",
                }
            ),
        )
        result = create_payment(
            self.user,
            payment_data(
                amount="89.90",
                payment_type=PaymentType.STORE_PLAN,
                reference_id=str(store.pk),
            ),
        )

        sent = mock_post.call_args.kwargs["json"]
        self.assertEqual(sent["amount"], 8990)
        self.assertEqual(sent["order_nsu"], result.payment_id)
        self.assertEqual(sent["expires_in"], 86400)
        self.assertEqual(result.payment_url, "https://pay.infinitepay.io/nexfit/link-abc")
        intent = PaymentIntent.objects.get(pk=result.payment_id)
        self.assertEqual(intent.gateway_backend, "infinitepay")
        self.assertEqual(intent.external_transaction_id, "link-abc")


# ---------------------------------------------------------------------------
# Services - transição, expiração e confirmação
# ---------------------------------------------------------------------------


class TransitionTest(TestCase):
    """Testes do UPDATE condicional."""

    def setUp(self):
        self.user = create_user()
        self.intent = create_intent(self.user)

    def test_primeira_transicao_vence_e_registra_auditoria(self):
        self.assertTrue(transition(self.intent.pk, PaymentStatus.PAID, ConfirmationSource.ADMIN))
        self.assertFalse(transition(self.intent.pk, PaymentStatus.PAID, ConfirmationSource.WEBHOOK))
        self.intent.refresh_from_db()
        self.assertEqual(self.intent.status, PaymentStatus.PAID)
        self.assertIsNotNone(self.intent.paid_at)
        self.assertEqual(self.intent.transitions.count(), 1)
        audit = self.intent.transitions.get()
        self.assertEqual(audit.source, ConfirmationSource.ADMIN)
        self.assertEqual(audit.from_status, PaymentStatus.PENDING)

    def test_paid_at_so_existe_em_pago(self):
        transition(self.intent.pk, PaymentStatus.FAILED, ConfirmationSource.WEBHOOK)
        self.intent.refresh_from_db()
        self.assertIsNone(self.intent.paid_at)


class LazyExpiryTest(TestCase):
    """Testes da expiração preguiçosa."""

    def setUp(self):
        self.user = create_user()

    def test_pendente_vencido_vira_expirado_na_leitura(self):
        intent = create_intent(self.user, expires_at=timezone.now() - timedelta(seconds=1))
        self.assertEqual(check_status(intent.pk), PaymentStatus.EXPIRED)
        intent.refresh_from_db()
        self.assertEqual(intent.status, PaymentStatus.EXPIRED)
        self.assertIsNone(intent.paid_at)
        self.assertEqual(intent.transitions.get().source, ConfirmationSource.POLL)

    def test_pendente_no_prazo_continua_pendente(self):
        intent = create_intent(self.user)
        self.assertEqual(check_status(intent.pk), PaymentStatus.PENDING)
        self.assertFalse(intent.transitions.exists())

    def test_status_final_nao_expira(self):
        intent = create_intent(
            self.user,
            status=PaymentStatus.CANCELLED,
            expires_at=timezone.now() - timedelta(days=1),
        )
        self.assertEqual(expire_if_stale(intent), PaymentStatus.CANCELLED)

    def test_id_desconhecido_nao_e_expirado(self):
        with self.assertRaises(PaymentNotFound):
            check_status("00000000-0000-0000-0000-000000000000")
        with self.assertRaises(PaymentNotFound):
            check_status("nao-e-uuid")

    def test_dono_diferente_nao_enxerga(self):
        intent = create_intent(self.user)
        other = create_user(email="outro@example.com")
        with self.assertRaises(PaymentNotFound):
            check_status(intent.pk, user=other)

    def test_task_periodica_expira_pendentes_vencidos(self):
        create_intent(self.user, expires_at=timezone.now() - timedelta(hours=1))
        create_intent(self.user)
        self.assertEqual(expire_stale_payments.apply().get(), 1)
        self.assertEqual(PaymentIntent.objects.filter(status=PaymentStatus.EXPIRED).count(), 1)


class ConfirmTest(TestCase):
    """Testes de confirm: guarda, origens e estados finais."""

    def setUp(self):
        self.user = create_user()
        self.professional = create_professional()
        self.hire = create_hire(professional=self.professional, student=self.user)
        self.intent = create_intent(
            self.user,
            payment_type=PaymentType.PROFESSIONAL_SERVICE,
            amount=Decimal("200.00"),
            reference_id=self.hire.pk,
        )

    def test_confirmacao_do_admin_paga_e_liquida(self):
        result = confirm(self.intent.pk, ConfirmationSource.ADMIN)
        self.assertTrue(result.changed)
        self.assertEqual(result.status, PaymentStatus.PAID)
        self.professional.refresh_from_db()
        self.assertEqual(self.professional.balance, Decimal("170.00"))

    def test_confirmacao_repetida_liquida_uma_vez(self):
        confirm(self.intent.pk, ConfirmationSource.ADMIN)
        second = confirm(self.intent.pk, ConfirmationSource.WEBHOOK)
        self.assertFalse(second.changed)
        self.assertEqual(second.status, PaymentStatus.PAID)
        self.professional.refresh_from_db()
        self.assertEqual(self.professional.balance, Decimal("170.00"))
        self.assertEqual(self.intent.transitions.count(), 1)

    def test_leitura_desatualizada_perde_a_corrida(self):
        stale = PaymentIntent.objects.get(pk=self.intent.pk)
        confirm(self.intent.pk, ConfirmationSource.ADMIN)
        with patch("payments.services.reconciler.get_intent", return_value=stale):
            result = confirm(self.intent.pk, ConfirmationSource.WEBHOOK)
        self.assertFalse(result.changed)
        self.assertEqual(result.status, PaymentStatus.PAID)
        self.professional.refresh_from_db()
        self.assertEqual(self.professional.balance, Decimal("170.00"))

    def test_consulta_e_tempo_real_nunca_marcam_pago(self):
        for source in (ConfirmationSource.POLL, ConfirmationSource.REALTIME):
            result = confirm(self.intent.pk, source, Evidence(status=PaymentStatus.PAID))
            self.assertFalse(result.changed)
            self.assertEqual(result.status, PaymentStatus.PENDING)

    def test_webhook_atrasado_apos_expiracao_e_ignorado(self):
        PaymentIntent.objects.filter(pk=self.intent.pk).update(
            expires_at=timezone.now() - timedelta(minutes=1)
        )
        check_status(self.intent.pk)
        result = confirm(self.intent.pk, ConfirmationSource.WEBHOOK)
        self.assertFalse(result.changed)
        self.assertEqual(result.status, PaymentStatus.EXPIRED)
        self.hire.refresh_from_db()
        self.assertFalse(self.hire.is_paid)

    def test_pago_vencido_ainda_pendente_e_aceito(self):
        PaymentIntent.objects.filter(pk=self.intent.pk).update(
            expires_at=timezone.now() - timedelta(minutes=1)
        )
        result = confirm(self.intent.pk, ConfirmationSource.WEBHOOK)
        self.assertTrue(result.changed)
        self.assertEqual(result.status, PaymentStatus.PAID)

    def test_estados_finais_sao_absorventes(self):
        confirm(self.intent.pk, ConfirmationSource.ADMIN)
        for status in (PaymentStatus.REFUNDED, PaymentStatus.FAILED):
            result = confirm(self.intent.pk, ConfirmationSource.WEBHOOK, Evidence(status=status))
            self.assertFalse(result.changed)
            self.assertEqual(result.status, PaymentStatus.PAID)

    def test_falha_do_webhook_marca_failed(self):
        result = confirm(
            self.intent.pk,
            ConfirmationSource.WEBHOOK,
            Evidence(status=PaymentStatus.FAILED, transaction_id="tx-9"),
        )
        self.assertTrue(result.changed)
        self.intent.refresh_from_db()
        self.assertEqual(self.intent.status, PaymentStatus.FAILED)
        self.assertEqual(self.intent.external_transaction_id, "tx-9")
        self.assertIsNone(self.intent.paid_at)
        self.hire.refresh_from_db()
        self.assertFalse(self.hire.is_paid)

    def test_admin_nao_pode_marcar_falha(self):
        with self.assertRaises(ValueError):
            confirm(self.intent.pk, ConfirmationSource.ADMIN, Evidence(status=PaymentStatus.FAILED))

    def test_dados_do_comprovante_gravados_no_pagamento(self):
        confirm(
            self.intent.pk,
            ConfirmationSource.WEBHOOK,
            Evidence(
                transaction_id="tx-1",
                receipt_url="https://comprovante.example.com/tx-1",
                capture_method="pix",
                raw={"event": "payment.succeeded"},
            ),
        )
        self.intent.refresh_from_db()
        self.assertEqual(self.intent.receipt_url, "https://comprovante.example.com/tx-1")
        self.assertEqual(self.intent.capture_method, "pix")
        self.assertEqual(self.intent.raw_payload, {"event": "payment.succeeded"})

    def test_falha_na_liquidacao_desfaz_o_pago(self):
        self.hire.delete()
        with self.assertRaises(PaymentError):
            confirm(self.intent.pk, ConfirmationSource.ADMIN)
        self.intent.refresh_from_db()
        self.assertEqual(self.intent.status, PaymentStatus.PENDING)
        self.assertIsNone(self.intent.paid_at)
        self.assertFalse(self.intent.transitions.exists())

    def test_cancelamento_so_enquanto_pendente(self):
        result = cancel_payment(self.intent.pk, user=self.user)
        self.assertTrue(result.changed)
        self.assertEqual(result.status, PaymentStatus.CANCELLED)

        again = cancel_payment(self.intent.pk, user=self.user)
        self.assertFalse(again.changed)

        late = confirm(self.intent.pk, ConfirmationSource.WEBHOOK)
        self.assertEqual(late.status, PaymentStatus.CANCELLED)

    def test_cancelar_pago_nao_tem_efeito(self):
        confirm(self.intent.pk, ConfirmationSource.ADMIN)
        result = cancel_payment(self.intent.pk)
        self.assertFalse(result.changed)
        self.assertEqual(result.status, PaymentStatus.PAID)


# ---------------------------------------------------------------------------
# Services - liquidação
# ---------------------------------------------------------------------------


class ConcurrentConfirmTest(TransactionTestCase):
    """Duas confirmações simultâneas passam pela checagem de pending; só uma liquida."""

    def setUp(self):
        self.user = create_user()
        self.professional = create_professional()
        self.hire = create_hire(professional=self.professional, student=self.user)
        self.intent = create_intent(
            self.user,
            payment_type=PaymentType.PROFESSIONAL_SERVICE,
            amount=Decimal("200.00"),
            reference_id=self.hire.pk,
        )

    def test_confirmacoes_simultaneas_liquidam_uma_vez(self):
        from .services import intents

        barrier = threading.Barrier(2, timeout=5)
        real_get_intent = intents.get_intent
        results, errors = [], []

        def get_intent_then_wait(*args, **kwargs):
            intent = real_get_intent(*args, **kwargs)
            barrier.wait()
            return intent

        def run(source):
            try:
                results.append(confirm(self.intent.pk, source))
            except OperationalError as exc:
                # SQLite em memória trava a tabela para o segundo escritor
                errors.append(exc)
            finally:
                connection.close()

        with patch("payments.services.reconciler.get_intent", side_effect=get_intent_then_wait):
            threads = [
                threading.Thread(target=run, args=(source,))
                for source in (ConfirmationSource.ADMIN, ConfirmationSource.WEBHOOK)
            ]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join(timeout=10)

        self.assertEqual(len(results) + len(errors), 2)
        self.assertEqual(sum(1 for result in results if result.changed), 1)
        self.intent.refresh_from_db()
        self.assertEqual(self.intent.status, PaymentStatus.PAID)
        self.assertEqual(self.intent.transitions.count(), 1)
        self.professional.refresh_from_db()
        self.assertEqual(self.professional.balance, Decimal("170.00"))


class SettlementTest(TestCase):
    """Testes dos efeitos por tipo de pagamento."""

    def setUp(self):
        self.user = create_user()
        self.now = timezone.now()

    def test_divisao_da_taxa(self):
        self.assertEqual(split_platform_fee(Decimal("200.00")), (Decimal("30.00"), Decimal("170.00")))
        self.assertEqual(split_platform_fee(Decimal("89.90")), (Decimal("13.49"), Decimal("76.41")))

    def test_servico_profissional(self):
        professional = create_professional()
        hire = create_hire(professional=professional, student=self.user)
        intent = create_intent(
            self.user,
            payment_type=PaymentType.PROFESSIONAL_SERVICE,
            amount=Decimal("200.00"),
            reference_id=hire.pk,
        )
        settle(intent, self.now)
        settle(intent, self.now)

        hire.refresh_from_db()
        professional.refresh_from_db()
        self.assertTrue(hire.is_paid)
        self.assertEqual(hire.payment_status, HirePaymentStatus.PAID)
        self.assertEqual(hire.platform_fee, Decimal("30.00"))
        self.assertEqual(professional.balance, Decimal("170.00"))
        self.assertEqual(
            ProfessionalChatRoom.objects.filter(professional=professional, student=self.user).count(),
            1,
        )
        room = ProfessionalChatRoom.objects.get(professional=professional, student=self.user)
        self.assertEqual(room.last_message_at, self.now)

    def test_servico_profissional_sem_valor_usa_o_do_pagamento(self):
        professional = create_professional()
        hire = create_hire(professional=professional, student=self.user, paid_amount=Decimal("0"))
        intent = create_intent(
            self.user,
            payment_type=PaymentType.PROFESSIONAL_SERVICE,
            amount=Decimal("100.00"),
            reference_id=hire.pk,
        )
        settle(intent, self.now)
        professional.refresh_from_db()
        self.assertEqual(professional.balance, Decimal("85.00"))

    def test_sala_existente_nao_e_duplicada(self):
        professional = create_professional()
        hire = create_hire(professional=professional, student=self.user)
        ProfessionalChatRoom.objects.create(professional=professional, student=self.user)
        intent = create_intent(
            self.user,
            payment_type=PaymentType.PROFESSIONAL_SERVICE,
            amount=Decimal("200.00"),
            reference_id=hire.pk,
        )
        settle(intent, self.now)
        self.assertEqual(ProfessionalChatRoom.objects.count(), 1)

    def test_liberacao_de_landing_page(self):
        professional = create_professional()
        intent = create_intent(self.user, reference_id=professional.pk)
        settle(intent, self.now)
        professional.refresh_from_db()
        self.assertTrue(professional.lp_unlocked)
        self.assertEqual(professional.lp_unlocked_at, self.now)
        self.assertEqual(professional.lp_payment_id, str(intent.pk))

    def test_assinatura_sem_plano_usa_padrao(self):
        intent = create_intent(self.user, payment_type=PaymentType.SUBSCRIPTION)
        settle(intent, self.now)
        self.user.profile.refresh_from_db()
        self.assertEqual(self.user.profile.plan, Plan.ADVANCE)
        self.assertEqual(self.user.profile.plan_expires_at, self.now + timedelta(days=30))
        self.assertEqual(self.user.profile.plan_payment_id, str(intent.pk))

    def test_plano_da_loja(self):
        store = create_store(owner=self.user)
        intent = create_intent(self.user, payment_type=PaymentType.STORE_PLAN, reference_id=store.pk)
        settle(intent, self.now)
        store.refresh_from_db()
        self.assertEqual(store.subscription_plan, StorePlan.PRO)
        self.assertEqual(store.plan_expires_at, self.now + timedelta(days=30))

    def test_reaplicar_plano_da_loja_nao_estende_a_data(self):
        store = create_store(owner=self.user)
        intent = create_intent(self.user, payment_type=PaymentType.STORE_PLAN, reference_id=store.pk)
        settle(intent, self.now)
        settle(intent, self.now + timedelta(days=3))
        store.refresh_from_db()
        self.assertEqual(store.plan_expires_at, self.now + timedelta(days=30))

    def test_pedido_do_marketplace(self):
        order = create_order(customer=self.user)
        intent = create_intent(self.user, payment_type=PaymentType.MARKETPLACE_ORDER, reference_id=order.pk)
        settle(intent, self.now)
        order.refresh_from_db()
        self.assertEqual(order.status, OrderStatus.PAID)

    def test_pedido_cancelado_nao_volta_para_pago(self):
        order = create_order(customer=self.user, status=OrderStatus.CANCELLED)
        intent = create_intent(self.user, payment_type=PaymentType.MARKETPLACE_ORDER, reference_id=order.pk)
        settle(intent, self.now)
        order.refresh_from_db()
        self.assertEqual(order.status, OrderStatus.CANCELLED)


# ---------------------------------------------------------------------------
# Realtime e watcher
# ---------------------------------------------------------------------------


class RealtimeTest(TestCase):
    """Testes do canal de mudanças de status."""

    def setUp(self):
        self.user = create_user()
        self.professional = create_professional()
        self.intent = create_intent(self.user, reference_id=self.professional.pk)

    def test_assinante_recebe_status_apos_commit(self):
        received = []
        unsubscribe = realtime.subscribe(self.intent.pk, lambda pid, status: received.append((pid, status)))
        self.addCleanup(unsubscribe)

        with self.captureOnCommitCallbacks(execute=True):
            confirm(self.intent.pk, ConfirmationSource.ADMIN)
            self.assertEqual(received, [])

        self.assertEqual(received, [(str(self.intent.pk), PaymentStatus.PAID)])

    def test_assinante_de_outro_pagamento_nao_recebe(self):
        received = []
        other = create_intent(self.user, reference_id=self.professional.pk)
        unsubscribe = realtime.subscribe(other.pk, lambda pid, status: received.append(status))
        self.addCleanup(unsubscribe)

        with self.captureOnCommitCallbacks(execute=True):
            confirm(self.intent.pk, ConfirmationSource.ADMIN)
        self.assertEqual(received, [])

    def test_cancelar_assinatura(self):
        received = []
        unsubscribe = realtime.subscribe(self.intent.pk, lambda pid, status: received.append(status))
        unsubscribe()
        with self.captureOnCommitCallbacks(execute=True):
            cancel_payment(self.intent.pk)
        self.assertEqual(received, [])


class PaymentWatcherTest(TestCase):
    """Testes do laço consulta + tempo real."""

    def setUp(self):
        self.user = create_user()
        self.professional = create_professional()
        self.intent = create_intent(self.user, reference_id=self.professional.pk)

    def test_retorna_imediatamente_quando_ja_pago(self):
        confirm(self.intent.pk, ConfirmationSource.ADMIN)
        changes = []
        status = PaymentWatcher(self.intent.pk, timeout=1, on_change=changes.append).run()
        self.assertEqual(status, PaymentStatus.PAID)
        self.assertEqual(changes, [PaymentStatus.PAID])

    def test_timeout_devolve_pendente(self):
        status = PaymentWatcher(self.intent.pk, poll_interval=0.01, timeout=0.05).run()
        self.assertEqual(status, PaymentStatus.PENDING)

    def test_pendente_vencido_termina_como_expirado(self):
        PaymentIntent.objects.filter(pk=self.intent.pk).update(
            expires_at=timezone.now() - timedelta(seconds=1)
        )
        status = PaymentWatcher(self.intent.pk, timeout=1).run()
        self.assertEqual(status, PaymentStatus.EXPIRED)

    def test_push_acorda_o_laco_antes_do_intervalo(self):
        calls = []

        def fake_confirm(payment_id, source, user=None):
            calls.append(source)
            if len(calls) == 1:
                realtime.payment_status_changed.send(
                    sender=None, payment_id=str(payment_id), status=PaymentStatus.PAID
                )
                return MagicMock(status=PaymentStatus.PENDING)
            return MagicMock(status=PaymentStatus.PAID)

        with patch("payments.services.watcher.confirm", side_effect=fake_confirm):
            status = PaymentWatcher(self.intent.pk, poll_interval=30, timeout=5).run()

        self.assertEqual(status, PaymentStatus.PAID)
        self.assertEqual(calls, [ConfirmationSource.POLL, ConfirmationSource.REALTIME])

    def test_comando_watch_payment(self):
        confirm(self.intent.pk, ConfirmationSource.ADMIN)
        out = StringIO()
        call_command("watch_payment", str(self.intent.pk), "--timeout", "1", stdout=out)
        self.assertIn("confirmado", out.getvalue())

    def test_comando_watch_payment_id_desconhecido(self):
        with self.assertRaises(CommandError):
            call_command(
                "watch_payment",
                "00000000-0000-0000-0000-000000000000",
                "--timeout",
                "0.1",
                stdout=StringIO(),
            )


# ---------------------------------------------------------------------------
# Cenários ponta a ponta
# ---------------------------------------------------------------------------


class MarketplaceScenarioTest(WebhookClientMixin, TestCase):
    """Pedido do marketplace pago pelo webhook, com reentrega duplicada."""

    @patch("payments.services.mercadopago.create_payment")
    def test_webhook_duplicado_nao_repete_efeitos(self, mock_create):
        mock_create.return_value = MP_PIX_RESPONSE
        user = create_user()
        order = create_order(customer=user)
        result = create_payment(
            user,
            payment_data(
                amount="89.90",
                payment_type=PaymentType.MARKETPLACE_ORDER,
                reference_id=str(order.pk),
            ),
        )
        intent = PaymentIntent.objects.get(pk=result.payment_id)

        first = self.post_webhook(self.succeeded(intent))
        self.assertEqual(first.status_code, 200)
        self.assertEqual(first.json(), {"success": True, "status": "paid"})
        order.refresh_from_db()
        self.assertEqual(order.status, OrderStatus.PAID)

        second = self.post_webhook(self.succeeded(intent))
        self.assertEqual(second.status_code, 200)
        self.assertEqual(second.json()["status"], "paid")
        self.assertEqual(intent.transitions.count(), 1)
        order.refresh_from_db()
        self.assertEqual(order.status, OrderStatus.PAID)


class SubscriptionScenarioTest(WebhookClientMixin, TestCase):
    """Assinatura ELITE liquidada com expiração em 30 dias."""

    @patch("payments.services.mercadopago.create_payment")
    def test_assinatura_elite(self, mock_create):
        mock_create.return_value = MP_PIX_RESPONSE
        user = create_user()
        result = create_payment(
            user,
            payment_data(
                amount="99.90",
                payment_type=PaymentType.SUBSCRIPTION,
                desired_plan=Plan.ELITE,
            ),
        )
        intent = PaymentIntent.objects.get(pk=result.payment_id)

        response = self.post_webhook(self.succeeded(intent))
        self.assertEqual(response.status_code, 200)

        intent.refresh_from_db()
        user.profile.refresh_from_db()
        self.assertEqual(user.profile.plan, Plan.ELITE)
        self.assertEqual(user.profile.plan_expires_at, intent.paid_at + timedelta(days=30))
        self.assertAlmostEqual(
            user.profile.plan_expires_at,
            timezone.now() + timedelta(days=30),
            delta=timedelta(seconds=30),
        )


# ---------------------------------------------------------------------------
# Views - webhooks
# ---------------------------------------------------------------------------


class GatewayWebhookViewTest(WebhookClientMixin, TestCase):
    """Testes da GatewayWebhookView (formato InfinitePay)."""

    def setUp(self):
        self.user = create_user()
        self.professional = create_professional()
        self.hire = create_hire(professional=self.professional, student=self.user)
        self.intent = create_intent(
            self.user,
            payment_type=PaymentType.PROFESSIONAL_SERVICE,
            amount=Decimal("200.00"),
            reference_id=self.hire.pk,
        )

    def test_pagamento_confirmado(self):
        response = self.post_webhook(self.succeeded(self.intent))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"success": True, "status": "paid"})
        self.intent.refresh_from_db()
        self.assertEqual(self.intent.external_transaction_id, "tx-001")
        self.assertEqual(self.intent.transitions.get().source, ConfirmationSource.WEBHOOK)
        self.professional.refresh_from_db()
        self.assertEqual(self.professional.balance, Decimal("170.00"))

    def test_assinatura_invalida_retorna_401(self):
        response = self.post_webhook(self.succeeded(self.intent), signature="sha256=errada")
        self.assertEqual(response.status_code, 401)
        self.intent.refresh_from_db()
        self.assertEqual(self.intent.status, PaymentStatus.PENDING)

    def test_sem_cabecalho_de_assinatura_retorna_401(self):
        response = self.client.post(
            reverse("payments:webhook"),
            data=json.dumps(self.succeeded(self.intent)),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 401)

    @override_settings(INFINITEPAY_WEBHOOK_SECRET="")
    def test_sem_secret_configurado_recusa(self):
        response = self.post_webhook(self.succeeded(self.intent), secret="")
        self.assertEqual(response.status_code, 401)

    def test_json_invalido_retorna_400(self):
        response = self.post_webhook("{nao e json")
        self.assertEqual(response.status_code, 400)

    def test_sem_order_nsu_retorna_400(self):
        response = self.post_webhook({"event": "payment.succeeded"})
        self.assertEqual(response.status_code, 400)

    def test_pagamento_inexistente_retorna_404(self):
        payload = self.succeeded(self.intent, order_nsu="00000000-0000-0000-0000-000000000000")
        response = self.post_webhook(payload)
        self.assertEqual(response.status_code, 404)
        self.assertIn("error", response.json())

    def test_evento_desconhecido_e_ignorado(self):
        response = self.post_webhook(self.succeeded(self.intent, event="payment.created"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ignored")
        self.intent.refresh_from_db()
        self.assertEqual(self.intent.status, PaymentStatus.PENDING)

    def test_falha_na_liquidacao_retorna_500_e_mantem_pendente(self):
        self.hire.delete()
        with self.assertLogs("payments.views", level="ERROR"):
            response = self.post_webhook(self.succeeded(self.intent))
        self.assertEqual(response.status_code, 500)
        self.assertIn("error", response.json())
        self.intent.refresh_from_db()
        self.assertEqual(self.intent.status, PaymentStatus.PENDING)

    def test_erro_de_banco_na_liquidacao_retorna_500_em_json(self):
        with patch(
            "payments.services.settlement.ProfessionalChatRoom.objects.get_or_create",
            side_effect=DatabaseError("connection lost"),
        ):
            with self.assertLogs("payments.views", level="ERROR"):
                response = self.post_webhook(self.succeeded(self.intent))
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response["Content-Type"], "application/json")
        self.assertEqual(response.json()["error"], "Falha interna ao processar o webhook.")
        self.intent.refresh_from_db()
        self.assertEqual(self.intent.status, PaymentStatus.PENDING)
        self.professional.refresh_from_db()
        self.assertEqual(self.professional.balance, Decimal("0"))

    def test_reembolso_apos_pago_e_ignorado(self):
        self.post_webhook(self.succeeded(self.intent))
        response = self.post_webhook(self.succeeded(self.intent, event="payment.refunded"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "paid")

    def test_falha_marca_failed(self):
        response = self.post_webhook(self.succeeded(self.intent, event="payment.failed"))
        self.assertEqual(response.json()["status"], "failed")


class MercadoPagoWebhookViewTest(TestCase):
    """Testes da MercadoPagoWebhookView."""

    def setUp(self):
        self.user = create_user()
        self.order = create_order(customer=self.user)
        self.intent = create_intent(
            self.user,
            payment_type=PaymentType.MARKETPLACE_ORDER,
            amount=Decimal("89.90"),
            reference_id=self.order.pk,
            provider=PaymentProvider.GATEWAY,
            gateway_backend="mercadopago",
        )

    def post(self, data_id="555", signature=None, topic="payment"):
        return self.client.post(
            reverse("payments:mercadopago-webhook"),
            data=json.dumps({"type": topic, "data": {"id": data_id}}),
            content_type="application/json",
            HTTP_X_SIGNATURE=signature if signature is not None else sign_mercadopago(data_id),
        )

    @patch("payments.services.mercadopago.fetch_payment")
    def test_aprovado_confirma_e_liquida(self, mock_fetch):
        mock_fetch.return_value = {
            "id": 555,
            "status": "approved",
            "external_reference": str(self.intent.pk),
            "payment_type_id": "bank_transfer",
        }
        response = self.post()
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "paid")
        mock_fetch.assert_called_once_with("555")
        self.intent.refresh_from_db()
        self.assertEqual(self.intent.external_transaction_id, "555")
        self.assertEqual(self.intent.capture_method, "bank_transfer")
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, OrderStatus.PAID)

    @patch("payments.services.mercadopago.fetch_payment")
    def test_rejeitado_marca_failed(self, mock_fetch):
        mock_fetch.return_value = {"id": 555, "status": "rejected", "external_reference": str(self.intent.pk)}
        response = self.post()
        self.assertEqual(response.json()["status"], "failed")

    @patch("payments.services.mercadopago.fetch_payment")
    def test_pendente_no_gateway_e_ignorado(self, mock_fetch):
        mock_fetch.return_value = {"id": 555, "status": "in_process", "external_reference": str(self.intent.pk)}
        response = self.post()
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ignored")

    @patch("payments.services.mercadopago.fetch_payment")
    def test_assinatura_invalida_retorna_401(self, mock_fetch):
        response = self.post(signature="ts=1,v1=invalid_hash")
        self.assertEqual(response.status_code, 401)
        mock_fetch.assert_not_called()

    @override_settings(MERCADOPAGO_WEBHOOK_SECRET="")
    @patch("payments.services.mercadopago.fetch_payment")
    def test_sem_secret_configurado_recusa(self, mock_fetch):
        response = self.post()
        self.assertEqual(response.status_code, 401)
        mock_fetch.assert_not_called()

    @patch("payments.services.mercadopago.fetch_payment", side_effect=GatewayError("fora do ar"))
    def test_falha_ao_buscar_pagamento_retorna_500(self, mock_fetch):
        response = self.post()
        self.assertEqual(response.status_code, 500)

    @patch("payments.services.mercadopago.fetch_payment")
    def test_sem_referencia_retorna_404(self, mock_fetch):
        mock_fetch.return_value = {"id": 555, "status": "approved"}
        response = self.post()
        self.assertEqual(response.status_code, 404)

    @patch("payments.services.mercadopago.fetch_payment")
    def test_outro_topico_e_ignorado(self, mock_fetch):
        response = self.post(topic="merchant_order")
        self.assertEqual(response.status_code, 200)
        mock_fetch.assert_not_called()


# ---------------------------------------------------------------------------
# Views - API do consumidor
# ---------------------------------------------------------------------------


class PaymentIntentViewTest(TestCase):
    """Testes da PaymentIntentView (criar e listar)."""

    def setUp(self):
        self.user = create_user()
        self.professional = create_professional()

    def test_anonimo_retorna_401(self):
        response = self.client.get(reverse("payments:intents"))
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["detail"], "unauthorized")

    def test_cria_pagamento_manual_com_dados_do_usuario(self):
        self.client.force_login(self.user)
        response = self.client.post(
            reverse("payments:intents"),
            data=json.dumps(
                {
                    "amount": "49.90",
                    "payment_type": PaymentType.LP_UNLOCK,
                    "reference_id": str(self.professional.pk),
                }
            ),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 201)
        data = response.json()
        self.assertEqual(data["provider"], "manual")
        self.assertTrue(pix.verify_payload(data["payload"]))
        self.assertIn("expires_at", data)
        self.assertTrue(PaymentIntent.objects.filter(pk=data["payment_id"], user=self.user).exists())

    def test_cria_pagamento_via_formulario(self):
        self.client.force_login(self.user)
        response = self.client.post(
            reverse("payments:intents"),
            data={
                "amount": "49.90",
                "payment_type": PaymentType.LP_UNLOCK,
                "reference_id": str(self.professional.pk),
            },
        )
        self.assertEqual(response.status_code, 201)

    def test_dados_invalidos_retorna_400(self):
        self.client.force_login(self.user)
        response = self.client.post(
            reverse("payments:intents"),
            data=json.dumps({"amount": "-1", "payment_type": "doacao"}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 400)
        errors = response.json()["errors"]
        self.assertIn("amount", errors)
        self.assertIn("payment_type", errors)

    def test_json_invalido_retorna_400(self):
        self.client.force_login(self.user)
        response = self.client.post(
            reverse("payments:intents"),
            data="[1, 2",
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 400)

    @patch("payments.services.mercadopago.create_payment", side_effect=GatewayError("recusado"))
    def test_falha_do_gateway_retorna_502(self, mock_create):
        self.client.force_login(self.user)
        response = self.client.post(
            reverse("payments:intents"),
            data=json.dumps({"amount": "59.90", "payment_type": PaymentType.SUBSCRIPTION}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 502)
        self.assertIn("error", response.json())
        self.assertEqual(PaymentIntent.objects.count(), 0)

    def test_lista_aplica_expiracao_e_filtro(self):
        create_intent(self.user, reference_id=self.professional.pk, expires_at=timezone.now() - timedelta(minutes=1))
        create_intent(self.user, payment_type=PaymentType.SUBSCRIPTION)
        create_intent(create_user(email="outro@example.com"), reference_id=self.professional.pk)
        self.client.force_login(self.user)

        response = self.client.get(reverse("payments:intents"))
        self.assertEqual(len(response.json()["payments"]), 2)

        response = self.client.get(reverse("payments:intents"), {"payment_type": PaymentType.LP_UNLOCK})
        payments = response.json()["payments"]
        self.assertEqual(len(payments), 1)
        self.assertEqual(payments[0]["status"], "expired")


class PaymentStatusViewTest(TestCase):
    """Testes de status e cancelamento."""

    def setUp(self):
        self.user = create_user()
        self.intent = create_intent(self.user)
        self.client.force_login(self.user)

    def test_status_pendente(self):
        response = self.client.get(reverse("payments:status", kwargs={"payment_id": self.intent.pk}))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"payment_id": str(self.intent.pk), "status": "pending"})

    def test_status_de_outro_usuario_retorna_404(self):
        other = create_intent(create_user(email="outro@example.com"))
        response = self.client.get(reverse("payments:status", kwargs={"payment_id": other.pk}))
        self.assertEqual(response.status_code, 404)

    def test_status_desconhecido_retorna_404(self):
        response = self.client.get(
            reverse("payments:status", kwargs={"payment_id": "00000000-0000-0000-0000-000000000000"})
        )
        self.assertEqual(response.status_code, 404)

    def test_cancelar(self):
        response = self.client.post(reverse("payments:cancel", kwargs={"payment_id": self.intent.pk}))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "cancelled")

    def test_status_anonimo_retorna_401(self):
        self.client.logout()
        response = self.client.get(reverse("payments:status", kwargs={"payment_id": self.intent.pk}))
        self.assertEqual(response.status_code, 401)


class PaymentByReferenceTest(TestCase):
    """Testes de busca por referência."""

    def setUp(self):
        self.user = create_user()
        self.order = create_order(customer=self.user)

    def test_retorna_o_mais_recente(self):
        older = create_intent(self.user, payment_type=PaymentType.MARKETPLACE_ORDER, reference_id=self.order.pk)
        PaymentIntent.objects.filter(pk=older.pk).update(created_at=timezone.now() - timedelta(hours=1))
        latest = create_intent(self.user, payment_type=PaymentType.MARKETPLACE_ORDER, reference_id=self.order.pk)
        self.assertEqual(
            get_payment_by_reference(PaymentType.MARKETPLACE_ORDER, str(self.order.pk)).pk,
            latest.pk,
        )

    def test_view(self):
        intent = create_intent(self.user, payment_type=PaymentType.MARKETPLACE_ORDER, reference_id=self.order.pk)
        self.client.force_login(self.user)
        response = self.client.get(
            reverse(
                "payments:by-reference",
                kwargs={"payment_type": PaymentType.MARKETPLACE_ORDER, "reference_id": str(self.order.pk)},
            )
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["payment_id"], str(intent.pk))

    def test_view_sem_pagamento_retorna_404(self):
        self.client.force_login(self.user)
        response = self.client.get(
            reverse("payments:by-reference", kwargs={"payment_type": "store_plan", "reference_id": "1"})
        )
        self.assertEqual(response.status_code, 404)

    def test_list_payments_filtra_por_tipo(self):
        create_intent(self.user, payment_type=PaymentType.MARKETPLACE_ORDER, reference_id=self.order.pk)
        create_intent(self.user, payment_type=PaymentType.SUBSCRIPTION)
        self.assertEqual(len(list_payments(self.user, PaymentType.SUBSCRIPTION)), 1)


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


class PaymentIntentAdminTest(TestCase):
    """Testes da ação "confirmar pagamento"."""

    def setUp(self):
        self.staff = create_user(email="staff@example.com", is_staff=True, is_superuser=True)
        self.user = create_user()
        self.professional = create_professional()
        self.intent = create_intent(self.user, reference_id=self.professional.pk)
        self.client.force_login(self.staff)

    def test_acao_confirma_e_liquida(self):
        response = self.client.post(
            reverse("admin:payments_paymentintent_changelist"),
            {"action": "confirm_payments", "_selected_action": [str(self.intent.pk)]},
        )
        self.assertEqual(response.status_code, 302)
        self.intent.refresh_from_db()
        self.assertEqual(self.intent.status, PaymentStatus.PAID)
        self.assertEqual(self.intent.transitions.get().source, ConfirmationSource.ADMIN)
        self.professional.refresh_from_db()
        self.assertTrue(self.professional.lp_unlocked)

    def test_changelist_abre(self):
        response = self.client.get(reverse("admin:payments_paymentintent_changelist"))
        self.assertEqual(response.status_code, 200)


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class PaymentIntentModelTest(TestCase):
    """Testes do modelo PaymentIntent."""

    def setUp(self):
        self.user = create_user()

    def test_str_retorna_user_tipo_status(self):
        intent = create_intent(self.user)
        self.assertIn(str(self.user), str(intent))
        self.assertIn("lp_unlock", str(intent))
        self.assertIn("pending", str(intent))

    def test_referencia_de_transacao_tem_25_caracteres(self):
        intent = create_intent(self.user)
        self.assertEqual(len(intent.transaction_reference), 25)
        self.assertFalse(intent.is_terminal)

    def test_queryset_stale(self):
        stale = create_intent(self.user, expires_at=timezone.now() - timedelta(seconds=1))
        create_intent(self.user)
        self.assertEqual(list(PaymentIntent.objects.stale()), [stale])
