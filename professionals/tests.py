"""
Testes do app professionals - profissionais, contratações e salas de chat.
"""

from decimal import Decimal

from django.db import IntegrityError, transaction
from django.test import TestCase

from accounts.tests import create_user

from .models import HirePaymentStatus, Professional, ProfessionalChatRoom, ProfessionalHire

# ---------------------------------------------------------------------------
# Factories / Fixtures
# ---------------------------------------------------------------------------


def create_professional(user=None, display_name: str = "Personal Ana", **kwargs) -> Professional:
    user = user or create_user(email="personal@example.com", first_name="Ana", last_name="Souza")
    return Professional.objects.create(user=user, display_name=display_name, **kwargs)


def create_hire(
    professional=None,
    student=None,
    paid_amount: Decimal = Decimal("200.00"),
    **kwargs,
) -> ProfessionalHire:
    professional = professional or create_professional()
    student = student or create_user(email="aluno@example.com", first_name="Aluno")
    return ProfessionalHire.objects.create(
        professional=professional,
        student=student,
        paid_amount=paid_amount,
        **kwargs,
    )


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class ProfessionalModelTest(TestCase):
    """Testes do modelo Professional."""

    def test_saldo_inicial_zerado_e_lp_bloqueada(self):
        professional = create_professional()
        self.assertEqual(professional.balance, Decimal("0.00"))
        self.assertFalse(professional.lp_unlocked)
        self.assertEqual(str(professional), "Personal Ana")


class ProfessionalHireModelTest(TestCase):
    """Testes do modelo ProfessionalHire."""

    def test_contratacao_comeca_pendente(self):
        hire = create_hire()
        self.assertFalse(hire.is_paid)
        self.assertEqual(hire.payment_status, HirePaymentStatus.PENDING)
        self.assertEqual(hire.platform_fee, Decimal("0.00"))


class ProfessionalChatRoomModelTest(TestCase):
    """Testes do modelo ProfessionalChatRoom."""

    def test_sala_unica_por_profissional_e_aluno(self):
        hire = create_hire()
        ProfessionalChatRoom.objects.create(professional=hire.professional, student=hire.student)
        with self.assertRaises(IntegrityError), transaction.atomic():
            ProfessionalChatRoom.objects.create(professional=hire.professional, student=hire.student)
