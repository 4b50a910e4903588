"""
Testes do app accounts - usuários, perfis e planos.

"""
from datetime import timedelta

from django.test import TestCase
from django.utils import timezone

from .models import Plan, Profile, User


# ---------------------------------------------------------------------------
# Factories / Fixtures
# ---------------------------------------------------------------------------


def create_user(
    email: str = "user@example.com",
    password: str = "SenhaForte123",
    first_name: str = "João",
    last_name: str = "Silva",
    is_staff: bool = False,
    is_superuser: bool = False,
) -> User:
    """Cria usuário para testes."""
    user = User.objects.create_user(
        username=email.lower(),
        email=email.lower(),
        password=password,
        first_name=first_name,
        last_name=last_name,
        is_staff=is_staff,
        is_superuser=is_superuser,
    )
    return user


def create_profile(user: User, plan: str = Plan.FREE, **kwargs) -> Profile:
    """Cria ou retorna profile com dados customizados."""
    profile = user.profile
    for key, value in kwargs.items():
        if hasattr(profile, key):
            setattr(profile, key, value)
    profile.plan = plan
    profile.save()
    return profile


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class UserModelTest(TestCase):
    """Testes do modelo User."""

    def test_str_retorna_nome_completo(self):
        user = create_user(first_name="Maria", last_name="Santos")
        self.assertEqual(str(user), "Maria Santos")

    def test_str_fallback_para_username_quando_sem_nome(self):
        user = User.objects.create_user(username="anon@test.com", email="anon@test.com", password="x")
        self.assertEqual(str(user), "anon@test.com")

    def test_profile_criado_automaticamente(self):
        user = create_user()
        self.assertTrue(Profile.objects.filter(user=user).exists())
        self.assertEqual(user.profile.plan, Plan.FREE)


class ProfilePlanTest(TestCase):
    """Testes de active_plan e has_plan_at_least."""

    def setUp(self):
        self.user = create_user()

    def test_plano_expirado_volta_para_free(self):
        profile = create_profile(
            self.user,
            plan=Plan.ELITE,
            plan_expires_at=timezone.now() - timedelta(days=1),
        )
        self.assertEqual(profile.active_plan(), Plan.FREE)
        self.assertFalse(profile.has_plan_at_least(Plan.ADVANCE))

    def test_plano_vigente(self):
        profile = create_profile(
            self.user,
            plan=Plan.ELITE,
            plan_expires_at=timezone.now() + timedelta(days=10),
        )
        self.assertEqual(profile.active_plan(), Plan.ELITE)
        self.assertTrue(profile.has_plan_at_least(Plan.ADVANCE))

    def test_plano_sem_expiracao_permanece(self):
        profile = create_profile(self.user, plan=Plan.ADVANCE)
        self.assertTrue(profile.has_plan_at_least(Plan.ADVANCE))
        self.assertFalse(profile.has_plan_at_least(Plan.ELITE))
