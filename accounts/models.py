from django.contrib.auth.models import AbstractUser
from django.db import models
from django.utils import timezone


class User(AbstractUser):
    email = models.EmailField("e-mail", unique=True)

    class Meta:
        verbose_name = "usuário"
        verbose_name_plural = "usuários"

    def __str__(self) -> str:
        return self.get_full_name() or self.username


class Plan(models.TextChoices):
    FREE = "FREE", "Gratuito"
    ADVANCE = "ADVANCE", "Advance Pro"
    ELITE = "ELITE", "Elite Black"


PAID_PLANS = (Plan.ADVANCE, Plan.ELITE)


class Profile(models.Model):
    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        related_name="profile",
    )
    phone = models.CharField("telefone", max_length=20, blank=True)
    plan = models.CharField(
        "plano",
        max_length=12,
        choices=Plan.choices,
        default=Plan.FREE,
    )
    plan_expires_at = models.DateTimeField(
        "plano expira em",
        blank=True,
        null=True,
    )
    plan_payment_id = models.CharField(
        "pagamento do plano",
        max_length=64,
        blank=True,
        help_text="Último pagamento que ativou o plano.",
    )

    created_at = models.DateTimeField("criado em", auto_now_add=True)
    updated_at = models.DateTimeField("atualizado em", auto_now=True)

    class Meta:
        verbose_name = "perfil"
        verbose_name_plural = "perfis"

    def __str__(self) -> str:
        return f"Perfil de {self.user}"

    def active_plan(self) -> str:
        """Retorna o plano vigente considerando data de expiração."""
        if self.plan_expires_at and self.plan_expires_at < timezone.now():
            return Plan.FREE
        return self.plan

    def has_plan_at_least(self, required_plan: str) -> bool:
        rank = {
            Plan.FREE: 0,
            Plan.ADVANCE: 1,
            Plan.ELITE: 2,
        }
        return rank[self.active_plan()] >= rank[required_plan]
