from decimal import Decimal

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Professional",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("display_name", models.CharField(max_length=120, verbose_name="nome de exibição")),
                (
                    "balance",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0.00"),
                        help_text="Valor líquido a repassar, já descontada a taxa da plataforma.",
                        max_digits=12,
                        verbose_name="saldo",
                    ),
                ),
                ("lp_unlocked", models.BooleanField(default=False, verbose_name="landing page liberada?")),
                ("lp_unlocked_at", models.DateTimeField(blank=True, null=True, verbose_name="liberada em")),
                (
                    "lp_payment_id",
                    models.CharField(blank=True, max_length=64, verbose_name="pagamento da landing page"),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="criado em")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="atualizado em")),
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="professional",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "profissional",
                "verbose_name_plural": "profissionais",
                "ordering": ("display_name",),
            },
        ),
        migrations.CreateModel(
            name="ProfessionalHire",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "paid_amount",
                    models.DecimalField(
                        decimal_places=2, default=Decimal("0.00"), max_digits=10, verbose_name="valor contratado"
                    ),
                ),
                ("is_paid", models.BooleanField(default=False, verbose_name="pago?")),
                (
                    "payment_status",
                    models.CharField(
                        choices=[("pending", "Pendente"), ("paid", "Pago")],
                        default="pending",
                        max_length=20,
                        verbose_name="status do pagamento",
                    ),
                ),
                (
                    "platform_fee",
                    models.DecimalField(
                        decimal_places=2, default=Decimal("0.00"), max_digits=10, verbose_name="taxa da plataforma"
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="criado em")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="atualizado em")),
                (
                    "professional",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="hires",
                        to="professionals.professional",
                    ),
                ),
                (
                    "student",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="professional_hires",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "contratação",
                "verbose_name_plural": "contratações",
                "ordering": ("-created_at",),
            },
        ),
        migrations.CreateModel(
            name="ProfessionalChatRoom",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("last_message_at", models.DateTimeField(blank=True, null=True, verbose_name="última mensagem")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="criado em")),
                (
                    "professional",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="chat_rooms",
                        to="professionals.professional",
                    ),
                ),
                (
                    "student",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="professional_chat_rooms",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "sala de chat",
                "verbose_name_plural": "salas de chat",
                "constraints": [
                    models.UniqueConstraint(
                        fields=("professional", "student"),
                        name="uniq_chat_room_professional_student",
                    )
                ],
            },
        ),
    ]
