import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


STATUS_CHOICES = [
    ("pending", "Pendente"),
    ("paid", "Pago"),
    ("expired", "Expirado"),
    ("cancelled", "Cancelado"),
    ("failed", "Falhou"),
    ("refunded", "Reembolsado"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="PaymentIntent",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=10, verbose_name="valor")),
                (
                    "payment_type",
                    models.CharField(
                        choices=[
                            ("lp_unlock", "Liberação de landing page"),
                            ("subscription", "Assinatura"),
                            ("marketplace_order", "Pedido do marketplace"),
                            ("store_plan", "Plano de loja"),
                            ("professional_service", "Serviço profissional"),
                        ],
                        max_length=30,
                        verbose_name="tipo",
                    ),
                ),
                (
                    "reference_id",
                    models.CharField(
                        blank=True,
                        help_text="Pedido, contratação, profissional ou loja afetada, conforme o tipo.",
                        max_length=64,
                        verbose_name="referência",
                    ),
                ),
                (
                    "provider",
                    models.CharField(
                        choices=[("manual", "PIX manual"), ("gateway", "Gateway")],
                        default="manual",
                        max_length=10,
                        verbose_name="provedor",
                    ),
                ),
                (
                    "payment_method",
                    models.CharField(
                        choices=[("pix", "PIX"), ("card", "Cartão")],
                        default="pix",
                        max_length=10,
                        verbose_name="meio",
                    ),
                ),
                ("gateway_backend", models.CharField(blank=True, max_length=30, verbose_name="gateway")),
                (
                    "status",
                    models.CharField(choices=STATUS_CHOICES, default="pending", max_length=20, verbose_name="status"),
                ),
                ("description", models.CharField(blank=True, max_length=255, verbose_name="descrição")),
                ("desired_plan", models.CharField(blank=True, max_length=12, verbose_name="plano desejado")),
                ("payload", models.TextField(blank=True, verbose_name="PIX copia e cola")),
                ("qr_image", models.TextField(blank=True, verbose_name="QR code (data URL)")),
                ("payment_url", models.URLField(blank=True, max_length=500, verbose_name="link de pagamento")),
                (
                    "external_transaction_id",
                    models.CharField(blank=True, max_length=120, verbose_name="transação no gateway"),
                ),
                ("receipt_url", models.URLField(blank=True, max_length=500, verbose_name="comprovante")),
                ("capture_method", models.CharField(blank=True, max_length=30, verbose_name="forma de captura")),
                ("raw_payload", models.JSONField(blank=True, null=True, verbose_name="payload")),
                ("expires_at", models.DateTimeField(verbose_name="expira em")),
                ("paid_at", models.DateTimeField(blank=True, null=True, verbose_name="pago em")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="criado em")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="atualizado em")),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="payment_intents",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "pagamento",
                "verbose_name_plural": "pagamentos",
                "ordering": ("-created_at",),
                "indexes": [
                    models.Index(fields=["external_transaction_id"], name="payments_pi_ext_tx_idx"),
                    models.Index(fields=["reference_id", "payment_type"], name="payments_pi_ref_type_idx"),
                    models.Index(fields=["status", "expires_at"], name="payments_pi_status_exp_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(amount__gt=0),
                        name="payments_pi_amount_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(status="paid", paid_at__isnull=False),
                            models.Q(~models.Q(status="paid"), paid_at__isnull=True),
                            _connector="OR",
                        ),
                        name="payments_pi_paid_at_iff_paid",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="PaymentTransition",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("from_status", models.CharField(choices=STATUS_CHOICES, max_length=20, verbose_name="de")),
                ("to_status", models.CharField(choices=STATUS_CHOICES, max_length=20, verbose_name="para")),
                (
                    "source",
                    models.CharField(
                        choices=[
                            ("webhook", "Webhook do gateway"),
                            ("admin", "Confirmação da equipe"),
                            ("poll", "Consulta do cliente"),
                            ("realtime", "Notificação em tempo real"),
                            ("read", "Expiração na leitura"),
                            ("user", "Ação do usuário"),
                        ],
                        max_length=20,
                        verbose_name="origem",
                    ),
                ),
                ("evidence", models.JSONField(blank=True, null=True, verbose_name="evidência")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="registrado em")),
                (
                    "intent",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="transitions",
                        to="payments.paymentintent",
                    ),
                ),
            ],
            options={
                "verbose_name": "transição de pagamento",
                "verbose_name_plural": "transições de pagamento",
                "ordering": ("created_at", "id"),
            },
        ),
    ]
