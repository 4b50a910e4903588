from __future__ import annotations

from decimal import Decimal

from django import forms

from accounts.models import PAID_PLANS

from .models import PaymentMethod, PaymentProvider, PaymentType
from .services.providers import PROVIDER_BY_TYPE, ManualPixProvider
from .services.settlement import REFERENCE_MODELS, reference_exists


class CreatePaymentForm(forms.Form):
    amount = forms.DecimalField(
        label="Valor",
        max_digits=10,
        decimal_places=2,
        min_value=Decimal("0.01"),
    )
    payment_type = forms.ChoiceField(label="Tipo", choices=PaymentType.choices)
    reference_id = forms.CharField(label="Referência", max_length=64, required=False)
    description = forms.CharField(label="Descrição", max_length=255, required=False)
    desired_plan = forms.ChoiceField(
        label="Plano desejado",
        choices=[("", "---")] + [(plan.value, plan.label) for plan in PAID_PLANS],
        required=False,
    )
    payment_method = forms.ChoiceField(
        label="Meio de pagamento",
        choices=PaymentMethod.choices,
        required=False,
    )
    payer_email = forms.EmailField(label="E-mail do pagador")
    payer_name = forms.CharField(label="Nome do pagador", max_length=150, required=False)
    requested_provider = forms.ChoiceField(
        label="Provedor",
        choices=[("", "---")] + list(PaymentProvider.choices),
        required=False,
    )

    def clean_payment_method(self) -> str:
        return self.cleaned_data.get("payment_method") or PaymentMethod.PIX

    def clean(self):
        cleaned = super().clean()
        payment_type = cleaned.get("payment_type")
        reference_id = (cleaned.get("reference_id") or "").strip()
        cleaned["reference_id"] = reference_id
        if not payment_type:
            return cleaned

        if payment_type in REFERENCE_MODELS:
            if not reference_id:
                self.add_error("reference_id", "Informe a referência deste pagamento.")
            elif not reference_exists(payment_type, reference_id):
                self.add_error("reference_id", "Referência não encontrada.")

        if payment_type == PaymentType.SUBSCRIPTION:
            cleaned["desired_plan"] = cleaned.get("desired_plan") or ""
        elif cleaned.get("desired_plan"):
            self.add_error("desired_plan", "Plano só se aplica a assinaturas.")

        provider = cleaned.get("requested_provider") or PROVIDER_BY_TYPE[payment_type].name
        if provider == ManualPixProvider.name and cleaned.get("payment_method") == PaymentMethod.CARD:
            self.add_error("payment_method", "Pagamento manual aceita apenas PIX.")
        return cleaned
