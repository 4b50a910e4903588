from django.contrib import admin, messages
from django.utils.html import format_html

from .exceptions import PaymentError
from .models import ConfirmationSource, PaymentIntent, PaymentStatus, PaymentTransition
from .services.reconciler import Evidence, confirm


class PaymentTransitionInline(admin.TabularInline):
    model = PaymentTransition
    extra = 0
    can_delete = False
    readonly_fields = ("from_status", "to_status", "source", "evidence", "created_at")

    def has_add_permission(self, request, obj=None) -> bool:
        return False


@admin.register(PaymentIntent)
class PaymentIntentAdmin(admin.ModelAdmin):
    list_select_related = ("user",)
    list_display = (
        "created_at",
        "user",
        "payment_type",
        "reference_id",
        "amount",
        "provider",
        "status",
        "expires_at",
        "paid_at",
        "receipt_link",
    )
    list_filter = ("status", "payment_type", "provider", "payment_method", "gateway_backend")
    search_fields = ("id", "user__email", "user__username", "reference_id", "external_transaction_id")
    date_hierarchy = "created_at"
    inlines = (PaymentTransitionInline,)
    actions = ("confirm_payments",)
    # status só muda pelo fluxo de confirmação
    readonly_fields = (
        "id",
        "status",
        "paid_at",
        "payload",
        "qr_image",
        "payment_url",
        "external_transaction_id",
        "receipt_url",
        "capture_method",
        "raw_payload",
        "created_at",
        "updated_at",
    )

    @admin.display(description="comprovante")
    def receipt_link(self, obj: PaymentIntent):
        if not obj.receipt_url:
            return "-"
        return format_html('<a href="{}" target="_blank" rel="noopener">abrir</a>', obj.receipt_url)

    @admin.action(description="Confirmar pagamento (PIX recebido)")
    def confirm_payments(self, request, queryset):
        pending = list(queryset.filter(status=PaymentStatus.PENDING))
        confirmed = 0
        skipped = queryset.count() - len(pending)
        for intent in pending:
            evidence = Evidence(raw={"confirmed_by": request.user.get_username()})
            try:
                result = confirm(intent.pk, ConfirmationSource.ADMIN, evidence)
            except PaymentError as exc:
                self.message_user(request, f"{intent.pk}: {exc}", level=messages.ERROR)
                continue
            if result.changed:
                confirmed += 1
            else:
                skipped += 1

        if confirmed:
            self.message_user(request, f"{confirmed} pagamento(s) confirmado(s).", messages.SUCCESS)
        if skipped:
            self.message_user(
                request,
                f"{skipped} pagamento(s) ignorado(s): não estavam pendentes.",
                messages.WARNING,
            )


@admin.register(PaymentTransition)
class PaymentTransitionAdmin(admin.ModelAdmin):
    list_select_related = ("intent",)
    list_display = ("created_at", "intent", "from_status", "to_status", "source")
    list_filter = ("to_status", "source")
    search_fields = ("intent__id",)
    readonly_fields = ("intent", "from_status", "to_status", "source", "evidence", "created_at")
