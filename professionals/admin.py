from django.contrib import admin

from .models import Professional, ProfessionalChatRoom, ProfessionalHire


@admin.register(Professional)
class ProfessionalAdmin(admin.ModelAdmin):
    list_select_related = ("user",)
    list_display = ("display_name", "user", "balance", "lp_unlocked", "lp_unlocked_at")
    list_filter = ("lp_unlocked",)
    search_fields = ("display_name", "user__email")
    readonly_fields = ("balance", "lp_payment_id", "lp_unlocked_at")


@admin.register(ProfessionalHire)
class ProfessionalHireAdmin(admin.ModelAdmin):
    list_select_related = ("professional", "student")
    list_display = ("id", "professional", "student", "paid_amount", "platform_fee", "payment_status")
    list_filter = ("payment_status", "is_paid")
    search_fields = ("professional__display_name", "student__email")


@admin.register(ProfessionalChatRoom)
class ProfessionalChatRoomAdmin(admin.ModelAdmin):
    list_select_related = ("professional", "student")
    list_display = ("professional", "student", "last_message_at")
