from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import Profile, User


class ProfileInline(admin.StackedInline):
    model = Profile
    can_delete = False
    fk_name = "user"
    verbose_name_plural = "perfil"


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    inlines = (ProfileInline,)
    list_display = ("username", "email", "first_name", "last_name", "is_staff")
    list_select_related = ("profile",)
    search_fields = ("username", "email", "first_name", "last_name")
    ordering = ("email",)


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_select_related = ("user",)
    list_display = ("user", "plan", "plan_expires_at", "plan_payment_id")
    search_fields = ("user__username", "user__email", "plan_payment_id")
    list_filter = ("plan",)
    readonly_fields = ("plan_payment_id", "created_at", "updated_at")
