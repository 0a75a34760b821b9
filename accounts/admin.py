from django.contrib import admin
from django.contrib.auth import get_user_model

CustomUser = get_user_model()


# Register your models here.
@admin.register(CustomUser)
class CustomUserAdmin(admin.ModelAdmin):
    list_display = (
        "username",
        "email",
        "role",
        "rating_average",
        "completed_trips",
        "is_active",
        "last_login",
    )
    list_filter = ("role", "status", "is_active", "is_documents_verified")
    search_fields = ("username", "email", "first_name", "last_name", "company_name")
    readonly_fields = ("rating_average", "rating_count", "completed_trips")
    ordering = ("-last_login",)
