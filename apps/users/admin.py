from django.contrib import admin
from .models import ClientProfile, User


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ("email", "username", "role", "is_staff", "is_active")
    list_filter = ("role", "is_staff")
    search_fields = ("email", "username")


admin.site.register(ClientProfile)
