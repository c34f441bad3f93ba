from django.contrib import admin
from .models import ClientWallet, FreelancerWallet, Payment, Payout


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("id", "contract", "milestone", "amount", "currency", "status", "captured_at")
    list_filter = ("status",)


@admin.register(Payout)
class PayoutAdmin(admin.ModelAdmin):
    list_display = ("id", "contract", "milestone", "amount", "currency", "status", "settled_at")


admin.site.register(ClientWallet)
admin.site.register(FreelancerWallet)
