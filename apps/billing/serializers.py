from rest_framework import serializers

from .models import Payment, Payout


class PaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Payment
        fields = (
            "id",
            "contract",
            "milestone",
            "amount",
            "currency",
            "status",
            "captured_at",
        )
        read_only_fields = fields


class PayoutSerializer(serializers.ModelSerializer):
    class Meta:
        model = Payout
        fields = (
            "id",
            "contract",
            "milestone",
            "provider",
            "amount",
            "currency",
            "status",
            "sent_at",
            "settled_at",
        )
        read_only_fields = fields


class FreelancerWalletSummarySerializer(serializers.Serializer):
    balance = serializers.DecimalField(max_digits=14, decimal_places=2)
    currency = serializers.CharField()
    updated_at = serializers.DateTimeField(allow_null=True)
    payout_count = serializers.IntegerField()
    total_paid_out = serializers.DecimalField(max_digits=14, decimal_places=2)
    held_in_escrow = serializers.DecimalField(max_digits=14, decimal_places=2)
    recent_payouts = PayoutSerializer(many=True)


class ClientWalletSummarySerializer(serializers.Serializer):
    balance = serializers.DecimalField(max_digits=14, decimal_places=2)
    currency = serializers.CharField()
    updated_at = serializers.DateTimeField(allow_null=True)
    held_in_escrow = serializers.DecimalField(max_digits=14, decimal_places=2)
    total_refunded = serializers.DecimalField(max_digits=14, decimal_places=2)


class SettlementSummarySerializer(serializers.Serializer):
    ok = serializers.BooleanField(default=True)
    released = serializers.IntegerField()
    refunded = serializers.IntegerField()
    skipped = serializers.IntegerField()
