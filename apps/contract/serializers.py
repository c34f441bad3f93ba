from rest_framework import serializers

from apps.billing.serializers import PaymentSerializer
from apps.contract.models import Milestone, MilestoneSubmission


class MilestoneSubmissionSerializer(serializers.ModelSerializer):
    class Meta:
        model = MilestoneSubmission
        fields = [
            "id",
            "milestone",
            "version",
            "submitted_by",
            "submission_url",
            "notes",
            "status",
            "submitted_at",
            "decided_at",
            "decided_by",
            "decision_reason",
        ]
        read_only_fields = fields


class MilestoneSerializer(serializers.ModelSerializer):
    submissions = MilestoneSubmissionSerializer(many=True, read_only=True)
    payment = serializers.SerializerMethodField()

    class Meta:
        model = Milestone
        fields = [
            "id",
            "contract",
            "position",
            "title",
            "amount_gross",

            # Schedule
            "start_offset_days",
            "end_offset_days",
            "due_at",
            "due_date",
            "client_confirm_deadline_at",

            # Status
            "status",
            "submitted_at",
            "approved_at",
            "rejected_at",

            "payment",
            "submissions",
        ]
        read_only_fields = fields

    def get_payment(self, obj):
        # Reverse one-to-one raises when no payment row exists
        payment = getattr(obj, "payment", None)
        if payment is None:
            return None
        return PaymentSerializer(payment).data


class MilestoneSubmitSerializer(serializers.Serializer):
    submission_url = serializers.CharField(
        max_length=2048, required=False, allow_blank=True, allow_null=True
    )
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    def validate(self, attrs):
        url = (attrs.get("submission_url") or "").strip()
        notes = (attrs.get("notes") or "").strip()
        if not url and not notes:
            raise serializers.ValidationError("Submission content is required")
        attrs["submission_url"] = url
        attrs["notes"] = notes
        return attrs


class MilestoneDecisionSerializer(serializers.Serializer):
    submission_id = serializers.IntegerField(min_value=1)
    reason = serializers.CharField(required=False, allow_blank=True, allow_null=True)
