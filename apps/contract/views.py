from django.shortcuts import get_object_or_404
from drf_spectacular.utils import extend_schema
from rest_framework import generics, permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.contract.models import Contract
from apps.contract.permissions import IsContractParty
from apps.contract.serializers import (
    MilestoneDecisionSerializer,
    MilestoneSerializer,
    MilestoneSubmissionSerializer,
    MilestoneSubmitSerializer,
)
from apps.contract.services.schedule import build_milestone_schedule
from apps.contract.services.submissions import (
    approve_submission,
    reject_submission,
    submit_milestone,
)


class SyncMilestonesView(APIView):
    """
    Build the milestone schedule for a confirmed contract.
    Re-running once milestones exist only fills in missing escrow holds.
    """
    permission_classes = [permissions.IsAuthenticated, IsContractParty]

    def post(self, request, contract_id):
        contract = get_object_or_404(Contract, id=contract_id)
        self.check_object_permissions(request, contract)

        result = build_milestone_schedule(contract.id)
        if result.already_present:
            return Response({
                "ok": True,
                "status": "already_present",
                "payments_created": result.payments_created,
            })

        return Response({"ok": True, "inserted": result.inserted})


class ContractMilestoneListView(generics.ListAPIView):
    serializer_class = MilestoneSerializer
    permission_classes = [permissions.IsAuthenticated, IsContractParty]
    pagination_class = None

    def get_queryset(self):
        contract = get_object_or_404(Contract, id=self.kwargs["contract_id"])
        self.check_object_permissions(self.request, contract)

        return (
            contract.milestones
            .select_related("payment")
            .prefetch_related("submissions")
            .order_by("position", "id")
        )


class MilestoneSubmitView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    @extend_schema(request=MilestoneSubmitSerializer, responses=MilestoneSubmissionSerializer)
    def post(self, request, milestone_id):
        serializer = MilestoneSubmitSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        submission = submit_milestone(
            milestone_id,
            request.user,
            submission_url=serializer.validated_data["submission_url"],
            notes=serializer.validated_data["notes"],
        )

        return Response(
            {
                "ok": True,
                "submission": MilestoneSubmissionSerializer(submission).data,
                "submitted_at": submission.submitted_at,
            },
            status=status.HTTP_201_CREATED,
        )


class MilestoneApproveView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    @extend_schema(request=MilestoneDecisionSerializer)
    def post(self, request, milestone_id):
        serializer = MilestoneDecisionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = approve_submission(
            milestone_id,
            serializer.validated_data["submission_id"],
            request.user,
        )

        return Response({
            "ok": True,
            "net_amount": result.net_amount,
            "fee_percent": result.fee_percent,
        })


class MilestoneRejectView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    @extend_schema(request=MilestoneDecisionSerializer, responses=MilestoneSubmissionSerializer)
    def post(self, request, milestone_id):
        serializer = MilestoneDecisionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        submission = reject_submission(
            milestone_id,
            serializer.validated_data["submission_id"],
            request.user,
            reason=serializer.validated_data.get("reason"),
        )

        return Response({
            "ok": True,
            "submission": MilestoneSubmissionSerializer(submission).data,
        })
