from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.billing.permissions import HasCronSecret
from apps.billing.selectors import WalletSelector
from apps.billing.serializers import (
    ClientWalletSummarySerializer,
    FreelancerWalletSummarySerializer,
    SettlementSummarySerializer,
)
from apps.billing.settlement import MilestoneSettlementSweep


class AutoSettleView(APIView):
    """
    Called by the external scheduler. Authenticated by the shared
    X-Cron-Secret header rather than a user token.
    """
    authentication_classes = []
    permission_classes = [HasCronSecret]

    @extend_schema(
        parameters=[OpenApiParameter("limit", int, required=False)],
        responses=SettlementSummarySerializer,
    )
    def post(self, request):
        summary = MilestoneSettlementSweep(limit=request.query_params.get("limit")).run()
        return Response({"ok": True, **summary.as_dict()}, status=status.HTTP_200_OK)


class FreelancerWalletView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(responses=FreelancerWalletSummarySerializer)
    def get(self, request):
        if not request.user.is_freelancer:
            return Response(
                {"detail": "Only freelancers can access this wallet"},
                status=status.HTTP_403_FORBIDDEN,
            )

        data = WalletSelector.freelancer_summary(request.user)
        return Response(FreelancerWalletSummarySerializer(data).data)


class ClientWalletView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(responses=ClientWalletSummarySerializer)
    def get(self, request):
        if not request.user.is_client:
            return Response(
                {"detail": "Only clients can access this wallet"},
                status=status.HTTP_403_FORBIDDEN,
            )

        data = WalletSelector.client_summary(request.user)
        return Response(ClientWalletSummarySerializer(data).data)
