from django.urls import path

from apps.contract.views import (
    ContractMilestoneListView,
    MilestoneApproveView,
    MilestoneRejectView,
    MilestoneSubmitView,
    SyncMilestonesView,
)

urlpatterns = [
    path("contracts/<int:contract_id>/sync-milestones/", SyncMilestonesView.as_view(), name="contract-sync-milestones"),
    path("contracts/<int:contract_id>/milestones/", ContractMilestoneListView.as_view(), name="contract-milestones"),
    path("milestones/<int:milestone_id>/submit/", MilestoneSubmitView.as_view(), name="milestone-submit"),
    path("milestones/<int:milestone_id>/approve/", MilestoneApproveView.as_view(), name="milestone-approve"),
    path("milestones/<int:milestone_id>/reject/", MilestoneRejectView.as_view(), name="milestone-reject"),
]
