from django.urls import path

from .views import AutoSettleView, ClientWalletView, FreelancerWalletView

urlpatterns = [
    # -------- Scheduler --------
    path("milestones/auto-settle/", AutoSettleView.as_view(), name="milestones-auto-settle"),

    # -------- Wallets --------
    path("freelancer/wallet/", FreelancerWalletView.as_view(), name="freelancer-wallet"),
    path("client/wallet/", ClientWalletView.as_view(), name="client-wallet"),
]
