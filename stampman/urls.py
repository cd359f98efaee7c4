from django.urls import path

from .views import (
    OwnerRedeemView,
    OwnerStampView,
    ScannerRedeemView,
    ScannerStampView,
    ScannerView,
)

app_name = "stampman"

urlpatterns = [
    path("scanner/<str:token>/", ScannerView.as_view(), name="scanner"),
    path("scanner/<str:token>/stamp", ScannerStampView.as_view(), name="scanner-stamp"),
    path("scanner/<str:token>/redeem", ScannerRedeemView.as_view(), name="scanner-redeem"),
    path("stamp", OwnerStampView.as_view(), name="stamp"),
    path("redeem", OwnerRedeemView.as_view(), name="redeem"),
]
