from django.urls import path, include
from rest_framework.routers import DefaultRouter

from tenders.api.views import CronSyncView, ReleaseDetailProxyView, ReleaseProxyView, TenderViewSet

router = DefaultRouter()
router.register(r"tenders", TenderViewSet, basename="tender")

urlpatterns = [
    path("", include(router.urls)),
    path("ocds/releases/", ReleaseProxyView.as_view(), name="ocds-release-list"),
    path("ocds/releases/<str:ocid>/", ReleaseDetailProxyView.as_view(), name="ocds-release-detail"),
    path("cron/sync-tenders/", CronSyncView.as_view(), name="cron-sync-tenders"),
]
