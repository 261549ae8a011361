from django.urls import path
from rest_framework.routers import DefaultRouter

from core.views import AuditLogViewSet, BranchViewSet, FactoryViewSet, WorkshopViewSet, healthz, readyz

router = DefaultRouter()
router.register(r"branches", BranchViewSet, basename="branch")
router.register(r"workshops", WorkshopViewSet, basename="workshop")
router.register(r"factories", FactoryViewSet, basename="factory")
router.register(r"admin/audit-logs", AuditLogViewSet, basename="audit-log")

urlpatterns = router.urls + [
    path("healthz/", healthz, name="healthz"),
    path("readyz/", readyz, name="readyz"),
]
