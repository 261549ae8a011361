import logging

from django.db import connections, transaction
from django.utils.dateparse import parse_datetime
from rest_framework import viewsets
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework_simplejwt.views import TokenObtainPairView

from common.audit import create_audit_log, get_request_id
from core.models import AuditLog, Branch, Factory, Workshop
from core.serializers import (
    AuditLogSerializer,
    BranchSerializer,
    EmailOrUsernameTokenObtainPairSerializer,
    FactorySerializer,
    WorkshopSerializer,
)
from inventory.services import ensure_inventory

logger = logging.getLogger(__name__)


class EmailOrUsernameTokenObtainPairView(TokenObtainPairView):
    serializer_class = EmailOrUsernameTokenObtainPairSerializer
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "auth"


class StockHolderViewSet(viewsets.ModelViewSet):
    """CRUD for locations that own an inventory; creation also opens the inventory."""

    permission_classes = [IsAuthenticated]
    audit_entity = None

    @transaction.atomic
    def perform_create(self, serializer):
        instance = serializer.save()
        inventory = ensure_inventory(instance)
        create_audit_log(
            actor=self.request.user,
            action=f"{self.audit_entity}.create",
            entity=self.audit_entity,
            entity_id=instance.id,
            after_snapshot={**serializer.data, "inventory_id": str(inventory.id)},
            request_id=get_request_id(self.request),
        )

    def perform_update(self, serializer):
        before_snapshot = self.get_serializer(serializer.instance).data
        instance = serializer.save()
        create_audit_log(
            actor=self.request.user,
            action=f"{self.audit_entity}.update",
            entity=self.audit_entity,
            entity_id=instance.id,
            before_snapshot=before_snapshot,
            after_snapshot=self.get_serializer(instance).data,
            request_id=get_request_id(self.request),
        )

    def perform_destroy(self, instance):
        # Locations are deactivated, never deleted.
        before_snapshot = self.get_serializer(instance).data
        instance.is_active = False
        instance.save(update_fields=["is_active", "updated_at"])
        create_audit_log(
            actor=self.request.user,
            action=f"{self.audit_entity}.deactivate",
            entity=self.audit_entity,
            entity_id=instance.id,
            before_snapshot=before_snapshot,
            after_snapshot=self.get_serializer(instance).data,
            request_id=get_request_id(self.request),
        )


class BranchViewSet(StockHolderViewSet):
    queryset = Branch.objects.order_by("code")
    serializer_class = BranchSerializer
    audit_entity = "branch"


class WorkshopViewSet(StockHolderViewSet):
    queryset = Workshop.objects.order_by("code")
    serializer_class = WorkshopSerializer
    audit_entity = "workshop"


class FactoryViewSet(StockHolderViewSet):
    queryset = Factory.objects.order_by("code")
    serializer_class = FactorySerializer
    audit_entity = "factory"


class AuditLogViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = AuditLog.objects.select_related("actor")
    serializer_class = AuditLogSerializer
    permission_classes = [IsAuthenticated, IsAdminUser]

    def get_queryset(self):
        qs = self.queryset.order_by("-created_at")
        params = self.request.query_params

        start_date = parse_datetime(params.get("start_date") or "")
        end_date = parse_datetime(params.get("end_date") or "")
        if start_date:
            qs = qs.filter(created_at__gte=start_date)
        if end_date:
            qs = qs.filter(created_at__lte=end_date)
        if params.get("actor_id"):
            qs = qs.filter(actor_id=params["actor_id"])
        if params.get("action"):
            qs = qs.filter(action=params["action"])
        if params.get("entity"):
            qs = qs.filter(entity=params["entity"])
        if params.get("entity_id"):
            qs = qs.filter(entity_id=params["entity_id"])
        return qs


@api_view(["GET"])
@permission_classes([AllowAny])
def healthz(request):
    return Response({"status": "ok", "request_id": getattr(request, "request_id", None)})


@api_view(["GET"])
@permission_classes([AllowAny])
def readyz(request):
    try:
        with connections["default"].cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
    except Exception as exc:
        logger.exception("readiness_check_failed")
        return Response(
            {"status": "error", "request_id": getattr(request, "request_id", None), "detail": str(exc)},
            status=503,
        )

    return Response({"status": "ready", "request_id": getattr(request, "request_id", None)})
