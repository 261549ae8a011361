from django.db.models import Count
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from inventory.models import Inventory, StockItem, Transfer
from inventory.serializers import (
    InventorySerializer,
    StockItemCreateSerializer,
    StockItemHistorySerializer,
    StockItemSerializer,
    TransferCreateSerializer,
    TransferDecisionSerializer,
    TransferItemsDecisionSerializer,
    TransferSerializer,
    TransferUpdateSerializer,
)
from inventory.services import parse_entity_kind, register_stock_item
from inventory.transfers import (
    approve_items,
    approve_transfer,
    create_transfer,
    delete_transfer,
    reject_items,
    reject_transfer,
    update_transfer,
)


class InventoryViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = InventorySerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        qs = Inventory.objects.annotate(item_count=Count("memberships")).order_by("entity_kind", "name")
        entity_kind = self.request.query_params.get("entity_kind")
        if entity_kind:
            qs = qs.filter(entity_kind=parse_entity_kind(entity_kind))
        return qs

    @action(detail=True, methods=["get"], url_path="stock-items")
    def stock_items(self, request, pk=None):
        inventory = self.get_object()
        qs = StockItem.objects.filter(membership__inventory=inventory).select_related("membership").order_by("code")
        page = self.paginate_queryset(qs)
        serializer = StockItemSerializer(page if page is not None else qs, many=True)
        if page is not None:
            return self.get_paginated_response(serializer.data)
        return Response(serializer.data)


class StockItemViewSet(mixins.CreateModelMixin, viewsets.ReadOnlyModelViewSet):
    serializer_class = StockItemSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        qs = StockItem.objects.select_related("membership").order_by("code")
        params = self.request.query_params
        if params.get("status"):
            qs = qs.filter(status=params["status"])
        if params.get("inventory"):
            qs = qs.filter(membership__inventory_id=params["inventory"])
        return qs

    def create(self, request, *args, **kwargs):
        serializer = StockItemCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        stock_item = register_stock_item(actor=request.user, **serializer.validated_data)
        return Response(StockItemSerializer(stock_item).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["get"])
    def history(self, request, pk=None):
        stock_item = self.get_object()
        serializer = StockItemHistorySerializer(stock_item.history.order_by("created_at"), many=True)
        return Response(serializer.data)


class TransferViewSet(
    mixins.CreateModelMixin,
    mixins.UpdateModelMixin,
    mixins.DestroyModelMixin,
    viewsets.ReadOnlyModelViewSet,
):
    serializer_class = TransferSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        qs = Transfer.objects.prefetch_related("items__stock_item", "actions").order_by("-created_at")
        params = self.request.query_params
        if params.get("status"):
            qs = qs.filter(status=params["status"])
        if params.get("source_kind") and params.get("source_id"):
            qs = qs.filter(source_kind=params["source_kind"], source_id=params["source_id"])
        if params.get("destination_kind") and params.get("destination_id"):
            qs = qs.filter(destination_kind=params["destination_kind"], destination_id=params["destination_id"])
        return qs

    def _respond(self, transfer, status_code=status.HTTP_200_OK):
        transfer = self.get_queryset().get(pk=transfer.pk)
        return Response(TransferSerializer(transfer).data, status=status_code)

    def create(self, request, *args, **kwargs):
        serializer = TransferCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        transfer = create_transfer(actor=request.user, **serializer.validated_data)
        return self._respond(transfer, status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        serializer = TransferUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        transfer = update_transfer(self.get_object(), actor=request.user, **serializer.validated_data)
        return self._respond(transfer)

    def perform_destroy(self, instance):
        delete_transfer(instance, actor=self.request.user)

    @action(detail=True, methods=["post"])
    def approve(self, request, pk=None):
        serializer = TransferDecisionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        transfer = approve_transfer(self.get_object(), actor=request.user, **serializer.validated_data)
        return self._respond(transfer)

    @action(detail=True, methods=["post"])
    def reject(self, request, pk=None):
        serializer = TransferDecisionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        transfer = reject_transfer(self.get_object(), actor=request.user, **serializer.validated_data)
        return self._respond(transfer)

    @action(detail=True, methods=["post"], url_path="approve-items")
    def approve_items(self, request, pk=None):
        serializer = TransferItemsDecisionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        transfer = approve_items(self.get_object(), data["item_ids"], actor=request.user, notes=data["notes"])
        return self._respond(transfer)

    @action(detail=True, methods=["post"], url_path="reject-items")
    def reject_items(self, request, pk=None):
        serializer = TransferItemsDecisionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        transfer = reject_items(self.get_object(), data["item_ids"], actor=request.user, notes=data["notes"])
        return self._respond(transfer)
