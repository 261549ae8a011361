from django.db.models import Q
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from sales.custody import create_custody, return_custody
from sales.models import Client, Custody, Order, Payment
from sales.payments import cancel_payment, create_payment, pay_payment
from sales.serializers import (
    ClientSerializer,
    CustodyCreateSerializer,
    CustodyReturnInputSerializer,
    CustodySerializer,
    OrderCreateSerializer,
    OrderHistorySerializer,
    OrderReturnItemsSerializer,
    OrderSerializer,
    PaymentCancelSerializer,
    PaymentCreateSerializer,
    PaymentPaySerializer,
    PaymentSerializer,
)
from sales.services import cancel_order, create_order, delete_order, deliver_order, finish_order, return_items


class ClientViewSet(mixins.CreateModelMixin, mixins.UpdateModelMixin, viewsets.ReadOnlyModelViewSet):
    serializer_class = ClientSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        qs = Client.objects.order_by("name")
        search = self.request.query_params.get("search")
        if search:
            qs = qs.filter(Q(name__icontains=search) | Q(phone__icontains=search))
        return qs


class OrderViewSet(mixins.CreateModelMixin, mixins.DestroyModelMixin, viewsets.ReadOnlyModelViewSet):
    serializer_class = OrderSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        qs = Order.objects.alive().select_related("client").prefetch_related("items__stock_item").order_by("-created_at")
        params = self.request.query_params
        if params.get("status"):
            qs = qs.filter(status=params["status"])
        if params.get("client"):
            qs = qs.filter(client_id=params["client"])
        if params.get("source_kind") and params.get("source_id"):
            qs = qs.filter(source_kind=params["source_kind"], source_id=params["source_id"])
        return qs

    def _respond(self, order, status_code=status.HTTP_200_OK):
        order = self.get_queryset().get(pk=order.pk)
        return Response(OrderSerializer(order).data, status=status_code)

    def create(self, request, *args, **kwargs):
        serializer = OrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = create_order(actor=request.user, **serializer.validated_data)
        return self._respond(order, status.HTTP_201_CREATED)

    def perform_destroy(self, instance):
        delete_order(instance, actor=self.request.user)

    @action(detail=True, methods=["post"])
    def deliver(self, request, pk=None):
        return self._respond(deliver_order(self.get_object(), actor=request.user))

    @action(detail=True, methods=["post"])
    def finish(self, request, pk=None):
        return self._respond(finish_order(self.get_object(), actor=request.user))

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        return self._respond(cancel_order(self.get_object(), actor=request.user))

    @action(detail=True, methods=["post"], url_path="return")
    def return_items(self, request, pk=None):
        serializer = OrderReturnItemsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        order = return_items(self.get_object(), data["stock_item_ids"], actor=request.user, notes=data["notes"])
        return self._respond(order)

    @action(detail=True, methods=["get"])
    def history(self, request, pk=None):
        order = self.get_object()
        return Response(OrderHistorySerializer(order.history.all(), many=True).data)


class PaymentViewSet(mixins.CreateModelMixin, viewsets.ReadOnlyModelViewSet):
    serializer_class = PaymentSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        qs = Payment.objects.select_related("order").filter(order__deleted_at__isnull=True).order_by("-created_at")
        params = self.request.query_params
        if params.get("order"):
            qs = qs.filter(order_id=params["order"])
        if params.get("status"):
            qs = qs.filter(status=params["status"])
        if params.get("payment_type"):
            qs = qs.filter(payment_type=params["payment_type"])
        return qs

    def _respond(self, payment, status_code=status.HTTP_200_OK):
        payment = self.get_queryset().get(pk=payment.pk)
        return Response(PaymentSerializer(payment).data, status=status_code)

    def create(self, request, *args, **kwargs):
        serializer = PaymentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        payment = create_payment(actor=request.user, **serializer.validated_data)
        return self._respond(payment, status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"])
    def pay(self, request, pk=None):
        serializer = PaymentPaySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        payment = pay_payment(self.get_object(), actor=request.user, **serializer.validated_data)
        return self._respond(payment)

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        serializer = PaymentCancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        payment = cancel_payment(self.get_object(), actor=request.user, **serializer.validated_data)
        return self._respond(payment)


class CustodyViewSet(mixins.CreateModelMixin, viewsets.ReadOnlyModelViewSet):
    serializer_class = CustodySerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        qs = (
            Custody.objects.filter(order__deleted_at__isnull=True)
            .select_related("return_record")
            .prefetch_related("photos")
            .order_by("-created_at")
        )
        params = self.request.query_params
        if params.get("order"):
            qs = qs.filter(order_id=params["order"])
        if params.get("status"):
            qs = qs.filter(status=params["status"])
        return qs

    def _respond(self, custody, status_code=status.HTTP_200_OK):
        custody = self.get_queryset().get(pk=custody.pk)
        return Response(CustodySerializer(custody, context={"request": self.request}).data, status=status_code)

    def create(self, request, *args, **kwargs):
        serializer = CustodyCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        custody = create_custody(actor=request.user, **serializer.validated_data)
        return self._respond(custody, status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"], url_path="return")
    def record_return(self, request, pk=None):
        serializer = CustodyReturnInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        custody = return_custody(self.get_object(), actor=request.user, **serializer.validated_data)
        return self._respond(custody)
