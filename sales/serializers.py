from rest_framework import serializers

from inventory.models import EntityKind
from sales.models import (
    Client,
    Custody,
    CustodyPhoto,
    CustodyReturn,
    DiscountType,
    Order,
    OrderHistory,
    OrderItem,
    Payment,
)

# Initial payments are recorded only by order creation.
CALLER_PAYMENT_TYPES = [(Payment.Type.NORMAL, Payment.Type.NORMAL.label), (Payment.Type.FEE, Payment.Type.FEE.label)]


class ClientSerializer(serializers.ModelSerializer):
    class Meta:
        model = Client
        fields = ["id", "name", "phone", "email", "address", "created_at", "updated_at"]
        read_only_fields = ["id", "created_at", "updated_at"]


class OrderItemSerializer(serializers.ModelSerializer):
    stock_item_code = serializers.CharField(source="stock_item.code", read_only=True)

    class Meta:
        model = OrderItem
        fields = [
            "id",
            "stock_item",
            "stock_item_code",
            "type",
            "unit_price",
            "quantity",
            "discount_type",
            "discount_value",
            "subtotal",
            "total",
            "delivery_date",
            "rental_days",
            "returned_at",
            "notes",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True, read_only=True)
    client_name = serializers.CharField(source="client.name", read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "client",
            "client_name",
            "source_kind",
            "source_id",
            "inventory",
            "status",
            "total_price",
            "paid",
            "remaining",
            "discount_type",
            "discount_value",
            "delivery_date",
            "notes",
            "items",
            "created_by",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class OrderItemInputSerializer(serializers.Serializer):
    stock_item_id = serializers.UUIDField()
    type = serializers.ChoiceField(choices=OrderItem.Type.choices)
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2)
    quantity = serializers.IntegerField(default=1)
    discount_type = serializers.ChoiceField(choices=DiscountType.choices, required=False, allow_null=True)
    discount_value = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, default=0)
    delivery_date = serializers.DateField(required=False, allow_null=True)
    rental_days = serializers.IntegerField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class OrderCreateSerializer(serializers.Serializer):
    client = serializers.PrimaryKeyRelatedField(queryset=Client.objects.all())
    source_kind = serializers.ChoiceField(choices=EntityKind.choices)
    source_id = serializers.UUIDField()
    items = OrderItemInputSerializer(many=True)
    discount_type = serializers.ChoiceField(choices=DiscountType.choices, required=False, allow_null=True)
    discount_value = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, default=0)
    initial_paid = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, default=0)
    delivery_date = serializers.DateField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class OrderReturnItemsSerializer(serializers.Serializer):
    stock_item_ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class OrderHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderHistory
        fields = ["id", "action", "actor", "old_status", "new_status", "details", "created_at"]
        read_only_fields = fields


class PaymentSerializer(serializers.ModelSerializer):
    order_total = serializers.DecimalField(source="order.total_price", max_digits=12, decimal_places=2, read_only=True)
    order_paid = serializers.DecimalField(source="order.paid", max_digits=12, decimal_places=2, read_only=True)
    order_remaining = serializers.DecimalField(source="order.remaining", max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = Payment
        fields = [
            "id",
            "order",
            "amount",
            "status",
            "payment_type",
            "payment_date",
            "notes",
            "order_total",
            "order_paid",
            "order_remaining",
            "created_by",
            "created_at",
        ]
        read_only_fields = fields


class PaymentCreateSerializer(serializers.Serializer):
    order = serializers.PrimaryKeyRelatedField(queryset=Order.objects.alive())
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    status = serializers.ChoiceField(choices=Payment.Status.choices, default=Payment.Status.PENDING)
    payment_type = serializers.ChoiceField(choices=CALLER_PAYMENT_TYPES, default=Payment.Type.NORMAL)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class PaymentPaySerializer(serializers.Serializer):
    payment_date = serializers.DateTimeField(required=False, allow_null=True)


class PaymentCancelSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class CustodyPhotoSerializer(serializers.ModelSerializer):
    class Meta:
        model = CustodyPhoto
        fields = ["id", "photo", "photo_type", "created_at"]
        read_only_fields = fields


class CustodyReturnSerializer(serializers.ModelSerializer):
    class Meta:
        model = CustodyReturn
        fields = ["action", "reason", "notes", "returned_by", "returned_at"]
        read_only_fields = fields


class CustodySerializer(serializers.ModelSerializer):
    photos = CustodyPhotoSerializer(many=True, read_only=True)
    return_record = CustodyReturnSerializer(read_only=True)

    class Meta:
        model = Custody
        fields = [
            "id",
            "order",
            "type",
            "description",
            "value",
            "status",
            "returned_at",
            "notes",
            "photos",
            "return_record",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class CustodyCreateSerializer(serializers.Serializer):
    order = serializers.PrimaryKeyRelatedField(queryset=Order.objects.alive())
    type = serializers.ChoiceField(choices=Custody.Type.choices)
    description = serializers.CharField(max_length=255)
    value = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    photos = serializers.ListField(child=serializers.FileField(), required=False, default=list)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class CustodyReturnInputSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=CustodyReturn.Action.choices)
    acknowledgement_photos = serializers.ListField(child=serializers.FileField(), allow_empty=False)
    reason = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
