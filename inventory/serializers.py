from rest_framework import serializers

from inventory.models import EntityKind, Inventory, StockItem, StockItemHistory, Transfer, TransferAction, TransferItem


class InventorySerializer(serializers.ModelSerializer):
    item_count = serializers.IntegerField(read_only=True)

    class Meta:
        model = Inventory
        fields = ["id", "entity_kind", "entity_id", "name", "item_count", "created_at", "updated_at"]
        read_only_fields = fields


class StockItemSerializer(serializers.ModelSerializer):
    inventory = serializers.SerializerMethodField()

    class Meta:
        model = StockItem
        fields = ["id", "code", "name", "description", "status", "inventory", "created_at", "updated_at"]
        read_only_fields = fields

    def get_inventory(self, obj):
        membership = getattr(obj, "membership", None)
        return str(membership.inventory_id) if membership else None


class StockItemCreateSerializer(serializers.Serializer):
    inventory = serializers.PrimaryKeyRelatedField(queryset=Inventory.objects.all())
    code = serializers.CharField(max_length=64)
    name = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default="")


class StockItemHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = StockItemHistory
        fields = ["id", "action", "actor", "reference_type", "reference_id", "details", "created_at"]
        read_only_fields = fields


class TransferItemSerializer(serializers.ModelSerializer):
    stock_item_code = serializers.CharField(source="stock_item.code", read_only=True)

    class Meta:
        model = TransferItem
        fields = ["id", "stock_item", "stock_item_code", "status", "updated_at"]
        read_only_fields = fields


class TransferActionSerializer(serializers.ModelSerializer):
    class Meta:
        model = TransferAction
        fields = ["id", "actor", "action", "item_ids", "action_date", "notes"]
        read_only_fields = fields


class TransferSerializer(serializers.ModelSerializer):
    items = TransferItemSerializer(many=True, read_only=True)
    actions = TransferActionSerializer(many=True, read_only=True)

    class Meta:
        model = Transfer
        fields = [
            "id",
            "source_kind",
            "source_id",
            "destination_kind",
            "destination_id",
            "status",
            "transfer_date",
            "notes",
            "created_by",
            "items",
            "actions",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class TransferCreateSerializer(serializers.Serializer):
    source_kind = serializers.ChoiceField(choices=EntityKind.choices)
    source_id = serializers.UUIDField()
    destination_kind = serializers.ChoiceField(choices=EntityKind.choices)
    destination_id = serializers.UUIDField()
    stock_item_ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False)
    transfer_date = serializers.DateField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class TransferItemsDecisionSerializer(serializers.Serializer):
    item_ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class TransferDecisionSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class TransferUpdateSerializer(serializers.Serializer):
    stock_item_ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False, required=False)
    transfer_date = serializers.DateField(required=False)
    notes = serializers.CharField(required=False, allow_blank=True)
