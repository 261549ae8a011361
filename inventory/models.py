import uuid

from django.db import models
from django.utils import timezone

from core.models import User


class EntityKind(models.TextChoices):
    BRANCH = "branch", "Branch"
    WORKSHOP = "workshop", "Workshop"
    FACTORY = "factory", "Factory"


class Inventory(models.Model):
    """The single stock pool owned by a branch, workshop or factory."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    entity_kind = models.CharField(max_length=16, choices=EntityKind.choices)
    entity_id = models.UUIDField()
    name = models.CharField(max_length=255, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = "inventories"
        constraints = [
            models.UniqueConstraint(fields=["entity_kind", "entity_id"], name="uniq_inventory_per_entity"),
        ]

    def __str__(self):
        return self.name or f"{self.entity_kind}:{self.entity_id}"


class StockItem(models.Model):
    class Status(models.TextChoices):
        READY_FOR_RENT = "ready_for_rent", "Ready For Rent"
        RENTED = "rented", "Rented"
        REPAIRING = "repairing", "Repairing"
        SOLD = "sold", "Sold"
        DAMAGED = "damaged", "Damaged"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    code = models.CharField(max_length=64, unique=True)
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.READY_FOR_RENT)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["status"], name="inventory_stockitem_status_idx"),
        ]

    def __str__(self):
        return self.code


class InventoryItem(models.Model):
    """Membership of a stock item in an inventory; at most one row per item."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    inventory = models.ForeignKey(Inventory, on_delete=models.CASCADE, related_name="memberships")
    stock_item = models.OneToOneField(StockItem, on_delete=models.CASCADE, related_name="membership")
    added_at = models.DateTimeField(default=timezone.now)

    class Meta:
        indexes = [
            models.Index(fields=["inventory", "added_at"], name="inventory_member_inv_idx"),
        ]


class StockItemHistory(models.Model):
    class Action(models.TextChoices):
        CREATED = "created", "Created"
        ORDERED = "ordered", "Ordered"
        TRANSFERRED = "transferred", "Transferred"
        RELEASED = "released", "Released"
        STATUS_CHANGED = "status_changed", "Status Changed"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    stock_item = models.ForeignKey(StockItem, on_delete=models.CASCADE, related_name="history")
    action = models.CharField(max_length=32, choices=Action.choices)
    actor = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    reference_type = models.CharField(max_length=64, null=True, blank=True)
    reference_id = models.UUIDField(null=True, blank=True)
    details = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=["stock_item", "created_at"], name="inventory_history_item_idx"),
            models.Index(fields=["reference_id", "reference_type"], name="inventory_history_ref_idx"),
        ]


class Transfer(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        PARTIALLY_PENDING = "partially_pending", "Partially Pending"
        PARTIALLY_APPROVED = "partially_approved", "Partially Approved"
        APPROVED = "approved", "Approved"
        REJECTED = "rejected", "Rejected"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    source_kind = models.CharField(max_length=16, choices=EntityKind.choices)
    source_id = models.UUIDField()
    destination_kind = models.CharField(max_length=16, choices=EntityKind.choices)
    destination_id = models.UUIDField()
    source_inventory = models.ForeignKey(Inventory, on_delete=models.PROTECT, related_name="outgoing_transfers")
    destination_inventory = models.ForeignKey(Inventory, on_delete=models.PROTECT, related_name="incoming_transfers")
    status = models.CharField(max_length=24, choices=Status.choices, default=Status.PENDING)
    transfer_date = models.DateField(default=timezone.localdate)
    notes = models.TextField(blank=True, default="")
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="created_transfers")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["source_kind", "source_id"], name="inventory_transfer_src_idx"),
            models.Index(fields=["destination_kind", "destination_id"], name="inventory_transfer_dst_idx"),
            models.Index(fields=["status", "created_at"], name="inventory_transfer_status_idx"),
        ]


class TransferItem(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        APPROVED = "approved", "Approved"
        REJECTED = "rejected", "Rejected"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    transfer = models.ForeignKey(Transfer, on_delete=models.CASCADE, related_name="items")
    stock_item = models.ForeignKey(StockItem, on_delete=models.PROTECT, related_name="transfer_items")
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.PENDING)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["transfer", "stock_item"], name="uniq_transfer_stock_item"),
        ]
        indexes = [
            models.Index(fields=["transfer", "status"], name="inventory_tritem_status_idx"),
        ]


class TransferAction(models.Model):
    class Action(models.TextChoices):
        CREATED = "created", "Created"
        APPROVED = "approved", "Approved"
        APPROVED_ITEMS = "approved_items", "Approved Items"
        REJECTED = "rejected", "Rejected"
        REJECTED_ITEMS = "rejected_items", "Rejected Items"
        UPDATED = "updated", "Updated"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    transfer = models.ForeignKey(Transfer, on_delete=models.CASCADE, related_name="actions")
    actor = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=32, choices=Action.choices)
    item_ids = models.JSONField(default=list, blank=True)
    action_date = models.DateTimeField(default=timezone.now)
    notes = models.TextField(blank=True, default="")

    class Meta:
        indexes = [
            models.Index(fields=["transfer", "action"], name="inventory_tr_action_idx"),
        ]
