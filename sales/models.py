import uuid

from django.db import models

from core.models import User
from inventory.models import EntityKind, Inventory, StockItem


class DiscountType(models.TextChoices):
    PERCENTAGE = "percentage", "Percentage"
    FIXED = "fixed", "Fixed"


class Client(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    phone = models.CharField(max_length=64, null=True, blank=True)
    email = models.EmailField(null=True, blank=True)
    address = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["phone"], name="sales_client_phone_idx"),
        ]

    def __str__(self):
        return self.name


class OrderQuerySet(models.QuerySet):
    def alive(self):
        return self.filter(deleted_at__isnull=True)


class Order(models.Model):
    class Status(models.TextChoices):
        CREATED = "created", "Created"
        PARTIALLY_PAID = "partially_paid", "Partially Paid"
        PAID = "paid", "Paid"
        DELIVERED = "delivered", "Delivered"
        FINISHED = "finished", "Finished"
        CANCELLED = "cancelled", "Cancelled"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    client = models.ForeignKey(Client, on_delete=models.PROTECT, related_name="orders")
    source_kind = models.CharField(max_length=16, choices=EntityKind.choices)
    source_id = models.UUIDField()
    inventory = models.ForeignKey(Inventory, on_delete=models.PROTECT, related_name="orders")
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.CREATED)
    total_price = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    paid = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    remaining = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    discount_type = models.CharField(max_length=16, choices=DiscountType.choices, null=True, blank=True)
    discount_value = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    delivery_date = models.DateField(null=True, blank=True)
    notes = models.TextField(blank=True, default="")
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="created_orders")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    deleted_at = models.DateTimeField(null=True, blank=True)

    objects = OrderQuerySet.as_manager()

    class Meta:
        indexes = [
            models.Index(fields=["status", "created_at"], name="sales_order_status_idx"),
            models.Index(fields=["source_kind", "source_id"], name="sales_order_source_idx"),
            models.Index(fields=["client", "created_at"], name="sales_order_client_idx"),
        ]


class OrderItem(models.Model):
    class Type(models.TextChoices):
        BUY = "buy", "Buy"
        RENT = "rent", "Rent"
        TAILORING = "tailoring", "Tailoring"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
    stock_item = models.ForeignKey(StockItem, on_delete=models.PROTECT, related_name="order_items")
    type = models.CharField(max_length=16, choices=Type.choices)
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    quantity = models.PositiveIntegerField(default=1)
    discount_type = models.CharField(max_length=16, choices=DiscountType.choices, null=True, blank=True)
    discount_value = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    subtotal = models.DecimalField(max_digits=12, decimal_places=2)
    total = models.DecimalField(max_digits=12, decimal_places=2)
    delivery_date = models.DateField(null=True, blank=True)
    rental_days = models.PositiveIntegerField(null=True, blank=True)
    returned_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True, default="")

    class Meta:
        indexes = [
            models.Index(fields=["order"], name="sales_orderitem_order_idx"),
            models.Index(fields=["stock_item"], name="sales_orderitem_stock_idx"),
        ]


class Payment(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        PAID = "paid", "Paid"
        CANCELED = "canceled", "Canceled"

    class Type(models.TextChoices):
        INITIAL = "initial", "Initial"
        NORMAL = "normal", "Normal"
        FEE = "fee", "Fee"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(Order, on_delete=models.PROTECT, related_name="payments")
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.PENDING)
    payment_type = models.CharField(max_length=16, choices=Type.choices, default=Type.NORMAL)
    payment_date = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True, default="")
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="created_payments")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["order", "status"], name="sales_payment_order_idx"),
            models.Index(fields=["payment_date"], name="sales_payment_date_idx"),
        ]


class Custody(models.Model):
    class Type(models.TextChoices):
        MONEY = "money", "Money"
        PHYSICAL_ITEM = "physical_item", "Physical Item"
        DOCUMENT = "document", "Document"

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        RETURNED = "returned", "Returned"
        FORFEITED = "forfeited", "Forfeited"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(Order, on_delete=models.PROTECT, related_name="custodies")
    type = models.CharField(max_length=16, choices=Type.choices)
    description = models.CharField(max_length=255)
    value = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.PENDING)
    returned_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = "custodies"
        indexes = [
            models.Index(fields=["order", "status"], name="sales_custody_order_idx"),
        ]


class CustodyPhoto(models.Model):
    class PhotoType(models.TextChoices):
        CUSTODY_PHOTO = "custody_photo", "Custody Photo"
        ACKNOWLEDGEMENT_RECEIPT = "acknowledgement_receipt", "Acknowledgement Receipt"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    custody = models.ForeignKey(Custody, on_delete=models.CASCADE, related_name="photos")
    photo = models.FileField(upload_to="custody-photos/")
    photo_type = models.CharField(max_length=32, choices=PhotoType.choices, default=PhotoType.CUSTODY_PHOTO)
    created_at = models.DateTimeField(auto_now_add=True)


class CustodyReturn(models.Model):
    class Action(models.TextChoices):
        RETURNED_TO_USER = "returned_to_user", "Returned To User"
        FORFEIT = "forfeit", "Forfeit"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    custody = models.OneToOneField(Custody, on_delete=models.CASCADE, related_name="return_record")
    action = models.CharField(max_length=32, choices=Action.choices)
    reason = models.TextField(null=True, blank=True)
    notes = models.TextField(blank=True, default="")
    returned_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    returned_at = models.DateTimeField()


class OrderHistory(models.Model):
    class Action(models.TextChoices):
        CREATED = "created", "Created"
        PAYMENT_ADDED = "payment_added", "Payment Added"
        PAYMENT_PAID = "payment_paid", "Payment Paid"
        PAYMENT_CANCELED = "payment_canceled", "Payment Canceled"
        STATUS_CHANGED = "status_changed", "Status Changed"
        DELIVERED = "delivered", "Delivered"
        FINISHED = "finished", "Finished"
        CANCELED = "canceled", "Canceled"
        CUSTODY_ADDED = "custody_added", "Custody Added"
        CUSTODY_RETURNED = "custody_returned", "Custody Returned"
        ITEMS_RETURNED = "items_returned", "Items Returned"
        DELETED = "deleted", "Deleted"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="history")
    action = models.CharField(max_length=32, choices=Action.choices)
    actor = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    old_status = models.CharField(max_length=16, null=True, blank=True)
    new_status = models.CharField(max_length=16, null=True, blank=True)
    details = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["order", "created_at"], name="sales_orderhist_order_idx"),
        ]
