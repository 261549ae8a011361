import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

DISCOUNT_TYPE_CHOICES = [("percentage", "Percentage"), ("fixed", "Fixed")]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("inventory", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Client",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=255)),
                ("phone", models.CharField(blank=True, max_length=64, null=True)),
                ("email", models.EmailField(blank=True, max_length=254, null=True)),
                ("address", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "indexes": [models.Index(fields=["phone"], name="sales_client_phone_idx")],
            },
        ),
        migrations.CreateModel(
            name="Order",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "source_kind",
                    models.CharField(
                        choices=[("branch", "Branch"), ("workshop", "Workshop"), ("factory", "Factory")],
                        max_length=16,
                    ),
                ),
                ("source_id", models.UUIDField()),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("created", "Created"),
                            ("partially_paid", "Partially Paid"),
                            ("paid", "Paid"),
                            ("delivered", "Delivered"),
                            ("finished", "Finished"),
                            ("cancelled", "Cancelled"),
                        ],
                        default="created",
                        max_length=16,
                    ),
                ),
                ("total_price", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("paid", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("remaining", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("discount_type", models.CharField(blank=True, choices=DISCOUNT_TYPE_CHOICES, max_length=16, null=True)),
                ("discount_value", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("delivery_date", models.DateField(blank=True, null=True)),
                ("notes", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("deleted_at", models.DateTimeField(blank=True, null=True)),
                (
                    "client",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="orders",
                        to="sales.client",
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="created_orders",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "inventory",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="orders",
                        to="inventory.inventory",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["status", "created_at"], name="sales_order_status_idx"),
                    models.Index(fields=["source_kind", "source_id"], name="sales_order_source_idx"),
                    models.Index(fields=["client", "created_at"], name="sales_order_client_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderItem",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "type",
                    models.CharField(
                        choices=[("buy", "Buy"), ("rent", "Rent"), ("tailoring", "Tailoring")],
                        max_length=16,
                    ),
                ),
                ("unit_price", models.DecimalField(decimal_places=2, max_digits=12)),
                ("quantity", models.PositiveIntegerField(default=1)),
                ("discount_type", models.CharField(blank=True, choices=DISCOUNT_TYPE_CHOICES, max_length=16, null=True)),
                ("discount_value", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("subtotal", models.DecimalField(decimal_places=2, max_digits=12)),
                ("total", models.DecimalField(decimal_places=2, max_digits=12)),
                ("delivery_date", models.DateField(blank=True, null=True)),
                ("rental_days", models.PositiveIntegerField(blank=True, null=True)),
                ("notes", models.TextField(blank=True, default="")),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="sales.order",
                    ),
                ),
                (
                    "stock_item",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="order_items",
                        to="inventory.stockitem",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["order"], name="sales_orderitem_order_idx"),
                    models.Index(fields=["stock_item"], name="sales_orderitem_stock_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=12)),
                (
                    "status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("paid", "Paid"), ("canceled", "Canceled")],
                        default="pending",
                        max_length=16,
                    ),
                ),
                (
                    "payment_type",
                    models.CharField(
                        choices=[("initial", "Initial"), ("normal", "Normal"), ("fee", "Fee")],
                        default="normal",
                        max_length=16,
                    ),
                ),
                ("payment_date", models.DateTimeField(blank=True, null=True)),
                ("notes", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="created_payments",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to="sales.order",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["order", "status"], name="sales_payment_order_idx"),
                    models.Index(fields=["payment_date"], name="sales_payment_date_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Custody",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "type",
                    models.CharField(
                        choices=[("money", "Money"), ("physical_item", "Physical Item"), ("document", "Document")],
                        max_length=16,
                    ),
                ),
                ("description", models.CharField(max_length=255)),
                ("value", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                (
                    "status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("returned", "Returned"), ("forfeited", "Forfeited")],
                        default="pending",
                        max_length=16,
                    ),
                ),
                ("returned_at", models.DateTimeField(blank=True, null=True)),
                ("notes", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="custodies",
                        to="sales.order",
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "custodies",
                "indexes": [models.Index(fields=["order", "status"], name="sales_custody_order_idx")],
            },
        ),
        migrations.CreateModel(
            name="CustodyPhoto",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("photo", models.FileField(upload_to="custody-photos/")),
                (
                    "photo_type",
                    models.CharField(
                        choices=[
                            ("custody_photo", "Custody Photo"),
                            ("acknowledgement_receipt", "Acknowledgement Receipt"),
                        ],
                        default="custody_photo",
                        max_length=32,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "custody",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="photos",
                        to="sales.custody",
                    ),
                ),
            ],
        ),
        migrations.CreateModel(
            name="CustodyReturn",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "action",
                    models.CharField(
                        choices=[("returned_to_user", "Returned To User"), ("forfeit", "Forfeit")],
                        max_length=32,
                    ),
                ),
                ("reason", models.TextField(blank=True, null=True)),
                ("notes", models.TextField(blank=True, default="")),
                ("returned_at", models.DateTimeField()),
                (
                    "custody",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="return_record",
                        to="sales.custody",
                    ),
                ),
                (
                    "returned_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
        ),
        migrations.CreateModel(
            name="OrderHistory",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "action",
                    models.CharField(
                        choices=[
                            ("created", "Created"),
                            ("payment_added", "Payment Added"),
                            ("payment_paid", "Payment Paid"),
                            ("payment_canceled", "Payment Canceled"),
                            ("status_changed", "Status Changed"),
                            ("delivered", "Delivered"),
                            ("finished", "Finished"),
                            ("canceled", "Canceled"),
                            ("custody_added", "Custody Added"),
                            ("custody_returned", "Custody Returned"),
                            ("deleted", "Deleted"),
                        ],
                        max_length=32,
                    ),
                ),
                ("old_status", models.CharField(blank=True, max_length=16, null=True)),
                ("new_status", models.CharField(blank=True, max_length=16, null=True)),
                ("details", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "actor",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="history",
                        to="sales.order",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at"],
                "indexes": [models.Index(fields=["order", "created_at"], name="sales_orderhist_order_idx")],
            },
        ),
    ]
