import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

ENTITY_KIND_CHOICES = [("branch", "Branch"), ("workshop", "Workshop"), ("factory", "Factory")]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("core", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Inventory",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("entity_kind", models.CharField(choices=ENTITY_KIND_CHOICES, max_length=16)),
                ("entity_id", models.UUIDField()),
                ("name", models.CharField(blank=True, default="", max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name_plural": "inventories",
                "constraints": [
                    models.UniqueConstraint(fields=("entity_kind", "entity_id"), name="uniq_inventory_per_entity"),
                ],
            },
        ),
        migrations.CreateModel(
            name="StockItem",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("code", models.CharField(max_length=64, unique=True)),
                ("name", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True, default="")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("ready_for_rent", "Ready For Rent"),
                            ("rented", "Rented"),
                            ("repairing", "Repairing"),
                            ("sold", "Sold"),
                            ("damaged", "Damaged"),
                        ],
                        default="ready_for_rent",
                        max_length=16,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "indexes": [models.Index(fields=["status"], name="inventory_stockitem_status_idx")],
            },
        ),
        migrations.CreateModel(
            name="InventoryItem",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("added_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "inventory",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="memberships",
                        to="inventory.inventory",
                    ),
                ),
                (
                    "stock_item",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="membership",
                        to="inventory.stockitem",
                    ),
                ),
            ],
            options={
                "indexes": [models.Index(fields=["inventory", "added_at"], name="inventory_member_inv_idx")],
            },
        ),
        migrations.CreateModel(
            name="StockItemHistory",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "action",
                    models.CharField(
                        choices=[
                            ("created", "Created"),
                            ("ordered", "Ordered"),
                            ("transferred", "Transferred"),
                            ("released", "Released"),
                            ("status_changed", "Status Changed"),
                        ],
                        max_length=32,
                    ),
                ),
                ("reference_type", models.CharField(blank=True, max_length=64, null=True)),
                ("reference_id", models.UUIDField(blank=True, null=True)),
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
                    "stock_item",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="history",
                        to="inventory.stockitem",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["stock_item", "created_at"], name="inventory_history_item_idx"),
                    models.Index(fields=["reference_id", "reference_type"], name="inventory_history_ref_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Transfer",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("source_kind", models.CharField(choices=ENTITY_KIND_CHOICES, max_length=16)),
                ("source_id", models.UUIDField()),
                ("destination_kind", models.CharField(choices=ENTITY_KIND_CHOICES, max_length=16)),
                ("destination_id", models.UUIDField()),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("partially_pending", "Partially Pending"),
                            ("partially_approved", "Partially Approved"),
                            ("approved", "Approved"),
                            ("rejected", "Rejected"),
                        ],
                        default="pending",
                        max_length=24,
                    ),
                ),
                ("transfer_date", models.DateField(default=django.utils.timezone.localdate)),
                ("notes", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="created_transfers",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "destination_inventory",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="incoming_transfers",
                        to="inventory.inventory",
                    ),
                ),
                (
                    "source_inventory",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="outgoing_transfers",
                        to="inventory.inventory",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["source_kind", "source_id"], name="inventory_transfer_src_idx"),
                    models.Index(fields=["destination_kind", "destination_id"], name="inventory_transfer_dst_idx"),
                    models.Index(fields=["status", "created_at"], name="inventory_transfer_status_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="TransferItem",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("approved", "Approved"), ("rejected", "Rejected")],
                        default="pending",
                        max_length=16,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "stock_item",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transfer_items",
                        to="inventory.stockitem",
                    ),
                ),
                (
                    "transfer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="inventory.transfer",
                    ),
                ),
            ],
            options={
                "indexes": [models.Index(fields=["transfer", "status"], name="inventory_tritem_status_idx")],
                "constraints": [
                    models.UniqueConstraint(fields=("transfer", "stock_item"), name="uniq_transfer_stock_item"),
                ],
            },
        ),
        migrations.CreateModel(
            name="TransferAction",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "action",
                    models.CharField(
                        choices=[
                            ("created", "Created"),
                            ("approved", "Approved"),
                            ("approved_items", "Approved Items"),
                            ("rejected", "Rejected"),
                            ("rejected_items", "Rejected Items"),
                        ],
                        max_length=32,
                    ),
                ),
                ("item_ids", models.JSONField(blank=True, default=list)),
                ("action_date", models.DateTimeField(default=django.utils.timezone.now)),
                ("notes", models.TextField(blank=True, default="")),
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
                    "transfer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="actions",
                        to="inventory.transfer",
                    ),
                ),
            ],
            options={
                "indexes": [models.Index(fields=["transfer", "action"], name="inventory_tr_action_idx")],
            },
        ),
    ]
