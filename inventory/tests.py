import uuid

from django.contrib.auth import get_user_model
from django.test import SimpleTestCase, TestCase
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.test import APIClient

from common.exceptions import InvalidTransition
from core.models import AuditLog, Branch, Factory, Workshop
from inventory.models import InventoryItem, StockItem, StockItemHistory, Transfer, TransferAction, TransferItem
from inventory.services import ensure_inventory, register_stock_item
from inventory.transfers import (
    aggregate_transfer_status,
    approve_items,
    approve_transfer,
    create_transfer,
    delete_transfer,
    reject_items,
    reject_transfer,
    update_transfer,
)

APPROVED = TransferItem.Status.APPROVED
PENDING = TransferItem.Status.PENDING
REJECTED = TransferItem.Status.REJECTED


class AggregateTransferStatusTests(SimpleTestCase):
    def test_uniform_statuses(self):
        self.assertEqual(aggregate_transfer_status([APPROVED, APPROVED]), Transfer.Status.APPROVED)
        self.assertEqual(aggregate_transfer_status([REJECTED, REJECTED]), Transfer.Status.REJECTED)
        self.assertEqual(aggregate_transfer_status([PENDING, PENDING]), Transfer.Status.PENDING)

    def test_any_approval_in_a_mix_is_partially_approved(self):
        self.assertEqual(aggregate_transfer_status([APPROVED, PENDING, PENDING]), Transfer.Status.PARTIALLY_APPROVED)
        self.assertEqual(aggregate_transfer_status([APPROVED, REJECTED]), Transfer.Status.PARTIALLY_APPROVED)
        self.assertEqual(aggregate_transfer_status([APPROVED, REJECTED, PENDING]), Transfer.Status.PARTIALLY_APPROVED)

    def test_rejections_with_pending_items_are_partially_pending(self):
        self.assertEqual(aggregate_transfer_status([REJECTED, PENDING]), Transfer.Status.PARTIALLY_PENDING)


class TransferWorkflowTests(TestCase):
    def setUp(self):
        self.user = get_user_model().objects.create_user(username="stock-keeper", password="pass1234")
        self.branch = Branch.objects.create(code="BR1", name="Downtown")
        self.workshop = Workshop.objects.create(code="WS1", name="Alterations")
        self.factory = Factory.objects.create(code="FC1", name="Factory")
        self.branch_inventory = ensure_inventory(self.branch)
        self.workshop_inventory = ensure_inventory(self.workshop)
        ensure_inventory(self.factory)

        self.gowns = [
            register_stock_item(inventory=self.branch_inventory, code=f"GOWN-{n}", name=f"Gown {n}", actor=self.user)
            for n in range(3)
        ]

    def _create(self, stock_items=None, **overrides):
        params = {
            "actor": self.user,
            "source_kind": "branch",
            "source_id": self.branch.id,
            "destination_kind": "workshop",
            "destination_id": self.workshop.id,
            "stock_item_ids": [item.id for item in (stock_items or self.gowns)],
        }
        params.update(overrides)
        return create_transfer(**params)

    def _inventory_of(self, stock_item):
        return InventoryItem.objects.get(stock_item=stock_item).inventory_id

    def test_create_transfer_records_pending_items_and_action(self):
        transfer = self._create()

        self.assertEqual(transfer.status, Transfer.Status.PENDING)
        self.assertEqual(transfer.items.filter(status=PENDING).count(), 3)
        action = TransferAction.objects.get(transfer=transfer)
        self.assertEqual(action.action, TransferAction.Action.CREATED)
        self.assertEqual(len(action.item_ids), 3)
        self.assertTrue(AuditLog.objects.filter(action="transfer.create", entity_id=transfer.id).exists())
        for gown in self.gowns:
            self.assertEqual(self._inventory_of(gown), self.branch_inventory.id)

    def test_create_transfer_rejects_same_source_and_destination(self):
        with self.assertRaises(ValidationError):
            self._create(destination_kind="branch", destination_id=self.branch.id)

    def test_create_transfer_rejects_empty_and_duplicate_items(self):
        with self.assertRaises(ValidationError):
            self._create(stock_item_ids=[])
        with self.assertRaises(ValidationError):
            self._create(stock_item_ids=[self.gowns[0].id, self.gowns[0].id])

    def test_create_transfer_rejects_items_outside_source_inventory(self):
        elsewhere = register_stock_item(inventory=self.workshop_inventory, code="SUIT-1", name="Suit")

        with self.assertRaises(ValidationError):
            self._create(stock_items=[self.gowns[0], elsewhere])
        self.assertFalse(Transfer.objects.exists())

    def test_create_transfer_rejects_sold_items(self):
        StockItem.objects.filter(pk=self.gowns[0].pk).update(status=StockItem.Status.SOLD)

        with self.assertRaises(ValidationError):
            self._create(stock_items=[self.gowns[0]])

    def test_create_transfer_with_unknown_entity_is_not_found(self):
        with self.assertRaises(NotFound):
            self._create(destination_id=uuid.uuid4())

    def test_partial_approval_moves_only_approved_items(self):
        transfer = self._create()
        first, second, third = transfer.items.order_by("stock_item__code")

        transfer = approve_items(transfer, [first.id, second.id], actor=self.user)

        self.assertEqual(transfer.status, Transfer.Status.PARTIALLY_APPROVED)
        self.assertEqual(self._inventory_of(first.stock_item), self.workshop_inventory.id)
        self.assertEqual(self._inventory_of(second.stock_item), self.workshop_inventory.id)
        self.assertEqual(self._inventory_of(third.stock_item), self.branch_inventory.id)
        self.assertEqual(
            StockItemHistory.objects.filter(action=StockItemHistory.Action.TRANSFERRED, reference_id=transfer.id).count(),
            2,
        )

        transfer = reject_items(transfer, [third.id], actor=self.user)
        self.assertEqual(transfer.status, Transfer.Status.PARTIALLY_APPROVED)
        self.assertEqual(self._inventory_of(third.stock_item), self.branch_inventory.id)

    def test_approving_already_approved_items_fails_without_moving_again(self):
        transfer = self._create()
        item = transfer.items.first()
        approve_items(transfer, [item.id], actor=self.user)

        with self.assertRaises(ValidationError):
            approve_items(transfer, [item.id], actor=self.user)

        self.assertEqual(
            StockItemHistory.objects.filter(stock_item=item.stock_item, action=StockItemHistory.Action.TRANSFERRED).count(),
            1,
        )
        self.assertEqual(self._inventory_of(item.stock_item), self.workshop_inventory.id)

    def test_item_ids_from_another_transfer_are_rejected(self):
        transfer = self._create(stock_items=self.gowns[:1])
        other = self._create(stock_items=self.gowns[1:2])
        foreign_item = other.items.get()

        with self.assertRaises(ValidationError):
            approve_items(transfer, [foreign_item.id], actor=self.user)
        self.assertEqual(TransferItem.objects.get(pk=foreign_item.pk).status, PENDING)

    def test_batch_naming_a_decided_item_is_rejected_whole(self):
        transfer = self._create()
        first, second, _ = transfer.items.order_by("stock_item__code")
        reject_items(transfer, [first.id], actor=self.user)

        with self.assertRaises(ValidationError) as ctx:
            approve_items(transfer, [first.id, second.id], actor=self.user)

        self.assertIn(str(first.id), str(ctx.exception.detail))
        self.assertEqual(TransferItem.objects.get(pk=first.pk).status, REJECTED)
        self.assertEqual(TransferItem.objects.get(pk=second.pk).status, PENDING)
        self.assertEqual(self._inventory_of(second.stock_item), self.branch_inventory.id)
        transfer.refresh_from_db()
        self.assertEqual(transfer.status, Transfer.Status.PARTIALLY_PENDING)

    def test_rejection_with_pending_items_is_partially_pending(self):
        transfer = self._create()
        first = transfer.items.order_by("stock_item__code").first()

        transfer = reject_items(transfer, [first.id], actor=self.user)

        self.assertEqual(transfer.status, Transfer.Status.PARTIALLY_PENDING)

    def test_approve_transfer_moves_remaining_pending_items(self):
        transfer = self._create()
        first = transfer.items.order_by("stock_item__code").first()
        reject_items(transfer, [first.id], actor=self.user)

        transfer = approve_transfer(transfer, actor=self.user)

        self.assertEqual(transfer.status, Transfer.Status.PARTIALLY_APPROVED)
        self.assertEqual(transfer.items.filter(status=APPROVED).count(), 2)
        self.assertTrue(transfer.actions.filter(action=TransferAction.Action.APPROVED).exists())

    def test_whole_transfer_decision_without_pending_items_is_invalid(self):
        transfer = self._create()
        reject_transfer(transfer, actor=self.user)

        with self.assertRaises(InvalidTransition):
            approve_transfer(transfer, actor=self.user)

        transfer.refresh_from_db()
        self.assertEqual(transfer.status, Transfer.Status.REJECTED)
        for gown in self.gowns:
            self.assertEqual(self._inventory_of(gown), self.branch_inventory.id)

    def test_approval_fails_when_item_left_source_inventory(self):
        transfer = self._create(stock_items=self.gowns[:1])
        InventoryItem.objects.filter(stock_item=self.gowns[0]).update(inventory=self.workshop_inventory)

        with self.assertRaises(ValidationError):
            approve_transfer(transfer, actor=self.user)
        self.assertEqual(transfer.items.get().status, PENDING)

    def test_failed_approval_rolls_back_items_already_moved(self):
        transfer = self._create(stock_items=self.gowns[:2])
        first = transfer.items.get(stock_item=self.gowns[0])
        second = transfer.items.get(stock_item=self.gowns[1])
        InventoryItem.objects.filter(stock_item=self.gowns[1]).update(inventory=self.workshop_inventory)

        with self.assertRaises(ValidationError):
            approve_items(transfer, [first.id, second.id], actor=self.user)

        self.assertEqual(self._inventory_of(self.gowns[0]), self.branch_inventory.id)
        self.assertEqual(TransferItem.objects.get(pk=first.pk).status, PENDING)
        self.assertFalse(
            StockItemHistory.objects.filter(action=StockItemHistory.Action.TRANSFERRED, reference_id=transfer.id).exists()
        )
        transfer.refresh_from_db()
        self.assertEqual(transfer.status, Transfer.Status.PENDING)

    def test_update_replaces_lines_and_fields(self):
        transfer = self._create(stock_items=self.gowns[:2])
        reject_items(transfer, [transfer.items.get(stock_item=self.gowns[0]).id], actor=self.user)

        transfer = update_transfer(
            transfer,
            actor=self.user,
            stock_item_ids=[self.gowns[1].id, self.gowns[2].id],
            notes="Swap the first gown",
        )

        self.assertEqual(transfer.status, Transfer.Status.PENDING)
        self.assertEqual(transfer.notes, "Swap the first gown")
        self.assertCountEqual(
            transfer.items.values_list("stock_item_id", flat=True),
            [self.gowns[1].id, self.gowns[2].id],
        )
        self.assertFalse(transfer.items.exclude(status=PENDING).exists())
        self.assertTrue(transfer.actions.filter(action=TransferAction.Action.UPDATED).exists())

    def test_update_rechecks_source_inventory(self):
        transfer = self._create(stock_items=self.gowns[:1])
        elsewhere = register_stock_item(inventory=self.workshop_inventory, code="SUIT-1", name="Suit")

        with self.assertRaises(ValidationError):
            update_transfer(transfer, actor=self.user, stock_item_ids=[elsewhere.id])
        self.assertEqual(list(transfer.items.values_list("stock_item_id", flat=True)), [self.gowns[0].id])

    def test_update_is_refused_once_a_line_is_approved(self):
        transfer = self._create(stock_items=self.gowns[:2])
        approve_items(transfer, [transfer.items.get(stock_item=self.gowns[0]).id], actor=self.user)

        with self.assertRaises(InvalidTransition):
            update_transfer(transfer, actor=self.user, notes="too late")

    def test_delete_only_pending_transfers(self):
        decided = self._create(stock_items=self.gowns[:1])
        reject_transfer(decided, actor=self.user)
        with self.assertRaises(InvalidTransition):
            delete_transfer(decided, actor=self.user)

        pending = self._create(stock_items=self.gowns[1:2])
        delete_transfer(pending, actor=self.user)

        self.assertFalse(Transfer.objects.filter(pk=pending.pk).exists())
        self.assertTrue(AuditLog.objects.filter(action="transfer.delete", entity_id=pending.id).exists())
        self.assertEqual(self._inventory_of(self.gowns[1]), self.branch_inventory.id)


class TransferApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user = get_user_model().objects.create_user(username="clerk", password="pass1234")
        self.client.force_authenticate(user=self.user)

        self.branch = Branch.objects.create(code="BR1", name="Downtown")
        self.factory = Factory.objects.create(code="FC1", name="Factory")
        self.branch_inventory = ensure_inventory(self.branch)
        self.factory_inventory = ensure_inventory(self.factory)
        self.dress = register_stock_item(inventory=self.branch_inventory, code="DRESS-1", name="Dress")

    def test_create_and_approve_items_over_http(self):
        response = self.client.post(
            "/api/v1/transfers/",
            {
                "source_kind": "branch",
                "source_id": str(self.branch.id),
                "destination_kind": "factory",
                "destination_id": str(self.factory.id),
                "stock_item_ids": [str(self.dress.id)],
            },
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        payload = response.json()
        self.assertEqual(payload["status"], "pending")
        item_id = payload["items"][0]["id"]

        response = self.client.post(
            f"/api/v1/transfers/{payload['id']}/approve-items/",
            {"item_ids": [item_id]},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "approved")
        self.assertEqual(InventoryItem.objects.get(stock_item=self.dress).inventory, self.factory_inventory)

    def test_unknown_destination_returns_not_found(self):
        response = self.client.post(
            "/api/v1/transfers/",
            {
                "source_kind": "branch",
                "source_id": str(self.branch.id),
                "destination_kind": "factory",
                "destination_id": str(uuid.uuid4()),
                "stock_item_ids": [str(self.dress.id)],
            },
            format="json",
        )

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["code"], "not_found")

    def test_reject_without_pending_items_is_conflict(self):
        transfer = create_transfer(
            actor=self.user,
            source_kind="branch",
            source_id=self.branch.id,
            destination_kind="factory",
            destination_id=self.factory.id,
            stock_item_ids=[self.dress.id],
        )
        reject_transfer(transfer, actor=self.user)

        response = self.client.post(f"/api/v1/transfers/{transfer.id}/reject/", {}, format="json")

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["code"], "invalid_transition")

    def test_stock_items_are_listed_per_inventory(self):
        response = self.client.get(f"/api/v1/inventories/{self.branch_inventory.id}/stock-items/")

        self.assertEqual(response.status_code, 200)
        codes = [item["code"] for item in response.json()["results"]]
        self.assertEqual(codes, ["DRESS-1"])

    def test_register_stock_item_over_http(self):
        response = self.client.post(
            "/api/v1/stock-items/",
            {"inventory": str(self.factory_inventory.id), "code": "VEIL-1", "name": "Veil"},
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["inventory"], str(self.factory_inventory.id))
        self.assertEqual(response.json()["status"], "ready_for_rent")

    def test_edit_and_delete_transfer_over_http(self):
        veil = register_stock_item(inventory=self.branch_inventory, code="VEIL-1", name="Veil")
        transfer = create_transfer(
            actor=self.user,
            source_kind="branch",
            source_id=self.branch.id,
            destination_kind="factory",
            destination_id=self.factory.id,
            stock_item_ids=[self.dress.id],
        )

        response = self.client.patch(
            f"/api/v1/transfers/{transfer.id}/",
            {"stock_item_ids": [str(veil.id)], "notes": "Veil instead"},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual([item["stock_item_code"] for item in response.json()["items"]], ["VEIL-1"])

        response = self.client.delete(f"/api/v1/transfers/{transfer.id}/")
        self.assertEqual(response.status_code, 204)
        self.assertFalse(Transfer.objects.filter(pk=transfer.id).exists())
