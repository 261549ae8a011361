import shutil
import tempfile
import uuid
from datetime import date
from decimal import Decimal
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import SimpleTestCase, TestCase, override_settings
from rest_framework.exceptions import ValidationError
from rest_framework.test import APIClient

from common.exceptions import InvalidTransition
from common.utils import to_decimal
from core.models import AuditLog, Branch, Workshop
from inventory.models import InventoryItem, StockItem, StockItemHistory
from inventory.services import ensure_inventory, register_stock_item
from sales.custody import create_custody, return_custody
from sales.models import Client, Custody, CustodyPhoto, Order, OrderHistory, Payment
from sales.payments import cancel_payment, create_payment, pay_payment, recalculate_order
from sales.services import (
    apply_discount,
    cancel_order,
    compute_item_total,
    compute_order_total,
    create_order,
    delete_order,
    deliver_order,
    derive_status,
    finish_order,
    return_items,
)

MEDIA_ROOT = tempfile.mkdtemp(prefix="custody-photos-")


def photo(name="photo.jpg"):
    return SimpleUploadedFile(name, b"\xff\xd8\xff\xe0fake-jpeg", content_type="image/jpeg")


class PricingTests(SimpleTestCase):
    def test_percentage_then_fixed_discount(self):
        subtotal, total = compute_item_total(Decimal("100.00"), 1, "percentage", Decimal("10"))
        self.assertEqual(subtotal, Decimal("100.00"))
        self.assertEqual(total, Decimal("90.00"))
        self.assertEqual(compute_order_total([total], "fixed", Decimal("20")), Decimal("70.00"))

    def test_item_discount_applies_to_the_whole_subtotal(self):
        subtotal, total = compute_item_total(Decimal("50.00"), 2, "fixed", Decimal("30"))
        self.assertEqual(subtotal, Decimal("100.00"))
        self.assertEqual(total, Decimal("70.00"))

    def test_fixed_discount_never_goes_negative(self):
        self.assertEqual(apply_discount(Decimal("15.00"), "fixed", Decimal("40")), Decimal("0.00"))

    def test_rounding_is_half_up_to_cents(self):
        self.assertEqual(apply_discount(Decimal("10.05"), "percentage", Decimal("50")), Decimal("5.03"))

    def test_status_derivation(self):
        self.assertEqual(derive_status(Decimal("0"), Decimal("70")), Order.Status.CREATED)
        self.assertEqual(derive_status(Decimal("10"), Decimal("70")), Order.Status.PARTIALLY_PAID)
        self.assertEqual(derive_status(Decimal("70"), Decimal("70")), Order.Status.PAID)

    def test_fully_discounted_order_is_paid_from_the_start(self):
        self.assertEqual(derive_status(Decimal("0.00"), Decimal("0.00")), Order.Status.PAID)

    def test_non_finite_numbers_are_not_decimals(self):
        for raw in ("NaN", "Infinity", "-Infinity", Decimal("NaN")):
            with self.subTest(raw=raw):
                self.assertIsNone(to_decimal(raw, default=None))


class SalesFixtureMixin:
    def setUp(self):
        self.user = get_user_model().objects.create_user(username="cashier", password="pass1234")
        self.branch = Branch.objects.create(code="BR1", name="Downtown")
        self.workshop = Workshop.objects.create(code="WS1", name="Alterations")
        self.inventory = ensure_inventory(self.branch)
        self.workshop_inventory = ensure_inventory(self.workshop)
        self.customer = Client.objects.create(name="Layla", phone="0100000000")
        self.gown = register_stock_item(inventory=self.inventory, code="GOWN-1", name="Evening gown")
        self.suit = register_stock_item(inventory=self.inventory, code="SUIT-1", name="Suit")
        self.veil = register_stock_item(inventory=self.inventory, code="VEIL-1", name="Veil")

    def rent_line(self, stock_item, price="100.00", **extra):
        line = {
            "stock_item_id": stock_item.id,
            "type": "rent",
            "unit_price": Decimal(price),
            "quantity": 1,
            "delivery_date": date(2026, 11, 1),
            "rental_days": 3,
        }
        line.update(extra)
        return line

    def make_order(self, items=None, **overrides):
        params = {
            "actor": self.user,
            "client": self.customer,
            "source_kind": "branch",
            "source_id": self.branch.id,
            "items": items or [self.rent_line(self.gown)],
        }
        params.update(overrides)
        return create_order(**params)

    def paid_order(self):
        return self.make_order(initial_paid=Decimal("100.00"))


class CreateOrderTests(SalesFixtureMixin, TestCase):
    def test_discounts_and_initial_payment_settle_the_order(self):
        order = self.make_order(
            items=[self.rent_line(self.gown, discount_type="percentage", discount_value=Decimal("10"))],
            discount_type="fixed",
            discount_value=Decimal("20"),
            initial_paid=Decimal("70"),
        )

        self.assertEqual(order.total_price, Decimal("70.00"))
        self.assertEqual(order.paid, Decimal("70.00"))
        self.assertEqual(order.remaining, Decimal("0.00"))
        self.assertEqual(order.status, Order.Status.PAID)
        initial = order.payments.get()
        self.assertEqual(initial.payment_type, Payment.Type.INITIAL)
        self.assertEqual(initial.status, Payment.Status.PAID)
        self.assertIsNotNone(initial.payment_date)

    def test_initial_payment_survives_recalculation(self):
        order = self.make_order(initial_paid=Decimal("40"))

        recalculate_order(order)

        self.assertEqual(order.paid, Decimal("40.00"))
        self.assertEqual(order.status, Order.Status.PARTIALLY_PAID)

    def test_reserves_stock_by_item_type(self):
        order = self.make_order(
            items=[
                self.rent_line(self.gown),
                {"stock_item_id": self.suit.id, "type": "buy", "unit_price": Decimal("300")},
                {"stock_item_id": self.veil.id, "type": "tailoring", "unit_price": Decimal("40")},
            ]
        )

        self.assertEqual(order.total_price, Decimal("440.00"))
        self.gown.refresh_from_db()
        self.suit.refresh_from_db()
        self.veil.refresh_from_db()
        self.assertEqual(self.gown.status, StockItem.Status.RENTED)
        self.assertEqual(self.suit.status, StockItem.Status.SOLD)
        self.assertEqual(self.veil.status, StockItem.Status.REPAIRING)
        self.assertFalse(InventoryItem.objects.filter(stock_item=self.suit).exists())
        self.assertTrue(InventoryItem.objects.filter(stock_item=self.gown, inventory=self.inventory).exists())
        self.assertEqual(
            StockItemHistory.objects.filter(action=StockItemHistory.Action.ORDERED, reference_id=order.id).count(),
            3,
        )
        self.assertEqual(order.history.get().action, OrderHistory.Action.CREATED)
        self.assertTrue(AuditLog.objects.filter(action="order.create", entity_id=order.id).exists())

    def test_invalid_orders_are_rejected_without_side_effects(self):
        rented = register_stock_item(inventory=self.inventory, code="GOWN-2", name="Rented gown")
        StockItem.objects.filter(pk=rented.pk).update(status=StockItem.Status.RENTED)
        elsewhere = register_stock_item(inventory=self.workshop_inventory, code="GOWN-3", name="Workshop gown")

        invalid_requests = [
            {"items": []},
            {"items": [self.rent_line(self.gown, rental_days=None)]},
            {"items": [self.rent_line(self.gown, quantity=0)]},
            {"items": [self.rent_line(self.gown, unit_price=Decimal("-1"))]},
            {"items": [self.rent_line(self.gown, discount_type="percentage", discount_value=Decimal("150"))]},
            {"items": [self.rent_line(self.gown), self.rent_line(self.gown)]},
            {"items": [self.rent_line(rented)]},
            {"items": [self.rent_line(elsewhere)]},
            {"discount_type": "fixed", "discount_value": Decimal("-5")},
            {"initial_paid": Decimal("-1")},
            {"initial_paid": Decimal("100.01")},
        ]
        for overrides in invalid_requests:
            with self.subTest(overrides=overrides):
                params = {"items": [self.rent_line(self.gown)], **overrides}
                with self.assertRaises(ValidationError):
                    create_order(
                        actor=self.user,
                        client=self.customer,
                        source_kind="branch",
                        source_id=self.branch.id,
                        **params,
                    )

        self.assertFalse(Order.objects.exists())
        self.gown.refresh_from_db()
        self.assertEqual(self.gown.status, StockItem.Status.READY_FOR_RENT)


class PaymentLedgerTests(SalesFixtureMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.order = self.make_order(
            items=[self.rent_line(self.gown, discount_type="percentage", discount_value=Decimal("10"))],
            discount_type="fixed",
            discount_value=Decimal("20"),
        )

    def test_negative_payment_is_rejected_without_mutation(self):
        with self.assertRaises(ValidationError):
            create_payment(actor=self.user, order=self.order, amount=Decimal("-10"), status="paid")

        self.order.refresh_from_db()
        self.assertEqual(self.order.paid, Decimal("0.00"))
        self.assertEqual(self.order.remaining, Decimal("70.00"))
        self.assertFalse(Payment.objects.exists())

    def test_paid_payment_recomputes_order(self):
        payment = create_payment(actor=self.user, order=self.order, amount=Decimal("30"), status="paid")

        self.order.refresh_from_db()
        self.assertEqual(self.order.paid, Decimal("30.00"))
        self.assertEqual(self.order.remaining, Decimal("40.00"))
        self.assertEqual(self.order.status, Order.Status.PARTIALLY_PAID)
        self.assertIsNotNone(payment.payment_date)

    def test_cancelling_a_paid_payment_reverses_its_effect(self):
        create_payment(actor=self.user, order=self.order, amount=Decimal("30"), status="paid")
        pending = create_payment(actor=self.user, order=self.order, amount=Decimal("40"))
        self.assertIsNone(pending.payment_date)

        pay_payment(pending, actor=self.user)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.PAID)
        self.assertEqual(self.order.remaining, Decimal("0.00"))

        cancel_payment(pending, actor=self.user)
        self.order.refresh_from_db()
        self.assertEqual(self.order.paid, Decimal("30.00"))
        self.assertEqual(self.order.remaining, Decimal("40.00"))
        self.assertEqual(self.order.status, Order.Status.PARTIALLY_PAID)
        self.assertTrue(
            self.order.history.filter(
                action=OrderHistory.Action.STATUS_CHANGED,
                old_status=Order.Status.PAID,
                new_status=Order.Status.PARTIALLY_PAID,
            ).exists()
        )

    def test_fee_payments_do_not_count_towards_paid(self):
        create_payment(actor=self.user, order=self.order, amount=Decimal("500"), status="paid", payment_type="fee")

        self.order.refresh_from_db()
        self.assertEqual(self.order.paid, Decimal("0.00"))
        self.assertEqual(self.order.status, Order.Status.CREATED)

    def test_overpayment_is_rejected(self):
        with self.assertRaises(ValidationError):
            create_payment(actor=self.user, order=self.order, amount=Decimal("70.01"), status="paid")

        pending = create_payment(actor=self.user, order=self.order, amount=Decimal("70"))
        create_payment(actor=self.user, order=self.order, amount=Decimal("10"), status="paid")
        with self.assertRaises(ValidationError):
            pay_payment(pending, actor=self.user)

    def test_payment_for_missing_order_is_rejected(self):
        ghost = Order(pk=uuid.uuid4())

        with self.assertRaises(ValidationError):
            create_payment(actor=self.user, order=ghost, amount=Decimal("10"))

    def test_unknown_type_or_status_is_rejected(self):
        with self.assertRaises(ValidationError):
            create_payment(actor=self.user, order=self.order, amount=Decimal("5"), payment_type="tip")
        with self.assertRaises(ValidationError):
            create_payment(actor=self.user, order=self.order, amount=Decimal("5"), status="canceled")
        with self.assertRaises(ValidationError):
            create_payment(actor=self.user, order=self.order, amount=Decimal("5"), payment_type="initial")

    def test_non_finite_amount_is_a_validation_error(self):
        for amount in ("NaN", "Infinity"):
            with self.subTest(amount=amount):
                with self.assertRaises(ValidationError):
                    create_payment(actor=self.user, order=self.order, amount=amount, status="paid")
        self.assertFalse(Payment.objects.exists())

    def test_failed_recalculation_rolls_back_the_payment(self):
        pending = create_payment(actor=self.user, order=self.order, amount=Decimal("30"))

        with patch("sales.payments.recalculate_order", side_effect=RuntimeError("db went away")):
            with self.assertRaises(RuntimeError):
                pay_payment(pending, actor=self.user)

        pending.refresh_from_db()
        self.order.refresh_from_db()
        self.assertEqual(pending.status, Payment.Status.PENDING)
        self.assertIsNone(pending.payment_date)
        self.assertEqual(self.order.paid, Decimal("0.00"))
        self.assertEqual(self.order.remaining, Decimal("70.00"))
        self.assertEqual(self.order.status, Order.Status.CREATED)
        self.assertFalse(self.order.history.filter(action=OrderHistory.Action.PAYMENT_PAID).exists())

    def test_only_pending_payments_can_be_paid(self):
        payment = create_payment(actor=self.user, order=self.order, amount=Decimal("10"), status="paid")

        with self.assertRaises(InvalidTransition):
            pay_payment(payment, actor=self.user)

        cancel_payment(payment, actor=self.user)
        with self.assertRaises(InvalidTransition):
            cancel_payment(payment, actor=self.user)

    def test_payments_on_cancelled_orders_are_refused(self):
        cancel_order(self.order, actor=self.user)

        with self.assertRaises(InvalidTransition):
            create_payment(actor=self.user, order=self.order, amount=Decimal("10"))

    def test_payments_on_deleted_orders_are_refused(self):
        delete_order(self.order, actor=self.user)

        with self.assertRaises(InvalidTransition):
            create_payment(actor=self.user, order=self.order, amount=Decimal("10"))


@override_settings(MEDIA_ROOT=MEDIA_ROOT)
class OrderLifecycleTests(SalesFixtureMixin, TestCase):
    @classmethod
    def tearDownClass(cls):
        super().tearDownClass()
        shutil.rmtree(MEDIA_ROOT, ignore_errors=True)

    def add_custody(self, order, **overrides):
        params = {"actor": self.user, "order": order, "type": "document", "description": "National ID card"}
        params.update(overrides)
        return create_custody(**params)

    def test_deliver_requires_full_payment(self):
        order = self.make_order(initial_paid=Decimal("50"))
        self.add_custody(order)

        with self.assertRaises(InvalidTransition):
            deliver_order(order, actor=self.user)

    def test_deliver_requires_pending_custody(self):
        order = self.paid_order()

        with self.assertRaises(InvalidTransition):
            deliver_order(order, actor=self.user)

        custody = self.add_custody(order)
        return_custody(custody, actor=self.user, action="returned_to_user", acknowledgement_photos=[photo()])
        with self.assertRaises(InvalidTransition):
            deliver_order(order, actor=self.user)

    def test_full_rental_cycle_releases_the_garment(self):
        order = self.paid_order()
        custody = self.add_custody(order, type="money", value=Decimal("500"))

        order = deliver_order(order, actor=self.user)
        self.assertEqual(order.status, Order.Status.DELIVERED)

        with self.assertRaises(InvalidTransition):
            finish_order(order, actor=self.user)

        custody = return_custody(custody, actor=self.user, action="returned_to_user", acknowledgement_photos=[photo()])
        self.assertEqual(custody.status, Custody.Status.RETURNED)
        self.assertIsNotNone(custody.returned_at)

        order = finish_order(order, actor=self.user)
        self.assertEqual(order.status, Order.Status.FINISHED)
        self.gown.refresh_from_db()
        self.assertEqual(self.gown.status, StockItem.Status.READY_FOR_RENT)
        self.assertCountEqual(
            list(order.history.values_list("action", flat=True)),
            [
                OrderHistory.Action.CREATED,
                OrderHistory.Action.CUSTODY_ADDED,
                OrderHistory.Action.DELIVERED,
                OrderHistory.Action.CUSTODY_RETURNED,
                OrderHistory.Action.FINISHED,
            ],
        )

    def test_finish_is_blocked_by_pending_fee(self):
        order = self.paid_order()
        create_payment(actor=self.user, order=order, amount=Decimal("15"), payment_type="fee")

        with self.assertRaises(InvalidTransition):
            finish_order(order, actor=self.user)

    def test_finish_requires_paid_or_delivered(self):
        order = self.make_order()

        with self.assertRaises(InvalidTransition):
            finish_order(order, actor=self.user)

    def test_cancel_releases_reserved_and_sold_stock(self):
        order = self.make_order(
            items=[
                self.rent_line(self.gown),
                {"stock_item_id": self.suit.id, "type": "buy", "unit_price": Decimal("300")},
            ],
            initial_paid=Decimal("50"),
        )

        order = cancel_order(order, actor=self.user)

        self.assertEqual(order.status, Order.Status.CANCELLED)
        self.assertEqual(order.paid, Decimal("50.00"))
        for stock_item in (self.gown, self.suit):
            stock_item.refresh_from_db()
            self.assertEqual(stock_item.status, StockItem.Status.READY_FOR_RENT)
        self.assertEqual(InventoryItem.objects.get(stock_item=self.suit).inventory, self.inventory)

    def test_delivered_orders_can_be_cancelled_until_finished(self):
        order = self.paid_order()
        self.add_custody(order)
        deliver_order(order, actor=self.user)

        order = cancel_order(order, actor=self.user)
        self.assertEqual(order.status, Order.Status.CANCELLED)
        self.gown.refresh_from_db()
        self.assertEqual(self.gown.status, StockItem.Status.READY_FOR_RENT)

        with self.assertRaises(InvalidTransition):
            cancel_order(order, actor=self.user)

    def test_finished_orders_cannot_be_cancelled(self):
        order = self.paid_order()
        custody = self.add_custody(order)
        return_custody(custody, actor=self.user, action="returned_to_user", acknowledgement_photos=[photo()])
        finish_order(order, actor=self.user)

        with self.assertRaises(InvalidTransition):
            cancel_order(order, actor=self.user)

    def test_fully_discounted_order_can_be_delivered_and_finished(self):
        order = self.make_order(
            items=[self.rent_line(self.gown, discount_type="percentage", discount_value=Decimal("100"))]
        )
        self.assertEqual(order.total_price, Decimal("0.00"))
        self.assertEqual(order.remaining, Decimal("0.00"))
        self.assertEqual(order.status, Order.Status.PAID)

        custody = self.add_custody(order)
        deliver_order(order, actor=self.user)
        return_custody(custody, actor=self.user, action="returned_to_user", acknowledgement_photos=[photo()])

        order = finish_order(order, actor=self.user)
        self.assertEqual(order.status, Order.Status.FINISHED)

    def test_rented_items_can_be_returned_before_finish(self):
        order = self.make_order(items=[self.rent_line(self.gown), self.rent_line(self.veil, price="40.00")])

        return_items(order, [self.gown.id], actor=self.user)

        self.gown.refresh_from_db()
        self.veil.refresh_from_db()
        self.assertEqual(self.gown.status, StockItem.Status.READY_FOR_RENT)
        self.assertEqual(self.veil.status, StockItem.Status.RENTED)
        self.assertIsNotNone(order.items.get(stock_item=self.gown).returned_at)
        self.assertIsNone(order.items.get(stock_item=self.veil).returned_at)
        self.assertTrue(order.history.filter(action=OrderHistory.Action.ITEMS_RETURNED).exists())

        with self.assertRaises(ValidationError):
            return_items(order, [self.gown.id], actor=self.user)

    def test_returned_garment_rented_again_is_not_released_by_the_first_order(self):
        first = self.make_order(items=[self.rent_line(self.gown), self.rent_line(self.veil, price="40.00")])
        return_items(first, [self.gown.id], actor=self.user)
        self.make_order(items=[self.rent_line(self.gown)])

        cancel_order(first, actor=self.user)

        self.gown.refresh_from_db()
        self.assertEqual(self.gown.status, StockItem.Status.RENTED)

    def test_only_rent_lines_of_open_orders_can_be_returned(self):
        order = self.make_order(
            items=[
                self.rent_line(self.gown),
                {"stock_item_id": self.veil.id, "type": "tailoring", "unit_price": Decimal("40")},
            ]
        )

        with self.assertRaises(ValidationError):
            return_items(order, [self.veil.id], actor=self.user)
        with self.assertRaises(ValidationError):
            return_items(order, [self.suit.id], actor=self.user)

        cancel_order(order, actor=self.user)
        with self.assertRaises(InvalidTransition):
            return_items(order, [self.gown.id], actor=self.user)

    def test_delete_is_soft_and_limited_to_created_or_cancelled(self):
        paid = self.paid_order()
        with self.assertRaises(InvalidTransition):
            delete_order(paid, actor=self.user)

        cancel_order(paid, actor=self.user)
        deleted = delete_order(paid, actor=self.user)

        self.assertIsNotNone(deleted.deleted_at)
        self.assertTrue(Order.objects.filter(pk=paid.pk).exists())
        self.assertFalse(Order.objects.alive().filter(pk=paid.pk).exists())
        with self.assertRaises(InvalidTransition):
            delete_order(paid, actor=self.user)

    def test_custody_validation(self):
        order = self.make_order()

        with self.assertRaises(ValidationError):
            self.add_custody(order, type="physical_item", description="Gold ring")
        with self.assertRaises(ValidationError):
            self.add_custody(order, type="physical_item", photos=[photo(), photo(), photo()])
        with self.assertRaises(ValidationError):
            self.add_custody(order, type="money", value=Decimal("-1"))
        with self.assertRaises(ValidationError):
            self.add_custody(order, type="money")
        self.assertFalse(Custody.objects.exists())

        custody = self.add_custody(order, type="physical_item", photos=[photo("front.jpg"), photo("back.jpg")])
        self.assertEqual(custody.photos.filter(photo_type=CustodyPhoto.PhotoType.CUSTODY_PHOTO).count(), 2)

    def test_custody_cannot_be_added_after_delivery(self):
        order = self.paid_order()
        self.add_custody(order)
        deliver_order(order, actor=self.user)

        with self.assertRaises(InvalidTransition):
            self.add_custody(order)

    def test_forfeit_requires_reason_and_closes_once(self):
        order = self.make_order()
        custody = self.add_custody(order)

        with self.assertRaises(ValidationError):
            return_custody(custody, actor=self.user, action="forfeit", acknowledgement_photos=[photo()])
        with self.assertRaises(ValidationError):
            return_custody(custody, actor=self.user, action="returned_to_user", acknowledgement_photos=[])

        custody = return_custody(
            custody,
            actor=self.user,
            action="forfeit",
            reason="Dress returned torn",
            acknowledgement_photos=[photo()],
        )
        self.assertEqual(custody.status, Custody.Status.FORFEITED)
        self.assertEqual(custody.return_record.reason, "Dress returned torn")
        self.assertEqual(custody.return_record.returned_by, self.user)
        self.assertEqual(custody.photos.filter(photo_type=CustodyPhoto.PhotoType.ACKNOWLEDGEMENT_RECEIPT).count(), 1)

        with self.assertRaises(InvalidTransition):
            return_custody(custody, actor=self.user, action="returned_to_user", acknowledgement_photos=[photo()])


@override_settings(MEDIA_ROOT=MEDIA_ROOT)
class OrderApiTests(SalesFixtureMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.client = APIClient()
        self.client.force_authenticate(user=self.user)

    def create_order_over_http(self, **extra):
        payload = {
            "client": str(self.customer.id),
            "source_kind": "branch",
            "source_id": str(self.branch.id),
            "items": [
                {
                    "stock_item_id": str(self.gown.id),
                    "type": "rent",
                    "unit_price": "100.00",
                    "discount_type": "percentage",
                    "discount_value": "10",
                    "delivery_date": "2026-11-01",
                    "rental_days": 3,
                }
            ],
            "discount_type": "fixed",
            "discount_value": "20",
        }
        payload.update(extra)
        return self.client.post("/api/v1/orders/", payload, format="json")

    def test_create_order_and_settle_with_payment(self):
        response = self.create_order_over_http()
        self.assertEqual(response.status_code, 201)
        order = response.json()
        self.assertEqual(order["total_price"], "70.00")
        self.assertEqual(order["status"], "created")

        response = self.client.post(
            "/api/v1/payments/",
            {"order": order["id"], "amount": "70.00", "status": "paid"},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["order_remaining"], "0.00")

        response = self.client.get(f"/api/v1/orders/{order['id']}/")
        self.assertEqual(response.json()["status"], "paid")

    def test_validation_errors_use_the_error_envelope(self):
        response = self.create_order_over_http(initial_paid="500.00")

        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertEqual(body["code"], "validation_error")
        self.assertIn("initial_paid", body["errors"])

    def test_guard_violations_are_conflicts(self):
        order_id = self.create_order_over_http().json()["id"]

        response = self.client.post(f"/api/v1/orders/{order_id}/deliver/")

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["code"], "invalid_transition")

    def test_delete_hides_the_order(self):
        order_id = self.create_order_over_http().json()["id"]

        response = self.client.delete(f"/api/v1/orders/{order_id}/")
        self.assertEqual(response.status_code, 204)

        response = self.client.get(f"/api/v1/orders/{order_id}/")
        self.assertEqual(response.status_code, 404)
        self.gown.refresh_from_db()
        self.assertEqual(self.gown.status, StockItem.Status.READY_FOR_RENT)

    def test_custody_upload_and_return_over_http(self):
        order_id = self.create_order_over_http().json()["id"]

        response = self.client.post(
            "/api/v1/custodies/",
            {"order": order_id, "type": "physical_item", "description": "Gold ring", "photos": [photo()]},
            format="multipart",
        )
        self.assertEqual(response.status_code, 201)
        custody = response.json()
        self.assertEqual(len(custody["photos"]), 1)

        response = self.client.post(
            f"/api/v1/custodies/{custody['id']}/return/",
            {"action": "returned_to_user", "acknowledgement_photos": [photo("receipt.jpg")]},
            format="multipart",
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "returned")
        self.assertEqual(response.json()["return_record"]["action"], "returned_to_user")

    def test_order_history_endpoint(self):
        order_id = self.create_order_over_http().json()["id"]
        self.client.post(f"/api/v1/orders/{order_id}/cancel/")

        response = self.client.get(f"/api/v1/orders/{order_id}/history/")

        self.assertEqual(response.status_code, 200)
        self.assertCountEqual([entry["action"] for entry in response.json()], ["created", "canceled"])

    def test_return_rented_item_over_http(self):
        order_id = self.create_order_over_http().json()["id"]

        response = self.client.post(
            f"/api/v1/orders/{order_id}/return/",
            {"stock_item_ids": [str(self.gown.id)]},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertIsNotNone(response.json()["items"][0]["returned_at"])
        self.gown.refresh_from_db()
        self.assertEqual(self.gown.status, StockItem.Status.READY_FOR_RENT)

    def test_initial_payment_type_is_not_accepted_from_callers(self):
        order_id = self.create_order_over_http().json()["id"]

        response = self.client.post(
            "/api/v1/payments/",
            {"order": order_id, "amount": "10.00", "payment_type": "initial"},
            format="json",
        )

        self.assertEqual(response.status_code, 400)
        self.assertIn("payment_type", response.json()["errors"])
