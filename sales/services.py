"""Order engine: pricing, stock reservation and the order lifecycle.

Money is kept as ``Decimal`` quantised to cents. Status moves along
created -> partially_paid -> paid -> delivered -> finished, with
cancellation allowed until the order is finished. Payment-driven statuses
are derived from ``paid`` against ``total_price`` by ``derive_status``; the
manual transitions below guard their preconditions and raise
``InvalidTransition`` when they do not hold.
"""

import logging
import uuid

from django.utils import timezone
from rest_framework.exceptions import NotFound, ValidationError

from common.audit import create_audit_log
from common.concurrency import lock_for_update, run_atomic
from common.exceptions import InvalidTransition
from common.utils import ZERO, snapshot, to_decimal, to_money
from inventory.models import StockItem, StockItemHistory
from inventory.services import (
    lock_stock_items,
    normalize_ids,
    record_stock_history,
    remove_from_inventory,
    resolve_entity,
    restore_to_inventory,
)
from sales.models import Custody, DiscountType, Order, OrderHistory, OrderItem, Payment

logger = logging.getLogger(__name__)

HUNDRED = 100
ORDER_SNAPSHOT_FIELDS = ("status", "total_price", "paid", "remaining", "deleted_at")

RESERVED_STATUS = {
    OrderItem.Type.RENT: StockItem.Status.RENTED,
    OrderItem.Type.TAILORING: StockItem.Status.REPAIRING,
    OrderItem.Type.BUY: StockItem.Status.SOLD,
}

OPEN_STATUSES = (Order.Status.CREATED, Order.Status.PARTIALLY_PAID, Order.Status.PAID)
TERMINAL_STATUSES = (Order.Status.FINISHED, Order.Status.CANCELLED)
SETTLED_STATUSES = (Order.Status.DELIVERED, Order.Status.FINISHED, Order.Status.CANCELLED)


def _parse_discount(discount_type, discount_value, field):
    if discount_type in (None, ""):
        return None, ZERO
    if discount_type not in DiscountType.values:
        raise ValidationError({field: [f"Unknown discount type '{discount_type}'."]})

    value = to_decimal(discount_value)
    if value is None:
        raise ValidationError({field: ["Discount value must be a number."]})
    if value < 0:
        raise ValidationError({field: ["Discount value must not be negative."]})
    if discount_type == DiscountType.PERCENTAGE and value > HUNDRED:
        raise ValidationError({field: ["Percentage discount must be between 0 and 100."]})
    return discount_type, value


def apply_discount(amount, discount_type, discount_value):
    """Return ``amount`` after a percentage or fixed discount, never below zero."""
    amount = to_decimal(amount)
    if discount_type == DiscountType.PERCENTAGE:
        discounted = amount - amount * to_decimal(discount_value) / HUNDRED
    elif discount_type == DiscountType.FIXED:
        discounted = amount - to_decimal(discount_value)
    else:
        discounted = amount
    return to_money(max(discounted, ZERO))


def compute_item_total(unit_price, quantity, discount_type=None, discount_value=0):
    subtotal = to_money(to_decimal(unit_price) * quantity)
    return subtotal, apply_discount(subtotal, discount_type, discount_value)


def compute_order_total(item_totals, discount_type=None, discount_value=0):
    return apply_discount(sum(item_totals, ZERO), discount_type, discount_value)


def derive_status(paid, total_price):
    # A fully discounted order is settled from the start.
    if paid >= total_price:
        return Order.Status.PAID
    if paid <= 0:
        return Order.Status.CREATED
    return Order.Status.PARTIALLY_PAID


def record_order_history(order, action, *, actor=None, old_status=None, new_status=None, details=None):
    return OrderHistory.objects.create(
        order=order,
        action=action,
        actor=actor if getattr(actor, "is_authenticated", False) else None,
        old_status=old_status,
        new_status=new_status,
        details=details or {},
    )


def order_snapshot(order):
    return snapshot(order, ORDER_SNAPSHOT_FIELDS)


def lock_order(order):
    """Re-read ``order`` under a row lock; deleted orders are closed to changes."""
    locked = lock_for_update(Order.objects.filter(pk=order.pk)).first()
    if locked is None:
        raise NotFound("Order was not found.")
    if locked.deleted_at is not None:
        raise InvalidTransition("Order has been deleted.")
    return locked


def _normalize_item(raw, index):
    field = f"items[{index}]"
    stock_item_id = raw.get("stock_item_id") or raw.get("stock_item")
    if isinstance(stock_item_id, StockItem):
        stock_item_id = stock_item_id.pk
    try:
        stock_item_id = stock_item_id if isinstance(stock_item_id, uuid.UUID) else uuid.UUID(str(stock_item_id))
    except (ValueError, TypeError, AttributeError):
        raise ValidationError({field: ["A valid stock_item_id is required."]}) from None

    item_type = raw.get("type")
    if item_type not in OrderItem.Type.values:
        raise ValidationError({field: [f"Unknown item type '{item_type}'."]})

    unit_price = to_decimal(raw.get("unit_price"), default=None)
    if unit_price is None or unit_price < 0:
        raise ValidationError({field: ["unit_price must be a non-negative number."]})

    quantity = raw.get("quantity", 1)
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
        raise ValidationError({field: ["quantity must be a positive integer."]})

    discount_type, discount_value = _parse_discount(raw.get("discount_type"), raw.get("discount_value"), field)

    delivery_date = raw.get("delivery_date")
    rental_days = raw.get("rental_days")
    if item_type == OrderItem.Type.RENT:
        if not delivery_date or not rental_days:
            raise ValidationError({field: ["Rent items require delivery_date and rental_days."]})
        if not isinstance(rental_days, int) or isinstance(rental_days, bool) or rental_days < 1:
            raise ValidationError({field: ["rental_days must be a positive integer."]})

    subtotal, total = compute_item_total(unit_price, quantity, discount_type, discount_value)
    return {
        "stock_item_id": stock_item_id,
        "type": item_type,
        "unit_price": to_money(unit_price),
        "quantity": quantity,
        "discount_type": discount_type,
        "discount_value": to_money(discount_value),
        "subtotal": subtotal,
        "total": total,
        "delivery_date": delivery_date,
        "rental_days": rental_days,
        "notes": raw.get("notes") or "",
    }


def create_order(
    *,
    actor,
    client,
    source_kind,
    source_id,
    items,
    discount_type=None,
    discount_value=0,
    initial_paid=0,
    delivery_date=None,
    notes="",
):
    source = resolve_entity(source_kind, source_id)
    if not items:
        raise ValidationError({"items": ["An order needs at least one item."]})

    lines = [_normalize_item(raw, index) for index, raw in enumerate(items)]
    stock_item_ids = [line["stock_item_id"] for line in lines]
    if len(set(stock_item_ids)) != len(stock_item_ids):
        raise ValidationError({"items": ["A stock item may appear only once per order."]})

    discount_type, discount_value = _parse_discount(discount_type, discount_value, "discount_value")
    total_price = compute_order_total([line["total"] for line in lines], discount_type, discount_value)

    initial_paid = to_decimal(initial_paid, default=None)
    if initial_paid is None or initial_paid < 0:
        raise ValidationError({"initial_paid": ["initial_paid must be a non-negative number."]})
    initial_paid = to_money(initial_paid)
    if initial_paid > total_price:
        raise ValidationError({"initial_paid": ["initial_paid cannot exceed the order total."]})

    def _op():
        stock_items, memberships = lock_stock_items(stock_item_ids)
        errors = []
        for stock_item_id in stock_item_ids:
            stock_item = stock_items.get(stock_item_id)
            membership = memberships.get(stock_item_id)
            if stock_item is None:
                errors.append(f"Stock item {stock_item_id} does not exist.")
            elif membership is None or membership.inventory_id != source.inventory.id:
                errors.append(f"Stock item {stock_item.code} is not in the source inventory.")
            elif stock_item.status != StockItem.Status.READY_FOR_RENT:
                errors.append(f"Stock item {stock_item.code} is not available ({stock_item.status}).")
        if errors:
            raise ValidationError({"items": errors})

        order = Order.objects.create(
            client=client,
            source_kind=source.kind,
            source_id=source.entity.pk,
            inventory=source.inventory,
            status=derive_status(initial_paid, total_price),
            total_price=total_price,
            paid=initial_paid,
            remaining=total_price - initial_paid,
            discount_type=discount_type,
            discount_value=to_money(discount_value),
            delivery_date=delivery_date,
            notes=notes or "",
            created_by=actor if getattr(actor, "is_authenticated", False) else None,
        )
        for line in lines:
            OrderItem.objects.create(order=order, **line)
            stock_item = stock_items[line["stock_item_id"]]
            stock_item.status = RESERVED_STATUS[line["type"]]
            stock_item.save(update_fields=["status", "updated_at"])
            if line["type"] == OrderItem.Type.BUY:
                remove_from_inventory(memberships[line["stock_item_id"]])
            record_stock_history(
                stock_item,
                StockItemHistory.Action.ORDERED,
                actor=actor,
                reference_type="sales.order",
                reference_id=order.id,
                details={"type": line["type"], "status": stock_item.status},
            )

        if initial_paid > 0:
            Payment.objects.create(
                order=order,
                amount=initial_paid,
                status=Payment.Status.PAID,
                payment_type=Payment.Type.INITIAL,
                payment_date=timezone.now(),
                created_by=order.created_by,
            )

        record_order_history(
            order,
            OrderHistory.Action.CREATED,
            actor=actor,
            new_status=order.status,
            details={"total_price": str(total_price), "initial_paid": str(initial_paid)},
        )
        create_audit_log(
            actor=actor,
            action="order.create",
            entity="order",
            entity_id=order.id,
            after_snapshot=order_snapshot(order),
        )
        return order

    order = run_atomic(_op)
    logger.info(
        "order_created total=%s paid=%s status=%s items=%s",
        order.total_price,
        order.paid,
        order.status,
        len(lines),
        extra={"order_id": str(order.id)},
    )
    return order


def _transition(order, new_status, *, actor, history_action, audit_action, details=None):
    before = order_snapshot(order)
    old_status = order.status
    order.status = new_status
    order.save(update_fields=["status", "updated_at"])
    record_order_history(
        order,
        history_action,
        actor=actor,
        old_status=old_status,
        new_status=new_status,
        details=details,
    )
    create_audit_log(
        actor=actor,
        action=audit_action,
        entity="order",
        entity_id=order.id,
        before_snapshot=before,
        after_snapshot=order_snapshot(order),
    )
    logger.info(
        "order_status_changed from=%s to=%s",
        old_status,
        new_status,
        extra={"order_id": str(order.id)},
    )
    return order


def _release_stock(order, *, actor, item_types):
    """Return reserved garments to ``ready_for_rent``; bought ones rejoin the source inventory."""
    order_items = [item for item in order.items.all() if item.type in item_types and item.returned_at is None]
    if not order_items:
        return []

    stock_items, _ = lock_stock_items(item.stock_item_id for item in order_items)
    released = []
    for item in order_items:
        stock_item = stock_items[item.stock_item_id]
        if stock_item.status != RESERVED_STATUS[item.type]:
            continue
        stock_item.status = StockItem.Status.READY_FOR_RENT
        stock_item.save(update_fields=["status", "updated_at"])
        if item.type == OrderItem.Type.BUY:
            restore_to_inventory(stock_item, order.inventory)
        record_stock_history(
            stock_item,
            StockItemHistory.Action.RELEASED,
            actor=actor,
            reference_type="sales.order",
            reference_id=order.id,
            details={"type": item.type},
        )
        released.append(stock_item.id)
    return released


def return_items(order, stock_item_ids, *, actor, notes=""):
    """Take rented garments back before the order is finished.

    Each id must name a rent line of ``order`` that has not been returned
    yet; the garments go back to ``ready_for_rent`` in their inventory.
    """
    ids = normalize_ids(stock_item_ids, "stock_item_ids")

    def _op():
        locked = lock_order(order)
        if locked.status in TERMINAL_STATUSES:
            raise InvalidTransition(f"Cannot return items of a {locked.status} order.")

        lines = {item.stock_item_id: item for item in locked.items.filter(type=OrderItem.Type.RENT)}
        errors = []
        for stock_item_id in ids:
            line = lines.get(stock_item_id)
            if line is None:
                errors.append(f"Stock item {stock_item_id} is not rented on this order.")
            elif line.returned_at is not None:
                errors.append(f"Stock item {stock_item_id} has already been returned.")
        if errors:
            raise ValidationError({"stock_item_ids": errors})

        stock_items, _ = lock_stock_items(ids)
        now = timezone.now()
        for stock_item_id in ids:
            line = lines[stock_item_id]
            line.returned_at = now
            line.save(update_fields=["returned_at"])
            stock_item = stock_items[stock_item_id]
            if stock_item.status == StockItem.Status.RENTED:
                stock_item.status = StockItem.Status.READY_FOR_RENT
                stock_item.save(update_fields=["status", "updated_at"])
            record_stock_history(
                stock_item,
                StockItemHistory.Action.RELEASED,
                actor=actor,
                reference_type="sales.order",
                reference_id=locked.id,
                details={"type": OrderItem.Type.RENT, "returned": True, "notes": notes or ""},
            )

        record_order_history(
            locked,
            OrderHistory.Action.ITEMS_RETURNED,
            actor=actor,
            details={"stock_item_ids": [str(pk) for pk in ids]},
        )
        create_audit_log(
            actor=actor,
            action="order.return_items",
            entity="order",
            entity_id=locked.id,
            after_snapshot={"returned_stock_item_ids": [str(pk) for pk in ids]},
        )
        return locked

    locked = run_atomic(_op)
    logger.info(
        "order_items_returned count=%s",
        len(ids),
        extra={"order_id": str(locked.id), "stock_item_ids": [str(pk) for pk in ids]},
    )
    return locked


def deliver_order(order, *, actor):
    def _op():
        locked = lock_order(order)
        if locked.status != Order.Status.PAID or locked.remaining != 0:
            raise InvalidTransition("Only fully paid orders can be delivered.")

        custody_statuses = list(locked.custodies.values_list("status", flat=True))
        if not custody_statuses:
            raise InvalidTransition("An order needs at least one custody before delivery.")
        if any(status != Custody.Status.PENDING for status in custody_statuses):
            raise InvalidTransition("All custody records must be pending at delivery.")

        return _transition(
            locked,
            Order.Status.DELIVERED,
            actor=actor,
            history_action=OrderHistory.Action.DELIVERED,
            audit_action="order.deliver",
        )

    return run_atomic(_op)


def finish_order(order, *, actor):
    def _op():
        locked = lock_order(order)
        if locked.status not in (Order.Status.PAID, Order.Status.DELIVERED):
            raise InvalidTransition(f"Cannot finish an order in status '{locked.status}'.")
        if locked.remaining != 0:
            raise InvalidTransition("Order still has an outstanding balance.")
        if locked.payments.filter(status=Payment.Status.PENDING).exists():
            raise InvalidTransition("Order has pending payments.")
        if locked.custodies.filter(status=Custody.Status.PENDING).exists():
            raise InvalidTransition("All custody records must be returned or forfeited first.")

        released = _release_stock(locked, actor=actor, item_types=(OrderItem.Type.RENT,))
        return _transition(
            locked,
            Order.Status.FINISHED,
            actor=actor,
            history_action=OrderHistory.Action.FINISHED,
            audit_action="order.finish",
            details={"released_stock_item_ids": [str(pk) for pk in released]},
        )

    return run_atomic(_op)


def cancel_order(order, *, actor):
    def _op():
        locked = lock_order(order)
        if locked.status in TERMINAL_STATUSES:
            raise InvalidTransition(f"Cannot cancel an order in status '{locked.status}'.")

        released = _release_stock(locked, actor=actor, item_types=tuple(RESERVED_STATUS))
        return _transition(
            locked,
            Order.Status.CANCELLED,
            actor=actor,
            history_action=OrderHistory.Action.CANCELED,
            audit_action="order.cancel",
            details={"released_stock_item_ids": [str(pk) for pk in released]},
        )

    return run_atomic(_op)


def delete_order(order, *, actor):
    def _op():
        locked = lock_order(order)
        if locked.status not in (Order.Status.CREATED, Order.Status.CANCELLED):
            raise InvalidTransition("Only created or cancelled orders can be deleted.")

        before = order_snapshot(locked)
        if locked.status == Order.Status.CREATED:
            _release_stock(locked, actor=actor, item_types=tuple(RESERVED_STATUS))
        locked.deleted_at = timezone.now()
        locked.save(update_fields=["deleted_at", "updated_at"])
        record_order_history(locked, OrderHistory.Action.DELETED, actor=actor, old_status=locked.status)
        create_audit_log(
            actor=actor,
            action="order.delete",
            entity="order",
            entity_id=locked.id,
            before_snapshot=before,
            after_snapshot=order_snapshot(locked),
        )
        return locked

    locked = run_atomic(_op)
    logger.info("order_deleted", extra={"order_id": str(locked.id)})
    return locked
