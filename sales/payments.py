"""Payment ledger for orders.

``paid`` on an order is always the sum of its paid, non-fee payments;
every mutation here ends with ``recalculate_order`` under the order's row
lock so the cached balance never drifts from the ledger.
"""

import logging

from django.db.models import Sum
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from common.audit import create_audit_log
from common.concurrency import run_atomic
from common.exceptions import InvalidTransition
from common.utils import ZERO, snapshot, to_decimal, to_money
from sales.models import Order, OrderHistory, Payment
from sales.services import SETTLED_STATUSES, TERMINAL_STATUSES, derive_status, lock_order, order_snapshot, record_order_history

logger = logging.getLogger(__name__)

PAYMENT_SNAPSHOT_FIELDS = ("status", "amount", "payment_type", "payment_date")


def _paid_total(order):
    payments = order.payments.filter(status=Payment.Status.PAID).exclude(payment_type=Payment.Type.FEE)
    return to_money(payments.aggregate(total=Sum("amount"))["total"] or ZERO)


def recalculate_order(order):
    """Recompute ``paid``/``remaining`` from the ledger and re-derive status.

    Delivered, finished and cancelled orders keep their status; only the
    balance fields are refreshed for them.
    """
    paid = _paid_total(order)
    order.paid = paid
    order.remaining = max(order.total_price - paid, ZERO)
    fields = ["paid", "remaining", "updated_at"]

    old_status = order.status
    if order.status not in SETTLED_STATUSES:
        new_status = derive_status(paid, order.total_price)
        if new_status != old_status:
            order.status = new_status
            fields.append("status")

    order.save(update_fields=fields)
    if order.status != old_status:
        record_order_history(
            order,
            OrderHistory.Action.STATUS_CHANGED,
            old_status=old_status,
            new_status=order.status,
            details={"paid": str(paid)},
        )
    return order


def _ensure_open(order):
    if order.status in TERMINAL_STATUSES:
        raise InvalidTransition(f"Cannot record payments on a {order.status} order.")


def _ensure_within_total(order, payment_type, amount):
    if payment_type == Payment.Type.FEE:
        return
    if _paid_total(order) + amount > order.total_price:
        raise ValidationError({"amount": ["Payment exceeds the remaining balance."]})


def create_payment(*, actor, order, amount, status=Payment.Status.PENDING, payment_type=Payment.Type.NORMAL, notes=""):
    amount = to_decimal(amount, default=None)
    if amount is None or amount <= 0:
        raise ValidationError({"amount": ["Amount must be greater than zero."]})
    amount = to_money(amount)
    if status not in (Payment.Status.PENDING, Payment.Status.PAID):
        raise ValidationError({"status": [f"Payments cannot be created as '{status}'."]})
    if payment_type not in (Payment.Type.NORMAL, Payment.Type.FEE):
        raise ValidationError({"payment_type": [f"Payments cannot be created with type '{payment_type}'."]})
    if order is None or not Order.objects.filter(pk=order.pk).exists():
        raise ValidationError({"order": ["Order does not exist."]})

    def _op():
        locked = lock_order(order)
        _ensure_open(locked)
        if status == Payment.Status.PAID:
            _ensure_within_total(locked, payment_type, amount)

        before = order_snapshot(locked)
        payment = Payment.objects.create(
            order=locked,
            amount=amount,
            status=status,
            payment_type=payment_type,
            payment_date=timezone.now() if status == Payment.Status.PAID else None,
            notes=notes or "",
            created_by=actor if getattr(actor, "is_authenticated", False) else None,
        )
        record_order_history(
            locked,
            OrderHistory.Action.PAYMENT_ADDED,
            actor=actor,
            details={"payment_id": str(payment.id), "amount": str(amount), "status": status, "payment_type": payment_type},
        )
        if status == Payment.Status.PAID:
            recalculate_order(locked)
        create_audit_log(
            actor=actor,
            action="payment.create",
            entity="payment",
            entity_id=payment.id,
            before_snapshot={"order": before},
            after_snapshot={"payment": snapshot(payment, PAYMENT_SNAPSHOT_FIELDS), "order": order_snapshot(locked)},
        )
        return payment

    payment = run_atomic(_op)
    logger.info(
        "payment_created amount=%s status=%s type=%s",
        payment.amount,
        payment.status,
        payment.payment_type,
        extra={"payment_id": str(payment.id), "order_id": str(payment.order_id)},
    )
    return payment


def _lock_payment(payment):
    locked_order = lock_order(payment.order)
    locked = Payment.objects.select_for_update().get(pk=payment.pk)
    locked.order = locked_order
    return locked


def pay_payment(payment, *, actor, payment_date=None):
    def _op():
        locked = _lock_payment(payment)
        if locked.status != Payment.Status.PENDING:
            raise InvalidTransition(f"Cannot pay a {locked.status} payment.")
        _ensure_open(locked.order)
        _ensure_within_total(locked.order, locked.payment_type, locked.amount)

        before = snapshot(locked, PAYMENT_SNAPSHOT_FIELDS)
        locked.status = Payment.Status.PAID
        locked.payment_date = payment_date or timezone.now()
        locked.save(update_fields=["status", "payment_date", "updated_at"])
        record_order_history(
            locked.order,
            OrderHistory.Action.PAYMENT_PAID,
            actor=actor,
            details={"payment_id": str(locked.id), "amount": str(locked.amount)},
        )
        recalculate_order(locked.order)
        create_audit_log(
            actor=actor,
            action="payment.pay",
            entity="payment",
            entity_id=locked.id,
            before_snapshot=before,
            after_snapshot=snapshot(locked, PAYMENT_SNAPSHOT_FIELDS),
        )
        return locked

    locked = run_atomic(_op)
    logger.info(
        "payment_paid amount=%s order_paid=%s",
        locked.amount,
        locked.order.paid,
        extra={"payment_id": str(locked.id), "order_id": str(locked.order_id)},
    )
    return locked


def cancel_payment(payment, *, actor, notes=""):
    def _op():
        locked = _lock_payment(payment)
        if locked.status == Payment.Status.CANCELED:
            raise InvalidTransition("Payment is already canceled.")
        _ensure_open(locked.order)

        was_paid = locked.status == Payment.Status.PAID
        before = snapshot(locked, PAYMENT_SNAPSHOT_FIELDS)
        locked.status = Payment.Status.CANCELED
        fields = ["status", "updated_at"]
        if notes:
            locked.notes = notes
            fields.append("notes")
        locked.save(update_fields=fields)
        record_order_history(
            locked.order,
            OrderHistory.Action.PAYMENT_CANCELED,
            actor=actor,
            details={"payment_id": str(locked.id), "amount": str(locked.amount), "was_paid": was_paid},
        )
        if was_paid:
            recalculate_order(locked.order)
        create_audit_log(
            actor=actor,
            action="payment.cancel",
            entity="payment",
            entity_id=locked.id,
            before_snapshot=before,
            after_snapshot=snapshot(locked, PAYMENT_SNAPSHOT_FIELDS),
        )
        return locked

    locked = run_atomic(_op)
    logger.info(
        "payment_canceled amount=%s order_paid=%s",
        locked.amount,
        locked.order.paid,
        extra={"payment_id": str(locked.id), "order_id": str(locked.order_id)},
    )
    return locked
