"""Transfer workflow: moving garments between branch, workshop and factory inventories.

A transfer is created with one pending ``TransferItem`` per garment. Items
are approved or rejected individually (``approve_items``/``reject_items``)
or all at once (``approve_transfer``/``reject_transfer``); both paths share
``_decide_items``. Approval moves the garment's membership row from the
source inventory to the destination inventory. The transfer status is
re-derived from its items after every decision and never set directly.
A transfer can be edited until a line is approved and deleted until any
line is decided.
"""

import logging

from django.utils import timezone
from rest_framework.exceptions import NotFound, ValidationError

from common.audit import create_audit_log
from common.concurrency import lock_for_update, run_atomic
from common.exceptions import InvalidTransition
from inventory.models import StockItem, StockItemHistory, Transfer, TransferAction, TransferItem
from inventory.services import lock_stock_items, move_stock_item, normalize_ids, record_stock_history, resolve_entity

logger = logging.getLogger(__name__)

ItemStatus = TransferItem.Status
EDITABLE_STATUSES = (Transfer.Status.PENDING, Transfer.Status.PARTIALLY_PENDING)


def aggregate_transfer_status(statuses):
    """Fold item statuses into the transfer status."""
    statuses = list(statuses)
    if not statuses:
        return Transfer.Status.PENDING

    approved = statuses.count(ItemStatus.APPROVED)
    rejected = statuses.count(ItemStatus.REJECTED)
    pending = statuses.count(ItemStatus.PENDING)
    total = len(statuses)

    if approved == total:
        return Transfer.Status.APPROVED
    if rejected == total:
        return Transfer.Status.REJECTED
    if pending == total:
        return Transfer.Status.PENDING
    if approved > 0:
        return Transfer.Status.PARTIALLY_APPROVED
    return Transfer.Status.PARTIALLY_PENDING


def refresh_transfer_status(transfer):
    statuses = list(transfer.items.values_list("status", flat=True))
    new_status = aggregate_transfer_status(statuses)
    if transfer.status != new_status:
        transfer.status = new_status
        transfer.save(update_fields=["status", "updated_at"])
    return transfer.status


def _lock_transfer(transfer):
    locked = lock_for_update(Transfer.objects.filter(pk=transfer.pk)).first()
    if locked is None:
        raise NotFound("Transfer was not found.")
    return locked


def _transfer_snapshot(transfer):
    return {
        "status": transfer.status,
        "source": f"{transfer.source_kind}:{transfer.source_id}",
        "destination": f"{transfer.destination_kind}:{transfer.destination_id}",
        "items": {str(item_id): status for item_id, status in transfer.items.values_list("id", "status")},
    }


def _log_action(transfer, *, actor, action, item_ids=(), notes=""):
    return TransferAction.objects.create(
        transfer=transfer,
        actor=actor if getattr(actor, "is_authenticated", False) else None,
        action=action,
        item_ids=[str(item_id) for item_id in item_ids],
        action_date=timezone.now(),
        notes=notes or "",
    )


def _check_transferable(stock_item_ids, source_inventory_id):
    """Lock the garments and require each to sit, unsold, in the source inventory."""
    stock_items, memberships = lock_stock_items(stock_item_ids)
    errors = []
    for stock_item_id in stock_item_ids:
        stock_item = stock_items.get(stock_item_id)
        membership = memberships.get(stock_item_id)
        if stock_item is None:
            errors.append(f"Stock item {stock_item_id} does not exist.")
        elif stock_item.status == StockItem.Status.SOLD:
            errors.append(f"Stock item {stock_item.code} is sold and cannot be transferred.")
        elif membership is None or membership.inventory_id != source_inventory_id:
            errors.append(f"Stock item {stock_item.code} is not in the source inventory.")
    if errors:
        raise ValidationError({"stock_item_ids": errors})


def create_transfer(
    *,
    actor,
    source_kind,
    source_id,
    destination_kind,
    destination_id,
    stock_item_ids,
    transfer_date=None,
    notes="",
):
    source = resolve_entity(source_kind, source_id)
    destination = resolve_entity(destination_kind, destination_id)
    if source.key == destination.key:
        raise ValidationError({"destination_id": ["Source and destination must be different."]})

    ids = normalize_ids(stock_item_ids, "stock_item_ids")

    def _op():
        _check_transferable(ids, source.inventory.id)
        transfer = Transfer.objects.create(
            source_kind=source.kind,
            source_id=source.entity.pk,
            destination_kind=destination.kind,
            destination_id=destination.entity.pk,
            source_inventory=source.inventory,
            destination_inventory=destination.inventory,
            status=Transfer.Status.PENDING,
            transfer_date=transfer_date or timezone.localdate(),
            notes=notes or "",
            created_by=actor if getattr(actor, "is_authenticated", False) else None,
        )
        TransferItem.objects.bulk_create(
            [TransferItem(transfer=transfer, stock_item_id=stock_item_id) for stock_item_id in ids]
        )
        _log_action(transfer, actor=actor, action=TransferAction.Action.CREATED, item_ids=ids, notes=notes)
        create_audit_log(
            actor=actor,
            action="transfer.create",
            entity="transfer",
            entity_id=transfer.id,
            after_snapshot=_transfer_snapshot(transfer),
        )
        return transfer

    transfer = run_atomic(_op)
    logger.info(
        "transfer_created source=%s destination=%s items=%s",
        source.key,
        destination.key,
        len(ids),
        extra={"transfer_id": str(transfer.id)},
    )
    return transfer


def _approve(transfer, items, actor):
    stock_items, memberships = lock_stock_items(item.stock_item_id for item in items)
    for item in items:
        stock_item = stock_items[item.stock_item_id]
        membership = memberships.get(item.stock_item_id)
        if stock_item.status == StockItem.Status.SOLD:
            raise ValidationError({"item_ids": [f"Stock item {stock_item.code} is sold and cannot be transferred."]})
        if membership is None or membership.inventory_id != transfer.source_inventory_id:
            raise ValidationError({"item_ids": [f"Stock item {stock_item.code} is not in the source inventory."]})

        move_stock_item(membership, transfer.destination_inventory)
        record_stock_history(
            stock_item,
            StockItemHistory.Action.TRANSFERRED,
            actor=actor,
            reference_type="inventory.transfer",
            reference_id=transfer.id,
            details={
                "from": f"{transfer.source_kind}:{transfer.source_id}",
                "to": f"{transfer.destination_kind}:{transfer.destination_id}",
            },
        )


def _decide_items(transfer, *, actor, decision, item_ids=None, notes=""):
    if item_ids is None:
        action = TransferAction.Action.APPROVED if decision == ItemStatus.APPROVED else TransferAction.Action.REJECTED
    else:
        action = (
            TransferAction.Action.APPROVED_ITEMS if decision == ItemStatus.APPROVED else TransferAction.Action.REJECTED_ITEMS
        )
        requested = normalize_ids(item_ids, "item_ids")

    def _op():
        locked = _lock_transfer(transfer)
        before = _transfer_snapshot(locked)
        items = list(locked.items.order_by("pk"))

        if item_ids is None:
            targets = [item for item in items if item.status == ItemStatus.PENDING]
            if not targets:
                raise InvalidTransition("No pending items left on this transfer.")
        else:
            by_id = {item.id: item for item in items}
            foreign = [str(item_id) for item_id in requested if item_id not in by_id]
            if foreign:
                raise ValidationError({"item_ids": [f"Items do not belong to this transfer: {', '.join(foreign)}."]})
            decided = [str(item_id) for item_id in requested if by_id[item_id].status != ItemStatus.PENDING]
            if decided:
                raise ValidationError({"item_ids": [f"Items are not pending: {', '.join(decided)}."]})
            targets = [by_id[item_id] for item_id in requested]

        if decision == ItemStatus.APPROVED:
            _approve(locked, targets, actor)

        for item in targets:
            item.status = decision
            item.save(update_fields=["status", "updated_at"])

        refresh_transfer_status(locked)
        _log_action(locked, actor=actor, action=action, item_ids=[item.id for item in targets], notes=notes)
        create_audit_log(
            actor=actor,
            action=f"transfer.{action}",
            entity="transfer",
            entity_id=locked.id,
            before_snapshot=before,
            after_snapshot=_transfer_snapshot(locked),
        )
        return locked, targets

    locked, targets = run_atomic(_op)
    logger.info(
        "transfer_items_decided action=%s count=%s status=%s",
        action,
        len(targets),
        locked.status,
        extra={"transfer_id": str(locked.id), "stock_item_ids": [str(item.stock_item_id) for item in targets]},
    )
    return locked


def approve_items(transfer, item_ids, *, actor, notes=""):
    return _decide_items(transfer, actor=actor, decision=ItemStatus.APPROVED, item_ids=item_ids, notes=notes)


def reject_items(transfer, item_ids, *, actor, notes=""):
    return _decide_items(transfer, actor=actor, decision=ItemStatus.REJECTED, item_ids=item_ids, notes=notes)


def approve_transfer(transfer, *, actor, notes=""):
    return _decide_items(transfer, actor=actor, decision=ItemStatus.APPROVED, notes=notes)


def reject_transfer(transfer, *, actor, notes=""):
    return _decide_items(transfer, actor=actor, decision=ItemStatus.REJECTED, notes=notes)



def update_transfer(transfer, *, actor, stock_item_ids=None, transfer_date=None, notes=None):
    """Edit a transfer that has no approved lines yet.

    A new ``stock_item_ids`` list replaces every line with a fresh pending
    one; each garment must still be in the source inventory.
    """
    ids = normalize_ids(stock_item_ids, "stock_item_ids") if stock_item_ids is not None else None

    def _op():
        locked = _lock_transfer(transfer)
        if locked.status not in EDITABLE_STATUSES:
            raise InvalidTransition(f"Cannot edit a {locked.status} transfer.")

        before = _transfer_snapshot(locked)
        fields = ["updated_at"]
        if ids is not None:
            _check_transferable(ids, locked.source_inventory_id)
            locked.items.all().delete()
            TransferItem.objects.bulk_create(
                [TransferItem(transfer=locked, stock_item_id=stock_item_id) for stock_item_id in ids]
            )
            locked.status = Transfer.Status.PENDING
            fields.append("status")
        if transfer_date is not None:
            locked.transfer_date = transfer_date
            fields.append("transfer_date")
        if notes is not None:
            locked.notes = notes
            fields.append("notes")
        locked.save(update_fields=fields)

        _log_action(locked, actor=actor, action=TransferAction.Action.UPDATED, item_ids=ids or ())
        create_audit_log(
            actor=actor,
            action="transfer.update",
            entity="transfer",
            entity_id=locked.id,
            before_snapshot=before,
            after_snapshot=_transfer_snapshot(locked),
        )
        return locked

    locked = run_atomic(_op)
    logger.info("transfer_updated status=%s", locked.status, extra={"transfer_id": str(locked.id)})
    return locked


def delete_transfer(transfer, *, actor):
    """Delete a transfer on which nothing has been decided.

    Lines and the action log go with it; the audit row keeps the last snapshot.
    """

    def _op():
        locked = _lock_transfer(transfer)
        if locked.status != Transfer.Status.PENDING:
            raise InvalidTransition(f"Only pending transfers can be deleted; this one is {locked.status}.")

        create_audit_log(
            actor=actor,
            action="transfer.delete",
            entity="transfer",
            entity_id=locked.id,
            before_snapshot=_transfer_snapshot(locked),
        )
        transfer_id = locked.id
        locked.delete()
        return transfer_id

    transfer_id = run_atomic(_op)
    logger.info("transfer_deleted", extra={"transfer_id": str(transfer_id)})
