import logging

from django.conf import settings
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from common.audit import create_audit_log
from common.concurrency import run_atomic
from common.exceptions import InvalidTransition
from common.utils import snapshot, to_decimal, to_money
from sales.models import Custody, CustodyPhoto, CustodyReturn, OrderHistory
from sales.services import OPEN_STATUSES, lock_order, record_order_history

logger = logging.getLogger(__name__)

CUSTODY_SNAPSHOT_FIELDS = ("type", "status", "value", "returned_at")


def _max_photos():
    return getattr(settings, "CUSTODY_MAX_PHOTOS", 2)


def _attach_photos(custody, photos, photo_type):
    for photo in photos:
        CustodyPhoto.objects.create(custody=custody, photo=photo, photo_type=photo_type)


def create_custody(*, actor, order, type, description, value=None, photos=(), notes=""):
    """Record a deposit (money, an item or a document) the client leaves against ``order``."""
    photos = list(photos or ())
    if type not in Custody.Type.values:
        raise ValidationError({"type": [f"Unknown custody type '{type}'."]})
    if not description:
        raise ValidationError({"description": ["Description is required."]})
    if len(photos) > _max_photos():
        raise ValidationError({"photos": [f"At most {_max_photos()} photos are allowed."]})

    if type == Custody.Type.MONEY:
        value = to_decimal(value, default=None)
        if value is None or value < 0:
            raise ValidationError({"value": ["Money custody needs a non-negative value."]})
        value = to_money(value)
    elif value is not None:
        value = to_decimal(value, default=None)
        if value is None or value < 0:
            raise ValidationError({"value": ["Value must be a non-negative number."]})
        value = to_money(value)

    if type == Custody.Type.PHYSICAL_ITEM and not photos:
        raise ValidationError({"photos": ["Physical item custody needs at least one photo."]})

    def _op():
        locked = lock_order(order)
        if locked.status not in OPEN_STATUSES:
            raise InvalidTransition(f"Cannot add custody to a {locked.status} order.")

        custody = Custody.objects.create(
            order=locked,
            type=type,
            description=description,
            value=value,
            notes=notes or "",
        )
        _attach_photos(custody, photos, CustodyPhoto.PhotoType.CUSTODY_PHOTO)
        record_order_history(
            locked,
            OrderHistory.Action.CUSTODY_ADDED,
            actor=actor,
            details={"custody_id": str(custody.id), "type": type},
        )
        create_audit_log(
            actor=actor,
            action="custody.create",
            entity="custody",
            entity_id=custody.id,
            after_snapshot=snapshot(custody, CUSTODY_SNAPSHOT_FIELDS),
        )
        return custody

    custody = run_atomic(_op)
    logger.info(
        "custody_created type=%s photos=%s",
        custody.type,
        len(photos),
        extra={"custody_id": str(custody.id), "order_id": str(custody.order_id)},
    )
    return custody


def return_custody(custody, *, actor, action, acknowledgement_photos, reason=None, notes=""):
    """Close a pending custody as returned to the client or forfeited."""
    photos = list(acknowledgement_photos or ())
    if action not in CustodyReturn.Action.values:
        raise ValidationError({"action": [f"Unknown return action '{action}'."]})
    if action == CustodyReturn.Action.FORFEIT and not reason:
        raise ValidationError({"reason": ["A reason is required to forfeit custody."]})
    if not photos:
        raise ValidationError({"acknowledgement_photos": ["At least one acknowledgement photo is required."]})
    if len(photos) > _max_photos():
        raise ValidationError({"acknowledgement_photos": [f"At most {_max_photos()} photos are allowed."]})

    def _op():
        locked_order = lock_order(custody.order)
        locked = Custody.objects.select_for_update().get(pk=custody.pk)
        if locked.status != Custody.Status.PENDING:
            raise InvalidTransition(f"Custody is already {locked.status}.")

        before = snapshot(locked, CUSTODY_SNAPSHOT_FIELDS)
        now = timezone.now()
        if action == CustodyReturn.Action.RETURNED_TO_USER:
            locked.status = Custody.Status.RETURNED
            locked.returned_at = now
        else:
            locked.status = Custody.Status.FORFEITED
        locked.save(update_fields=["status", "returned_at", "updated_at"])

        CustodyReturn.objects.create(
            custody=locked,
            action=action,
            reason=reason,
            notes=notes or "",
            returned_by=actor if getattr(actor, "is_authenticated", False) else None,
            returned_at=now,
        )
        _attach_photos(locked, photos, CustodyPhoto.PhotoType.ACKNOWLEDGEMENT_RECEIPT)
        record_order_history(
            locked_order,
            OrderHistory.Action.CUSTODY_RETURNED,
            actor=actor,
            details={"custody_id": str(locked.id), "action": action},
        )
        create_audit_log(
            actor=actor,
            action=f"custody.{action}",
            entity="custody",
            entity_id=locked.id,
            before_snapshot=before,
            after_snapshot=snapshot(locked, CUSTODY_SNAPSHOT_FIELDS),
        )
        return locked

    locked = run_atomic(_op)
    logger.info(
        "custody_closed action=%s status=%s",
        action,
        locked.status,
        extra={"custody_id": str(locked.id), "order_id": str(locked.order_id)},
    )
    return locked
