import logging
import uuid
from dataclasses import dataclass

from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import NotFound, ValidationError

from common.concurrency import lock_for_update
from core.models import Branch, Factory, Workshop
from inventory.models import EntityKind, Inventory, InventoryItem, StockItem, StockItemHistory

logger = logging.getLogger(__name__)

ENTITY_MODELS = {
    EntityKind.BRANCH: Branch,
    EntityKind.WORKSHOP: Workshop,
    EntityKind.FACTORY: Factory,
}


@dataclass(frozen=True)
class ResolvedEntity:
    kind: EntityKind
    entity: object
    inventory: Inventory

    @property
    def key(self):
        return (self.kind, self.entity.pk)


def parse_entity_kind(kind):
    try:
        return EntityKind(kind)
    except ValueError:
        raise NotFound(f"Unknown entity type '{kind}'.") from None


def _parse_entity_id(entity_id):
    if isinstance(entity_id, uuid.UUID):
        return entity_id
    try:
        return uuid.UUID(str(entity_id))
    except (ValueError, TypeError, AttributeError):
        return None


def normalize_ids(values, field):
    """Parse a non-empty list of distinct UUIDs or raise ``ValidationError`` on ``field``."""
    if not values:
        raise ValidationError({field: ["At least one id is required."]})

    parsed = []
    for value in values:
        parsed_id = _parse_entity_id(value)
        if parsed_id is None:
            raise ValidationError({field: [f"'{value}' is not a valid id."]})
        parsed.append(parsed_id)

    if len(set(parsed)) != len(parsed):
        raise ValidationError({field: ["Ids must not be repeated."]})
    return parsed


def entity_kind_for(entity):
    for kind, model in ENTITY_MODELS.items():
        if isinstance(entity, model):
            return kind
    raise ValueError(f"{entity!r} is not a stock-holding entity.")


def resolve_entity(kind, entity_id):
    """Resolve a ``(kind, id)`` reference to its entity and inventory."""
    entity_kind = parse_entity_kind(kind)
    parsed_id = _parse_entity_id(entity_id)
    if parsed_id is None:
        raise NotFound(f"{entity_kind.label} '{entity_id}' was not found.")

    entity = ENTITY_MODELS[entity_kind].objects.filter(pk=parsed_id).first()
    if entity is None:
        raise NotFound(f"{entity_kind.label} '{entity_id}' was not found.")

    inventory = Inventory.objects.filter(entity_kind=entity_kind, entity_id=entity.pk).first()
    if inventory is None:
        raise NotFound(f"{entity_kind.label} '{entity.name}' has no inventory.")

    return ResolvedEntity(kind=entity_kind, entity=entity, inventory=inventory)


def ensure_inventory(entity):
    kind = entity_kind_for(entity)
    inventory, _ = Inventory.objects.get_or_create(
        entity_kind=kind,
        entity_id=entity.pk,
        defaults={"name": f"{entity.name} inventory"},
    )
    return inventory


def record_stock_history(stock_item, action, *, actor=None, reference_type=None, reference_id=None, details=None):
    return StockItemHistory.objects.create(
        stock_item=stock_item,
        action=action,
        actor=actor if getattr(actor, "is_authenticated", False) else None,
        reference_type=reference_type,
        reference_id=reference_id,
        details=details or {},
    )


@transaction.atomic
def register_stock_item(*, inventory, code, name, description="", actor=None):
    """Create a garment and place it in ``inventory``."""
    if StockItem.objects.filter(code=code).exists():
        raise ValidationError({"code": f"A stock item with code '{code}' already exists."})

    stock_item = StockItem.objects.create(code=code, name=name, description=description)
    InventoryItem.objects.create(inventory=inventory, stock_item=stock_item)
    record_stock_history(
        stock_item,
        StockItemHistory.Action.CREATED,
        actor=actor,
        reference_type="inventory.inventory",
        reference_id=inventory.id,
        details={"inventory_id": str(inventory.id)},
    )
    logger.info("stock_item_registered code=%s inventory=%s", code, inventory.id)
    return stock_item


def lock_stock_items(stock_item_ids):
    """Lock stock items and their membership rows, keyed by stock item id.

    Order creation, order release and transfer approval all
    lock through here.
    """
    ids = list(stock_item_ids)
    stock_items = {item.id: item for item in lock_for_update(StockItem.objects.filter(id__in=ids))}
    memberships = {
        row.stock_item_id: row
        for row in lock_for_update(InventoryItem.objects.filter(stock_item_id__in=ids))
    }
    return stock_items, memberships


def move_stock_item(membership, destination_inventory):
    membership.inventory = destination_inventory
    membership.added_at = timezone.now()
    membership.save(update_fields=["inventory", "added_at"])
    return membership


def remove_from_inventory(membership):
    membership.delete()


def restore_to_inventory(stock_item, inventory):
    """Put ``stock_item`` back in ``inventory`` unless it already sits somewhere."""
    membership, created = InventoryItem.objects.get_or_create(stock_item=stock_item, defaults={"inventory": inventory})
    return membership, created
