# Overview: Inventory item state machine (available <-> sold, archive overlay).

"""
Inventory Item Service

Transitions:
- create_item:   -> available (purchase_price fixed, archived=False)
- sell_item:     available -> sold (sale linkage set)
- release_item:  sold -> available (sale linkage cleared)
- archive_item:  soft-delete overlay, refused while sold

INVARIANT: status == "sold" iff sale_id is not NULL. Every transition sets
both together.

The ensure_* helpers only read; orchestrators call all of them for the whole
operation first and only then apply transitions, so a failed check never
follows a partial mutation.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable

from ..extensions import db
from ..models import InventoryItem, Product
from ..constants import ITEM_AVAILABLE, ITEM_SOLD
from ..errors import DuplicateImei, EntityNotFound, ItemNotAvailable, ItemSold, ItemStateError
from imeipos.time_utils import utcnow
from .concurrency import lock_for_update


# =============================================================================
# LOOKUPS
# =============================================================================

def get_items(item_ids: Iterable[int], *, for_update: bool = False) -> dict[int, InventoryItem]:
    """Load items by id, failing on the first id that does not exist."""
    ids = list(item_ids)
    if not ids:
        return {}
    query = db.session.query(InventoryItem).filter(InventoryItem.id.in_(ids))
    if for_update:
        query = lock_for_update(query)
    found = {item.id: item for item in query.all()}
    for item_id in ids:
        if item_id not in found:
            raise EntityNotFound("item", item_id)
    return found


def get_available_items(product_id: int | None = None) -> list[InventoryItem]:
    query = db.session.query(InventoryItem).filter_by(status=ITEM_AVAILABLE, archived=False)
    if product_id is not None:
        query = query.filter_by(product_id=product_id)
    return query.order_by(InventoryItem.id).all()


def ensure_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise EntityNotFound("product", product_id)
    return product


# =============================================================================
# PRECONDITIONS
# =============================================================================

def ensure_available(item: InventoryItem) -> None:
    """Sellable means available and not archived."""
    if item.status != ITEM_AVAILABLE or item.archived:
        status = "archived" if item.archived and item.status == ITEM_AVAILABLE else item.status
        raise ItemNotAvailable(item.imei, status)


def ensure_not_sold(item: InventoryItem, message: str | None = None) -> None:
    if item.status == ITEM_SOLD:
        raise ItemSold(item.imei, message)


def ensure_imeis_unused(imeis: Iterable[str]) -> None:
    """
    Reject IMEIs repeated within the batch or already present in inventory
    (archived items keep their IMEI reserved).
    """
    seen: set[str] = set()
    batch = []
    for imei in imeis:
        if imei in seen:
            raise DuplicateImei(imei, f"Duplicate IMEIs are not allowed: {imei}")
        seen.add(imei)
        batch.append(imei)

    if not batch:
        return
    existing = (
        db.session.query(InventoryItem.imei)
        .filter(InventoryItem.imei.in_(batch))
        .first()
    )
    if existing:
        raise DuplicateImei(existing[0], f"IMEI {existing[0]} already exists in inventory")


# =============================================================================
# TRANSITIONS
# =============================================================================

def create_item(
    *,
    product_id: int,
    imei: str,
    purchase_price: int,
    purchase_invoice_id: int | None,
    supplier_id: int | None,
    purchased_at: datetime | None = None,
) -> InventoryItem:
    item = InventoryItem(
        product_id=product_id,
        imei=imei,
        status=ITEM_AVAILABLE,
        purchase_price=purchase_price,
        purchase_invoice_id=purchase_invoice_id,
        supplier_id=supplier_id,
        purchased_at=purchased_at or utcnow(),
        archived=False,
    )
    db.session.add(item)
    return item


def sell_item(
    item: InventoryItem,
    *,
    sale_id: int,
    sale_price: int,
    customer_id: int | None,
    sold_at: datetime | None = None,
) -> InventoryItem:
    ensure_available(item)
    item.status = ITEM_SOLD
    item.sale_id = sale_id
    item.sale_price = sale_price
    item.customer_id = customer_id
    item.sold_at = sold_at or utcnow()
    return item


def release_item(item: InventoryItem, sale_id: int) -> InventoryItem:
    """Return an item sold by `sale_id` to stock."""
    if item.status != ITEM_SOLD or item.sale_id != sale_id:
        raise ItemStateError(
            f"Item {item.imei} is not sold by sale {sale_id}",
            item.imei,
            details={"sale_id": sale_id, "status": item.status},
        )
    item.status = ITEM_AVAILABLE
    item.sale_id = None
    item.sale_price = None
    item.customer_id = None
    item.sold_at = None
    return item


def archive_item(item: InventoryItem, *, detach_invoice: bool = False) -> InventoryItem:
    ensure_not_sold(item)
    item.archived = True
    if detach_invoice:
        item.purchase_invoice_id = None
    return item
