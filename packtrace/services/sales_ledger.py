"""
Sales side of the finished goods ledger.

A complete item is sellable while ``is_active`` is true. Putting it on a
delivery order claims it (a SalesItem line) and takes it out of stock;
deleting the order puts it back. A sold item can come back once through a
return note; the active ReturnItem claim blocks a second return until the
return note is deleted. Invoices bill delivery orders by bag type.

Every function validates first and mutates afterwards, and none of them
commit: callers run them inside ``database.atomic``.
"""

from collections import OrderedDict
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Sequence
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import desc
import logging

from .. import models
from ..exceptions import ConflictError, NotFound, ValidationError
from .id_generator import FrontendIDGenerator
from .ledger import to_decimal

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def money(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def line_total(price, weight) -> Decimal:
    """Goods are priced per kg of net weight."""
    return money(to_decimal(price) * to_decimal(weight))


def _find_complete_item(db: Session, barcode) -> models.CompleteItem:
    code = str(barcode).strip() if barcode is not None else ""
    if not code:
        raise ValidationError("Barcode is required")
    item = db.query(models.CompleteItem).filter(models.CompleteItem.barcode == code).first()
    if not item:
        raise NotFound(f"Barcode {code} not found", barcode=code)
    return item


def _active_customer(db: Session, customer_id: int) -> models.Customer:
    customer = db.get(models.Customer, customer_id)
    if not customer or customer.status != models.RecordStatus.ACTIVE.value:
        raise NotFound(f"Customer {customer_id} not found", customer_id=customer_id)
    return customer


# ============================================================================
# BARCODE VALIDATION
# ============================================================================

def validate_barcode_for_sale(db: Session, barcode, exclude_order_id: Optional[int] = None) -> Dict[str, Any]:
    """
    Check that a scanned complete item can go on a delivery order.

    ``exclude_order_id`` ignores claims held by that order, so an order being
    edited can keep its own lines.
    """
    item = _find_complete_item(db, barcode)

    claim_query = (
        db.query(models.SalesItem)
        .join(models.SalesInfo, models.SalesItem.sales_info_id == models.SalesInfo.id)
        .filter(
            models.SalesItem.complete_item_id == item.id,
            models.SalesItem.status == models.ClaimStatus.ACTIVE.value,
            models.SalesInfo.is_active.is_(True),
        )
    )
    if exclude_order_id is not None:
        claim_query = claim_query.filter(models.SalesInfo.id != exclude_order_id)
    claim = claim_query.first()

    if claim:
        raise ConflictError(
            f"Barcode {item.barcode} is already on delivery order {claim.sales_info.frontend_id}",
            barcode=item.barcode,
        )
    if not item.is_active and exclude_order_id is None:
        raise ConflictError(f"Barcode {item.barcode} has already been sold", barcode=item.barcode)

    bag_type = db.query(models.BagType).filter(models.BagType.bag_type == item.bundle_type).first()
    if not bag_type:
        raise NotFound(f"Bag type '{item.bundle_type}' not found", bundle_type=item.bundle_type)

    return {
        "complete_item_id": item.id,
        "barcode": item.barcode,
        "bundle_type": item.bundle_type,
        "weight": to_decimal(item.weight),
        "bags": item.bags,
        "price": money(bag_type.bag_price),
    }


def validate_barcode_for_return(db: Session, barcode, exclude_return_id: Optional[int] = None) -> Dict[str, Any]:
    """
    Check that a scanned complete item was sold and is not already on an open return.

    ``exclude_return_id`` ignores claims held by that return note, for edits.
    """
    item = _find_complete_item(db, barcode)

    if item.is_active:
        raise ConflictError(f"Barcode {item.barcode} is still in stock and was never sold", barcode=item.barcode)

    claim_query = (
        db.query(models.ReturnItem)
        .join(models.ReturnInfo, models.ReturnItem.return_info_id == models.ReturnInfo.id)
        .filter(
            models.ReturnItem.complete_item_id == item.id,
            models.ReturnItem.status == models.ClaimStatus.ACTIVE.value,
            models.ReturnInfo.is_active.is_(True),
        )
    )
    if exclude_return_id is not None:
        claim_query = claim_query.filter(models.ReturnInfo.id != exclude_return_id)
    claim = claim_query.first()
    if claim:
        raise ConflictError(
            f"Barcode {item.barcode} is already on return note {claim.return_info.frontend_id}",
            barcode=item.barcode,
        )

    return {
        "complete_item_id": item.id,
        "barcode": item.barcode,
        "bundle_type": item.bundle_type,
        "weight": to_decimal(item.weight),
        "bags": item.bags,
    }


# ============================================================================
# DELIVERY ORDERS
# ============================================================================

def _priced_lines(db: Session, lines: Sequence, validator) -> List[Dict[str, Any]]:
    """Validate every scanned line before anything is written."""
    if not lines:
        raise ValidationError("At least one item is required")

    seen = set()
    priced = []
    for line in lines:
        summary = validator(db, line.barcode)
        if summary["complete_item_id"] in seen:
            raise ValidationError(f"Barcode {summary['barcode']} is listed more than once", barcode=summary["barcode"])
        seen.add(summary["complete_item_id"])

        price = line.price if line.price is not None else summary.get("price")
        if price is None:
            bag_type = db.query(models.BagType).filter(models.BagType.bag_type == summary["bundle_type"]).first()
            price = bag_type.bag_price if bag_type else None
        if price is None:
            raise ValidationError(f"A price is required for barcode {summary['barcode']}", barcode=summary["barcode"])
        summary["price"] = money(price)
        summary["total"] = line_total(price, summary["weight"])
        priced.append(summary)
    return priced


def _claim_for_sale(db: Session, order: models.SalesInfo, lines: List[Dict[str, Any]], actor_id: int) -> None:
    for line in lines:
        db.add(models.SalesItem(
            sales_info_id=order.id,
            complete_item_id=line["complete_item_id"],
            barcode=line["barcode"],
            bundle_type=line["bundle_type"],
            net_weight=line["weight"],
            bags=line["bags"],
            price=line["price"],
            total=line["total"],
            status=models.ClaimStatus.ACTIVE.value,
            created_by_id=actor_id,
        ))
        item = db.get(models.CompleteItem, line["complete_item_id"])
        item.is_active = False

    order.total_bags = sum(int(line["bags"]) for line in lines)
    order.total_amount = money(sum((line["total"] for line in lines), Decimal("0")))


def _restore_sold_items(db: Session, order: models.SalesInfo) -> int:
    """Delete every line of an order and put its items back in stock."""
    sales_items = db.query(models.SalesItem).filter(models.SalesItem.sales_info_id == order.id).all()
    item_ids = [line.complete_item_id for line in sales_items]
    for line in sales_items:
        db.delete(line)
    db.flush()

    if item_ids:
        db.query(models.CompleteItem).filter(models.CompleteItem.id.in_(item_ids)).update(
            {models.CompleteItem.is_active: True}, synchronize_session=False
        )
        for item in db.query(models.CompleteItem).filter(models.CompleteItem.id.in_(item_ids)).all():
            db.refresh(item)
    db.expire(order, ["items"])
    return len(item_ids)


def get_delivery_order(db: Session, order_id: int) -> models.SalesInfo:
    order = (
        db.query(models.SalesInfo)
        .options(joinedload(models.SalesInfo.items), joinedload(models.SalesInfo.customer))
        .filter(models.SalesInfo.id == order_id)
        .first()
    )
    if not order or not order.is_active:
        raise NotFound(f"Delivery order {order_id} not found", order_id=order_id)
    return order


def list_delivery_orders(
    db: Session,
    skip: int = 0,
    limit: int = 100,
    customer_id: Optional[int] = None
) -> List[models.SalesInfo]:
    query = db.query(models.SalesInfo).filter(models.SalesInfo.is_active.is_(True))
    if customer_id:
        query = query.filter(models.SalesInfo.customer_id == customer_id)
    return query.order_by(desc(models.SalesInfo.id)).offset(skip).limit(limit).all()


def create_delivery_order(db: Session, *, customer_id: int, items: Sequence, actor_id: int) -> models.SalesInfo:
    customer = _active_customer(db, customer_id)
    lines = _priced_lines(db, items, validate_barcode_for_sale)

    order = models.SalesInfo(
        frontend_id=FrontendIDGenerator.generate_frontend_id("sales_info", db),
        customer_id=customer.id,
        customer_address=customer.address,
        customer_contact=customer.mobile,
        is_active=True,
        created_by_id=actor_id,
    )
    db.add(order)
    db.flush()

    _claim_for_sale(db, order, lines, actor_id)
    db.flush()
    logger.info(
        f"Delivery order {order.frontend_id} created for customer {customer_id}: "
        f"{len(lines)} items, {order.total_bags} bags, amount {order.total_amount}"
    )
    return order


def update_delivery_order(
    db: Session,
    *,
    order_id: int,
    items: Sequence,
    actor_id: int,
    customer_id: Optional[int] = None
) -> models.SalesInfo:
    """Replace an order's lines: old items go back to stock, new ones are claimed."""
    order = get_delivery_order(db, order_id)
    _ensure_not_invoiced(db, order)
    customer = _active_customer(db, customer_id) if customer_id is not None else None
    lines = _priced_lines(db, items, lambda session, code: validate_barcode_for_sale(session, code, exclude_order_id=order.id))

    _restore_sold_items(db, order)
    if customer is not None:
        order.customer_id = customer.id
        order.customer_address = customer.address
        order.customer_contact = customer.mobile

    _claim_for_sale(db, order, lines, actor_id)
    db.flush()
    logger.info(f"Delivery order {order.frontend_id} updated by user {actor_id}: {len(lines)} items")
    return order


def _ensure_not_invoiced(db: Session, order: models.SalesInfo, exclude_invoice_id: Optional[int] = None) -> None:
    query = db.query(models.InvoiceInfo).filter(
        models.InvoiceInfo.sales_info_id == order.id, models.InvoiceInfo.is_active.is_(True)
    )
    if exclude_invoice_id is not None:
        query = query.filter(models.InvoiceInfo.id != exclude_invoice_id)
    invoice = query.first()
    if invoice:
        raise ConflictError(
            f"Delivery order {order.frontend_id} is billed on invoice {invoice.frontend_id}",
            order_id=order.id,
        )


def delete_delivery_order(db: Session, *, order_id: int, actor_id: int) -> Dict[str, Any]:
    """Delete an order's lines, make its items sellable again and retire the order."""
    order = get_delivery_order(db, order_id)
    _ensure_not_invoiced(db, order)

    restored = _restore_sold_items(db, order)
    order.is_active = False
    order.total_bags = 0
    order.total_amount = Decimal("0")
    db.flush()

    logger.info(f"Delivery order {order.frontend_id} deleted by user {actor_id}, {restored} items back in stock")
    return {"order_id": order_id, "restored_items": restored}


def list_do_numbers(db: Session, customer_id: Optional[int] = None) -> List[Dict[str, Any]]:
    query = db.query(models.SalesInfo.id, models.SalesInfo.frontend_id, models.SalesInfo.customer_id).filter(
        models.SalesInfo.is_active.is_(True)
    )
    if customer_id:
        query = query.filter(models.SalesInfo.customer_id == customer_id)
    return [
        {"id": row.id, "do_number": row.frontend_id, "customer_id": row.customer_id}
        for row in query.order_by(desc(models.SalesInfo.id)).all()
    ]


def bag_types_for_do(db: Session, order_id: int) -> List[Dict[str, Any]]:
    """An order's lines summed per bag type, the basis for invoicing it."""
    order = get_delivery_order(db, order_id)

    bag_types = {bag.bag_type.lower(): bag for bag in db.query(models.BagType).all()}
    groups: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
    for line in order.items:
        if line.status != models.ClaimStatus.ACTIVE.value:
            continue
        group = groups.get(line.bundle_type)
        if group is None:
            bag = bag_types.get(line.bundle_type.lower())
            group = groups[line.bundle_type] = {
                "bag_type_id": bag.id if bag else None,
                "bundle_type": line.bundle_type,
                "price": money(bag.bag_price) if bag else money(line.price),
                "quantity": 0,
                "bags": 0,
                "weight": Decimal("0"),
            }
        group["quantity"] += 1
        group["bags"] += int(line.bags)
        group["weight"] += to_decimal(line.net_weight)
    return list(groups.values())


# ============================================================================
# RETURNS
# ============================================================================

def get_return(db: Session, return_id: int) -> models.ReturnInfo:
    return_info = (
        db.query(models.ReturnInfo)
        .options(joinedload(models.ReturnInfo.items), joinedload(models.ReturnInfo.customer))
        .filter(models.ReturnInfo.id == return_id)
        .first()
    )
    if not return_info or not return_info.is_active:
        raise NotFound(f"Return note {return_id} not found", return_id=return_id)
    return return_info


def list_returns(db: Session, skip: int = 0, limit: int = 100) -> List[models.ReturnInfo]:
    return (
        db.query(models.ReturnInfo)
        .filter(models.ReturnInfo.is_active.is_(True))
        .order_by(desc(models.ReturnInfo.id))
        .offset(skip)
        .limit(limit)
        .all()
    )


def _claim_for_return(db: Session, return_info: models.ReturnInfo, lines: List[Dict[str, Any]], actor_id: int) -> None:
    for line in lines:
        db.add(models.ReturnItem(
            return_info_id=return_info.id,
            complete_item_id=line["complete_item_id"],
            barcode=line["barcode"],
            bundle_type=line["bundle_type"],
            net_weight=line["weight"],
            bags=line["bags"],
            price=line["price"],
            total=line["total"],
            status=models.ClaimStatus.ACTIVE.value,
            created_by_id=actor_id,
        ))
    return_info.total_bags = sum(int(line["bags"]) for line in lines)
    return_info.total_amount = money(sum((line["total"] for line in lines), Decimal("0")))


def create_return(db: Session, *, customer_id: int, items: Sequence, actor_id: int) -> models.ReturnInfo:
    """Record sold items coming back; each returned barcode gets an active claim."""
    customer = _active_customer(db, customer_id)
    lines = _priced_lines(db, items, validate_barcode_for_return)

    return_info = models.ReturnInfo(
        frontend_id=FrontendIDGenerator.generate_frontend_id("return_info", db),
        customer_id=customer.id,
        customer_address=customer.address,
        customer_contact=customer.mobile,
        is_active=True,
        created_by_id=actor_id,
    )
    db.add(return_info)
    db.flush()

    _claim_for_return(db, return_info, lines, actor_id)
    db.flush()

    logger.info(f"Return note {return_info.frontend_id} created for customer {customer_id}: {len(lines)} items")
    return return_info


def update_return(
    db: Session,
    *,
    return_id: int,
    items: Sequence,
    actor_id: int,
    customer_id: Optional[int] = None
) -> models.ReturnInfo:
    """Replace a return note's lines; barcodes dropped from the note become returnable again."""
    return_info = get_return(db, return_id)
    customer = _active_customer(db, customer_id) if customer_id is not None else None
    lines = _priced_lines(
        db, items, lambda session, code: validate_barcode_for_return(session, code, exclude_return_id=return_info.id)
    )

    for line in db.query(models.ReturnItem).filter(models.ReturnItem.return_info_id == return_info.id).all():
        db.delete(line)
    db.flush()
    db.expire(return_info, ["items"])
    if customer is not None:
        return_info.customer_id = customer.id
        return_info.customer_address = customer.address
        return_info.customer_contact = customer.mobile

    _claim_for_return(db, return_info, lines, actor_id)
    db.flush()
    logger.info(f"Return note {return_info.frontend_id} updated by user {actor_id}: {len(lines)} items")
    return return_info


def delete_return(db: Session, *, return_id: int, actor_id: int) -> Dict[str, Any]:
    """Retire a return note; its barcodes become returnable again."""
    return_info = get_return(db, return_id)
    return_info.is_active = False
    for line in return_info.items:
        line.status = models.ClaimStatus.RELEASED.value
    db.flush()

    logger.info(f"Return note {return_info.frontend_id} deleted by user {actor_id}")
    return {"return_id": return_id, "released_items": len(return_info.items)}


# ============================================================================
# INVOICES
# ============================================================================

def get_invoice(db: Session, invoice_id: int) -> models.InvoiceInfo:
    invoice = (
        db.query(models.InvoiceInfo)
        .options(joinedload(models.InvoiceInfo.items), joinedload(models.InvoiceInfo.customer))
        .filter(models.InvoiceInfo.id == invoice_id)
        .first()
    )
    if not invoice or not invoice.is_active:
        raise NotFound(f"Invoice {invoice_id} not found", invoice_id=invoice_id)
    return invoice


def list_invoices(db: Session, skip: int = 0, limit: int = 100) -> List[models.InvoiceInfo]:
    return (
        db.query(models.InvoiceInfo)
        .filter(models.InvoiceInfo.is_active.is_(True))
        .order_by(desc(models.InvoiceInfo.id))
        .offset(skip)
        .limit(limit)
        .all()
    )


def _order_for_invoice(
    db: Session,
    customer: models.Customer,
    do_id: int,
    exclude_invoice_id: Optional[int] = None
) -> models.SalesInfo:
    order = get_delivery_order(db, do_id)
    if order.customer_id != customer.id:
        raise ValidationError(
            f"Delivery order {order.frontend_id} belongs to another customer",
            order_id=do_id,
        )
    _ensure_not_invoiced(db, order, exclude_invoice_id=exclude_invoice_id)
    return order


def _check_invoice_lines(db: Session, items: Sequence) -> None:
    if not items:
        raise ValidationError("At least one item is required")
    for line in items:
        if not db.get(models.BagType, line.bag_type_id):
            raise NotFound(f"Bag type {line.bag_type_id} not found", bag_type_id=line.bag_type_id)


def _bill_lines(db: Session, invoice: models.InvoiceInfo, order: models.SalesInfo, items: Sequence, actor_id: int) -> None:
    total = Decimal("0")
    for line in items:
        line_sum = money(to_decimal(line.price) * line.quantity)
        total += line_sum
        db.add(models.InvoiceItem(
            invoice_id=invoice.id,
            do_number=order.frontend_id,
            bag_type_id=line.bag_type_id,
            quantity=line.quantity,
            price=money(line.price),
            total=line_sum,
            created_by_id=actor_id,
        ))
    invoice.total = money(total)


def create_invoice(db: Session, *, customer_id: int, do_id: int, items: Sequence, actor_id: int) -> models.InvoiceInfo:
    """Bill a delivery order; one line per bag type, total is the sum of line totals."""
    customer = _active_customer(db, customer_id)
    order = _order_for_invoice(db, customer, do_id)
    _check_invoice_lines(db, items)

    invoice = models.InvoiceInfo(
        frontend_id=FrontendIDGenerator.generate_frontend_id("invoice_info", db),
        customer_id=customer.id,
        sales_info_id=order.id,
        is_active=True,
        created_by_id=actor_id,
    )
    db.add(invoice)
    db.flush()

    _bill_lines(db, invoice, order, items, actor_id)
    db.flush()

    logger.info(f"Invoice {invoice.frontend_id} raised on {order.frontend_id} for {invoice.total}")
    return invoice


def update_invoice(
    db: Session,
    *,
    invoice_id: int,
    items: Sequence,
    actor_id: int,
    customer_id: Optional[int] = None,
    do_id: Optional[int] = None
) -> models.InvoiceInfo:
    """
    Re-bill an invoice: its lines are replaced and the total recomputed.

    Moving the invoice to another delivery order follows the same rules as
    raising it: the order must belong to the customer and not be billed yet.
    """
    invoice = get_invoice(db, invoice_id)
    customer = _active_customer(db, customer_id if customer_id is not None else invoice.customer_id)
    order = _order_for_invoice(
        db, customer, do_id if do_id is not None else invoice.sales_info_id, exclude_invoice_id=invoice.id
    )
    _check_invoice_lines(db, items)

    for line in db.query(models.InvoiceItem).filter(models.InvoiceItem.invoice_id == invoice.id).all():
        db.delete(line)
    db.flush()
    db.expire(invoice, ["items"])

    invoice.customer_id = customer.id
    invoice.sales_info_id = order.id
    _bill_lines(db, invoice, order, items, actor_id)
    db.flush()

    logger.info(f"Invoice {invoice.frontend_id} updated by user {actor_id} on {order.frontend_id}, total {invoice.total}")
    return invoice


def delete_invoice(db: Session, *, invoice_id: int, actor_id: int) -> Dict[str, Any]:
    invoice = get_invoice(db, invoice_id)
    invoice.is_active = False
    db.flush()
    logger.info(f"Invoice {invoice.frontend_id} deleted by user {actor_id}")
    return {"invoice_id": invoice_id}
