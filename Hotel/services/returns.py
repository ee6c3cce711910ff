"""
Product returns.

A return and the stock it puts back are one unit: the row, the stock
credit and the audit entry are written in the same atomic block, and every
later edit or deletion moves stock by exactly the difference it introduces.
"""
import logging
from decimal import Decimal

from django.db import transaction
from rest_framework.exceptions import NotFound, ValidationError

from ..constants import AuditAction, RefundBasis, ReturnReason, StockMovementReason
from ..models import InventoryItem, Order, ProductReturn
from . import inventory
from .audit import log_change, snapshot
from .totals import ZERO, money, validate_quantity

logger = logging.getLogger(__name__)

ENTITY = 'product_return'


def estimate_refund(item, quantity, basis):
    """
    Refund suggested when the caller gives none.

    ``current_stock`` reproduces the figure the old system used
    (stock on hand before the return times quantity). It is kept as the
    default until the business confirms the unit price based bases.
    """
    if basis == RefundBasis.CURRENT_STOCK:
        return money((item.current_stock or ZERO) * quantity)
    if basis == RefundBasis.SELLING_PRICE:
        return money((item.cost_per_unit or ZERO) * quantity)
    if basis == RefundBasis.BUYING_PRICE:
        return money((item.buying_price or ZERO) * quantity)
    return None


def _get_item(item_id):
    try:
        return InventoryItem.objects.get(pk=item_id)
    except InventoryItem.DoesNotExist:
        raise NotFound(f"Inventory item {item_id} not found")


def _validate_reason(reason):
    if not reason:
        raise ValidationError({'reason': 'This field is required.'})
    if reason not in ReturnReason.values:
        raise ValidationError({'reason': f"Unknown reason '{reason}'"})
    return reason


def _validate_refund(refund_amount):
    if refund_amount in (None, ''):
        return None
    refund = money(Decimal(str(refund_amount)))
    if refund < 0:
        raise ValidationError({'refund_amount': 'Refund cannot be negative.'})
    return refund


def create_return(data, staff, config):
    """
    Args:
        data: inventory_item, quantity_returned, reason and optional order,
            refund_amount, notes.
        staff: the ``Staff`` registering the return.
        config: ``PosSettings`` whose ``return_refund_basis`` is used when no
            refund amount is given.
    """
    quantity = validate_quantity(data.get('quantity_returned'))
    reason = _validate_reason(data.get('reason'))
    refund = _validate_refund(data.get('refund_amount'))
    item = _get_item(data.get('inventory_item'))

    order = None
    if data.get('order'):
        try:
            order = Order.objects.get(pk=data['order'])
        except Order.DoesNotExist:
            raise NotFound(f"Order {data['order']} not found")

    if refund is None:
        refund = estimate_refund(item, quantity, config.return_refund_basis)

    with transaction.atomic():
        product_return = ProductReturn.objects.create(
            order=order,
            inventory_item=item,
            quantity_returned=quantity,
            reason=reason,
            refund_amount=refund,
            notes=data.get('notes') or '',
            created_by=staff,
        )
        inventory.credit_return(product_return, quantity, staff=staff)
        log_change(ENTITY, product_return.pk, AuditAction.CREATE, new_values=snapshot(product_return), staff=staff)

    logger.info("Return #%s: %s x %s credited", product_return.pk, quantity, item.name)
    return product_return


def update_return(return_id, data, staff):
    """Applies only the stock difference an edit introduces."""
    with transaction.atomic():
        try:
            product_return = ProductReturn.objects.select_for_update().get(pk=return_id)
        except ProductReturn.DoesNotExist:
            raise NotFound(f"Product return {return_id} not found")
        before = snapshot(product_return)

        old_item_id = product_return.inventory_item_id
        old_qty = product_return.quantity_returned
        new_qty = validate_quantity(data['quantity_returned']) if 'quantity_returned' in data else old_qty
        new_item_id = data.get('inventory_item') or old_item_id
        if new_item_id != old_item_id:
            _get_item(new_item_id)

        if new_item_id != old_item_id:
            inventory.debit_return(product_return, old_qty, staff=staff,
                                   reason=StockMovementReason.RETURN_REVERSAL)
            product_return.inventory_item_id = new_item_id
            product_return.quantity_returned = new_qty
            product_return.save(update_fields=['inventory_item', 'quantity_returned', 'updated_at'])
            inventory.credit_return(product_return, new_qty, staff=staff)
        elif new_qty != old_qty:
            delta = new_qty - old_qty
            if delta > 0:
                inventory.credit_return(product_return, delta, staff=staff,
                                        reason=StockMovementReason.RETURN_ADJUSTMENT)
            else:
                inventory.debit_return(product_return, -delta, staff=staff,
                                       reason=StockMovementReason.RETURN_ADJUSTMENT)
            product_return.quantity_returned = new_qty

        if 'reason' in data:
            product_return.reason = _validate_reason(data['reason'])
        if 'refund_amount' in data:
            product_return.refund_amount = _validate_refund(data['refund_amount'])
        if 'notes' in data:
            product_return.notes = data['notes'] or ''
        if 'order' in data:
            product_return.order_id = data['order'] or None
        product_return.save()

        log_change(ENTITY, product_return.pk, AuditAction.UPDATE, old_values=before,
                   new_values=snapshot(product_return), staff=staff)

    logger.info("Return #%s updated: quantity %s -> %s", product_return.pk, old_qty, new_qty)
    return product_return


def delete_return(return_id, staff):
    """Takes the credited stock back, then removes the row."""
    with transaction.atomic():
        try:
            product_return = ProductReturn.objects.select_for_update().get(pk=return_id)
        except ProductReturn.DoesNotExist:
            raise NotFound(f"Product return {return_id} not found")
        before = snapshot(product_return)
        inventory.debit_return(product_return, product_return.quantity_returned, staff=staff)
        product_return.delete()
        log_change(ENTITY, return_id, AuditAction.DELETE, old_values=before, staff=staff)

    logger.info("Return #%s deleted and stock reversed", return_id)
