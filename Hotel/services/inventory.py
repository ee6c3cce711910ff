"""
Inventory ledger.

``current_stock`` only ever moves through the functions in this module.
Every decrement is a conditional UPDATE guarded by ``current_stock >= n`` so
two requests racing for the same units cannot drive the counter below zero,
and every change leaves a ``StockMovement`` row behind.

Callers are expected to run these inside ``transaction.atomic()`` together
with the record that justifies the change (an order, a return, a wastage
log or a stock transfer).
"""
import logging
from collections import OrderedDict
from decimal import Decimal

from django.db import IntegrityError, transaction
from django.db.models import BooleanField, Case, F, Value, When
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from ..constants import StockMovementReason
from ..exceptions import ConflictError, InsufficientStock
from ..models import InventoryItem, RecipeIngredient, StockMovement

logger = logging.getLogger(__name__)

ZERO = Decimal('0')


def with_low_stock_flag(queryset):
    """Annotates ``low_stock`` in SQL so the flag is evaluated on every read."""
    return queryset.annotate(
        low_stock=Case(
            When(current_stock__lte=F('minimum_stock'), then=Value(True)),
            default=Value(False),
            output_field=BooleanField(),
        )
    )


def low_stock_items(queryset=None):
    queryset = InventoryItem.objects.filter(is_active=True) if queryset is None else queryset
    return queryset.filter(current_stock__lte=F('minimum_stock'))


def requirements_for_order(order):
    """
    Maps inventory item id -> quantity consumed by completing ``order``.

    Only products with recipe rows consume stock; custom items and products
    without a recipe map to nothing.
    """
    required = OrderedDict()
    items = order.order_items.filter(product__isnull=False)
    product_qty = {}
    for item in items:
        product_qty[item.product_id] = product_qty.get(item.product_id, 0) + item.quantity

    if not product_qty:
        return required

    ingredients = (RecipeIngredient.objects
                   .filter(product_id__in=product_qty.keys())
                   .order_by('inventory_item_id', 'product_id'))
    for ingredient in ingredients:
        amount = ingredient.quantity_required * product_qty[ingredient.product_id]
        required[ingredient.inventory_item_id] = required.get(ingredient.inventory_item_id, ZERO) + amount
    return required


def _shortfalls(required):
    stock = InventoryItem.objects.in_bulk(list(required.keys()))
    short = []
    for item_id, amount in required.items():
        item = stock.get(item_id)
        available = item.current_stock if item else ZERO
        if available < amount:
            short.append({
                'id': item_id,
                'name': item.name if item else f"#{item_id}",
                'required': amount,
                'available': available,
            })
    return short


def _conditional_decrement(item_id, amount):
    """Returns the number of rows updated: 1 on success, 0 when stock is short."""
    return (InventoryItem.objects
            .filter(pk=item_id, current_stock__gte=amount)
            .update(current_stock=F('current_stock') - amount, updated_at=timezone.now()))


def _increment(item_id, amount):
    return (InventoryItem.objects
            .filter(pk=item_id)
            .update(current_stock=F('current_stock') + amount, updated_at=timezone.now()))


def _record(item_id, change, reason, staff=None, **links):
    """``links`` names the record behind the change: order, product_return, wastage_log or stock_transfer."""
    stock_after = InventoryItem.objects.values_list('current_stock', flat=True).get(pk=item_id)
    return StockMovement.objects.create(
        inventory_item_id=item_id,
        change=change,
        stock_after=stock_after,
        reason=reason,
        created_by=staff,
        **links
    )


def _debit_or_raise(item_id, amount):
    if not _conditional_decrement(item_id, amount):
        short = _shortfalls({item_id: amount})
        raise InsufficientStock(short or [{'id': item_id, 'name': f"#{item_id}",
                                           'required': amount, 'available': ZERO}])


def consume_for_order(order, staff=None):
    """
    Decrements stock for every ingredient of ``order`` or nothing at all.

    Raises:
        InsufficientStock: some item lacks stock; nothing was changed.
        ConflictError: stock vanished between the check and the update
            (another request won the race). The caller's atomic block
            rolls back any decrement already applied.
    """
    required = requirements_for_order(order)
    if not required:
        return {}

    short = _shortfalls(required)
    if short:
        logger.warning("Order %s blocked by insufficient stock: %s", order.order_number,
                       ', '.join(s['name'] for s in short))
        raise InsufficientStock(short)

    with transaction.atomic():
        for item_id, amount in required.items():
            if not _conditional_decrement(item_id, amount):
                logger.warning("Stock race lost for item %s on order %s", item_id, order.order_number)
                raise ConflictError('Stock is no longer available for one or more items.')
            try:
                # The savepoint keeps a duplicate row from breaking the outer transaction.
                with transaction.atomic():
                    _record(item_id, -amount, StockMovementReason.ORDER_CONSUMPTION, staff=staff, order=order)
            except IntegrityError:
                logger.warning("Order %s already consumed item %s", order.order_number, item_id)
                raise ConflictError('Stock for this order was already deducted.')

    logger.info("Order %s consumed %d inventory item(s)", order.order_number, len(required))
    return required


def credit_return(product_return, quantity, staff=None, reason=StockMovementReason.RETURN):
    if product_return is None or product_return.pk is None:
        raise ValueError('Stock can only be credited against a saved return record.')
    amount = Decimal(quantity)
    if amount <= 0:
        raise ValidationError({'quantity_returned': 'Quantity must be greater than zero.'})

    with transaction.atomic():
        if not _increment(product_return.inventory_item_id, amount):
            raise ConflictError('Inventory item no longer exists.')
        return _record(product_return.inventory_item_id, amount, reason,
                       staff=staff, product_return=product_return)


def debit_return(product_return, quantity, staff=None, reason=StockMovementReason.RETURN_REVERSAL,
                 inventory_item_id=None):
    """Takes back stock previously credited by a return."""
    item_id = inventory_item_id or product_return.inventory_item_id
    amount = Decimal(quantity)
    if amount <= 0:
        raise ValidationError({'quantity_returned': 'Quantity must be greater than zero.'})

    with transaction.atomic():
        _debit_or_raise(item_id, amount)
        return _record(item_id, -amount, reason, staff=staff,
                       product_return=product_return)


def debit_wastage(wastage_log, staff=None):
    """Removes wasted stock; never below zero."""
    if wastage_log is None or wastage_log.pk is None:
        raise ValueError('Stock can only be written off against a saved wastage log.')
    with transaction.atomic():
        _debit_or_raise(wastage_log.inventory_item_id, wastage_log.quantity_wasted)
        return _record(wastage_log.inventory_item_id, -wastage_log.quantity_wasted,
                       StockMovementReason.WASTAGE, staff=staff, wastage_log=wastage_log)


def credit_wastage(wastage_log, staff=None):
    with transaction.atomic():
        _increment(wastage_log.inventory_item_id, wastage_log.quantity_wasted)
        return _record(wastage_log.inventory_item_id, wastage_log.quantity_wasted,
                       StockMovementReason.WASTAGE_REVERSAL, staff=staff, wastage_log=wastage_log)


def move_stock(stock_transfer, staff=None):
    """Debits the source item and credits the target item, both or neither."""
    if stock_transfer is None or stock_transfer.pk is None:
        raise ValueError('Stock can only be moved against a saved transfer.')
    amount = stock_transfer.quantity
    with transaction.atomic():
        _debit_or_raise(stock_transfer.from_item_id, amount)
        _record(stock_transfer.from_item_id, -amount, StockMovementReason.TRANSFER_OUT,
                staff=staff, stock_transfer=stock_transfer)
        if not _increment(stock_transfer.to_item_id, amount):
            raise ConflictError('Target inventory item no longer exists.')
        _record(stock_transfer.to_item_id, amount, StockMovementReason.TRANSFER_IN,
                staff=staff, stock_transfer=stock_transfer)


def restock(item, quantity, staff=None):
    amount = Decimal(str(quantity))
    if amount <= 0:
        raise ValidationError({'quantity': 'Quantity must be positive.'})
    with transaction.atomic():
        _increment(item.pk, amount)
        movement = _record(item.pk, amount, StockMovementReason.RESTOCK, staff=staff)
    logger.info("Restocked %s by %s", item.name, amount)
    return movement


def set_stock(item, value, staff=None):
    """Overwrites stock after a physical count. Negative counts clamp to zero."""
    target = max(ZERO, Decimal(str(value)))
    with transaction.atomic():
        locked = InventoryItem.objects.select_for_update().get(pk=item.pk)
        change = target - locked.current_stock
        locked.current_stock = target
        locked.save(update_fields=['current_stock', 'updated_at'])
        movement = _record(item.pk, change, StockMovementReason.STOCK_COUNT, staff=staff)
    logger.info("Stock count for %s set to %s (%+f)", item.name, target, change)
    return movement


def visible_to(queryset, allowed_types):
    return queryset.filter(inventory_type__in=allowed_types)
