"""
Order lifecycle: placement, item management, status machine and payments.

Every mutation here runs in one ``transaction.atomic()`` block and locks the
order row first, so two terminals acting on the same order serialize and a
failure part way through leaves nothing half applied.
"""
import logging
import secrets
from decimal import Decimal, InvalidOperation

from django.db import transaction
from django.db.models import Q, Sum
from django.utils import timezone
from rest_framework.exceptions import NotFound, ValidationError

from ..constants import (
    ORDER_ITEM_TRANSITIONS, ORDER_TRANSITIONS, Department, OrderItemStatus, OrderStatus, OrderType,
    PaymentMethod, PaymentRecordStatus, PaymentStatus, TableStatus,
)
from ..exceptions import InvalidTransition
from ..models import DiningTable, Order, OrderItem, Payment, Product, ProductVariation, Room
from . import inventory
from .totals import (
    ZERO, check_discount_allowed, compute_line_total, compute_totals, money, validate_quantity,
    validate_unit_price,
)

logger = logging.getLogger(__name__)


def generate_order_number():
    return f"ORD-{timezone.now():%Y%m%d%H%M%S}-{secrets.token_hex(3).upper()}"


def _lock_order(order_id):
    try:
        return Order.objects.select_for_update().get(pk=order_id)
    except Order.DoesNotExist:
        raise NotFound(f"Order {order_id} not found")


def _resolve_line(line):
    """
    Turns one raw item dict into the keyword arguments of an ``OrderItem``.

    Accepted keys: product_id or custom_name, quantity, unit_price
    (defaults to the product price), variation_ids, notes.
    """
    product = None
    product_id = line.get('product_id')
    custom_name = (line.get('custom_name') or '').strip()

    if product_id:
        try:
            product = Product.objects.get(pk=product_id, is_active=True)
        except Product.DoesNotExist:
            raise ValidationError({'items': f"Product with id {product_id} does not exist"})
        if not product.is_available:
            raise ValidationError({'items': f"{product.name} is currently unavailable"})
    elif not custom_name:
        raise ValidationError({'items': "Each item needs a 'product_id' or a 'custom_name'"})

    quantity = validate_quantity(line.get('quantity'))

    unit_price = line.get('unit_price')
    if unit_price is None:
        if product is None:
            raise ValidationError({'items': f"Custom item '{custom_name}' needs a unit_price"})
        unit_price = product.price
    unit_price = validate_unit_price(unit_price)

    variations = []
    variation_ids = line.get('variation_ids') or []
    if variation_ids:
        if product is None:
            raise ValidationError({'items': 'Custom items cannot have variations'})
        variations = list(ProductVariation.objects.filter(pk__in=variation_ids, product=product, is_active=True))
        if len(variations) != len(set(variation_ids)):
            raise ValidationError({'items': f"Invalid variation for {product.name}"})

    modifiers = [v.price_modifier for v in variations]
    return {
        'product': product,
        'custom_name': '' if product else custom_name,
        'quantity': quantity,
        'unit_price': unit_price,
        'modifier_total': money(sum(modifiers, ZERO)),
        'total_price': compute_line_total(quantity, unit_price, modifiers),
        'notes': line.get('notes') or '',
    }, variations


def _validate_destination(order_type, table_id, room_id):
    if order_type not in OrderType.values:
        raise ValidationError({'order_type': f"Unknown order type '{order_type}'"})

    table = room = None
    if table_id:
        if order_type != OrderType.DINE_IN:
            raise ValidationError({'table': 'Only dine-in orders can be linked to a table'})
        try:
            table = DiningTable.objects.get(pk=table_id)
        except DiningTable.DoesNotExist:
            raise NotFound(f"Table {table_id} not found")
    if room_id:
        if order_type != OrderType.ROOM_SERVICE:
            raise ValidationError({'room': 'Only room service orders can be linked to a room'})
        try:
            room = Room.objects.get(pk=room_id)
        except Room.DoesNotExist:
            raise NotFound(f"Room {room_id} not found")
    if order_type == OrderType.ROOM_SERVICE and room is None:
        raise ValidationError({'room': 'Room service orders need a room'})
    return table, room


def _apply_totals(order, config):
    line_totals = order.order_items.values_list('total_price', flat=True)
    totals = compute_totals(line_totals, config, order.discount_amount)
    check_discount_allowed(order.discount_amount, totals.subtotal, config)
    for field, value in totals.as_dict().items():
        setattr(order, field, value)
    return totals


def place_order(data, staff, config):
    """
    Args:
        data: validated payload with order_type, items and optional table,
            room, customer_name, customer_phone, discount_amount, notes.
        staff: the ``Staff`` taking the order.
        config: ``PosSettings`` snapshot used for tax and service charge.
    """
    items = data.get('items') or []
    if not items:
        raise ValidationError({'items': 'Order must contain at least one item'})

    discount = Decimal(str(data.get('discount_amount') or 0))
    if discount < 0:
        raise ValidationError({'discount_amount': 'Discount cannot be negative.'})

    table, room = _validate_destination(data.get('order_type'), data.get('table'), data.get('room'))
    resolved = [_resolve_line(line) for line in items]

    with transaction.atomic():
        order = Order.objects.create(
            order_number=generate_order_number(),
            order_type=data['order_type'],
            table=table,
            room=room,
            customer_name=data.get('customer_name') or '',
            customer_phone=data.get('customer_phone') or '',
            staff=staff,
            discount_amount=money(discount),
            notes=data.get('notes') or '',
        )
        for fields, variations in resolved:
            order_item = OrderItem.objects.create(order=order, **fields)
            if variations:
                order_item.variations.set(variations)

        _apply_totals(order, config)
        order.save()

        if table is not None:
            table.status = TableStatus.OCCUPIED
            table.save(update_fields=['status'])

    logger.info("Order %s placed by %s: %s items, total %s", order.order_number,
                staff.username if staff else 'system', len(resolved), order.total_amount)
    return order


def _release_table(order):
    if order.table_id and order.status in (OrderStatus.COMPLETED, OrderStatus.CANCELLED):
        still_open = Order.objects.filter(table_id=order.table_id, status__in=OrderStatus.active()) \
            .exclude(pk=order.pk).exists()
        if not still_open:
            DiningTable.objects.filter(pk=order.table_id).update(status=TableStatus.AVAILABLE)


def transition_order(order_id, new_status, staff=None):
    """
    Moves an order along the status machine.

    Writing the current status again is a no-op, so a retried "complete"
    never consumes stock twice. Entering ``completed`` consumes inventory
    once, guarded by ``stock_deducted_at``; if that fails the status stays
    where it was.
    """
    if new_status not in OrderStatus.values:
        raise ValidationError({'status': f"Unknown status '{new_status}'"})

    with transaction.atomic():
        order = _lock_order(order_id)
        current = order.status
        if current == new_status:
            return order
        if new_status not in ORDER_TRANSITIONS[current]:
            logger.warning("Rejected transition %s -> %s on order %s", current, new_status, order.order_number)
            raise InvalidTransition(current, new_status)

        if new_status == OrderStatus.COMPLETED and order.stock_deducted_at is None:
            inventory.consume_for_order(order, staff)
            order.stock_deducted_at = timezone.now()

        order.status = new_status
        order.save(update_fields=['status', 'stock_deducted_at', 'updated_at'])
        _release_table(order)

    logger.info("Order %s moved %s -> %s", order.order_number, current, new_status)
    return order


def _require_editable(order):
    if order.status not in OrderStatus.editable():
        raise InvalidTransition(order.status, order.status,
                                detail=f"Cannot change items of a {order.status} order")


def add_item(order_id, line, config):
    with transaction.atomic():
        order = _lock_order(order_id)
        _require_editable(order)
        fields, variations = _resolve_line(line)
        order_item = OrderItem.objects.create(order=order, **fields)
        if variations:
            order_item.variations.set(variations)
        _apply_totals(order, config)
        order.save()
    return order_item


def remove_item(order_id, item_id, config):
    with transaction.atomic():
        order = _lock_order(order_id)
        _require_editable(order)
        try:
            order_item = order.order_items.get(pk=item_id)
        except OrderItem.DoesNotExist:
            raise NotFound('Order item not found')
        if order.order_items.count() == 1:
            raise ValidationError({'items': 'Order must contain at least one item'})
        order_item.delete()
        _apply_totals(order, config)
        order.save()
    return order


def transition_item(order_id, item_id, new_status):
    if new_status not in OrderItemStatus.values:
        raise ValidationError({'status': f"Unknown item status '{new_status}'"})

    with transaction.atomic():
        order = _lock_order(order_id)
        if order.status in (OrderStatus.COMPLETED, OrderStatus.CANCELLED):
            raise InvalidTransition(order.status, order.status,
                                    detail=f"Items of a {order.status} order cannot change status")
        try:
            order_item = order.order_items.get(pk=item_id)
        except OrderItem.DoesNotExist:
            raise NotFound('Order item not found')

        current = order_item.status
        if current == new_status:
            return order_item
        if new_status not in ORDER_ITEM_TRANSITIONS[current]:
            raise InvalidTransition(current, new_status)
        order_item.status = new_status
        order_item.save(update_fields=['status'])
    return order_item


def refresh_payment_status(order):
    payments = order.payments.all()
    completed = payments.filter(status=PaymentRecordStatus.COMPLETED) \
        .aggregate(total=Sum('amount'))['total'] or ZERO
    refunded = payments.filter(status=PaymentRecordStatus.REFUNDED).exists()

    if completed <= 0 and refunded:
        order.payment_status = PaymentStatus.REFUNDED
    elif completed >= order.total_amount and completed > 0:
        order.payment_status = PaymentStatus.PAID
    elif completed > 0:
        order.payment_status = PaymentStatus.PARTIAL
    else:
        order.payment_status = PaymentStatus.PENDING
    order.save(update_fields=['payment_status', 'updated_at'])
    return order.payment_status


def record_payment(order_id, method, amount, staff=None, reference_number=''):
    if method not in PaymentMethod.values:
        raise ValidationError({'method': f"Unknown payment method '{method}'"})
    try:
        amount = money(Decimal(str(amount)))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError({'amount': 'Amount must be a number.'})
    if amount <= 0:
        raise ValidationError({'amount': 'Amount must be greater than zero.'})

    with transaction.atomic():
        order = _lock_order(order_id)
        if order.status == OrderStatus.CANCELLED:
            raise ValidationError({'order': 'Cannot take payment for a cancelled order'})
        if method == PaymentMethod.ROOM_CHARGE and order.room_id is None:
            raise ValidationError({'method': 'Room charge needs a room service order'})
        balance = order.balance_due()
        if amount > balance:
            raise ValidationError({'amount': f"Amount {amount} exceeds the balance due of {balance}"})

        payment = Payment.objects.create(
            order=order,
            method=method,
            amount=amount,
            reference_number=reference_number or '',
            status=PaymentRecordStatus.COMPLETED,
            received_by=staff,
        )
        refresh_payment_status(order)

    logger.info("Payment of %s by %s recorded on order %s", amount, method, order.order_number)
    return payment


def refund_payment(payment_id):
    order_id = Payment.objects.filter(pk=payment_id).values_list('order_id', flat=True).first()
    if order_id is None:
        raise NotFound(f"Payment {payment_id} not found")

    with transaction.atomic():
        # Order first, then payment: the same lock order as record_payment.
        order = _lock_order(order_id)
        payment = Payment.objects.select_for_update().get(pk=payment_id)
        if payment.status != PaymentRecordStatus.COMPLETED:
            raise ValidationError({'status': 'Can only refund completed payments'})
        payment.status = PaymentRecordStatus.REFUNDED
        payment.save(update_fields=['status', 'updated_at'])
        refresh_payment_status(order)

    logger.info("Payment %s on order %s refunded", payment.pk, order.order_number)
    return payment


def kitchen_queue():
    """Open orders that still need something from the kitchen."""
    return (Order.objects
            .filter(status__in=[OrderStatus.CONFIRMED, OrderStatus.PREPARING, OrderStatus.READY])
            .filter(Q(order_items__product__department=Department.KITCHEN)
                    | Q(order_items__product__isnull=True))
            .distinct()
            .order_by('created_at'))
