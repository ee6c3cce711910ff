"""Stock transfers between inventory items, e.g. bar stock moved to a minibar."""
import logging
import secrets

from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from ..constants import AuditAction
from ..models import StockTransfer
from . import inventory
from .audit import log_change, snapshot

logger = logging.getLogger(__name__)


def generate_transfer_number():
    return f"TRF-{timezone.now():%Y%m%d%H%M%S}-{secrets.token_hex(3).upper()}"


def transfer_stock(data, staff):
    """
    Moves ``quantity`` from ``from_item`` to ``to_item``.

    Both items must use the same unit. When the source is short the
    transfer is rejected with ``InsufficientStock`` and nothing is written.
    """
    from_item = data['from_item']
    to_item = data['to_item']
    quantity = data.get('quantity')
    if from_item.pk == to_item.pk:
        raise ValidationError({'to_item': 'Source and target must be different items.'})
    if from_item.unit != to_item.unit:
        raise ValidationError({'to_item': f"Unit mismatch: {from_item.unit} vs {to_item.unit}"})
    if quantity is None or quantity <= 0:
        raise ValidationError({'quantity': 'Quantity must be greater than zero.'})

    with transaction.atomic():
        stock_transfer = StockTransfer.objects.create(
            transfer_number=generate_transfer_number(),
            from_item=from_item,
            to_item=to_item,
            quantity=quantity,
            transfer_date=data.get('transfer_date') or timezone.localdate(),
            notes=data.get('notes') or '',
            requested_by=staff,
        )
        inventory.move_stock(stock_transfer, staff=staff)
        log_change('stock_transfer', stock_transfer.pk, AuditAction.CREATE,
                   new_values=snapshot(stock_transfer), staff=staff)

    logger.info("Transfer %s: %s %s from %s to %s", stock_transfer.transfer_number, quantity,
                from_item.unit, from_item.name, to_item.name)
    return stock_transfer
