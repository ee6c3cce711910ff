"""
Wastage logging.

Logging wastage writes the log row, takes the stock off and records the
audit entry in one atomic block. Deleting a log puts exactly that stock
back.
"""
import logging

from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import NotFound, ValidationError

from ..constants import AuditAction, WastageReason
from ..models import WastageLog
from . import inventory
from .audit import log_change, snapshot

logger = logging.getLogger(__name__)

ENTITY = 'wastage_log'


def log_wastage(data, staff):
    """
    Args:
        data: inventory_item (an ``InventoryItem``), quantity_wasted, reason
            and optional waste_date, notes.
    """
    quantity = data.get('quantity_wasted')
    if quantity is None or quantity <= 0:
        raise ValidationError({'quantity_wasted': 'Quantity must be greater than zero.'})
    if data.get('reason') not in WastageReason.values:
        raise ValidationError({'reason': f"Unknown reason '{data.get('reason')}'"})

    with transaction.atomic():
        wastage_log = WastageLog.objects.create(
            inventory_item=data['inventory_item'],
            quantity_wasted=quantity,
            reason=data['reason'],
            waste_date=data.get('waste_date') or timezone.localdate(),
            notes=data.get('notes') or '',
            logged_by=staff,
        )
        inventory.debit_wastage(wastage_log, staff=staff)
        log_change(ENTITY, wastage_log.pk, AuditAction.CREATE, new_values=snapshot(wastage_log), staff=staff)

    logger.info("Wastage #%s: %s x %s written off (%s)", wastage_log.pk, quantity,
                wastage_log.inventory_item.name, wastage_log.reason)
    return wastage_log


def delete_wastage(wastage_id, staff):
    with transaction.atomic():
        try:
            wastage_log = WastageLog.objects.select_for_update().get(pk=wastage_id)
        except WastageLog.DoesNotExist:
            raise NotFound(f"Wastage log {wastage_id} not found")
        before = snapshot(wastage_log)
        inventory.credit_wastage(wastage_log, staff=staff)
        wastage_log.delete()
        log_change(ENTITY, wastage_id, AuditAction.DELETE, old_values=before, staff=staff)

    logger.info("Wastage #%s deleted and stock restored", wastage_id)
