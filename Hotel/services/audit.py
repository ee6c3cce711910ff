from decimal import Decimal

from django.forms.models import model_to_dict

from ..models import AuditLog


def snapshot(instance, fields=None, exclude=None):
    """JSON friendly copy of a model row for the audit trail."""
    data = model_to_dict(instance, fields=fields, exclude=exclude)
    for key, value in data.items():
        if isinstance(value, Decimal):
            data[key] = str(value)
        elif hasattr(value, 'isoformat'):
            data[key] = value.isoformat()
    return data


def log_change(entity_type, entity_id, action, old_values=None, new_values=None, staff=None):
    return AuditLog.objects.create(
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        old_values=old_values,
        new_values=new_values,
        changed_by=staff,
    )
