"""
Business settings backed by the ``Setting`` table.

Totals, discounts and refund computations never read the table directly;
callers load a ``PosSettings`` snapshot once per request and pass it down.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from .constants import RefundBasis, SettingType

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS = {
    'business_name': ('Hotel POS', SettingType.STRING, 'Name printed on receipts'),
    'currency': ('KES', SettingType.STRING, 'Currency code'),
    'tax_rate': ('16', SettingType.NUMBER, 'Tax rate percentage'),
    'service_charge_rate': ('10', SettingType.NUMBER, 'Service charge percentage'),
    'enable_service_charge': ('true', SettingType.BOOLEAN, 'Apply service charge to orders'),
    'max_discount_percentage': ('100', SettingType.NUMBER, 'Largest discount allowed, as a percentage of subtotal'),
    'return_refund_basis': (RefundBasis.CURRENT_STOCK.value, SettingType.STRING,
                            'How refunds are estimated when none is given'),
}


@dataclass(frozen=True)
class PosSettings:
    tax_rate: Decimal = Decimal('0.16')
    service_charge_rate: Decimal = Decimal('0.10')
    enable_service_charge: bool = True
    max_discount_percentage: Decimal = Decimal('100')
    currency: str = 'KES'
    return_refund_basis: str = RefundBasis.CURRENT_STOCK

    @property
    def effective_service_rate(self):
        return self.service_charge_rate if self.enable_service_charge else Decimal('0')


def parse_number(raw):
    """Finite, non-negative ``Decimal`` or ``None``."""
    try:
        value = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError):
        return None
    if not value.is_finite() or value < 0:
        return None
    return value


def _as_decimal(key, raw):
    value = parse_number(raw)
    if value is None:
        default = DEFAULT_SETTINGS[key][0]
        logger.warning("Setting %s has invalid value %r, using %s", key, raw, default)
        return Decimal(default)
    return value


def _as_bool(raw):
    return str(raw).strip().lower() in ('1', 'true', 'yes', 'on')


def parse_settings(values):
    """Builds a ``PosSettings`` from a plain ``{key: text}`` mapping."""
    merged = {key: default[0] for key, default in DEFAULT_SETTINGS.items()}
    merged.update({k: v for k, v in values.items() if v is not None and v != ''})

    basis = merged['return_refund_basis']
    if basis not in RefundBasis.values:
        logger.warning("Unknown return_refund_basis %r, using %s", basis, RefundBasis.CURRENT_STOCK)
        basis = RefundBasis.CURRENT_STOCK

    return PosSettings(
        tax_rate=_as_decimal('tax_rate', merged['tax_rate']) / 100,
        service_charge_rate=_as_decimal('service_charge_rate', merged['service_charge_rate']) / 100,
        enable_service_charge=_as_bool(merged['enable_service_charge']),
        max_discount_percentage=_as_decimal('max_discount_percentage', merged['max_discount_percentage']),
        currency=merged['currency'],
        return_refund_basis=basis,
    )


def load_pos_settings():
    from .models import Setting

    values = dict(Setting.objects.filter(key__in=DEFAULT_SETTINGS.keys()).values_list('key', 'value'))
    return parse_settings(values)


def default_setting(key):
    """Unsaved ``Setting`` carrying the default for ``key``."""
    from .models import Setting

    value, value_type, description = DEFAULT_SETTINGS[key]
    return Setting(key=key, value=value, value_type=value_type, description=description)


def ensure_default_settings(keys=None):
    """Creates any missing setting rows with their default values."""
    from .models import Setting

    created = 0
    for key in keys or DEFAULT_SETTINGS.keys():
        value, value_type, description = DEFAULT_SETTINGS[key]
        _, was_created = Setting.objects.get_or_create(
            key=key,
            defaults={'value': value, 'value_type': value_type, 'description': description},
        )
        created += int(was_created)
    return created
