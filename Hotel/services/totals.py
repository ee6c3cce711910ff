"""
Monetary computations for orders.

Everything here is pure: inputs are plain values plus an injected
``PosSettings`` so the same numbers come out in tests and in requests.
"""
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from rest_framework.exceptions import ValidationError

CENT = Decimal('0.01')
ZERO = Decimal('0')


def money(value):
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    tax_amount: Decimal
    service_charge: Decimal
    discount_amount: Decimal
    total_amount: Decimal

    def as_dict(self):
        return {
            'subtotal': self.subtotal,
            'tax_amount': self.tax_amount,
            'service_charge': self.service_charge,
            'discount_amount': self.discount_amount,
            'total_amount': self.total_amount,
        }


def validate_quantity(quantity):
    if isinstance(quantity, bool):
        raise ValidationError({'quantity': 'Quantity must be a positive integer.'})
    try:
        as_int = int(quantity)
    except (TypeError, ValueError):
        raise ValidationError({'quantity': 'Quantity must be a positive integer.'})
    if as_int != Decimal(str(quantity)) or as_int <= 0:
        raise ValidationError({'quantity': 'Quantity must be a positive integer.'})
    return as_int


def validate_unit_price(unit_price):
    try:
        price = Decimal(str(unit_price))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError({'unit_price': 'Unit price must be a number.'})
    if not price.is_finite() or price < 0:
        raise ValidationError({'unit_price': 'Unit price cannot be negative.'})
    return price


def compute_line_total(quantity, unit_price, modifiers=()):
    """quantity * (unit_price + sum(modifiers)), floored at zero."""
    quantity = validate_quantity(quantity)
    unit_price = validate_unit_price(unit_price)
    modifier_total = sum((Decimal(str(m)) for m in modifiers), ZERO)
    return money(max(ZERO, quantity * (unit_price + modifier_total)))


def compute_totals(line_totals, config, discount=ZERO):
    """
    Args:
        line_totals: iterable of per-item ``total_price`` values.
        config: a ``PosSettings`` snapshot providing tax and service rates.
        discount: absolute discount subtracted after tax and service.

    Returns:
        OrderTotals with ``total_amount`` clamped at zero.
    """
    discount = money(discount or ZERO)
    if discount < 0:
        raise ValidationError({'discount_amount': 'Discount cannot be negative.'})

    subtotal = money(sum((Decimal(str(t)) for t in line_totals), ZERO))
    tax_amount = money(subtotal * config.tax_rate)
    service_charge = money(subtotal * config.effective_service_rate)
    total = subtotal + tax_amount + service_charge - discount

    return OrderTotals(
        subtotal=subtotal,
        tax_amount=tax_amount,
        service_charge=service_charge,
        discount_amount=discount,
        total_amount=max(ZERO, money(total)),
    )


def check_discount_allowed(discount, subtotal, config):
    limit = money(subtotal * config.max_discount_percentage / 100)
    if money(discount or ZERO) > limit:
        raise ValidationError({
            'discount_amount': f"Discount exceeds the allowed {config.max_discount_percentage}% of subtotal."
        })
