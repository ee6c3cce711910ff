"""
Read-only rollups over orders, payments, inventory, returns, wastage and
expenses.

Nothing here writes. Missing numbers (an item without a buying price, a day
without orders) count as zero instead of leaking ``None`` into arithmetic.
"""
from datetime import datetime, time, timedelta

from django.db.models import Count, DecimalField, ExpressionWrapper, F, Sum, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

from ..constants import Department, InventoryType, OrderStatus, PaymentRecordStatus
from ..models import Expense, InventoryItem, Order, OrderItem, Payment, ProductReturn, WastageLog
from .totals import ZERO, money

MONEY = DecimalField(max_digits=14, decimal_places=2)


def _zero():
    return Value(ZERO, output_field=MONEY)


def _day_bounds(day):
    start = timezone.make_aware(datetime.combine(day, time.min))
    return start, start + timedelta(days=1)


def _range_bounds(start, end):
    lower, _ = _day_bounds(start)
    _, upper = _day_bounds(end)
    return lower, upper


def daily_sales_by_staff(day):
    start, end = _day_bounds(day)
    completed = Order.objects.filter(created_at__gte=start, created_at__lt=end, status=OrderStatus.COMPLETED)
    rows = (completed
            .values('staff_id', 'staff__name', 'staff__role')
            .annotate(order_count=Count('id'), revenue=Coalesce(Sum('total_amount'), _zero()))
            .order_by('-revenue'))

    staff_rows = [{
        'staff_id': row['staff_id'],
        'staff_name': row['staff__name'] or 'Unassigned',
        'role': row['staff__role'] or '',
        'order_count': row['order_count'],
        'revenue': money(row['revenue']),
    } for row in rows]

    return {
        'date': day,
        'staff': staff_rows,
        'total_orders': sum(r['order_count'] for r in staff_rows),
        'total_revenue': money(sum((r['revenue'] for r in staff_rows), ZERO)),
    }


def revenue_split(start, end):
    """Bar vs food revenue from completed orders' line items."""
    lower, upper = _range_bounds(start, end)
    items = OrderItem.objects.filter(order__status=OrderStatus.COMPLETED,
                                     order__created_at__gte=lower, order__created_at__lt=upper)
    by_department = dict(items.filter(product__isnull=False).order_by()
                         .values_list('product__department')
                         .annotate(total=Coalesce(Sum('total_price'), _zero())))
    custom = items.filter(product__isnull=True).aggregate(total=Coalesce(Sum('total_price'), _zero()))['total']

    bar = money(by_department.get(Department.BAR) or ZERO)
    food = money(by_department.get(Department.KITCHEN) or ZERO)
    custom = money(custom or ZERO)
    return {
        'start_date': start,
        'end_date': end,
        'bar': bar,
        'food': food,
        'custom': custom,
        'total': bar + food + custom,
    }


def profit_margins(inventory_type=None):
    items = InventoryItem.objects.filter(is_active=True)
    if inventory_type:
        items = items.filter(inventory_type=inventory_type)

    rows = []
    for item in items:
        buying = item.buying_price or ZERO
        selling = item.cost_per_unit or ZERO
        rows.append({
            'id': item.id,
            'name': item.name,
            'inventory_type': item.inventory_type,
            'buying_price': money(buying),
            'selling_price': money(selling),
            'unit_profit': money(selling - buying),
            'margin_percentage': money(item.margin * 100),
        })
    rows.sort(key=lambda r: r['margin_percentage'], reverse=True)
    return rows


def stock_health():
    breakdown = {t: {'inventory_type': t, 'healthy': 0, 'low': 0, 'out_of_stock': 0,
                     'stock_value': ZERO} for t in InventoryType.values}

    for item in InventoryItem.objects.filter(is_active=True):
        row = breakdown[item.inventory_type]
        stock = item.current_stock or ZERO
        if stock <= 0:
            row['out_of_stock'] += 1
        elif stock <= (item.minimum_stock or ZERO):
            row['low'] += 1
        else:
            row['healthy'] += 1
        row['stock_value'] += stock * (item.buying_price or ZERO)

    rows = []
    for row in breakdown.values():
        row['stock_value'] = money(row['stock_value'])
        rows.append(row)
    return {
        'by_type': rows,
        'total_value': money(sum((r['stock_value'] for r in rows), ZERO)),
        'low_stock_count': sum(r['low'] + r['out_of_stock'] for r in rows),
    }


def returns_summary(start=None, end=None):
    returns = ProductReturn.objects.all()
    if start:
        returns = returns.filter(created_at__gte=_day_bounds(start)[0])
    if end:
        returns = returns.filter(created_at__lt=_day_bounds(end)[1])
    by_reason = list(returns.values('reason')
                     .annotate(count=Count('id'), refund_total=Coalesce(Sum('refund_amount'), _zero()))
                     .order_by('reason'))
    total = returns.aggregate(total=Coalesce(Sum('refund_amount'), _zero()))['total']
    return {'by_reason': by_reason, 'total_refund_value': money(total)}


def wastage_summary(start=None, end=None):
    """Quantity and cost at buying price of wasted stock, by reason."""
    logs = WastageLog.objects.all()
    if start:
        logs = logs.filter(waste_date__gte=start)
    if end:
        logs = logs.filter(waste_date__lte=end)
    cost = ExpressionWrapper(F('quantity_wasted') * Coalesce(F('inventory_item__buying_price'), _zero()),
                             output_field=MONEY)
    by_reason = list(logs.values('reason')
                     .annotate(count=Count('id'),
                               quantity=Sum('quantity_wasted'),
                               cost=Coalesce(Sum(cost), _zero()))
                     .order_by('reason'))
    for row in by_reason:
        row['cost'] = money(row['cost'])
    total = logs.aggregate(total=Coalesce(Sum(cost), _zero()))['total']
    return {'by_reason': by_reason, 'total_cost': money(total)}


def expense_summary(start=None, end=None):
    expenses = Expense.objects.all()
    if start:
        expenses = expenses.filter(date__gte=start)
    if end:
        expenses = expenses.filter(date__lte=end)
    by_category = list(expenses.values('category')
                       .annotate(count=Count('id'), total=Coalesce(Sum('amount'), _zero()))
                       .order_by('-total'))
    total = expenses.aggregate(total=Coalesce(Sum('amount'), _zero()))['total']
    return {'by_category': by_category, 'total_expenses': money(total)}


def daily_summary(day):
    start, end = _day_bounds(day)
    orders = Order.objects.filter(created_at__gte=start, created_at__lt=end)
    completed = orders.filter(status=OrderStatus.COMPLETED)
    revenue = completed.aggregate(total=Coalesce(Sum('total_amount'), _zero()))['total']
    order_count = completed.count()

    payments = Payment.objects.filter(created_at__gte=start, created_at__lt=end,
                                      status=PaymentRecordStatus.COMPLETED)
    by_method = list(payments.values('method')
                     .annotate(count=Count('id'), total=Coalesce(Sum('amount'), _zero()))
                     .order_by('method'))
    collected = payments.aggregate(total=Coalesce(Sum('amount'), _zero()))['total']

    refunds = returns_summary(day, day)['total_refund_value']
    expenses = expense_summary(day, day)['total_expenses']

    return {
        'date': day,
        'total_orders': orders.count(),
        'completed_orders': order_count,
        'cancelled_orders': orders.filter(status=OrderStatus.CANCELLED).count(),
        'pending_orders': orders.filter(status__in=OrderStatus.active()).count(),
        'total_revenue': money(revenue),
        'average_order_value': money(revenue / order_count) if order_count else ZERO,
        'payments_by_method': by_method,
        'total_collected': money(collected),
        'total_refunds': refunds,
        'total_expenses': expenses,
        'net': money(collected - refunds - expenses),
    }
