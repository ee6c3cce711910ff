from django.db import models


class StaffRole(models.TextChoices):
    SUPERADMIN = 'superadmin', 'Super Admin'
    ADMIN = 'admin', 'Admin'
    MANAGER = 'manager', 'Manager'
    CASHIER = 'cashier', 'Cashier'
    WAITER = 'waiter', 'Waiter'
    KITCHEN_STAFF = 'kitchen_staff', 'Kitchen Staff'
    DELIVERY = 'delivery', 'Delivery'
    RECEPTIONIST = 'receptionist', 'Receptionist'
    HOUSEKEEPING = 'housekeeping', 'Housekeeping'


MANAGEMENT_ROLES = (StaffRole.SUPERADMIN, StaffRole.ADMIN, StaffRole.MANAGER)
ADMIN_ROLES = (StaffRole.SUPERADMIN, StaffRole.ADMIN)


class InventoryType(models.TextChoices):
    KITCHEN = 'kitchen', 'Kitchen'
    BAR = 'bar', 'Bar'
    HOUSEKEEPING = 'housekeeping', 'Housekeeping'
    MINIBAR = 'minibar', 'Minibar'


class Department(models.TextChoices):
    KITCHEN = 'kitchen', 'Kitchen'
    BAR = 'bar', 'Bar'


class RoomStatus(models.TextChoices):
    VACANT = 'vacant', 'Vacant'
    OCCUPIED = 'occupied', 'Occupied'
    RESERVED = 'reserved', 'Reserved'
    MAINTENANCE = 'maintenance', 'Maintenance'
    CLEANING = 'cleaning', 'Cleaning'


class TableStatus(models.TextChoices):
    AVAILABLE = 'available', 'Available'
    OCCUPIED = 'occupied', 'Occupied'
    RESERVED = 'reserved', 'Reserved'
    CLEANING = 'cleaning', 'Cleaning'


class OrderType(models.TextChoices):
    DINE_IN = 'dine_in', 'Dine In'
    TAKEAWAY = 'takeaway', 'Takeaway'
    DELIVERY = 'delivery', 'Delivery'
    ROOM_SERVICE = 'room_service', 'Room Service'


class OrderStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    CONFIRMED = 'confirmed', 'Confirmed'
    PREPARING = 'preparing', 'Preparing'
    READY = 'ready', 'Ready'
    COMPLETED = 'completed', 'Completed'
    CANCELLED = 'cancelled', 'Cancelled'

    @classmethod
    def editable(cls):
        return [cls.PENDING, cls.CONFIRMED]

    @classmethod
    def active(cls):
        return [cls.PENDING, cls.CONFIRMED, cls.PREPARING, cls.READY]


# Cancellation is reachable from every state that is not terminal.
ORDER_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PREPARING, OrderStatus.CANCELLED},
    OrderStatus.PREPARING: {OrderStatus.READY, OrderStatus.CANCELLED},
    OrderStatus.READY: {OrderStatus.COMPLETED, OrderStatus.CANCELLED},
    OrderStatus.COMPLETED: set(),
    OrderStatus.CANCELLED: set(),
}


class OrderItemStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    PREPARING = 'preparing', 'Preparing'
    READY = 'ready', 'Ready'
    SERVED = 'served', 'Served'


ORDER_ITEM_TRANSITIONS = {
    OrderItemStatus.PENDING: {OrderItemStatus.PREPARING},
    OrderItemStatus.PREPARING: {OrderItemStatus.READY},
    OrderItemStatus.READY: {OrderItemStatus.SERVED},
    OrderItemStatus.SERVED: set(),
}


class PaymentStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    PARTIAL = 'partial', 'Partial'
    PAID = 'paid', 'Paid'
    REFUNDED = 'refunded', 'Refunded'


class PaymentMethod(models.TextChoices):
    CASH = 'cash', 'Cash'
    CARD = 'card', 'Card'
    MOBILE_MONEY = 'mobile_money', 'Mobile Money'
    ROOM_CHARGE = 'room_charge', 'Room Charge'


class PaymentRecordStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    COMPLETED = 'completed', 'Completed'
    FAILED = 'failed', 'Failed'
    REFUNDED = 'refunded', 'Refunded'


class ReturnReason(models.TextChoices):
    DAMAGED = 'damaged', 'Damaged'
    EXPIRED = 'expired', 'Expired'
    WRONG_ITEM = 'wrong_item', 'Wrong Item'
    CUSTOMER_REQUEST = 'customer_request', 'Customer Request'
    QUALITY_ISSUE = 'quality_issue', 'Quality Issue'
    OTHER = 'other', 'Other'


class WastageReason(models.TextChoices):
    EXPIRED = 'expired', 'Expired'
    SPOILED = 'spoiled', 'Spoiled'
    DAMAGED = 'damaged', 'Damaged'
    SPILLED = 'spilled', 'Spilled'
    OVERPRODUCTION = 'overproduction', 'Overproduction'
    OTHER = 'other', 'Other'


class RefundBasis(models.TextChoices):
    CURRENT_STOCK = 'current_stock', 'Current stock x quantity'
    SELLING_PRICE = 'selling_price', 'Selling price x quantity'
    BUYING_PRICE = 'buying_price', 'Buying price x quantity'
    NONE = 'none', 'No automatic refund'


class StockMovementReason(models.TextChoices):
    ORDER_CONSUMPTION = 'order_consumption', 'Order Consumption'
    RETURN = 'return', 'Return'
    RETURN_ADJUSTMENT = 'return_adjustment', 'Return Adjustment'
    RETURN_REVERSAL = 'return_reversal', 'Return Reversal'
    RESTOCK = 'restock', 'Restock'
    STOCK_COUNT = 'stock_count', 'Stock Count'
    WASTAGE = 'wastage', 'Wastage'
    WASTAGE_REVERSAL = 'wastage_reversal', 'Wastage Reversal'
    TRANSFER_OUT = 'transfer_out', 'Transfer Out'
    TRANSFER_IN = 'transfer_in', 'Transfer In'


class ExpenseCategory(models.TextChoices):
    UTILITIES = 'utilities', 'Utilities'
    MAINTENANCE = 'maintenance', 'Maintenance'
    SUPPLIES = 'supplies', 'Supplies'
    SALARIES = 'salaries', 'Salaries'
    FOOD_STOCK = 'food_stock', 'Food Stock'
    TRANSPORT = 'transport', 'Transport'
    OTHER = 'other', 'Other'


class ExpensePaymentMethod(models.TextChoices):
    CASH = 'cash', 'Cash'
    CARD = 'card', 'Card'
    BANK_TRANSFER = 'bank_transfer', 'Bank Transfer'
    CHEQUE = 'cheque', 'Cheque'
    MOBILE_MONEY = 'mobile_money', 'Mobile Money'


class SettingType(models.TextChoices):
    STRING = 'string', 'String'
    NUMBER = 'number', 'Number'
    BOOLEAN = 'boolean', 'Boolean'


class AuditAction(models.TextChoices):
    CREATE = 'create', 'Create'
    UPDATE = 'update', 'Update'
    DELETE = 'delete', 'Delete'


# Which inventory types each role may see and mutate. Roles missing here
# see nothing.
ROLE_INVENTORY_TYPES = {
    StaffRole.SUPERADMIN: frozenset(InventoryType.values),
    StaffRole.ADMIN: frozenset(InventoryType.values),
    StaffRole.MANAGER: frozenset(InventoryType.values),
    StaffRole.KITCHEN_STAFF: frozenset({InventoryType.KITCHEN}),
    StaffRole.RECEPTIONIST: frozenset({InventoryType.HOUSEKEEPING, InventoryType.MINIBAR}),
    StaffRole.HOUSEKEEPING: frozenset({InventoryType.HOUSEKEEPING, InventoryType.MINIBAR}),
    StaffRole.WAITER: frozenset({InventoryType.BAR}),
    StaffRole.CASHIER: frozenset({InventoryType.BAR}),
}


def inventory_types_for(role):
    return ROLE_INVENTORY_TYPES.get(role, frozenset())
