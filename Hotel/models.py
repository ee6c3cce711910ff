import secrets
from decimal import Decimal

from django.contrib.auth.hashers import check_password, make_password
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Q

from .constants import (
    AuditAction, Department, ExpenseCategory, ExpensePaymentMethod, InventoryType,
    OrderItemStatus, OrderStatus, OrderType, PaymentMethod, PaymentRecordStatus,
    PaymentStatus, ReturnReason, RoomStatus, SettingType, StaffRole,
    StockMovementReason, TableStatus, WastageReason,
)

ZERO = Decimal('0')


class Staff(models.Model):
    employee_id = models.CharField(max_length=50, unique=True)
    name = models.CharField(max_length=200)
    email = models.EmailField(blank=True, null=True)
    role = models.CharField(max_length=20, choices=StaffRole.choices)
    username = models.CharField(max_length=150, unique=True)
    password = models.CharField(max_length=255)
    pin = models.CharField(max_length=255, blank=True)
    auth_token = models.CharField(max_length=64, unique=True, blank=True, null=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']
        verbose_name_plural = 'Staff'

    def __str__(self):
        return f"{self.name} ({self.get_role_display()})"

    # DRF treats request.user as authenticated through these two flags.
    @property
    def is_authenticated(self):
        return True

    @property
    def is_anonymous(self):
        return False

    def set_password(self, raw_password):
        self.password = make_password(raw_password)

    def check_password(self, raw_password):
        return check_password(raw_password, self.password)

    def set_pin(self, raw_pin):
        self.pin = make_password(raw_pin) if raw_pin else ''

    def check_pin(self, raw_pin):
        if not self.pin or not raw_pin:
            return False
        return check_password(raw_pin, self.pin)

    def issue_token(self):
        self.auth_token = secrets.token_hex(32)
        self.save(update_fields=['auth_token', 'updated_at'])
        return self.auth_token


class Room(models.Model):
    room_number = models.CharField(max_length=20, unique=True)
    room_type = models.CharField(max_length=50)
    status = models.CharField(max_length=20, choices=RoomStatus.choices, default=RoomStatus.VACANT)
    guest_name = models.CharField(max_length=200, blank=True)
    check_in_date = models.DateField(blank=True, null=True)
    check_out_date = models.DateField(blank=True, null=True)
    rate = models.DecimalField(max_digits=10, decimal_places=2, default=0,
                               validators=[MinValueValidator(ZERO)])
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['room_number']

    def __str__(self):
        return f"Room {self.room_number} ({self.get_status_display()})"


class DiningTable(models.Model):
    table_number = models.CharField(max_length=20, unique=True)
    capacity = models.IntegerField(validators=[MinValueValidator(1)])
    status = models.CharField(max_length=20, choices=TableStatus.choices, default=TableStatus.AVAILABLE)

    class Meta:
        ordering = ['table_number']

    def __str__(self):
        return f"Table {self.table_number} (Capacity: {self.capacity})"

    @property
    def is_available(self):
        return self.status == TableStatus.AVAILABLE


class Product(models.Model):
    name = models.CharField(max_length=200)
    department = models.CharField(max_length=20, choices=Department.choices, default=Department.KITCHEN)
    price = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(ZERO)])
    cost = models.DecimalField(max_digits=10, decimal_places=2, blank=True, null=True)
    description = models.TextField(blank=True)
    is_available = models.BooleanField(default=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['department', 'name']

    def __str__(self):
        return f"{self.name} - {self.price}"


class ProductVariation(models.Model):
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='variations')
    name = models.CharField(max_length=100)
    price_modifier = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ['product', 'name']

    def __str__(self):
        return f"{self.product.name} / {self.name} ({self.price_modifier:+})"


class InventoryItem(models.Model):
    name = models.CharField(max_length=200)
    unit = models.CharField(max_length=50, default='unit')
    current_stock = models.DecimalField(max_digits=12, decimal_places=3, default=0,
                                        validators=[MinValueValidator(ZERO)])
    minimum_stock = models.DecimalField(max_digits=12, decimal_places=3, default=0,
                                        validators=[MinValueValidator(ZERO)])
    buying_price = models.DecimalField(max_digits=10, decimal_places=2, blank=True, null=True)
    cost_per_unit = models.DecimalField(max_digits=10, decimal_places=2, blank=True, null=True)
    supplier = models.CharField(max_length=200, blank=True)
    inventory_type = models.CharField(max_length=20, choices=InventoryType.choices,
                                      default=InventoryType.KITCHEN)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']
        constraints = [
            models.CheckConstraint(condition=Q(current_stock__gte=0), name='inventory_stock_non_negative'),
        ]

    def __str__(self):
        return f"{self.name} - {self.current_stock} {self.unit}"

    @property
    def is_low_stock(self):
        return self.current_stock <= self.minimum_stock

    @property
    def margin(self):
        selling = self.cost_per_unit or ZERO
        buying = self.buying_price or ZERO
        if selling <= 0:
            return ZERO
        return (selling - buying) / selling


class RecipeIngredient(models.Model):
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='ingredients')
    inventory_item = models.ForeignKey(InventoryItem, on_delete=models.PROTECT, related_name='recipe_uses')
    quantity_required = models.DecimalField(max_digits=12, decimal_places=3,
                                            validators=[MinValueValidator(Decimal('0.001'))])

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['product', 'inventory_item'], name='unique_recipe_ingredient'),
        ]

    def __str__(self):
        return f"{self.product.name}: {self.quantity_required} {self.inventory_item.unit} {self.inventory_item.name}"


class Order(models.Model):
    order_number = models.CharField(max_length=40, unique=True)
    order_type = models.CharField(max_length=20, choices=OrderType.choices)
    table = models.ForeignKey(DiningTable, on_delete=models.SET_NULL, null=True, blank=True, related_name='orders')
    room = models.ForeignKey(Room, on_delete=models.SET_NULL, null=True, blank=True, related_name='orders')
    customer_name = models.CharField(max_length=200, blank=True)
    customer_phone = models.CharField(max_length=40, blank=True)
    staff = models.ForeignKey(Staff, on_delete=models.SET_NULL, null=True, blank=True, related_name='orders')
    status = models.CharField(max_length=20, choices=OrderStatus.choices, default=OrderStatus.PENDING)
    payment_status = models.CharField(max_length=20, choices=PaymentStatus.choices, default=PaymentStatus.PENDING)
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    tax_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    service_charge = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    discount_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    notes = models.TextField(blank=True)
    stock_deducted_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status']),
            models.Index(fields=['created_at']),
        ]

    def __str__(self):
        return f"Order {self.order_number} ({self.get_status_display()})"

    def amount_paid(self):
        paid = self.payments.filter(status=PaymentRecordStatus.COMPLETED).aggregate(
            total=models.Sum('amount'))['total']
        return paid or ZERO

    def balance_due(self):
        return max(ZERO, self.total_amount - self.amount_paid())


class OrderItem(models.Model):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='order_items')
    product = models.ForeignKey(Product, on_delete=models.PROTECT, null=True, blank=True, related_name='order_items')
    custom_name = models.CharField(max_length=200, blank=True)
    quantity = models.IntegerField(validators=[MinValueValidator(1)])
    unit_price = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(ZERO)])
    modifier_total = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    variations = models.ManyToManyField(ProductVariation, blank=True, related_name='order_items')
    total_price = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(max_length=20, choices=OrderItemStatus.choices, default=OrderItemStatus.PENDING)
    notes = models.TextField(blank=True)

    class Meta:
        ordering = ['id']

    def __str__(self):
        return f"{self.quantity}x {self.display_name}"

    @property
    def display_name(self):
        return self.product.name if self.product_id else self.custom_name


class Payment(models.Model):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='payments')
    method = models.CharField(max_length=20, choices=PaymentMethod.choices)
    amount = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(Decimal('0.01'))])
    reference_number = models.CharField(max_length=100, blank=True)
    status = models.CharField(max_length=20, choices=PaymentRecordStatus.choices,
                              default=PaymentRecordStatus.COMPLETED)
    received_by = models.ForeignKey(Staff, on_delete=models.SET_NULL, null=True, blank=True, related_name='payments')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"Payment #{self.id} - Order {self.order.order_number} - {self.amount}"


class ProductReturn(models.Model):
    order = models.ForeignKey(Order, on_delete=models.SET_NULL, null=True, blank=True, related_name='returns')
    inventory_item = models.ForeignKey(InventoryItem, on_delete=models.PROTECT, related_name='returns')
    quantity_returned = models.IntegerField(validators=[MinValueValidator(1)])
    reason = models.CharField(max_length=30, choices=ReturnReason.choices)
    refund_amount = models.DecimalField(max_digits=12, decimal_places=2, blank=True, null=True)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(Staff, on_delete=models.SET_NULL, null=True, blank=True, related_name='returns')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"Return #{self.id} - {self.quantity_returned} {self.inventory_item.name}"


class WastageLog(models.Model):
    inventory_item = models.ForeignKey(InventoryItem, on_delete=models.PROTECT, related_name='wastage_logs')
    quantity_wasted = models.DecimalField(max_digits=12, decimal_places=3,
                                          validators=[MinValueValidator(Decimal('0.001'))])
    reason = models.CharField(max_length=30, choices=WastageReason.choices)
    waste_date = models.DateField()
    notes = models.TextField(blank=True)
    logged_by = models.ForeignKey(Staff, on_delete=models.SET_NULL, null=True, blank=True,
                                  related_name='wastage_logs')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-waste_date', '-id']

    def __str__(self):
        return f"Wastage #{self.id} - {self.quantity_wasted} {self.inventory_item.name}"


class StockTransfer(models.Model):
    transfer_number = models.CharField(max_length=40, unique=True)
    from_item = models.ForeignKey(InventoryItem, on_delete=models.PROTECT, related_name='transfers_out')
    to_item = models.ForeignKey(InventoryItem, on_delete=models.PROTECT, related_name='transfers_in')
    quantity = models.DecimalField(max_digits=12, decimal_places=3,
                                   validators=[MinValueValidator(Decimal('0.001'))])
    transfer_date = models.DateField()
    notes = models.TextField(blank=True)
    requested_by = models.ForeignKey(Staff, on_delete=models.SET_NULL, null=True, blank=True,
                                     related_name='stock_transfers')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at', '-id']

    def __str__(self):
        return f"{self.transfer_number}: {self.quantity} {self.from_item.name} -> {self.to_item.name}"


class StockMovement(models.Model):
    inventory_item = models.ForeignKey(InventoryItem, on_delete=models.CASCADE, related_name='movements')
    change = models.DecimalField(max_digits=12, decimal_places=3)
    stock_after = models.DecimalField(max_digits=12, decimal_places=3)
    reason = models.CharField(max_length=30, choices=StockMovementReason.choices)
    order = models.ForeignKey(Order, on_delete=models.SET_NULL, null=True, blank=True, related_name='stock_movements')
    product_return = models.ForeignKey(ProductReturn, on_delete=models.SET_NULL, null=True, blank=True,
                                       related_name='stock_movements')
    wastage_log = models.ForeignKey(WastageLog, on_delete=models.SET_NULL, null=True, blank=True,
                                    related_name='stock_movements')
    stock_transfer = models.ForeignKey(StockTransfer, on_delete=models.SET_NULL, null=True, blank=True,
                                       related_name='stock_movements')
    created_by = models.ForeignKey(Staff, on_delete=models.SET_NULL, null=True, blank=True,
                                   related_name='stock_movements')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at', '-id']
        constraints = [
            models.UniqueConstraint(
                fields=['order', 'inventory_item'],
                condition=Q(reason=StockMovementReason.ORDER_CONSUMPTION),
                name='unique_order_consumption',
            ),
        ]

    def __str__(self):
        return f"{self.inventory_item.name} {self.change:+} ({self.get_reason_display()})"


class Expense(models.Model):
    date = models.DateField()
    category = models.CharField(max_length=30, choices=ExpenseCategory.choices)
    description = models.CharField(max_length=255)
    amount = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(Decimal('0.01'))])
    vendor = models.CharField(max_length=200, blank=True)
    payment_method = models.CharField(max_length=20, choices=ExpensePaymentMethod.choices,
                                      default=ExpensePaymentMethod.CASH)
    receipt_number = models.CharField(max_length=100, unique=True, blank=True, null=True)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(Staff, on_delete=models.SET_NULL, null=True, blank=True, related_name='expenses')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-date', '-id']

    def __str__(self):
        return f"{self.date} {self.get_category_display()} - {self.amount}"

    def save(self, *args, **kwargs):
        # Several expenses may lack a receipt; only real numbers are unique.
        if not self.receipt_number:
            self.receipt_number = None
        super().save(*args, **kwargs)


class Setting(models.Model):
    key = models.CharField(max_length=100, unique=True)
    value = models.TextField(blank=True)
    value_type = models.CharField(max_length=20, choices=SettingType.choices, default=SettingType.STRING)
    description = models.TextField(blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['key']

    def __str__(self):
        return f"{self.key} = {self.value}"


class AuditLog(models.Model):
    entity_type = models.CharField(max_length=50)
    entity_id = models.IntegerField(null=True)
    action = models.CharField(max_length=20, choices=AuditAction.choices)
    old_values = models.JSONField(blank=True, null=True)
    new_values = models.JSONField(blank=True, null=True)
    changed_by = models.ForeignKey(Staff, on_delete=models.SET_NULL, null=True, blank=True, related_name='audit_logs')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at', '-id']
        indexes = [models.Index(fields=['entity_type', 'entity_id'])]

    def __str__(self):
        return f"{self.entity_type}#{self.entity_id} {self.action}"
