from rest_framework import serializers

from .conf import parse_number
from .constants import (
    OrderItemStatus, OrderStatus, OrderType, PaymentMethod, ReturnReason, SettingType,
    inventory_types_for,
)
from .models import (
    AuditLog, DiningTable, Expense, InventoryItem, Order, OrderItem, Payment, Product,
    ProductReturn, ProductVariation, RecipeIngredient, Room, Setting, Staff, StockMovement, StockTransfer,
    WastageLog,
)


class StaffSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, required=False, min_length=6)
    pin = serializers.CharField(write_only=True, required=False, allow_blank=True, min_length=4)

    class Meta:
        model = Staff
        fields = ['id', 'employee_id', 'name', 'email', 'role', 'username', 'password', 'pin',
                  'is_active', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def validate(self, data):
        if self.instance is None and not data.get('password'):
            raise serializers.ValidationError({'password': 'This field is required.'})
        return data

    def create(self, validated_data):
        password = validated_data.pop('password')
        pin = validated_data.pop('pin', '')
        staff = Staff(**validated_data)
        staff.set_password(password)
        staff.set_pin(pin)
        staff.save()
        return staff

    def update(self, instance, validated_data):
        password = validated_data.pop('password', None)
        pin = validated_data.pop('pin', None)
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        if password:
            instance.set_password(password)
        if pin is not None:
            instance.set_pin(pin)
        if not instance.is_active:
            instance.auth_token = None
        instance.save()
        return instance


class LoginSerializer(serializers.Serializer):
    username = serializers.CharField()
    password = serializers.CharField(write_only=True)

    def validate(self, data):
        try:
            staff = Staff.objects.get(username=data['username'])
        except Staff.DoesNotExist:
            raise serializers.ValidationError('Invalid credentials')
        if not staff.is_active or not staff.check_password(data['password']):
            raise serializers.ValidationError('Invalid credentials')
        data['staff'] = staff
        return data


class RoomSerializer(serializers.ModelSerializer):
    class Meta:
        model = Room
        fields = '__all__'
        read_only_fields = ['created_at', 'updated_at']


class CheckInSerializer(serializers.Serializer):
    guest_name = serializers.CharField(max_length=200)
    check_in_date = serializers.DateField(required=False)
    check_out_date = serializers.DateField(required=False, allow_null=True)

    def validate(self, data):
        check_in = data.get('check_in_date')
        check_out = data.get('check_out_date')
        if check_in and check_out and check_out < check_in:
            raise serializers.ValidationError("Check-out date cannot be before check-in date")
        return data


class DiningTableSerializer(serializers.ModelSerializer):
    is_available = serializers.BooleanField(read_only=True)

    class Meta:
        model = DiningTable
        fields = ['id', 'table_number', 'capacity', 'status', 'is_available']


class ProductVariationSerializer(serializers.ModelSerializer):
    class Meta:
        model = ProductVariation
        fields = ['id', 'product', 'name', 'price_modifier', 'is_active']
        read_only_fields = ['product']


class ProductSerializer(serializers.ModelSerializer):
    variations = ProductVariationSerializer(many=True, read_only=True)

    class Meta:
        model = Product
        fields = '__all__'
        read_only_fields = ['created_at', 'updated_at']


class RecipeIngredientSerializer(serializers.ModelSerializer):
    item_name = serializers.CharField(source='inventory_item.name', read_only=True)
    unit = serializers.CharField(source='inventory_item.unit', read_only=True)

    class Meta:
        model = RecipeIngredient
        fields = ['id', 'inventory_item', 'item_name', 'unit', 'quantity_required']


class RecipeSerializer(serializers.Serializer):
    ingredients = RecipeIngredientSerializer(many=True)

    def validate_ingredients(self, value):
        item_ids = [i['inventory_item'].pk for i in value]
        if len(item_ids) != len(set(item_ids)):
            raise serializers.ValidationError("Each inventory item may appear once per recipe")
        return value


class InventoryItemSerializer(serializers.ModelSerializer):
    is_low_stock = serializers.BooleanField(read_only=True)
    margin = serializers.DecimalField(max_digits=14, decimal_places=4, read_only=True)

    class Meta:
        model = InventoryItem
        fields = '__all__'
        read_only_fields = ['current_stock', 'created_at', 'updated_at']

    def validate_inventory_type(self, value):
        request = self.context.get('request')
        if request is not None and value not in inventory_types_for(request.user.role):
            raise serializers.ValidationError(
                "You do not have permission to manage this type of inventory item")
        return value


class InventoryItemCreateSerializer(InventoryItemSerializer):
    """Opening stock is only settable when the item is created."""

    class Meta(InventoryItemSerializer.Meta):
        read_only_fields = ['created_at', 'updated_at']


class StockQuantitySerializer(serializers.Serializer):
    quantity = serializers.DecimalField(max_digits=12, decimal_places=3, min_value=0)


class StockCountSerializer(serializers.Serializer):
    current_stock = serializers.DecimalField(max_digits=12, decimal_places=3)


class StockMovementSerializer(serializers.ModelSerializer):
    item_name = serializers.CharField(source='inventory_item.name', read_only=True)
    order_number = serializers.CharField(source='order.order_number', read_only=True, default=None)

    class Meta:
        model = StockMovement
        fields = ['id', 'inventory_item', 'item_name', 'change', 'stock_after', 'reason',
                  'order', 'order_number', 'product_return', 'wastage_log', 'stock_transfer',
                  'created_by', 'created_at']


class OrderItemSerializer(serializers.ModelSerializer):
    name = serializers.CharField(source='display_name', read_only=True)
    department = serializers.CharField(source='product.department', read_only=True, default=None)

    class Meta:
        model = OrderItem
        fields = ['id', 'product', 'custom_name', 'name', 'department', 'quantity', 'unit_price',
                  'modifier_total', 'variations', 'total_price', 'status', 'notes']
        read_only_fields = fields


class PaymentSerializer(serializers.ModelSerializer):
    order_number = serializers.CharField(source='order.order_number', read_only=True)

    class Meta:
        model = Payment
        fields = ['id', 'order', 'order_number', 'method', 'amount', 'reference_number',
                  'status', 'received_by', 'created_at', 'updated_at']
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    order_items = OrderItemSerializer(many=True, read_only=True)
    payments = PaymentSerializer(many=True, read_only=True)
    table_number = serializers.CharField(source='table.table_number', read_only=True, default=None)
    room_number = serializers.CharField(source='room.room_number', read_only=True, default=None)
    staff_name = serializers.CharField(source='staff.name', read_only=True, default=None)

    class Meta:
        model = Order
        fields = ['id', 'order_number', 'order_type', 'table', 'table_number', 'room', 'room_number',
                  'customer_name', 'customer_phone', 'staff', 'staff_name', 'status', 'payment_status',
                  'subtotal', 'tax_amount', 'service_charge', 'discount_amount', 'total_amount',
                  'notes', 'stock_deducted_at', 'created_at', 'updated_at', 'order_items', 'payments']
        read_only_fields = fields


class OrderLineSerializer(serializers.Serializer):
    product_id = serializers.IntegerField(required=False, allow_null=True)
    custom_name = serializers.CharField(required=False, allow_blank=True, max_length=200)
    quantity = serializers.IntegerField()
    unit_price = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, allow_null=True)
    variation_ids = serializers.ListField(child=serializers.IntegerField(), required=False)
    notes = serializers.CharField(required=False, allow_blank=True)

    def validate_quantity(self, value):
        if value <= 0:
            raise serializers.ValidationError("Quantity must be a positive integer")
        return value

    def validate_unit_price(self, value):
        if value is not None and value < 0:
            raise serializers.ValidationError("Unit price cannot be negative")
        return value


class OrderCreateSerializer(serializers.Serializer):
    order_type = serializers.ChoiceField(choices=OrderType.choices)
    table = serializers.IntegerField(required=False, allow_null=True)
    room = serializers.IntegerField(required=False, allow_null=True)
    customer_name = serializers.CharField(required=False, allow_blank=True, max_length=200)
    customer_phone = serializers.CharField(required=False, allow_blank=True, max_length=40)
    discount_amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, default=0)
    notes = serializers.CharField(required=False, allow_blank=True)
    items = OrderLineSerializer(many=True)

    def validate_items(self, value):
        if not value:
            raise serializers.ValidationError("Order must contain at least one item")
        return value

    def validate_discount_amount(self, value):
        if value < 0:
            raise serializers.ValidationError("Discount cannot be negative")
        return value


class OrderStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices)


class OrderItemStatusSerializer(serializers.Serializer):
    item_id = serializers.IntegerField()
    status = serializers.ChoiceField(choices=OrderItemStatus.choices)


class PaymentCreateSerializer(serializers.Serializer):
    method = serializers.ChoiceField(choices=PaymentMethod.choices)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    reference_number = serializers.CharField(required=False, allow_blank=True, max_length=100)

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError("Amount must be greater than zero")
        return value


class ProductReturnSerializer(serializers.ModelSerializer):
    inventory_name = serializers.CharField(source='inventory_item.name', read_only=True)
    inventory_unit = serializers.CharField(source='inventory_item.unit', read_only=True)
    created_by_name = serializers.CharField(source='created_by.name', read_only=True, default=None)

    class Meta:
        model = ProductReturn
        fields = ['id', 'order', 'inventory_item', 'inventory_name', 'inventory_unit', 'quantity_returned',
                  'reason', 'refund_amount', 'notes', 'created_by', 'created_by_name',
                  'created_at', 'updated_at']
        read_only_fields = fields


class ProductReturnWriteSerializer(serializers.Serializer):
    order = serializers.IntegerField(required=False, allow_null=True)
    inventory_item = serializers.IntegerField()
    quantity_returned = serializers.IntegerField()
    reason = serializers.ChoiceField(choices=ReturnReason.choices)
    refund_amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True)

    def validate_quantity_returned(self, value):
        if value <= 0:
            raise serializers.ValidationError("Quantity returned must be greater than zero")
        return value

    def validate_refund_amount(self, value):
        if value is not None and value < 0:
            raise serializers.ValidationError("Refund cannot be negative")
        return value


class WastageLogSerializer(serializers.ModelSerializer):
    inventory_name = serializers.CharField(source='inventory_item.name', read_only=True)
    inventory_unit = serializers.CharField(source='inventory_item.unit', read_only=True)
    logged_by_name = serializers.CharField(source='logged_by.name', read_only=True, default=None)

    class Meta:
        model = WastageLog
        fields = ['id', 'inventory_item', 'inventory_name', 'inventory_unit', 'quantity_wasted', 'reason',
                  'waste_date', 'notes', 'logged_by', 'logged_by_name', 'created_at', 'updated_at']
        read_only_fields = ['logged_by', 'created_at', 'updated_at']
        extra_kwargs = {'waste_date': {'required': False}}

    def validate_quantity_wasted(self, value):
        if value <= 0:
            raise serializers.ValidationError("Quantity wasted must be greater than zero")
        return value


class StockTransferSerializer(serializers.ModelSerializer):
    from_item_name = serializers.CharField(source='from_item.name', read_only=True)
    to_item_name = serializers.CharField(source='to_item.name', read_only=True)
    requested_by_name = serializers.CharField(source='requested_by.name', read_only=True, default=None)

    class Meta:
        model = StockTransfer
        fields = ['id', 'transfer_number', 'from_item', 'from_item_name', 'to_item', 'to_item_name',
                  'quantity', 'transfer_date', 'notes', 'requested_by', 'requested_by_name', 'created_at']
        read_only_fields = ['transfer_number', 'requested_by', 'created_at']
        extra_kwargs = {'transfer_date': {'required': False}}

    def validate_quantity(self, value):
        if value <= 0:
            raise serializers.ValidationError("Quantity must be greater than zero")
        return value

    def validate(self, data):
        if data['from_item'] == data['to_item']:
            raise serializers.ValidationError({'to_item': 'Source and target must be different items.'})
        return data


class ExpenseSerializer(serializers.ModelSerializer):
    created_by_name = serializers.CharField(source='created_by.name', read_only=True, default=None)

    class Meta:
        model = Expense
        fields = ['id', 'date', 'category', 'description', 'amount', 'vendor', 'payment_method',
                  'receipt_number', 'notes', 'created_by', 'created_by_name', 'created_at', 'updated_at']
        read_only_fields = ['created_by', 'created_at', 'updated_at']
        extra_kwargs = {'receipt_number': {'allow_null': True, 'allow_blank': True, 'required': False}}

    def validate_receipt_number(self, value):
        return value or None

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError("Amount must be a valid positive number")
        return value


class SettingSerializer(serializers.ModelSerializer):
    class Meta:
        model = Setting
        fields = ['key', 'value', 'value_type', 'description', 'updated_at']
        read_only_fields = ['key', 'updated_at']

    def validate(self, data):
        value_type = data.get('value_type') or (self.instance.value_type if self.instance else SettingType.STRING)
        value = data.get('value', self.instance.value if self.instance else '')
        if value_type == SettingType.NUMBER and parse_number(value) is None:
            raise serializers.ValidationError({'value': f"'{value}' is not a finite, non-negative number"})
        if value_type == SettingType.BOOLEAN and str(value).lower() not in ('true', 'false', '1', '0'):
            raise serializers.ValidationError({'value': f"'{value}' is not a boolean"})
        return data


class AuditLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = AuditLog
        fields = '__all__'


class DailySalesReportSerializer(serializers.Serializer):
    date = serializers.DateField()
    total_orders = serializers.IntegerField()
    completed_orders = serializers.IntegerField()
    cancelled_orders = serializers.IntegerField()
    pending_orders = serializers.IntegerField()
    total_revenue = serializers.DecimalField(max_digits=14, decimal_places=2)
    average_order_value = serializers.DecimalField(max_digits=14, decimal_places=2)
    payments_by_method = serializers.ListField(child=serializers.DictField())
    total_collected = serializers.DecimalField(max_digits=14, decimal_places=2)
    total_refunds = serializers.DecimalField(max_digits=14, decimal_places=2)
    total_expenses = serializers.DecimalField(max_digits=14, decimal_places=2)
    net = serializers.DecimalField(max_digits=14, decimal_places=2)
