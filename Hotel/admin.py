from django.contrib import admin

from .models import (
    AuditLog, DiningTable, Expense, InventoryItem, Order, OrderItem, Payment, Product,
    ProductReturn, ProductVariation, RecipeIngredient, Room, Setting, Staff, StockMovement, StockTransfer,
    WastageLog,
)


@admin.register(Staff)
class StaffAdmin(admin.ModelAdmin):
    list_display = ['employee_id', 'name', 'username', 'role', 'is_active', 'created_at']
    list_filter = ['role', 'is_active']
    search_fields = ['name', 'username', 'employee_id', 'email']
    exclude = ['password', 'pin', 'auth_token']


@admin.register(Room)
class RoomAdmin(admin.ModelAdmin):
    list_display = ['room_number', 'room_type', 'status', 'guest_name', 'check_in_date', 'check_out_date', 'rate']
    list_filter = ['status', 'room_type']
    search_fields = ['room_number', 'guest_name']
    list_editable = ['status']


@admin.register(DiningTable)
class DiningTableAdmin(admin.ModelAdmin):
    list_display = ['table_number', 'capacity', 'status']
    list_filter = ['status', 'capacity']
    ordering = ['table_number']
    list_editable = ['status']


class ProductVariationInline(admin.TabularInline):
    model = ProductVariation
    extra = 1


class RecipeIngredientInline(admin.TabularInline):
    model = RecipeIngredient
    extra = 1
    autocomplete_fields = ['inventory_item']


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['name', 'department', 'price', 'cost', 'is_available', 'is_active']
    list_filter = ['department', 'is_available', 'is_active']
    search_fields = ['name', 'description']
    list_editable = ['is_available', 'price']
    inlines = [ProductVariationInline, RecipeIngredientInline]


@admin.register(InventoryItem)
class InventoryItemAdmin(admin.ModelAdmin):
    list_display = ['name', 'inventory_type', 'current_stock', 'unit', 'minimum_stock',
                    'is_low_stock', 'buying_price', 'cost_per_unit', 'updated_at']
    list_filter = ['inventory_type', 'is_active']
    search_fields = ['name', 'supplier']
    # Stock only moves through the ledger functions in services.inventory.
    readonly_fields = ['current_stock', 'updated_at']

    def is_low_stock(self, obj):
        return obj.is_low_stock
    is_low_stock.boolean = True
    is_low_stock.short_description = 'Low Stock'


@admin.register(StockMovement)
class StockMovementAdmin(admin.ModelAdmin):
    list_display = ['inventory_item', 'change', 'stock_after', 'reason', 'order', 'product_return',
                    'created_by', 'created_at']
    list_filter = ['reason', 'inventory_item__inventory_type']
    search_fields = ['inventory_item__name', 'order__order_number']
    date_hierarchy = 'created_at'

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ['product', 'custom_name', 'quantity', 'unit_price', 'modifier_total', 'total_price']


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0
    readonly_fields = ['method', 'amount', 'reference_number', 'status', 'received_by', 'created_at']


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['order_number', 'order_type', 'table', 'room', 'staff', 'total_amount',
                    'status', 'payment_status', 'created_at']
    list_filter = ['status', 'payment_status', 'order_type', 'created_at']
    search_fields = ['order_number', 'customer_name', 'customer_phone']
    ordering = ['-created_at']
    readonly_fields = ['order_number', 'status', 'subtotal', 'tax_amount', 'service_charge',
                       'total_amount', 'stock_deducted_at', 'created_at', 'updated_at']
    inlines = [OrderItemInline, PaymentInline]
    date_hierarchy = 'created_at'

    fieldsets = (
        ('Order Information', {
            'fields': ('order_number', 'order_type', 'table', 'room', 'staff', 'status', 'payment_status')
        }),
        ('Customer', {
            'fields': ('customer_name', 'customer_phone')
        }),
        ('Amounts', {
            'fields': ('subtotal', 'tax_amount', 'service_charge', 'discount_amount', 'total_amount')
        }),
        ('Timestamps', {
            'fields': ('stock_deducted_at', 'created_at', 'updated_at')
        }),
        ('Additional Information', {
            'fields': ('notes',),
            'classes': ('collapse',)
        })
    )


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ['id', 'order', 'method', 'amount', 'status', 'received_by', 'created_at']
    list_filter = ['status', 'method', 'created_at']
    search_fields = ['order__order_number', 'reference_number']
    ordering = ['-created_at']
    date_hierarchy = 'created_at'


@admin.register(ProductReturn)
class ProductReturnAdmin(admin.ModelAdmin):
    list_display = ['id', 'inventory_item', 'quantity_returned', 'reason', 'refund_amount',
                    'created_by', 'created_at']
    list_filter = ['reason', 'created_at']
    search_fields = ['inventory_item__name', 'notes']
    # Edits go through the API so stock follows the quantity.
    readonly_fields = ['inventory_item', 'quantity_returned']


@admin.register(WastageLog)
class WastageLogAdmin(admin.ModelAdmin):
    list_display = ['id', 'inventory_item', 'quantity_wasted', 'reason', 'waste_date', 'logged_by']
    list_filter = ['reason', 'waste_date']
    search_fields = ['inventory_item__name', 'notes']
    # Logged through the API so stock follows the log.
    readonly_fields = ['inventory_item', 'quantity_wasted']

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(StockTransfer)
class StockTransferAdmin(admin.ModelAdmin):
    list_display = ['transfer_number', 'from_item', 'to_item', 'quantity', 'transfer_date', 'requested_by']
    search_fields = ['transfer_number', 'from_item__name', 'to_item__name']
    readonly_fields = ['transfer_number', 'from_item', 'to_item', 'quantity']

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Expense)
class ExpenseAdmin(admin.ModelAdmin):
    list_display = ['date', 'category', 'description', 'amount', 'vendor', 'payment_method', 'receipt_number']
    list_filter = ['category', 'payment_method', 'date']
    search_fields = ['description', 'vendor', 'receipt_number']
    date_hierarchy = 'date'


@admin.register(Setting)
class SettingAdmin(admin.ModelAdmin):
    list_display = ['key', 'value', 'value_type', 'updated_at']
    search_fields = ['key', 'description']


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ['entity_type', 'entity_id', 'action', 'changed_by', 'created_at']
    list_filter = ['entity_type', 'action']
    readonly_fields = ['entity_type', 'entity_id', 'action', 'old_values', 'new_values', 'changed_by', 'created_at']


admin.site.site_header = "Hotel POS"
admin.site.site_title = "Hotel POS Admin"
admin.site.index_title = "Welcome to Hotel POS"
