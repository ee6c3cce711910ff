import logging

from django.db import transaction
from django.db.models import Q
from django.utils import timezone
from django.utils.dateparse import parse_date
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied, ValidationError
from rest_framework.permissions import SAFE_METHODS, AllowAny
from rest_framework.response import Response

from .conf import DEFAULT_SETTINGS, default_setting, ensure_default_settings, load_pos_settings
from .constants import (
    ADMIN_ROLES, MANAGEMENT_ROLES, AuditAction, OrderStatus, RoomStatus, StaffRole, TableStatus,
    inventory_types_for,
)
from .exceptions import InvalidTransition
from .models import (
    AuditLog, DiningTable, Expense, InventoryItem, Order, Payment, Product, ProductReturn,
    RecipeIngredient, Room, Setting, Staff, StockTransfer, WastageLog,
)
from .permissions import CanAccessInventoryType, IsManagement, IsStaff, RolePermission
from .serializers import (
    AuditLogSerializer, CheckInSerializer, DailySalesReportSerializer, DiningTableSerializer, ExpenseSerializer,
    InventoryItemCreateSerializer, InventoryItemSerializer, LoginSerializer, OrderCreateSerializer,
    OrderItemSerializer, OrderItemStatusSerializer, OrderLineSerializer, OrderSerializer,
    OrderStatusSerializer, PaymentCreateSerializer, PaymentSerializer, ProductReturnSerializer,
    ProductReturnWriteSerializer, ProductSerializer, ProductVariationSerializer,
    RecipeIngredientSerializer, RecipeSerializer, RoomSerializer, SettingSerializer,
    StaffSerializer, StockCountSerializer, StockMovementSerializer, StockQuantitySerializer,
    StockTransferSerializer, WastageLogSerializer,
)
from .services import inventory, orders, reports, returns, transfers, wastage
from .services.audit import log_change, snapshot

logger = logging.getLogger(__name__)


def _date_param(request, name, default=None):
    raw = request.query_params.get(name)
    if not raw:
        return default
    value = parse_date(raw)
    if value is None:
        raise ValidationError({name: f"'{raw}' is not a valid date (YYYY-MM-DD)"})
    return value


class AuthViewSet(viewsets.ViewSet):
    permission_classes = [IsStaff]

    @action(detail=False, methods=['post'], permission_classes=[AllowAny], authentication_classes=[])
    def login(self, request):
        """Exchange username and password for an API token"""
        serializer = LoginSerializer(data=request.data)
        if not serializer.is_valid():
            logger.warning("Failed login for %s", request.data.get('username'))
            return Response({'error': 'Invalid credentials'}, status=status.HTTP_401_UNAUTHORIZED)

        staff = serializer.validated_data['staff']
        token = staff.issue_token()
        logger.info("%s logged in", staff.username)
        return Response({'token': token, 'staff': StaffSerializer(staff).data})

    @action(detail=False, methods=['post'])
    def logout(self, request):
        """Revoke the current token"""
        request.user.auth_token = None
        request.user.save(update_fields=['auth_token', 'updated_at'])
        return Response({'message': 'Logged out'})

    @action(detail=False, methods=['get'])
    def me(self, request):
        """Get the authenticated staff member"""
        data = StaffSerializer(request.user).data
        data['inventory_types'] = sorted(inventory_types_for(request.user.role))
        return Response(data)


class StaffViewSet(viewsets.ModelViewSet):
    queryset = Staff.objects.all()
    serializer_class = StaffSerializer
    permission_classes = [RolePermission]
    allowed_roles = ADMIN_ROLES

    def get_queryset(self):
        queryset = super().get_queryset()

        # Filter by role
        role = self.request.query_params.get('role', None)
        if role:
            queryset = queryset.filter(role=role)

        # Filter by active flag
        active = self.request.query_params.get('active', None)
        if active is not None:
            queryset = queryset.filter(is_active=active.lower() == 'true')

        return queryset

    def _check_role_grant(self, role):
        if role == StaffRole.SUPERADMIN and self.request.user.role != StaffRole.SUPERADMIN:
            raise PermissionDenied('Only a super admin can grant the super admin role.')

    def perform_create(self, serializer):
        self._check_role_grant(serializer.validated_data.get('role'))
        staff = serializer.save()
        log_change('staff', staff.pk, AuditAction.CREATE,
                   new_values=snapshot(staff, exclude=['password', 'pin', 'auth_token']),
                   staff=self.request.user)

    def perform_update(self, serializer):
        self._check_role_grant(serializer.validated_data.get('role'))
        before = snapshot(serializer.instance, exclude=['password', 'pin', 'auth_token'])
        staff = serializer.save()
        log_change('staff', staff.pk, AuditAction.UPDATE, old_values=before,
                   new_values=snapshot(staff, exclude=['password', 'pin', 'auth_token']),
                   staff=self.request.user)

    def destroy(self, request, *args, **kwargs):
        """Deactivate instead of deleting so history keeps its author"""
        staff = self.get_object()
        if staff.pk == request.user.pk:
            return Response({'error': 'You cannot deactivate your own account'},
                            status=status.HTTP_400_BAD_REQUEST)
        staff.is_active = False
        staff.auth_token = None
        staff.save(update_fields=['is_active', 'auth_token', 'updated_at'])
        log_change('staff', staff.pk, AuditAction.DELETE, old_values={'is_active': True},
                   new_values={'is_active': False}, staff=request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['post'])
    def reset_password(self, request, pk=None):
        """Set a new password and revoke the current token"""
        staff = self.get_object()
        password = request.data.get('password') or ''
        if len(password) < 6:
            return Response({'error': 'Password must be at least 6 characters'},
                            status=status.HTTP_400_BAD_REQUEST)
        staff.set_password(password)
        staff.auth_token = None
        staff.save(update_fields=['password', 'auth_token', 'updated_at'])
        log_change('staff', staff.pk, AuditAction.UPDATE, new_values={'password': 'reset'},
                   staff=request.user)
        return Response({'message': 'Password reset successfully'})


class RoomViewSet(viewsets.ModelViewSet):
    queryset = Room.objects.all()
    serializer_class = RoomSerializer
    permission_classes = [RolePermission]
    write_roles = MANAGEMENT_ROLES + (StaffRole.RECEPTIONIST,)

    def get_queryset(self):
        queryset = super().get_queryset()

        # Filter by status
        room_status = self.request.query_params.get('status', None)
        if room_status:
            queryset = queryset.filter(status=room_status)

        # Filter by room type
        room_type = self.request.query_params.get('room_type', None)
        if room_type:
            queryset = queryset.filter(room_type=room_type)

        return queryset

    @action(detail=True, methods=['post'])
    def check_in(self, request, pk=None):
        """Check a guest into a vacant or reserved room"""
        room = self.get_object()
        if room.status not in (RoomStatus.VACANT, RoomStatus.RESERVED):
            raise InvalidTransition(room.status, RoomStatus.OCCUPIED,
                                    detail=f"Room {room.room_number} is {room.get_status_display().lower()}")
        serializer = CheckInSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        room.status = RoomStatus.OCCUPIED
        room.guest_name = serializer.validated_data['guest_name']
        room.check_in_date = serializer.validated_data.get('check_in_date') or timezone.localdate()
        room.check_out_date = serializer.validated_data.get('check_out_date')
        room.save()
        logger.info("Guest %s checked into room %s", room.guest_name, room.room_number)
        return Response(self.get_serializer(room).data)

    @action(detail=True, methods=['post'])
    def check_out(self, request, pk=None):
        """Check the guest out and send the room to cleaning"""
        room = self.get_object()
        if room.status != RoomStatus.OCCUPIED:
            raise InvalidTransition(room.status, RoomStatus.CLEANING,
                                    detail=f"Room {room.room_number} is not occupied")
        room.status = RoomStatus.CLEANING
        room.guest_name = ''
        room.check_out_date = timezone.localdate()
        room.save()
        logger.info("Room %s checked out", room.room_number)
        return Response(self.get_serializer(room).data)

    @action(detail=True, methods=['post'])
    def mark_vacant(self, request, pk=None):
        """Mark a cleaned or repaired room as vacant"""
        room = self.get_object()
        if room.status == RoomStatus.OCCUPIED:
            raise InvalidTransition(room.status, RoomStatus.VACANT,
                                    detail=f"Room {room.room_number} still has a guest; check out first")
        room.status = RoomStatus.VACANT
        room.guest_name = ''
        room.check_in_date = None
        room.check_out_date = None
        room.save()
        return Response(self.get_serializer(room).data)


class DiningTableViewSet(viewsets.ModelViewSet):
    queryset = DiningTable.objects.all()
    serializer_class = DiningTableSerializer
    permission_classes = [RolePermission]
    write_roles = MANAGEMENT_ROLES

    def get_queryset(self):
        queryset = super().get_queryset()

        # Filter by status
        table_status = self.request.query_params.get('status', None)
        if table_status:
            queryset = queryset.filter(status=table_status)

        # Filter by minimum capacity
        min_capacity = self.request.query_params.get('min_capacity', None)
        if min_capacity:
            queryset = queryset.filter(capacity__gte=min_capacity)

        return queryset

    @action(detail=False, methods=['get'])
    def available(self, request):
        """Get all available tables"""
        tables = self.get_queryset().filter(status=TableStatus.AVAILABLE)
        serializer = self.get_serializer(tables, many=True)
        return Response(serializer.data)


class ProductViewSet(viewsets.ModelViewSet):
    queryset = Product.objects.prefetch_related('variations')
    serializer_class = ProductSerializer
    permission_classes = [RolePermission]
    write_roles = MANAGEMENT_ROLES

    def get_queryset(self):
        queryset = super().get_queryset()

        # Inactive products are hidden unless asked for
        if self.request.query_params.get('include_inactive', '').lower() != 'true':
            queryset = queryset.filter(is_active=True)

        # Filter by department
        department = self.request.query_params.get('department', None)
        if department:
            queryset = queryset.filter(department=department)

        # Filter by availability
        available = self.request.query_params.get('available', None)
        if available is not None:
            queryset = queryset.filter(is_available=available.lower() == 'true')

        # Search by name
        search = self.request.query_params.get('search', None)
        if search:
            queryset = queryset.filter(name__icontains=search)

        return queryset

    def destroy(self, request, *args, **kwargs):
        """Retire the product; past order lines keep pointing at it"""
        product = self.get_object()
        product.is_active = False
        product.is_available = False
        product.save(update_fields=['is_active', 'is_available', 'updated_at'])
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=False, methods=['get'])
    def available(self, request):
        """Get only available menu products"""
        products = self.get_queryset().filter(is_available=True)
        serializer = self.get_serializer(products, many=True)
        return Response(serializer.data)

    @action(detail=True, methods=['get', 'post'])
    def variations(self, request, pk=None):
        """List or add variations of a product"""
        product = self.get_object()
        if request.method == 'GET':
            return Response(ProductVariationSerializer(product.variations.all(), many=True).data)

        serializer = ProductVariationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        serializer.save(product=product)
        return Response(serializer.data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['get', 'put'])
    def recipe(self, request, pk=None):
        """Get or replace the inventory consumed per unit sold"""
        product = self.get_object()
        if request.method == 'PUT':
            serializer = RecipeSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            with transaction.atomic():
                product.ingredients.all().delete()
                RecipeIngredient.objects.bulk_create([
                    RecipeIngredient(product=product, **ingredient)
                    for ingredient in serializer.validated_data['ingredients']
                ])
            logger.info("Recipe for %s replaced (%d ingredients)", product.name,
                        len(serializer.validated_data['ingredients']))

        ingredients = product.ingredients.select_related('inventory_item')
        return Response({'product': product.pk,
                         'ingredients': RecipeIngredientSerializer(ingredients, many=True).data})


class InventoryViewSet(viewsets.ModelViewSet):
    queryset = InventoryItem.objects.all()
    serializer_class = InventoryItemSerializer
    permission_classes = [IsStaff, CanAccessInventoryType]

    def get_serializer_class(self):
        if self.action == 'create':
            return InventoryItemCreateSerializer
        return InventoryItemSerializer

    def get_queryset(self):
        allowed = inventory_types_for(self.request.user.role)
        queryset = inventory.with_low_stock_flag(inventory.visible_to(super().get_queryset(), allowed))

        # Inactive items are hidden unless asked for
        if self.request.query_params.get('include_inactive', '').lower() != 'true':
            queryset = queryset.filter(is_active=True)

        # Filter by inventory type
        inventory_type = self.request.query_params.get('inventory_type', None)
        if inventory_type:
            queryset = queryset.filter(inventory_type=inventory_type)

        # Filter by low stock
        low_stock = self.request.query_params.get('low_stock', None)
        if low_stock is not None:
            queryset = queryset.filter(low_stock=low_stock.lower() == 'true')

        # Search by name or supplier
        search = self.request.query_params.get('search', None)
        if search:
            queryset = queryset.filter(Q(name__icontains=search) | Q(supplier__icontains=search))

        return queryset

    def perform_create(self, serializer):
        opening_stock = serializer.validated_data.pop('current_stock', None)
        item = serializer.save()
        if opening_stock:
            inventory.set_stock(item, opening_stock, staff=self.request.user)
        logger.info("Inventory item %s created by %s", item.name, self.request.user.username)

    def destroy(self, request, *args, **kwargs):
        """Deactivate the item; returns and movements keep their history"""
        item = self.get_object()
        item.is_active = False
        item.save(update_fields=['is_active', 'updated_at'])
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=False, methods=['get'])
    def low_stock(self, request):
        """Get items at or below their minimum stock"""
        items = self.get_queryset().filter(low_stock=True)
        serializer = self.get_serializer(items, many=True)
        return Response(serializer.data)

    @action(detail=True, methods=['post'])
    def restock(self, request, pk=None):
        """Add delivered stock to an item"""
        item = self.get_object()
        serializer = StockQuantitySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        movement = inventory.restock(item, serializer.validated_data['quantity'], staff=request.user)
        return Response(StockMovementSerializer(movement).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def set_stock(self, request, pk=None):
        """Overwrite stock with a physical count"""
        item = self.get_object()
        serializer = StockCountSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        movement = inventory.set_stock(item, serializer.validated_data['current_stock'], staff=request.user)
        return Response(StockMovementSerializer(movement).data)

    @action(detail=True, methods=['get'])
    def movements(self, request, pk=None):
        """Stock movement history of an item"""
        item = self.get_object()
        queryset = item.movements.select_related('inventory_item', 'order')
        page = self.paginate_queryset(queryset)
        if page is not None:
            return self.get_paginated_response(StockMovementSerializer(page, many=True).data)
        return Response(StockMovementSerializer(queryset, many=True).data)


class OrderViewSet(mixins.CreateModelMixin, mixins.ListModelMixin, mixins.RetrieveModelMixin,
                   viewsets.GenericViewSet):
    queryset = (Order.objects
                .select_related('table', 'room', 'staff')
                .prefetch_related('order_items__product', 'payments'))
    permission_classes = [IsStaff]

    def get_serializer_class(self):
        if self.action == 'create':
            return OrderCreateSerializer
        return OrderSerializer

    def get_queryset(self):
        queryset = super().get_queryset()

        # Filter by status
        order_status = self.request.query_params.get('status', None)
        if order_status:
            queryset = queryset.filter(status=order_status)

        # Filter by order type
        order_type = self.request.query_params.get('order_type', None)
        if order_type:
            queryset = queryset.filter(order_type=order_type)

        # Filter by table
        table = self.request.query_params.get('table', None)
        if table:
            queryset = queryset.filter(table_id=table)

        # Filter by room
        room = self.request.query_params.get('room', None)
        if room:
            queryset = queryset.filter(room_id=room)

        # Filter by date
        day = _date_param(self.request, 'date')
        if day:
            queryset = queryset.filter(created_at__date=day)

        return queryset

    def create(self, request, *args, **kwargs):
        serializer = OrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = orders.place_order(serializer.validated_data, request.user, load_pos_settings())
        return Response(OrderSerializer(self.get_queryset().get(pk=order.pk)).data,
                        status=status.HTTP_201_CREATED)

    def _order_response(self, pk):
        return Response(OrderSerializer(self.get_queryset().get(pk=pk)).data)

    @action(detail=True, methods=['put', 'patch'], url_path='status')
    def set_status(self, request, pk=None):
        """Move the order along its status machine"""
        serializer = OrderStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = orders.transition_order(pk, serializer.validated_data['status'], staff=request.user)
        return self._order_response(order.pk)

    @action(detail=True, methods=['post'])
    def add_item(self, request, pk=None):
        """Add item to an open order"""
        serializer = OrderLineSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order_item = orders.add_item(pk, serializer.validated_data, load_pos_settings())
        return Response(OrderItemSerializer(order_item).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['delete', 'post'])
    def remove_item(self, request, pk=None):
        """Remove item from an open order"""
        item_id = request.data.get('item_id') or request.query_params.get('item_id')
        if not item_id:
            return Response({'error': 'item_id is required'}, status=status.HTTP_400_BAD_REQUEST)
        order = orders.remove_item(pk, item_id, load_pos_settings())
        return self._order_response(order.pk)

    @action(detail=True, methods=['put', 'patch'], url_path=r'items/(?P<item_id>\d+)/status')
    def item_status(self, request, pk=None, item_id=None):
        """Move one order item along the kitchen flow"""
        serializer = OrderItemStatusSerializer(data={'item_id': item_id, **request.data})
        serializer.is_valid(raise_exception=True)
        order_item = orders.transition_item(pk, serializer.validated_data['item_id'],
                                            serializer.validated_data['status'])
        return Response(OrderItemSerializer(order_item).data)

    @action(detail=True, methods=['get', 'post'])
    def payments(self, request, pk=None):
        """List or record payments on an order"""
        if request.method == 'GET':
            order = self.get_object()
            return Response(PaymentSerializer(order.payments.all(), many=True).data)

        serializer = PaymentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        payment = orders.record_payment(
            pk,
            serializer.validated_data['method'],
            serializer.validated_data['amount'],
            staff=request.user,
            reference_number=serializer.validated_data.get('reference_number', ''),
        )
        return Response(PaymentSerializer(payment).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['get'])
    def active(self, request):
        """Get all open orders"""
        active_orders = self.get_queryset().filter(status__in=OrderStatus.active())
        serializer = self.get_serializer(active_orders, many=True)
        return Response(serializer.data)

    @action(detail=False, methods=['get'])
    def today(self, request):
        """Get today's orders"""
        orders_today = self.get_queryset().filter(created_at__date=timezone.localdate())
        serializer = self.get_serializer(orders_today, many=True)
        return Response(serializer.data)

    @action(detail=False, methods=['get'])
    def kitchen(self, request):
        """Orders the kitchen still has to work on"""
        queue = orders.kitchen_queue().prefetch_related('order_items__product')
        serializer = self.get_serializer(queue, many=True)
        return Response(serializer.data)


class PaymentViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = Payment.objects.select_related('order', 'received_by')
    serializer_class = PaymentSerializer
    permission_classes = [IsStaff]

    def get_queryset(self):
        queryset = super().get_queryset()

        # Filter by payment status
        payment_status = self.request.query_params.get('status', None)
        if payment_status:
            queryset = queryset.filter(status=payment_status)

        # Filter by payment method
        method = self.request.query_params.get('method', None)
        if method:
            queryset = queryset.filter(method=method)

        # Filter by order
        order = self.request.query_params.get('order', None)
        if order:
            queryset = queryset.filter(order_id=order)

        # Filter by date
        day = _date_param(self.request, 'date')
        if day:
            queryset = queryset.filter(created_at__date=day)

        return queryset

    @action(detail=True, methods=['post'], permission_classes=[IsManagement])
    def refund(self, request, pk=None):
        """Process payment refund"""
        payment = orders.refund_payment(pk)
        return Response(self.get_serializer(payment).data)


class ProductReturnViewSet(viewsets.ModelViewSet):
    queryset = ProductReturn.objects.select_related('inventory_item', 'created_by')
    serializer_class = ProductReturnSerializer
    permission_classes = [RolePermission]
    allowed_roles = MANAGEMENT_ROLES + (StaffRole.CASHIER, StaffRole.WAITER)
    write_roles = MANAGEMENT_ROLES

    def get_queryset(self):
        queryset = super().get_queryset()

        # Filter by reason
        reason = self.request.query_params.get('reason', None)
        if reason:
            queryset = queryset.filter(reason=reason)

        # Filter by inventory item
        item = self.request.query_params.get('inventory_item', None)
        if item:
            queryset = queryset.filter(inventory_item_id=item)

        # Filter by date range
        start = _date_param(self.request, 'start_date')
        if start:
            queryset = queryset.filter(created_at__date__gte=start)
        end = _date_param(self.request, 'end_date')
        if end:
            queryset = queryset.filter(created_at__date__lte=end)

        return queryset

    def create(self, request, *args, **kwargs):
        serializer = ProductReturnWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        product_return = returns.create_return(serializer.validated_data, request.user, load_pos_settings())
        return Response(ProductReturnSerializer(product_return).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        serializer = ProductReturnWriteSerializer(data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        product_return = returns.update_return(kwargs['pk'], serializer.validated_data, request.user)
        return Response(ProductReturnSerializer(product_return).data)

    def destroy(self, request, *args, **kwargs):
        returns.delete_return(kwargs['pk'], request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=False, methods=['get'], permission_classes=[IsManagement])
    def summary(self, request):
        """Return counts and refund totals by reason"""
        return Response(reports.returns_summary(_date_param(request, 'start_date'),
                                                _date_param(request, 'end_date')))


class WastageLogViewSet(mixins.CreateModelMixin, mixins.ListModelMixin, mixins.RetrieveModelMixin,
                        mixins.DestroyModelMixin, viewsets.GenericViewSet):
    queryset = WastageLog.objects.select_related('inventory_item', 'logged_by')
    serializer_class = WastageLogSerializer
    permission_classes = [RolePermission]
    allowed_roles = MANAGEMENT_ROLES + (StaffRole.KITCHEN_STAFF, StaffRole.WAITER, StaffRole.CASHIER)

    def get_queryset(self):
        allowed = inventory_types_for(self.request.user.role)
        queryset = super().get_queryset().filter(inventory_item__inventory_type__in=allowed)

        # Filter by reason
        reason = self.request.query_params.get('reason', None)
        if reason:
            queryset = queryset.filter(reason=reason)

        # Filter by inventory item
        item = self.request.query_params.get('inventory_item', None)
        if item:
            queryset = queryset.filter(inventory_item_id=item)

        # Filter by date range
        start = _date_param(self.request, 'start_date')
        if start:
            queryset = queryset.filter(waste_date__gte=start)
        end = _date_param(self.request, 'end_date')
        if end:
            queryset = queryset.filter(waste_date__lte=end)

        return queryset

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        item = serializer.validated_data['inventory_item']
        if item.inventory_type not in inventory_types_for(request.user.role):
            raise PermissionDenied('You do not have permission to access this type of inventory item.')
        wastage_log = wastage.log_wastage(serializer.validated_data, request.user)
        return Response(self.get_serializer(wastage_log).data, status=status.HTTP_201_CREATED)

    def destroy(self, request, *args, **kwargs):
        """Delete a wastage log and put its stock back"""
        if request.user.role not in MANAGEMENT_ROLES:
            raise PermissionDenied('Only managers can delete wastage logs.')
        wastage.delete_wastage(self.get_object().pk, request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=False, methods=['get'], permission_classes=[IsManagement])
    def summary(self, request):
        """Wasted quantity and cost by reason"""
        return Response(reports.wastage_summary(_date_param(request, 'start_date'),
                                                _date_param(request, 'end_date')))


class StockTransferViewSet(mixins.CreateModelMixin, mixins.ListModelMixin, mixins.RetrieveModelMixin,
                           viewsets.GenericViewSet):
    queryset = StockTransfer.objects.select_related('from_item', 'to_item', 'requested_by')
    serializer_class = StockTransferSerializer
    permission_classes = [IsManagement]

    def get_queryset(self):
        queryset = super().get_queryset()

        # Filter by inventory item on either side
        item = self.request.query_params.get('inventory_item', None)
        if item:
            queryset = queryset.filter(Q(from_item_id=item) | Q(to_item_id=item))

        # Filter by date
        day = _date_param(self.request, 'date')
        if day:
            queryset = queryset.filter(transfer_date=day)

        return queryset

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        stock_transfer = transfers.transfer_stock(serializer.validated_data, request.user)
        return Response(self.get_serializer(stock_transfer).data, status=status.HTTP_201_CREATED)


class ExpenseViewSet(viewsets.ModelViewSet):
    queryset = Expense.objects.select_related('created_by')
    serializer_class = ExpenseSerializer
    permission_classes = [RolePermission]
    allowed_roles = MANAGEMENT_ROLES

    def get_queryset(self):
        queryset = super().get_queryset()

        # Filter by category
        category = self.request.query_params.get('category', None)
        if category:
            queryset = queryset.filter(category=category)

        # Filter by date range
        start = _date_param(self.request, 'start_date')
        if start:
            queryset = queryset.filter(date__gte=start)
        end = _date_param(self.request, 'end_date')
        if end:
            queryset = queryset.filter(date__lte=end)

        return queryset

    def perform_create(self, serializer):
        with transaction.atomic():
            expense = serializer.save(created_by=self.request.user)
            log_change('expense', expense.pk, AuditAction.CREATE, new_values=snapshot(expense),
                       staff=self.request.user)

    def perform_update(self, serializer):
        before = snapshot(serializer.instance)
        with transaction.atomic():
            expense = serializer.save()
            log_change('expense', expense.pk, AuditAction.UPDATE, old_values=before,
                       new_values=snapshot(expense), staff=self.request.user)

    def perform_destroy(self, instance):
        before = snapshot(instance)
        expense_id = instance.pk
        with transaction.atomic():
            instance.delete()
            log_change('expense', expense_id, AuditAction.DELETE, old_values=before, staff=self.request.user)

    @action(detail=False, methods=['get'])
    def summary(self, request):
        """Expense totals by category"""
        return Response(reports.expense_summary(_date_param(request, 'start_date'),
                                                _date_param(request, 'end_date')))


class SettingViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, mixins.UpdateModelMixin,
                     viewsets.GenericViewSet):
    queryset = Setting.objects.all()
    serializer_class = SettingSerializer
    permission_classes = [RolePermission]
    write_roles = ADMIN_ROLES
    lookup_field = 'key'
    lookup_value_regex = '[^/]+'
    pagination_class = None

    def list(self, request, *args, **kwargs):
        """Stored settings, with defaults filled in for keys never saved"""
        stored = {setting.key: setting for setting in self.get_queryset()}
        rows = [stored.pop(key, None) or default_setting(key) for key in DEFAULT_SETTINGS]
        rows = sorted(rows + list(stored.values()), key=lambda setting: setting.key)
        return Response(self.get_serializer(rows, many=True).data)

    def get_object(self):
        key = self.kwargs[self.lookup_field]
        if key in DEFAULT_SETTINGS and not self.get_queryset().filter(key=key).exists():
            if self.request.method in SAFE_METHODS:
                return default_setting(key)
            ensure_default_settings(keys=[key])
        return super().get_object()

    def perform_update(self, serializer):
        before = snapshot(serializer.instance)
        with transaction.atomic():
            setting = serializer.save()
            log_change('setting', setting.pk, AuditAction.UPDATE, old_values=before,
                       new_values=snapshot(setting), staff=self.request.user)
        logger.info("Setting %s changed to %r by %s", setting.key, setting.value, self.request.user.username)


class ReportViewSet(viewsets.ViewSet):
    permission_classes = [IsManagement]

    @action(detail=False, methods=['get'])
    def daily_sales(self, request):
        """Completed order revenue per staff member for a day"""
        day = _date_param(request, 'date', timezone.localdate())
        return Response(reports.daily_sales_by_staff(day))

    @action(detail=False, methods=['get'])
    def daily_summary(self, request):
        """Get daily sales summary"""
        day = _date_param(request, 'date', timezone.localdate())
        serializer = DailySalesReportSerializer(reports.daily_summary(day))
        return Response(serializer.data)

    @action(detail=False, methods=['get'])
    def revenue_split(self, request):
        """Bar vs food revenue for a date range"""
        today = timezone.localdate()
        start = _date_param(request, 'start_date', today)
        end = _date_param(request, 'end_date', today)
        if end < start:
            raise ValidationError({'end_date': 'End date cannot be before start date'})
        return Response(reports.revenue_split(start, end))

    @action(detail=False, methods=['get'])
    def profit_margins(self, request):
        """Unit profit and margin per inventory item"""
        return Response(reports.profit_margins(request.query_params.get('inventory_type') or None))

    @action(detail=False, methods=['get'])
    def stock_health(self, request):
        """Healthy, low and out-of-stock counts per inventory type"""
        return Response(reports.stock_health())

    @action(detail=False, methods=['get'])
    def audit_log(self, request):
        """Recent audit entries, optionally for one entity type"""
        entries = AuditLog.objects.select_related('changed_by')
        entity_type = request.query_params.get('entity_type')
        if entity_type:
            entries = entries.filter(entity_type=entity_type)
        entity_id = request.query_params.get('entity_id')
        if entity_id:
            entries = entries.filter(entity_id=entity_id)
        return Response(AuditLogSerializer(entries[:200], many=True).data)
