from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import (
    AuthViewSet, StaffViewSet, RoomViewSet, DiningTableViewSet, ProductViewSet,
    InventoryViewSet, OrderViewSet, PaymentViewSet, ProductReturnViewSet,
    WastageLogViewSet, StockTransferViewSet, ExpenseViewSet, SettingViewSet, ReportViewSet
)

# Create router
router = DefaultRouter()
router.register(r'auth', AuthViewSet, basename='auth')
router.register(r'staff', StaffViewSet, basename='staff')
router.register(r'rooms', RoomViewSet, basename='room')
router.register(r'tables', DiningTableViewSet, basename='table')
router.register(r'products', ProductViewSet, basename='product')
router.register(r'inventory', InventoryViewSet, basename='inventory')
router.register(r'orders', OrderViewSet, basename='order')
router.register(r'payments', PaymentViewSet, basename='payment')
router.register(r'product-returns', ProductReturnViewSet, basename='product-return')
router.register(r'wastage', WastageLogViewSet, basename='wastage')
router.register(r'stock-transfers', StockTransferViewSet, basename='stock-transfer')
router.register(r'expenses', ExpenseViewSet, basename='expense')
router.register(r'settings', SettingViewSet, basename='setting')
router.register(r'reports', ReportViewSet, basename='report')

urlpatterns = [
    path('', include(router.urls)),
]
