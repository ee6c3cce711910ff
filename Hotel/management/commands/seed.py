from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction

from Hotel.conf import ensure_default_settings
from Hotel.models import (
    AuditLog, DiningTable, Expense, InventoryItem, Order, Product, ProductReturn,
    ProductVariation, RecipeIngredient, Room, Staff, StockMovement, StockTransfer, WastageLog,
)


class Command(BaseCommand):
    help = 'Seed the database with demo hotel data'

    def add_arguments(self, parser):
        parser.add_argument('--keep-staff', action='store_true',
                            help='Do not delete and recreate staff accounts')

    @transaction.atomic
    def handle(self, *args, **options):
        self.stdout.write('Seeding database...')

        # Clear existing data, children first
        self.stdout.write('Clearing existing data...')
        AuditLog.objects.all().delete()
        StockMovement.objects.all().delete()
        ProductReturn.objects.all().delete()
        WastageLog.objects.all().delete()
        StockTransfer.objects.all().delete()
        Order.objects.all().delete()
        RecipeIngredient.objects.all().delete()
        Product.objects.all().delete()
        InventoryItem.objects.all().delete()
        DiningTable.objects.all().delete()
        Room.objects.all().delete()
        Expense.objects.all().delete()
        if not options['keep_staff']:
            Staff.objects.all().delete()

        # Create Staff
        if not options['keep_staff']:
            self.stdout.write('Creating staff...')
            staff_data = [
                {'employee_id': 'EMP000', 'name': 'Super Admin', 'role': 'superadmin',
                 'username': 'superadmin', 'password': 'admin123', 'pin': '0001'},
                {'employee_id': 'EMP001', 'name': 'John Manager', 'role': 'manager',
                 'username': 'manager', 'password': 'password123', 'pin': '1234'},
                {'employee_id': 'EMP002', 'name': 'Mary Waiter', 'role': 'waiter',
                 'username': 'waiter', 'password': 'password123', 'pin': '5678'},
                {'employee_id': 'EMP003', 'name': 'Kitchen Staff', 'role': 'kitchen_staff',
                 'username': 'kitchen', 'password': 'password123', 'pin': '9999'},
                {'employee_id': 'EMP004', 'name': 'Jane Receptionist', 'role': 'receptionist',
                 'username': 'receptionist', 'password': 'password123', 'pin': '7777'},
                {'employee_id': 'EMP005', 'name': 'Admin User', 'role': 'admin',
                 'username': 'admin', 'password': 'admin123', 'pin': '0000'},
                {'employee_id': 'EMP006', 'name': 'Peter Cashier', 'role': 'cashier',
                 'username': 'cashier', 'password': 'password123', 'pin': '4321'},
            ]
            for data in staff_data:
                password = data.pop('password')
                pin = data.pop('pin')
                staff = Staff(**data)
                staff.set_password(password)
                staff.set_pin(pin)
                staff.save()
            self.stdout.write(self.style.SUCCESS(f'Created {len(staff_data)} staff accounts'))

        # Create Rooms
        self.stdout.write('Creating rooms...')
        rooms_data = [
            {'room_number': '101', 'room_type': 'Standard', 'rate': Decimal('5000')},
            {'room_number': '102', 'room_type': 'Standard', 'rate': Decimal('5000')},
            {'room_number': '103', 'room_type': 'Deluxe', 'rate': Decimal('7500')},
            {'room_number': '189', 'room_type': 'Standard', 'rate': Decimal('5500')},
            {'room_number': '201', 'room_type': 'Suite', 'rate': Decimal('12000')},
        ]
        for room_data in rooms_data:
            Room.objects.create(**room_data)
        self.stdout.write(self.style.SUCCESS(f'Created {len(rooms_data)} rooms'))

        # Create Tables
        self.stdout.write('Creating tables...')
        tables_data = [
            {'table_number': 'T01', 'capacity': 4},
            {'table_number': 'T02', 'capacity': 2},
            {'table_number': 'T03', 'capacity': 6},
            {'table_number': 'T04', 'capacity': 4},
            {'table_number': 'T05', 'capacity': 8},
        ]
        for table_data in tables_data:
            DiningTable.objects.create(**table_data)
        self.stdout.write(self.style.SUCCESS(f'Created {len(tables_data)} tables'))

        # Create Inventory Items
        self.stdout.write('Creating inventory items...')
        inventory_data = [
            {'name': 'Cooking Oil', 'unit': 'liters', 'current_stock': 5, 'minimum_stock': 10,
             'buying_price': Decimal('180'), 'cost_per_unit': Decimal('200'), 'inventory_type': 'kitchen'},
            {'name': 'Rice', 'unit': 'kg', 'current_stock': 25, 'minimum_stock': 50,
             'buying_price': Decimal('70'), 'cost_per_unit': Decimal('80'), 'inventory_type': 'kitchen'},
            {'name': 'Beef', 'unit': 'kg', 'current_stock': 8, 'minimum_stock': 15,
             'buying_price': Decimal('650'), 'cost_per_unit': Decimal('800'), 'inventory_type': 'kitchen'},
            {'name': 'Maize Flour', 'unit': 'kg', 'current_stock': 40, 'minimum_stock': 10,
             'buying_price': Decimal('60'), 'cost_per_unit': Decimal('75'), 'inventory_type': 'kitchen'},
            {'name': 'Coffee Beans', 'unit': 'kg', 'current_stock': 10, 'minimum_stock': 2,
             'buying_price': Decimal('900'), 'cost_per_unit': Decimal('1200'), 'inventory_type': 'kitchen'},
            {'name': 'Tusker Beer', 'unit': 'bottles', 'current_stock': 120, 'minimum_stock': 24,
             'buying_price': Decimal('160'), 'cost_per_unit': Decimal('250'), 'inventory_type': 'bar'},
            {'name': 'Coca Cola', 'unit': 'bottles', 'current_stock': 96, 'minimum_stock': 24,
             'buying_price': Decimal('55'), 'cost_per_unit': Decimal('100'), 'inventory_type': 'bar'},
            {'name': 'Towels', 'unit': 'pieces', 'current_stock': 30, 'minimum_stock': 20,
             'buying_price': Decimal('120'), 'cost_per_unit': Decimal('150'), 'inventory_type': 'housekeeping'},
            {'name': 'Mini Water', 'unit': 'bottles', 'current_stock': 48, 'minimum_stock': 12,
             'buying_price': Decimal('30'), 'cost_per_unit': Decimal('80'), 'inventory_type': 'minibar'},
        ]
        items = {}
        for inv_data in inventory_data:
            items[inv_data['name']] = InventoryItem.objects.create(**inv_data)
        self.stdout.write(self.style.SUCCESS(f'Created {len(inventory_data)} inventory items'))

        # Create Products
        self.stdout.write('Creating menu products...')
        products_data = [
            {'name': 'Samosas', 'department': 'kitchen', 'price': Decimal('150'),
             'description': 'Crispy pastries filled with spiced vegetables'},
            {'name': 'Chicken Wings', 'department': 'kitchen', 'price': Decimal('300'),
             'description': 'Spicy grilled chicken wings'},
            {'name': 'Ugali & Nyama Choma', 'department': 'kitchen', 'price': Decimal('800'),
             'description': 'Traditional grilled meat with ugali'},
            {'name': 'Pilau Rice', 'department': 'kitchen', 'price': Decimal('600'),
             'description': 'Spiced rice with tender beef'},
            {'name': 'Coffee', 'department': 'kitchen', 'price': Decimal('200'),
             'description': 'Freshly brewed Kenyan coffee'},
            {'name': 'Chocolate Cake', 'department': 'kitchen', 'price': Decimal('350'),
             'description': 'Rich chocolate layer cake'},
            {'name': 'Tusker Beer', 'department': 'bar', 'price': Decimal('250'),
             'description': 'Local premium beer'},
            {'name': 'Coca Cola', 'department': 'bar', 'price': Decimal('100'),
             'description': 'Classic soft drink'},
        ]
        products = {}
        for product_data in products_data:
            products[product_data['name']] = Product.objects.create(**product_data)
        self.stdout.write(self.style.SUCCESS(f'Created {len(products_data)} products'))

        ProductVariation.objects.create(product=products['Coffee'], name='Double shot',
                                        price_modifier=Decimal('50'))
        ProductVariation.objects.create(product=products['Tusker Beer'], name='Warm',
                                        price_modifier=Decimal('0'))

        # Create Recipes
        self.stdout.write('Creating recipes...')
        recipes = [
            ('Ugali & Nyama Choma', 'Beef', Decimal('0.5')),
            ('Ugali & Nyama Choma', 'Maize Flour', Decimal('0.25')),
            ('Pilau Rice', 'Rice', Decimal('0.3')),
            ('Pilau Rice', 'Beef', Decimal('0.2')),
            ('Pilau Rice', 'Cooking Oil', Decimal('0.05')),
            ('Coffee', 'Coffee Beans', Decimal('1')),
            ('Tusker Beer', 'Tusker Beer', Decimal('1')),
            ('Coca Cola', 'Coca Cola', Decimal('1')),
        ]
        for product_name, item_name, quantity in recipes:
            RecipeIngredient.objects.create(product=products[product_name], inventory_item=items[item_name],
                                            quantity_required=quantity)
        self.stdout.write(self.style.SUCCESS(f'Created {len(recipes)} recipe lines'))

        created = ensure_default_settings()
        self.stdout.write(self.style.SUCCESS(f'Created {created} default settings'))

        self.stdout.write(self.style.SUCCESS('Database seeding completed successfully!'))
