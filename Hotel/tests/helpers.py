from decimal import Decimal

from Hotel.models import InventoryItem, Product, RecipeIngredient, Staff


def make_staff(role, username=None, password='password123'):
    username = username or role
    staff = Staff(employee_id=f"EMP-{username}", name=username.title(), role=role, username=username)
    staff.set_password(password)
    staff.save()
    return staff


def make_item(name, stock, minimum=0, inventory_type='kitchen', buying_price=None, selling_price=None, unit='kg'):
    return InventoryItem.objects.create(
        name=name,
        unit=unit,
        current_stock=Decimal(str(stock)),
        minimum_stock=Decimal(str(minimum)),
        inventory_type=inventory_type,
        buying_price=buying_price,
        cost_per_unit=selling_price,
    )


def make_product(name, price, department='kitchen', recipe=()):
    """recipe: iterable of (inventory_item, quantity_required)"""
    product = Product.objects.create(name=name, price=Decimal(str(price)), department=department)
    for item, quantity in recipe:
        RecipeIngredient.objects.create(product=product, inventory_item=item,
                                        quantity_required=Decimal(str(quantity)))
    return product
