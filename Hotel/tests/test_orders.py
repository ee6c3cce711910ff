from decimal import Decimal
from unittest import mock

from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from Hotel.models import DiningTable, Order, ProductVariation, Room, StockMovement
from .helpers import make_item, make_product, make_staff


class OrderTestCase(APITestCase):
    def setUp(self):
        self.client = APIClient()
        self.waiter = make_staff('waiter')
        self.client.force_authenticate(user=self.waiter)
        self.burger = make_product('Burger', '100')
        self.table = DiningTable.objects.create(table_number='T01', capacity=4)

    def place(self, items, **extra):
        payload = {'order_type': 'takeaway', 'items': items}
        payload.update(extra)
        return self.client.post('/api/orders/', payload, format='json')

    def set_status(self, order_id, new_status):
        return self.client.patch(f'/api/orders/{order_id}/status/', {'status': new_status}, format='json')

    def advance_to(self, order_id, target):
        for step in ('confirmed', 'preparing', 'ready', 'completed'):
            response = self.set_status(order_id, step)
            if step == target or response.status_code != status.HTTP_200_OK:
                return response
        return response


class PlaceOrderTests(OrderTestCase):
    def test_create_order_computes_totals(self):
        response = self.place([
            {'product_id': self.burger.id, 'quantity': 2},
            {'custom_name': 'Chef special', 'quantity': 1, 'unit_price': '50.00'},
        ])
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['subtotal'], '250.00')
        self.assertEqual(response.data['tax_amount'], '40.00')
        self.assertEqual(response.data['service_charge'], '25.00')
        self.assertEqual(response.data['total_amount'], '315.00')
        self.assertEqual(response.data['status'], 'pending')
        self.assertEqual(response.data['payment_status'], 'pending')
        self.assertTrue(response.data['order_number'].startswith('ORD-'))
        self.assertEqual(len(response.data['order_items']), 2)
        self.assertEqual(response.data['order_items'][1]['name'], 'Chef special')

    def test_variations_change_line_total(self):
        large = ProductVariation.objects.create(product=self.burger, name='Large', price_modifier=Decimal('30'))
        response = self.place([{'product_id': self.burger.id, 'quantity': 2, 'variation_ids': [large.id]}])
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['order_items'][0]['total_price'], '260.00')

    def test_variation_of_other_product_rejected(self):
        other = make_product('Fries', '50')
        foreign = ProductVariation.objects.create(product=other, name='Cheesy', price_modifier=Decimal('10'))
        response = self.place([{'product_id': self.burger.id, 'quantity': 1, 'variation_ids': [foreign.id]}])
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Order.objects.count(), 0)

    def test_empty_order_rejected(self):
        response = self.place([])
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Order.objects.count(), 0)

    def test_invalid_quantity_rejected(self):
        response = self.place([{'product_id': self.burger.id, 'quantity': 0}])
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Order.objects.count(), 0)

    def test_custom_item_needs_price(self):
        response = self.place([{'custom_name': 'Mystery', 'quantity': 1}])
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_unavailable_product_rejected(self):
        self.burger.is_available = False
        self.burger.save()
        response = self.place([{'product_id': self.burger.id, 'quantity': 1}])
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_discount_above_limit_rejected(self):
        self.client.force_authenticate(user=make_staff('admin'))
        self.client.patch('/api/settings/max_discount_percentage/', {'value': '10'}, format='json')
        self.client.force_authenticate(user=self.waiter)
        response = self.place([{'product_id': self.burger.id, 'quantity': 1}], discount_amount='20.00')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Order.objects.count(), 0)

    def test_dine_in_marks_table_occupied(self):
        response = self.place([{'product_id': self.burger.id, 'quantity': 1}],
                              order_type='dine_in', table=self.table.id)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.table.refresh_from_db()
        self.assertEqual(self.table.status, 'occupied')

    def test_table_on_takeaway_rejected(self):
        response = self.place([{'product_id': self.burger.id, 'quantity': 1}], table=self.table.id)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_room_service_requires_room(self):
        response = self.place([{'product_id': self.burger.id, 'quantity': 1}], order_type='room_service')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        room = Room.objects.create(room_number='101', room_type='Standard')
        response = self.place([{'product_id': self.burger.id, 'quantity': 1}],
                              order_type='room_service', room=room.id)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['room_number'], '101')

    def test_requires_authentication(self):
        client = APIClient()
        response = client.get('/api/orders/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class OrderStatusTests(OrderTestCase):
    def setUp(self):
        super().setUp()
        self.beans = make_item('Coffee Beans', 10, minimum=2)
        self.coffee = make_product('Coffee', '200', recipe=[(self.beans, 1)])

    def test_happy_path(self):
        order_id = self.place([{'product_id': self.burger.id, 'quantity': 1}]).data['id']
        for step in ('confirmed', 'preparing', 'ready', 'completed'):
            response = self.set_status(order_id, step)
            self.assertEqual(response.status_code, status.HTTP_200_OK)
            self.assertEqual(response.data['status'], step)

    def test_skipping_a_step_is_rejected(self):
        order_id = self.place([{'product_id': self.burger.id, 'quantity': 1}]).data['id']
        response = self.set_status(order_id, 'completed')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'invalid_transition')
        self.assertEqual(response.data['current_status'], 'pending')
        self.assertEqual(Order.objects.get(pk=order_id).status, 'pending')

    def test_cannot_leave_cancelled(self):
        order_id = self.place([{'product_id': self.burger.id, 'quantity': 1}]).data['id']
        self.assertEqual(self.set_status(order_id, 'cancelled').status_code, status.HTTP_200_OK)
        response = self.set_status(order_id, 'confirmed')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_cannot_cancel_completed(self):
        order_id = self.place([{'product_id': self.burger.id, 'quantity': 1}]).data['id']
        self.advance_to(order_id, 'completed')
        response = self.set_status(order_id, 'cancelled')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_unknown_status_is_bad_request(self):
        order_id = self.place([{'product_id': self.burger.id, 'quantity': 1}]).data['id']
        response = self.set_status(order_id, 'served')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_completion_consumes_stock_once(self):
        order_id = self.place([{'product_id': self.coffee.id, 'quantity': 3}]).data['id']
        response = self.advance_to(order_id, 'completed')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.beans.refresh_from_db()
        self.assertEqual(self.beans.current_stock, Decimal('7'))

        # Retrying the completion is a no-op
        response = self.set_status(order_id, 'completed')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.beans.refresh_from_db()
        self.assertEqual(self.beans.current_stock, Decimal('7'))
        self.assertEqual(StockMovement.objects.filter(order_id=order_id).count(), 1)
        self.assertIsNotNone(Order.objects.get(pk=order_id).stock_deducted_at)

    def test_insufficient_stock_blocks_completion(self):
        self.beans.current_stock = Decimal('3')
        self.beans.save()
        order_id = self.place([{'product_id': self.coffee.id, 'quantity': 5}]).data['id']
        response = self.advance_to(order_id, 'completed')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'insufficient_stock')
        self.assertEqual(response.data['items'][0]['name'], 'Coffee Beans')
        self.assertEqual(response.data['items'][0]['required'], Decimal('5'))
        self.assertEqual(Order.objects.get(pk=order_id).status, 'ready')
        self.beans.refresh_from_db()
        self.assertEqual(self.beans.current_stock, Decimal('3'))
        self.assertFalse(StockMovement.objects.filter(order_id=order_id).exists())

    def test_shortfall_on_one_item_changes_nothing(self):
        milk = make_item('Milk', 1)
        latte = make_product('Latte', '250', recipe=[(self.beans, 1), (milk, 2)])
        order_id = self.place([{'product_id': latte.id, 'quantity': 1}]).data['id']
        response = self.advance_to(order_id, 'completed')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.beans.refresh_from_db()
        milk.refresh_from_db()
        self.assertEqual(self.beans.current_stock, Decimal('10'))
        self.assertEqual(milk.current_stock, Decimal('1'))

    def test_stock_lost_to_another_request_rolls_back(self):
        milk = make_item('Milk', 0)
        latte = make_product('Latte', '250', recipe=[(self.beans, 1), (milk, 2)])
        order_id = self.place([{'product_id': latte.id, 'quantity': 1}]).data['id']
        self.advance_to(order_id, 'ready')

        # The pre-check passes, then the milk decrement finds nothing to take
        with mock.patch('Hotel.services.inventory._shortfalls', return_value=[]):
            response = self.set_status(order_id, 'completed')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'conflict')
        order = Order.objects.get(pk=order_id)
        self.assertEqual(order.status, 'ready')
        self.assertIsNone(order.stock_deducted_at)
        self.beans.refresh_from_db()
        milk.refresh_from_db()
        self.assertEqual(self.beans.current_stock, Decimal('10'))
        self.assertEqual(milk.current_stock, Decimal('0'))
        self.assertFalse(StockMovement.objects.filter(order_id=order_id).exists())

    def test_cancelling_does_not_touch_stock(self):
        order_id = self.place([{'product_id': self.coffee.id, 'quantity': 3}]).data['id']
        self.set_status(order_id, 'confirmed')
        self.set_status(order_id, 'cancelled')
        self.beans.refresh_from_db()
        self.assertEqual(self.beans.current_stock, Decimal('10'))

    def test_custom_items_consume_nothing(self):
        order_id = self.place([{'custom_name': 'Fruit plate', 'quantity': 2, 'unit_price': '80'}]).data['id']
        response = self.advance_to(order_id, 'completed')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(StockMovement.objects.exists())

    def test_completion_frees_table(self):
        order_id = self.place([{'product_id': self.burger.id, 'quantity': 1}],
                              order_type='dine_in', table=self.table.id).data['id']
        self.advance_to(order_id, 'completed')
        self.table.refresh_from_db()
        self.assertEqual(self.table.status, 'available')


class OrderItemTests(OrderTestCase):
    def setUp(self):
        super().setUp()
        response = self.place([{'product_id': self.burger.id, 'quantity': 2}])
        self.order_id = response.data['id']
        self.item_id = response.data['order_items'][0]['id']

    def test_add_item_recomputes_totals(self):
        response = self.client.post(f'/api/orders/{self.order_id}/add_item/',
                                    {'custom_name': 'Soda', 'quantity': 1, 'unit_price': '50'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        order = Order.objects.get(pk=self.order_id)
        self.assertEqual(order.subtotal, Decimal('250.00'))
        self.assertEqual(order.total_amount, Decimal('315.00'))

    def test_remove_item(self):
        added = self.client.post(f'/api/orders/{self.order_id}/add_item/',
                                 {'product_id': self.burger.id, 'quantity': 1}, format='json')
        response = self.client.delete(f'/api/orders/{self.order_id}/remove_item/',
                                      {'item_id': added.data['id']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['subtotal'], '200.00')

    def test_cannot_remove_last_item(self):
        response = self.client.delete(f'/api/orders/{self.order_id}/remove_item/',
                                      {'item_id': self.item_id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_items_locked_once_preparing(self):
        self.set_status(self.order_id, 'confirmed')
        self.set_status(self.order_id, 'preparing')
        response = self.client.post(f'/api/orders/{self.order_id}/add_item/',
                                    {'product_id': self.burger.id, 'quantity': 1}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_item_status_flow(self):
        url = f'/api/orders/{self.order_id}/items/{self.item_id}/status/'
        response = self.client.patch(url, {'status': 'preparing'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'preparing')

        response = self.client.patch(url, {'status': 'served'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_kitchen_queue(self):
        beer = make_product('Beer', '250', department='bar')
        bar_order = self.place([{'product_id': beer.id, 'quantity': 1}]).data['id']
        self.set_status(bar_order, 'confirmed')
        self.set_status(self.order_id, 'confirmed')

        response = self.client.get('/api/orders/kitchen/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([o['id'] for o in response.data], [self.order_id])

    def test_active_and_today(self):
        response = self.client.get('/api/orders/active/')
        self.assertEqual(len(response.data), 1)
        response = self.client.get('/api/orders/today/')
        self.assertEqual(len(response.data), 1)
