from decimal import Decimal

from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from Hotel.services import reports
from .helpers import make_item, make_product, make_staff


class ReportTests(APITestCase):
    def setUp(self):
        self.client = APIClient()
        self.waiter = make_staff('waiter')
        self.manager = make_staff('manager')
        self.client.force_authenticate(user=self.waiter)
        self.stew = make_product('Stew', '100')
        self.beer = make_product('Beer', '50', department='bar')

    def complete(self, items):
        order_id = self.client.post('/api/orders/', {'order_type': 'takeaway', 'items': items},
                                    format='json').data['id']
        for step in ('confirmed', 'preparing', 'ready', 'completed'):
            self.client.patch(f'/api/orders/{order_id}/status/', {'status': step}, format='json')
        return order_id

    def test_reports_need_management(self):
        response = self.client.get('/api/reports/daily_summary/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_revenue_split(self):
        self.complete([{'product_id': self.stew.id, 'quantity': 2},
                       {'product_id': self.beer.id, 'quantity': 1},
                       {'custom_name': 'Cake', 'quantity': 1, 'unit_price': '30'}])
        # Cancelled orders are not revenue
        cancelled = self.client.post('/api/orders/', {
            'order_type': 'takeaway', 'items': [{'product_id': self.beer.id, 'quantity': 4}],
        }, format='json').data['id']
        self.client.patch(f'/api/orders/{cancelled}/status/', {'status': 'cancelled'}, format='json')

        today = timezone.localdate()
        split = reports.revenue_split(today, today)
        self.assertEqual(split['food'], Decimal('200.00'))
        self.assertEqual(split['bar'], Decimal('50.00'))
        self.assertEqual(split['custom'], Decimal('30.00'))
        self.assertEqual(split['total'], Decimal('280.00'))

    def test_daily_sales_by_staff(self):
        self.complete([{'product_id': self.stew.id, 'quantity': 1}])
        self.complete([{'product_id': self.stew.id, 'quantity': 1}])
        self.client.force_authenticate(user=self.manager)
        response = self.client.get('/api/reports/daily_sales/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_orders'], 2)
        self.assertEqual(response.data['total_revenue'], Decimal('252.00'))
        self.assertEqual(response.data['staff'][0]['staff_name'], 'Waiter')

    def test_daily_summary(self):
        order_id = self.complete([{'product_id': self.stew.id, 'quantity': 1}])
        self.client.post(f'/api/orders/{order_id}/payments/', {'method': 'cash', 'amount': '126'}, format='json')
        self.client.force_authenticate(user=self.manager)
        self.client.post('/api/expenses/', {
            'date': str(timezone.localdate()), 'category': 'utilities', 'description': 'Water bill',
            'amount': '26.00',
        }, format='json')

        response = self.client.get('/api/reports/daily_summary/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['completed_orders'], 1)
        self.assertEqual(response.data['total_revenue'], '126.00')
        self.assertEqual(response.data['total_collected'], '126.00')
        self.assertEqual(response.data['total_expenses'], '26.00')
        self.assertEqual(response.data['net'], '100.00')

    def test_empty_day_is_all_zero(self):
        summary = reports.daily_summary(timezone.localdate())
        self.assertEqual(summary['total_revenue'], Decimal('0.00'))
        self.assertEqual(summary['average_order_value'], Decimal('0'))
        self.assertEqual(summary['net'], Decimal('0.00'))

    def test_profit_margins_with_missing_prices(self):
        make_item('Gin', 10, inventory_type='bar', buying_price=None, selling_price=Decimal('200'))
        make_item('Tonic', 10, inventory_type='bar', buying_price=Decimal('40'), selling_price=None)
        make_item('Lime', 10, inventory_type='bar', buying_price=Decimal('15'), selling_price=Decimal('20'))

        self.client.force_authenticate(user=self.manager)
        response = self.client.get('/api/reports/profit_margins/?inventory_type=bar')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        rows = {row['name']: row for row in response.data}
        self.assertEqual(rows['Gin']['buying_price'], Decimal('0.00'))
        self.assertEqual(rows['Gin']['margin_percentage'], Decimal('100.00'))
        self.assertEqual(rows['Tonic']['margin_percentage'], Decimal('0.00'))
        self.assertEqual(rows['Lime']['margin_percentage'], Decimal('25.00'))
        self.assertEqual(rows['Lime']['unit_profit'], Decimal('5.00'))

    def test_stock_health(self):
        make_item('Rice', 25, minimum=50, buying_price=Decimal('70'))
        make_item('Oil', 0, minimum=5)
        make_item('Salt', 10, minimum=1, buying_price=Decimal('20'))

        health = reports.stock_health()
        kitchen = next(row for row in health['by_type'] if row['inventory_type'] == 'kitchen')
        self.assertEqual((kitchen['healthy'], kitchen['low'], kitchen['out_of_stock']), (1, 1, 1))
        self.assertEqual(kitchen['stock_value'], Decimal('1950.00'))
        self.assertEqual(health['low_stock_count'], 2)
