from decimal import Decimal

from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from Hotel.conf import load_pos_settings
from Hotel.models import AuditLog, DiningTable, Expense, Product, RecipeIngredient, Room, Setting, Staff
from .helpers import make_item, make_product, make_staff


class AuthTests(APITestCase):
    def setUp(self):
        self.client = APIClient()
        self.waiter = make_staff('waiter', password='secret123')

    def test_login_and_me(self):
        response = self.client.post('/api/auth/login/', {'username': 'waiter', 'password': 'secret123'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertNotIn('password', response.data['staff'])

        self.client.credentials(HTTP_AUTHORIZATION=f"Token {response.data['token']}")
        response = self.client.get('/api/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['username'], 'waiter')
        self.assertEqual(response.data['inventory_types'], ['bar'])

    def test_wrong_password(self):
        response = self.client.post('/api/auth/login/', {'username': 'waiter', 'password': 'nope'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_deactivated_staff_cannot_log_in(self):
        self.waiter.is_active = False
        self.waiter.save()
        response = self.client.post('/api/auth/login/', {'username': 'waiter', 'password': 'secret123'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_bad_token(self):
        self.client.credentials(HTTP_AUTHORIZATION='Token not-a-real-token')
        response = self.client.get('/api/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_logout_revokes_token(self):
        token = self.waiter.issue_token()
        self.client.credentials(HTTP_AUTHORIZATION=f'Token {token}')
        self.assertEqual(self.client.post('/api/auth/logout/').status_code, status.HTTP_200_OK)
        self.assertEqual(self.client.get('/api/auth/me/').status_code, status.HTTP_401_UNAUTHORIZED)


class StaffTests(APITestCase):
    def setUp(self):
        self.client = APIClient()
        self.admin = make_staff('admin')
        self.client.force_authenticate(user=self.admin)

    def test_create_staff_hashes_password(self):
        response = self.client.post('/api/staff/', {
            'employee_id': 'EMP100', 'name': 'New Cook', 'role': 'kitchen_staff',
            'username': 'cook', 'password': 'cook1234', 'pin': '4455',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        staff = Staff.objects.get(username='cook')
        self.assertNotEqual(staff.password, 'cook1234')
        self.assertTrue(staff.check_password('cook1234'))
        self.assertTrue(staff.check_pin('4455'))
        log = AuditLog.objects.get(entity_type='staff', action='create')
        self.assertNotIn('password', log.new_values)

    def test_only_superadmin_grants_superadmin(self):
        response = self.client.post('/api/staff/', {
            'employee_id': 'EMP101', 'name': 'Boss', 'role': 'superadmin',
            'username': 'boss', 'password': 'boss1234',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_delete_deactivates(self):
        waiter = make_staff('waiter')
        waiter.issue_token()
        response = self.client.delete(f'/api/staff/{waiter.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        waiter.refresh_from_db()
        self.assertFalse(waiter.is_active)
        self.assertIsNone(waiter.auth_token)

    def test_reset_password(self):
        waiter = make_staff('waiter')
        response = self.client.post(f'/api/staff/{waiter.id}/reset_password/', {'password': 'fresh123'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        waiter.refresh_from_db()
        self.assertTrue(waiter.check_password('fresh123'))

    def test_managers_cannot_manage_staff(self):
        self.client.force_authenticate(user=make_staff('manager'))
        response = self.client.get('/api/staff/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class ExpenseTests(APITestCase):
    def setUp(self):
        self.client = APIClient()
        self.manager = make_staff('manager')
        self.client.force_authenticate(user=self.manager)

    def create_expense(self, **extra):
        payload = {'date': '2026-01-15', 'category': 'supplies', 'description': 'Napkins', 'amount': '1200.00'}
        payload.update(extra)
        return self.client.post('/api/expenses/', payload, format='json')

    def test_create_records_author_and_audit(self):
        response = self.create_expense(receipt_number='R-001')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['created_by'], self.manager.id)
        self.assertTrue(AuditLog.objects.filter(entity_type='expense', action='create').exists())

    def test_receipt_number_is_unique(self):
        self.create_expense(receipt_number='R-001')
        response = self.create_expense(receipt_number='R-001')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Expense.objects.count(), 1)

    def test_blank_receipts_do_not_collide(self):
        self.assertEqual(self.create_expense(receipt_number='').status_code, status.HTTP_201_CREATED)
        self.assertEqual(self.create_expense(receipt_number='').status_code, status.HTTP_201_CREATED)
        self.assertEqual(self.create_expense().status_code, status.HTTP_201_CREATED)
        self.assertEqual(Expense.objects.filter(receipt_number__isnull=True).count(), 3)

    def test_amount_must_be_positive(self):
        self.assertEqual(self.create_expense(amount='0').status_code, status.HTTP_400_BAD_REQUEST)

    def test_expenses_touch_nothing_else(self):
        item = make_item('Rice', 5)
        self.create_expense(category='food_stock', description='Rice sacks')
        item.refresh_from_db()
        self.assertEqual(item.current_stock, Decimal('5'))

    def test_summary_by_category(self):
        self.create_expense()
        self.create_expense(category='utilities', amount='300')
        self.create_expense(amount='100', date='2026-02-01')
        response = self.client.get('/api/expenses/summary/?start_date=2026-01-01&end_date=2026-01-31')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_expenses'], Decimal('1500.00'))
        self.assertEqual(response.data['by_category'][0]['category'], 'supplies')

    def test_waiter_has_no_access(self):
        self.client.force_authenticate(user=make_staff('waiter'))
        self.assertEqual(self.client.get('/api/expenses/').status_code, status.HTTP_403_FORBIDDEN)

    def test_bad_date_filter(self):
        response = self.client.get('/api/expenses/?start_date=yesterday')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class SettingTests(APITestCase):
    def setUp(self):
        self.client = APIClient()
        self.client.force_authenticate(user=make_staff('admin'))

    def test_defaults_are_listed(self):
        response = self.client.get('/api/settings/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        values = {row['key']: row['value'] for row in response.data}
        self.assertEqual(values['tax_rate'], '16')
        self.assertEqual(values['service_charge_rate'], '10')
        self.assertEqual(values['currency'], 'KES')

    def test_update_changes_order_totals(self):
        response = self.client.patch('/api/settings/tax_rate/', {'value': '8'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(load_pos_settings().tax_rate, Decimal('0.08'))

        burger = make_product('Burger', '100')
        response = self.client.post('/api/orders/', {
            'order_type': 'takeaway', 'items': [{'product_id': burger.id, 'quantity': 1}],
        }, format='json')
        self.assertEqual(response.data['tax_amount'], '8.00')
        self.assertEqual(response.data['total_amount'], '118.00')
        self.assertTrue(AuditLog.objects.filter(entity_type='setting').exists())

    def test_number_settings_are_validated(self):
        self.client.get('/api/settings/')
        response = self.client.patch('/api/settings/tax_rate/', {'value': 'lots'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Setting.objects.get(key='tax_rate').value, '16')

    def test_non_finite_numbers_are_rejected(self):
        for value in ('nan', 'inf', '-Infinity', '-5'):
            response = self.client.patch('/api/settings/tax_rate/', {'value': value}, format='json')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        burger = make_product('Burger', '100')
        response = self.client.post('/api/orders/', {
            'order_type': 'takeaway', 'items': [{'product_id': burger.id, 'quantity': 1}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['tax_amount'], '16.00')

    def test_stored_nan_falls_back_to_default(self):
        Setting.objects.create(key='tax_rate', value='NaN', value_type='number')
        burger = make_product('Burger', '100')
        response = self.client.post('/api/orders/', {
            'order_type': 'takeaway', 'items': [{'product_id': burger.id, 'quantity': 1}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['total_amount'], '126.00')

    def test_reading_settings_does_not_write(self):
        self.assertEqual(self.client.get('/api/settings/').status_code, status.HTTP_200_OK)
        self.assertEqual(self.client.get('/api/settings/currency/').data['value'], 'KES')
        self.assertFalse(Setting.objects.exists())

    def test_unknown_key_is_not_found(self):
        self.assertEqual(self.client.get('/api/settings/colour/').status_code, status.HTTP_404_NOT_FOUND)

    def test_only_admins_write(self):
        self.client.force_authenticate(user=make_staff('manager'))
        self.assertEqual(self.client.get('/api/settings/currency/').status_code, status.HTTP_200_OK)
        response = self.client.patch('/api/settings/currency/', {'value': 'USD'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class RoomAndTableTests(APITestCase):
    def setUp(self):
        self.client = APIClient()
        self.client.force_authenticate(user=make_staff('receptionist'))
        self.room = Room.objects.create(room_number='101', room_type='Standard', rate=Decimal('5000'))

    def test_check_in_and_out(self):
        response = self.client.post(f'/api/rooms/{self.room.id}/check_in/', {'guest_name': 'John Doe'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'occupied')

        response = self.client.post(f'/api/rooms/{self.room.id}/check_in/', {'guest_name': 'Jane'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

        response = self.client.post(f'/api/rooms/{self.room.id}/check_out/')
        self.assertEqual(response.data['status'], 'cleaning')
        self.assertEqual(response.data['guest_name'], '')

        response = self.client.post(f'/api/rooms/{self.room.id}/mark_vacant/')
        self.assertEqual(response.data['status'], 'vacant')

    def test_check_out_dates_must_be_ordered(self):
        response = self.client.post(f'/api/rooms/{self.room.id}/check_in/', {
            'guest_name': 'John Doe', 'check_in_date': '2026-03-10', 'check_out_date': '2026-03-01',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_available_tables(self):
        DiningTable.objects.create(table_number='T01', capacity=4)
        DiningTable.objects.create(table_number='T02', capacity=2, status='occupied')
        response = self.client.get('/api/tables/available/')
        self.assertEqual([t['table_number'] for t in response.data], ['T01'])

    def test_receptionist_cannot_edit_tables(self):
        response = self.client.post('/api/tables/', {'table_number': 'T09', 'capacity': 2}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class ProductRecipeTests(APITestCase):
    def setUp(self):
        self.client = APIClient()
        self.client.force_authenticate(user=make_staff('manager'))
        self.product = make_product('Pilau', '600')
        self.rice = make_item('Rice', 25)
        self.beef = make_item('Beef', 8)

    def test_replace_recipe(self):
        url = f'/api/products/{self.product.id}/recipe/'
        response = self.client.put(url, {'ingredients': [
            {'inventory_item': self.rice.id, 'quantity_required': '0.3'},
            {'inventory_item': self.beef.id, 'quantity_required': '0.2'},
        ]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['ingredients']), 2)

        response = self.client.put(url, {'ingredients': [
            {'inventory_item': self.rice.id, 'quantity_required': '0.5'},
        ]}, format='json')
        self.assertEqual(RecipeIngredient.objects.get(product=self.product).quantity_required, Decimal('0.5'))

    def test_duplicate_ingredient_rejected(self):
        response = self.client.put(f'/api/products/{self.product.id}/recipe/', {'ingredients': [
            {'inventory_item': self.rice.id, 'quantity_required': '0.3'},
            {'inventory_item': self.rice.id, 'quantity_required': '0.1'},
        ]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_retires_product(self):
        response = self.client.delete(f'/api/products/{self.product.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Product.objects.get(pk=self.product.id).is_active)
        self.assertEqual(self.client.get('/api/products/').data['results'], [])
