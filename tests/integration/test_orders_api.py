"""
Integration tests for the orders REST resource and catalog reads.
"""

import pytest
from decimal import Decimal


@pytest.fixture
def order_body(espresso, latte, table):
    return {
        'tableId': table.id,
        'diningOption': 'dine-in',
        'subtotal': '13.50',
        'discount': '0',
        'discountType': 'amount',
        'total': '13.50',
        'status': 'draft',
        'items': [
            {'productId': espresso.id, 'quantity': 2, 'price': '5.00', 'total': '10.00'},
            {'productId': latte.id, 'quantity': 1, 'price': '3.50', 'total': '3.50', 'selectedSize': 'L'},
        ],
    }


class TestOrdersResource:
    """Tests for /api/orders."""

    def test_create_assigns_number_and_occupies_table(self, owner_client, order_body, table):
        response = owner_client.post('/api/orders', json=order_body)

        assert response.status_code == 201
        data = response.get_json()
        assert data['orderNumber'] == '1'
        assert data['status'] == 'draft'
        assert [i['selectedSize'] for i in data['items']] == [None, 'L']
        assert data['items'][1]['product']['sizePrices']['L'] == '3.50'

        tables = owner_client.get('/api/tables').get_json()
        assert tables[0]['status'] == 'occupied'

    def test_numbers_increase(self, owner_client, order_body):
        first = owner_client.post('/api/orders', json=order_body).get_json()
        second = owner_client.post('/api/orders', json=order_body).get_json()
        assert (first['orderNumber'], second['orderNumber']) == ('1', '2')

    def test_invalid_body(self, owner_client):
        response = owner_client.post('/api/orders', json={'subtotal': '1', 'total': '1'})
        assert response.status_code == 400
        assert response.get_json()['status'] == 'error'

    def test_unknown_product(self, owner_client, order_body):
        order_body['items'][0]['productId'] = 9999
        response = owner_client.post('/api/orders', json=order_body)
        assert response.status_code == 404

    def test_update_replaces_items(self, owner_client, order_body, espresso):
        order_id = owner_client.post('/api/orders', json=order_body).get_json()['id']

        order_body['items'] = [{'productId': espresso.id, 'quantity': 1, 'price': '5.00', 'total': '5.00'}]
        order_body['subtotal'] = order_body['total'] = '5.00'
        response = owner_client.patch(f'/api/orders/{order_id}', json=order_body)

        assert response.status_code == 200
        data = response.get_json()
        assert len(data['items']) == 1
        assert data['total'] == '5.00'

    def test_partial_update(self, owner_client, order_body):
        order_id = owner_client.post('/api/orders', json=order_body).get_json()['id']

        response = owner_client.patch(f'/api/orders/{order_id}', json={'customerName': 'Ana', 'status': 'completed'})

        data = response.get_json()
        assert data['customerName'] == 'Ana'
        assert data['status'] == 'completed'
        assert data['completedAt'] is not None
        assert len(data['items']) == 2

    def test_list_filters_and_drafts(self, owner_client, order_body):
        owner_client.post('/api/orders', json=order_body)
        order_body['status'] = 'completed'
        owner_client.post('/api/orders', json=order_body)

        assert len(owner_client.get('/api/orders').get_json()) == 2
        assert len(owner_client.get('/api/orders?status=completed').get_json()) == 1
        drafts = owner_client.get('/api/orders/drafts').get_json()
        assert [d['status'] for d in drafts] == ['draft']

    def test_items_endpoint_and_delete(self, owner_client, order_body):
        order_id = owner_client.post('/api/orders', json=order_body).get_json()['id']

        items = owner_client.get(f'/api/orders/{order_id}/items').get_json()
        assert items[0]['productName'] == 'Espresso'

        assert owner_client.delete(f'/api/orders/{order_id}').status_code == 200
        assert owner_client.get(f'/api/orders/{order_id}').status_code == 404

    def test_staff_cannot_delete(self, staff_client, order_body):
        order_id = staff_client.post('/api/orders', json=order_body).get_json()['id']
        response = staff_client.delete(f'/api/orders/{order_id}')
        assert response.status_code == 403

    def test_anonymous_is_rejected(self, client):
        assert client.get('/api/orders').status_code == 403


class TestCatalogReads:
    """Tests for products and sold quantities."""

    def test_sold_quantities_count_completed_only(self, owner_client, order_body, espresso):
        owner_client.post('/api/orders', json=order_body)
        assert owner_client.get('/api/inventory/sold-quantities').get_json() == {}

        order_body['status'] = 'completed'
        owner_client.post('/api/orders', json=order_body)
        sold = owner_client.get('/api/inventory/sold-quantities').get_json()
        assert sold[str(espresso.id)] == 2

        product = owner_client.get(f'/api/products/{espresso.id}').get_json()
        assert Decimal(product['available']) == 48

    def test_products_search(self, owner_client, espresso, latte):
        names = [p['name'] for p in owner_client.get('/api/products?q=lat').get_json()]
        assert names == ['Latte']

    def test_missing_product(self, owner_client):
        assert owner_client.get('/api/products/999').status_code == 404
