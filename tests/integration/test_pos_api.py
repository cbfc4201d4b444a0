"""
Integration tests for the POS cart endpoints.
"""

import pytest
from decimal import Decimal

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from cafe_pos.database import get_session
from cafe_pos.models import Order


def _lines(response):
    return response.get_json()['cart']['totals']['lines']


class TestCartEndpoints:
    """Tests for adding and editing cart lines."""

    def test_add_sizeless_product(self, staff_client, espresso):
        staff_client.post('/pos/cart/add', json={'product_id': espresso.id})
        response = staff_client.post('/pos/cart/add', json={'product_id': espresso.id})

        assert response.status_code == 200
        lines = _lines(response)
        assert len(lines) == 1
        assert lines[0]['quantity'] == 2
        assert response.get_json()['cart']['totals']['total'] == '10.00'

    def test_size_gate_flow(self, staff_client, latte):
        response = staff_client.post('/pos/cart/add', json={'product_id': latte.id})
        pending = response.get_json()['pending']
        assert [s['size'] for s in pending['sizes']] == ['L', 'M', 'S']
        assert _lines(response) == []

        response = staff_client.post('/pos/cart/size/confirm', json={})
        assert response.status_code == 400
        assert response.get_json()['message'] == 'Please select a size'

        response = staff_client.post('/pos/cart/size/confirm', json={'size': 'L'})
        assert response.status_code == 200
        assert _lines(response)[0]['selected_size'] == 'L'
        assert _lines(response)[0]['unit_price'] == '3.50'
        assert staff_client.get('/pos/cart').get_json()['pending'] is None

    def test_size_cancel_discards_pending(self, staff_client, latte):
        staff_client.post('/pos/cart/add', json={'product_id': latte.id})
        response = staff_client.post('/pos/cart/size/cancel')
        assert response.get_json()['cart']['totals']['lines'] == []
        assert staff_client.get('/pos/cart').get_json()['pending'] is None

    def test_stock_limit(self, staff_client, scarce):
        staff_client.post('/pos/cart/add', json={'product_id': scarce.id})
        staff_client.post('/pos/cart/add', json={'product_id': scarce.id})
        response = staff_client.post('/pos/cart/add', json={'product_id': scarce.id})

        assert response.status_code == 409
        body = response.get_json()
        assert body['error'] == 'insufficient_stock'
        assert Decimal(body['available']) == 2
        assert _lines(staff_client.get('/pos/cart'))[0]['quantity'] == 2

    def test_update_quantity_and_remove(self, staff_client, espresso, latte):
        staff_client.post('/pos/cart/add', json={'product_id': espresso.id})
        staff_client.post('/pos/cart/add', json={'product_id': latte.id})
        staff_client.post('/pos/cart/size/confirm', json={'size': 'S'})

        response = staff_client.post('/pos/cart/update', json={'product_id': espresso.id, 'quantity': 4})
        assert _lines(response)[0]['quantity'] == 4

        response = staff_client.post('/pos/cart/update', json={'product_id': espresso.id, 'quantity': 0})
        assert _lines(response)[0]['quantity'] == 4

        response = staff_client.post('/pos/cart/remove', json={'product_id': latte.id, 'size': 'S'})
        assert [l['product_id'] for l in _lines(response)] == [espresso.id]

    def test_discounts(self, staff_client, espresso):
        staff_client.post('/pos/cart/add', json={'product_id': espresso.id})
        staff_client.post('/pos/cart/item-discount', json={
            'product_id': espresso.id, 'discount': '10', 'discount_type': 'percentage'
        })
        response = staff_client.post('/pos/cart/discount', json={'discount': '0.50'})

        totals = response.get_json()['cart']['totals']
        assert totals['subtotal'] == '4.50'
        assert totals['total'] == '4.00'

    def test_table_and_dining_option(self, staff_client, table):
        response = staff_client.post('/pos/cart/table', json={'table_id': table.id})
        assert response.get_json()['cart']['tableId'] == table.id

        assert staff_client.post('/pos/cart/table', json={'table_id': 999}).status_code == 404

        response = staff_client.post('/pos/cart/dining-option', json={'dining_option': 'delivery'})
        assert response.get_json()['cart']['diningOption'] == 'delivery'
        assert staff_client.post('/pos/cart/dining-option', json={'dining_option': 'drone'}).status_code == 400

    def test_clear_and_new_order(self, staff_client, espresso):
        staff_client.post('/pos/cart/add', json={'product_id': espresso.id})
        assert _lines(staff_client.post('/pos/cart/clear')) == []

        response = staff_client.post('/pos/orders/new')
        assert response.get_json()['cart']['orderNumber'] == '1'

    def test_requires_role(self, client, espresso):
        assert client.post('/pos/cart/add', json={'product_id': espresso.id}).status_code == 403


class TestDraftEndpoints:
    """Tests for saving and loading drafts through the POS."""

    def test_save_new_draft_closes_cart(self, staff_client, espresso):
        staff_client.post('/pos/cart/add', json={'product_id': espresso.id})
        response = staff_client.post('/pos/drafts')

        assert response.status_code == 201
        body = response.get_json()
        assert body['cartClosed'] is True
        assert body['order']['status'] == 'draft'
        assert body['cart']['totals']['lines'] == []

    def test_load_edit_and_resave(self, staff_client, espresso, latte):
        staff_client.post('/pos/cart/add', json={'product_id': latte.id})
        staff_client.post('/pos/cart/size/confirm', json={'size': 'M'})
        order_id = staff_client.post('/pos/drafts').get_json()['order']['id']

        drafts = staff_client.get('/pos/drafts').get_json()['drafts']
        assert [d['id'] for d in drafts] == [order_id]

        response = staff_client.post(f'/pos/drafts/{order_id}/load')
        assert response.get_json()['cart']['draftId'] == order_id
        assert _lines(response)[0]['selected_size'] == 'M'

        staff_client.post('/pos/cart/add', json={'product_id': espresso.id})
        response = staff_client.post('/pos/drafts')

        assert response.status_code == 200
        body = response.get_json()
        assert body['cartClosed'] is False
        assert len(body['cart']['totals']['lines']) == 2
        assert body['order']['total'] == '8.00'

    def test_empty_cart_cannot_be_saved(self, staff_client):
        assert staff_client.post('/pos/drafts').status_code == 400

    def test_delete_draft_needs_permission(self, staff_client, espresso):
        staff_client.post('/pos/cart/add', json={'product_id': espresso.id})
        order_id = staff_client.post('/pos/drafts').get_json()['order']['id']
        assert staff_client.delete(f'/pos/drafts/{order_id}').status_code == 403

        with staff_client.session_transaction() as sess:
            sess['role'] = 'OWNER'
        assert staff_client.delete(f'/pos/drafts/{order_id}').status_code == 200
        assert staff_client.get('/pos/drafts').get_json()['drafts'] == []


class TestCheckoutEndpoint:
    """Tests for confirming payment through the POS."""

    def test_checkout_resets_cart(self, staff_client, espresso):
        staff_client.post('/pos/cart/add', json={'product_id': espresso.id})
        response = staff_client.post('/pos/checkout', json={'payment_method': 'cash', 'amount_paid': '10'})

        assert response.status_code == 201
        body = response.get_json()
        assert body['order']['status'] == 'completed'
        assert body['changeDue'] == '5.00'
        assert body['receipt']['total'] == '5.00'
        assert body['cart']['totals']['lines'] == []
        assert body['cart']['orderNumber'] == '2'

    def test_split_checkout(self, staff_client, espresso):
        staff_client.post('/pos/cart/add', json={'product_id': espresso.id})
        response = staff_client.post('/pos/checkout', json={
            'splits': [{'method': 'cash', 'amount': '2'}, {'method': 'due', 'amount': '3'}]
        })
        order = response.get_json()['order']
        assert order['paymentStatus'] == 'partial'
        assert order['dueAmount'] == '3.00'

    def test_failed_checkout_keeps_cart(self, staff_client, espresso):
        staff_client.post('/pos/cart/add', json={'product_id': espresso.id})
        response = staff_client.post('/pos/checkout', json={'payment_method': 'cash', 'amount_paid': '1'})

        assert response.status_code == 400
        assert len(_lines(staff_client.get('/pos/cart'))) == 1

    @pytest.mark.parametrize('with_items', [True, False])
    def test_receipt_pdf(self, staff_client, espresso, with_items):
        staff_client.post('/pos/cart/add', json={'product_id': espresso.id})
        if not with_items:
            staff_client.post('/pos/checkout', json={'payment_method': 'card'})

        response = staff_client.get('/pos/receipt.pdf')

        assert response.status_code == 200
        assert response.mimetype == 'application/pdf'
        assert response.data.startswith(b'%PDF')

    def test_receipt_needs_something_to_print(self, staff_client):
        assert staff_client.get('/pos/receipt.pdf').status_code == 400


class TestPersistenceFailures:
    """A failed commit leaves the database and the session cart as they were."""

    @pytest.fixture
    def failing_commit(self, monkeypatch):
        def commit(self):
            raise OperationalError('COMMIT', {}, Exception('database is locked'))
        monkeypatch.setattr(Session, 'commit', commit)

    @pytest.mark.parametrize('path,body', [
        ('/pos/checkout', {'payment_method': 'card'}),
        ('/pos/drafts', None),
    ])
    def test_commit_failure(self, staff_client, espresso, failing_commit, path, body):
        staff_client.post('/pos/cart/add', json={'product_id': espresso.id})
        staff_client.post('/pos/cart/add', json={'product_id': espresso.id})

        response = staff_client.post(path, json=body)

        assert response.status_code == 500
        message = response.get_json()['message']
        assert message.startswith('Failed to create order')
        assert 'locked' not in message

        assert get_session().query(Order).count() == 0
        lines = _lines(staff_client.get('/pos/cart'))
        assert [(l['product_id'], l['quantity']) for l in lines] == [(espresso.id, 2)]


class TestMetricsEndpoint:
    """Tests for the Prometheus endpoint."""

    def test_metrics_exposed(self, client):
        client.get('/pos/cart')
        response = client.get('/metrics')

        assert response.status_code == 200
        assert b'pos_orders_completed_total' in response.data
        assert b'endpoint="pos.cart_view"' in response.data
        assert b'endpoint="metrics.metrics"' not in response.data
