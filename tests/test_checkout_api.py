"""
Tests for the cart, checkout and login endpoints.
"""
from conftest import login, make_product
from marketplace.extensions import db
from marketplace.models import AuditLog, CartItem


class TestAuth:

    def test_login_and_logout(self, client, buyer) -> None:
        response = client.post('/api/auth/login', json={
            'email': 'buyer@example.com', 'password': 'password123'})

        assert response.status_code == 200
        assert response.get_json()['role'] == 'standard'
        assert AuditLog.query.filter_by(action='LOGIN_SUCCESS').count() == 1

        assert client.post('/api/auth/logout').status_code == 200

    def test_wrong_password(self, client, buyer) -> None:
        response = client.post('/api/auth/login', json={
            'email': 'buyer@example.com', 'password': 'nope'})
        assert response.status_code == 401

    def test_anonymous_api_call_is_401(self, client, app) -> None:
        response = client.get('/api/checkout')
        assert response.status_code == 401
        assert response.get_json() == {
            'error': 'Please login to continue.', 'login_required': True}


class TestCart:

    def test_add_update_and_remove(self, client, buyer, controller) -> None:
        login(client, buyer)

        response = client.post(
            '/api/cart/items', json={'product_id': controller.id})
        assert response.status_code == 201
        client.post('/api/cart/items',
                    json={'product_id': controller.id, 'quantity': 2})
        assert db.session.get(
            CartItem, (buyer.id, controller.id)).quantity == 3

        client.patch(f'/api/cart/items/{controller.id}',
                     json={'quantity': 1})
        body = client.get('/cart').get_json()
        assert body['total_items'] == 1
        assert body['items'][0]['price'] == 20

        assert client.delete(
            f'/api/cart/items/{controller.id}').status_code == 200
        assert CartItem.query.count() == 0

    def test_unknown_product(self, client, buyer) -> None:
        login(client, buyer)
        response = client.post('/api/cart/items', json={'product_id': 999})
        assert response.status_code == 404

    def test_non_positive_quantity(self, client, buyer, controller) -> None:
        login(client, buyer)
        response = client.post(
            '/api/cart/items',
            json={'product_id': controller.id, 'quantity': 0})
        assert response.status_code == 400


class TestCheckout:

    def test_summary_in_native_currency(self, client, buyer) -> None:
        pad = make_product('Pad', price='1999.60')
        db.session.add(CartItem(user_id=buyer.id, product_id=pad.id,
                                quantity=2))
        db.session.commit()
        login(client, buyer)

        body = client.get('/api/checkout').get_json()

        assert body['currency'] == 'NGN'
        assert body['products'][0]['price'] == 2000
        assert body['products'][0]['imageUrl'] == '/img/a/slot0.jpg'
        assert body['subTotal'] == 4000
        assert body['email'] == buyer.email

    def test_summary_in_display_currency(
            self, app, client, buyer, usd) -> None:
        app.config['DEFAULT_CURRENCY'] = 'USD'
        game = make_product('Game', price='45000')
        db.session.add(CartItem(user_id=buyer.id, product_id=game.id,
                                quantity=3))
        db.session.commit()
        login(client, buyer)

        body = client.get('/api/checkout').get_json()

        assert body['products'][0]['price'] == 58.5
        assert body['subTotal'] == 175.5

    def test_initialize_sends_minor_units(
            self, client, gateway, buyer) -> None:
        login(client, buyer)

        response = client.post('/api/checkout/initialize', json={
            'amount': '39.98', 'email': 'buyer@example.com'})

        assert response.status_code == 200
        assert response.get_json()['accessCode'] == 'ac_test_123'
        assert gateway.initialized == [('buyer@example.com', 3998)]

    def test_initialize_rejects_bad_amount(self, client, buyer) -> None:
        login(client, buyer)
        response = client.post(
            '/api/checkout/initialize', json={'amount': '1.999'})
        assert response.status_code == 422
