"""
Pytest configuration and fixtures.
"""
from datetime import datetime

import pytest
from flask import g

from marketplace import create_app
from marketplace.config import Config
from marketplace.extensions import db
from marketplace.models import (
    CartContent,
    Currency,
    GameRepair,
    Order,
    OrderStatus,
    Product,
    SingleItemContent,
    User,
    UserRole,
)
from marketplace.services.paystack_service import (
    InitializedTransaction,
    VerifyOutcome,
    VerifyResult,
)


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SECRET_KEY = 'test-secret'
    PAYSTACK_SECRET_KEY = 'sk_test_fake_key_for_testing'
    DEFAULT_CURRENCY = 'NGN'


class FakeGateway:
    """Payment gateway double answering from queued verify results."""

    gateway_name = 'Paystack'

    def __init__(self):
        self.results = {}
        self.verified = []
        self.initialized = []

    def queue(self, reference, result):
        self.results[reference] = result

    def verify(self, reference):
        self.verified.append(reference)
        return self.results.get(
            reference,
            VerifyResult(outcome=VerifyOutcome.ERROR,
                         error='Unknown reference'),
        )

    def initialize(self, email, amount_minor):
        self.initialized.append((email, amount_minor))
        return InitializedTransaction(
            access_code='ac_test_123', reference='ref_init_123')


def accepted(amount_minor, currency='NGN', channel='card', reference='ref'):
    return VerifyResult(
        outcome=VerifyOutcome.ACCEPTED,
        verified=True,
        data={
            'id': 1001,
            'status': 'success',
            'reference': reference,
            'amount': amount_minor,
            'currency': currency,
            'channel': channel,
            'metadata': None,
        },
        message='Verification successful',
    )


def rejected(amount_minor, status='failed'):
    return VerifyResult(
        outcome=VerifyOutcome.REJECTED,
        verified=True,
        data={'status': status, 'amount': amount_minor, 'currency': 'NGN'},
    )


@pytest.fixture
def app():
    """Create the application on an in-memory database."""
    app = create_app(TestConfig)
    app.extensions['payment_gateway'] = FakeGateway()
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def gateway(app):
    return app.extensions['payment_gateway']


def make_user(email, username, role=UserRole.STANDARD, **fields):
    user = User(
        email=email,
        username=username,
        first_name=fields.pop('first_name', 'Test'),
        last_name=fields.pop('last_name', username.title()),
        role=role,
        **fields,
    )
    user.set_password('password123')
    db.session.add(user)
    db.session.commit()
    return user


def make_product(title='DualSense Controller', price='19.99', stock_qty=10,
                 **fields):
    product = Product(
        title=title,
        category=fields.pop('category', 'Accessories'),
        subcategory=fields.pop('subcategory', 'Controllers'),
        condition=fields.pop('condition', 'New'),
        price=price,
        stock_qty=stock_qty,
        image_urls=fields.pop(
            'image_urls', ['/img/a/slot1.jpg', '/img/a/slot0.jpg']),
        **fields,
    )
    db.session.add(product)
    db.session.commit()
    return product


def line_item(product, qty=1, price=None):
    return {
        'prodId': str(product.id),
        'title': product.title,
        'category': product.category,
        'subcategory': product.subcategory,
        'condition': product.condition,
        'imageUrl': product.cover_image_url,
        'price': price if price is not None else str(product.price),
        'qty': qty,
    }


def user_info_for(user):
    return {
        'userId': user.id,
        'email': user.email,
        'fullname': user.fullname,
        'phone': '08030000000',
        'deliveryAddress': '12 Allen Avenue, Ikeja',
    }


def make_cart_order(user, items, payment=None, status=OrderStatus.PENDING,
                    pay_on_delivery=None):
    order = Order(
        user_id=user.id,
        user_info=user_info_for(user),
        payment=payment,
        pay_on_delivery=pay_on_delivery,
        status=status,
    )
    order.content = CartContent(items=items)
    db.session.add(order)
    db.session.commit()
    return order


def make_service_order(user, document, collection='gamerepairs',
                       payment=None, to_pay=None,
                       payment_status='Pending', status=OrderStatus.PENDING,
                       pay_on_delivery=None):
    order = Order(
        user_id=user.id,
        user_info=user_info_for(user),
        payment=payment,
        pay_on_delivery=pay_on_delivery,
        status=status,
    )
    order.content = SingleItemContent(
        collection=collection,
        ref=document.id,
        payment_status=payment_status,
        to_pay=to_pay,
    )
    db.session.add(order)
    db.session.commit()
    return order


def paystack_payment(amount, reference='ref_paid', currency='NGN'):
    return {
        'gateway': 'Paystack',
        'transRef': reference,
        'amount': amount,
        'currency': currency,
        'rate': 1.0,
        'method': 'card',
    }


def login(client, user):
    """Attach ``user`` to the test client's session."""
    with client.session_transaction() as sess:
        sess['_user_id'] = str(user.id)
        sess['_fresh'] = True
    # The app context outlives requests, so drop any cached user
    g.pop('_login_user', None)


@pytest.fixture
def buyer(app):
    return make_user(
        'buyer@example.com', 'buyer',
        phone='08030000000', delivery_address='12 Allen Avenue, Ikeja')


@pytest.fixture
def other_buyer(app):
    return make_user('other@example.com', 'other')


@pytest.fixture
def admin_user(app):
    return make_user('admin@example.com', 'admin', role=UserRole.ADMIN)


@pytest.fixture
def controller(app):
    return make_product()


@pytest.fixture
def repair(app):
    document = GameRepair(
        title='HDMI port replacement', category='Console repair',
        price='30000')
    db.session.add(document)
    db.session.commit()
    return document


@pytest.fixture
def usd(app):
    currency = Currency(country='United States', code='USD', rate=0.0013)
    db.session.add(currency)
    db.session.commit()
    return currency


@pytest.fixture
def now():
    return datetime(2024, 5, 1, 12, 0, 0)
