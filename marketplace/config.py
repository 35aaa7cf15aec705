import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or (
        'dev-secret-key-change-in-production'
    )
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or (
        'sqlite:///marketplace.db'
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Paystack config.
    PAYSTACK_SECRET_KEY = os.environ.get('PAYSTACK_SK', '')
    PAYSTACK_BASE_URL = os.environ.get(
        'PAYSTACK_BASE_URL', 'https://api.paystack.co'
    )
    # Seconds; applies to both initialize and verify calls.
    PAYMENT_GATEWAY_TIMEOUT = float(
        os.environ.get('PAYMENT_GATEWAY_TIMEOUT', '30')
    )

    # Catalog prices are stored in the native currency.
    NATIVE_CURRENCY = 'NGN'
    # Currency used to display prices and recorded on new payments.
    DEFAULT_CURRENCY = os.environ.get('DEFAULT_CURRENCY', 'NGN')

    # Pagination configuration
    ITEMS_PER_PAGE = 20

    # XP granted on every confirmed purchase
    LOYALTY_XP_INCREMENT = 5

    # Completed refunds are kept this many days after completion
    REFUND_RETENTION_DAYS = 14
