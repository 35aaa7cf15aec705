from marketplace.errors import ValidationError
from marketplace.models import CartItem
from marketplace.services.audit_service import log_audit
from marketplace.services.paystack_service import get_gateway
from marketplace.services.pricing_service import (
    convert,
    native_currency_code,
    resolve_currency,
    round_for_currency,
    to_minor_units,
    validate_price_format,
)
import logging

logger = logging.getLogger(__name__)


def cart_lines(user, currency=None):
    """Cart lines priced in the display currency."""
    currency = currency or resolve_currency()
    native = native_currency_code()
    items = CartItem.query.filter_by(user_id=user.id).all()
    lines = []
    for item in items:
        product = item.product
        lines.append({
            'prodId': str(product.id),
            'title': product.title,
            'category': product.category,
            'subcategory': product.subcategory,
            'condition': product.condition,
            'imageUrl': product.cover_image_url,
            'price': convert(product.price, currency, native),
            'qty': item.quantity,
            'stockQty': product.stock_qty,
        })
    return lines


def checkout_summary(user):
    currency = resolve_currency()
    lines = cart_lines(user, currency)
    for line in lines:
        line.pop('stockQty')
    sub_total = round_for_currency(
        sum(line['price'] * line['qty'] for line in lines),
        currency.code,
        native_currency_code(),
    )
    return {
        'products': lines,
        'subTotal': sub_total,
        'currency': currency.code,
        'fullname': f'{user.fullname} ({user.username})',
        'email': user.email,
        'phone': user.phone,
        'deliveryAddress': user.delivery_address,
    }


def initialize_payment(user, amount, email, delivery_address=None,
                       phone=None):
    """Open a gateway transaction the buyer completes client-side."""
    if not email:
        raise ValidationError('email absent from request body')
    amount = validate_price_format(amount, 'amount')
    amount_minor = to_minor_units(amount)
    if amount_minor <= 0:
        raise ValidationError('Amount must be greater than 0')

    transaction = get_gateway().initialize(email, amount_minor)

    log_audit(
        actor_id=user.id,
        actor_role=user.role.value,
        action='PAYMENT_INITIALIZE',
        target_type='PAYMENT',
        payload={'reference': transaction.reference,
                 'amountMinor': amount_minor},
    )
    body = transaction.to_dict()
    body.update({'deliveryAddress': delivery_address, 'phone': phone})
    return body
