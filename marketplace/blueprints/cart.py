from flask import Blueprint, jsonify
from flask_login import login_required, current_user
from marketplace.extensions import db
from marketplace.models import CartItem, Product
from marketplace.services.checkout_service import cart_lines
from marketplace.services.pricing_service import resolve_currency
from marketplace.utils import get_json_body
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('cart', __name__)


def _parse_quantity(value, default=None):
    if value is None:
        value = default
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


@bp.route('/cart', methods=['GET'])
@login_required
def get_cart():
    currency = resolve_currency()
    items = cart_lines(current_user, currency)
    return jsonify({
        'items': items,
        'currency': currency.code,
        'total_items': sum(item['qty'] for item in items),
    })


@bp.route('/api/cart/items', methods=['POST'])
@login_required
def add_cart_item():
    data = get_json_body()
    product_id = data.get('product_id')
    quantity = _parse_quantity(data.get('quantity'), default=1)

    if not product_id:
        return jsonify({'error': 'Product ID cannot be empty'}), 400

    if quantity is None or quantity <= 0:
        return jsonify({'error': 'Quantity must be greater than 0'}), 400

    product = db.session.get(Product, product_id)
    if product is None:
        return jsonify(
            {'error': 'Product not found, please refresh page'}), 404

    cart_item = db.session.get(CartItem, (current_user.id, product.id))

    if cart_item:
        cart_item.quantity = cart_item.quantity + quantity
    else:
        cart_item = CartItem(
            user_id=current_user.id,
            product_id=product.id,
            quantity=quantity
        )
        db.session.add(cart_item)

    db.session.commit()

    return jsonify({
        'ok': True,
        'cart_item': {
            'product_id': cart_item.product_id,
            'quantity': cart_item.quantity
        }
    }), 201


@bp.route('/api/cart/items/<int:product_id>', methods=['PATCH'])
@login_required
def update_cart_item(product_id):
    data = get_json_body()
    quantity = _parse_quantity(data.get('quantity'))

    if quantity is None:
        return jsonify({'error': 'Quantity cannot be empty'}), 400

    if quantity <= 0:
        return jsonify({'error': 'Quantity must be greater than 0'}), 400

    cart_item = db.session.get(CartItem, (current_user.id, product_id))
    if cart_item is None:
        return jsonify(
            {'error': 'Cart item not found, please refresh page'}), 404

    cart_item.quantity = quantity
    db.session.commit()

    return jsonify({
        'ok': True,
        'cart_item': {
            'product_id': cart_item.product_id,
            'quantity': cart_item.quantity
        }
    })


@bp.route('/api/cart/items/<int:product_id>', methods=['DELETE'])
@login_required
def delete_cart_item(product_id):
    cart_item = db.session.get(CartItem, (current_user.id, product_id))
    if cart_item is None:
        return jsonify(
            {'error': 'Cart item not found, please refresh page'}), 404

    db.session.delete(cart_item)
    db.session.commit()

    return jsonify({'ok': True})
