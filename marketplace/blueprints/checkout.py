from flask import Blueprint, jsonify
from flask_login import login_required, current_user
from marketplace.services import checkout_service
from marketplace.utils import get_json_body
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('checkout', __name__)


@bp.route('/api/checkout', methods=['GET'])
@login_required
def get_checkout():
    return jsonify(checkout_service.checkout_summary(current_user))


@bp.route('/api/checkout/initialize', methods=['POST'])
@login_required
def initialize_checkout():
    data = get_json_body()
    result = checkout_service.initialize_payment(
        current_user,
        amount=data.get('amount'),
        email=data.get('email') or current_user.email,
        delivery_address=data.get('deliveryAddress'),
        phone=data.get('phone'),
    )
    return jsonify(result)
