from flask import Blueprint, jsonify
from flask_login import login_required, current_user
from marketplace.services import lifecycle_service, order_service
from marketplace.utils import get_json_body
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('orders', __name__)


# Pay-on-delivery orders; cname is the collection name
@bp.route('/create-pod-order/<cname>', methods=['POST'])
@login_required
def create_pod_order(cname):
    body = get_json_body()
    order_info = order_service.create_pod_order(
        current_user, cname, body, reference=body.get('reference'))
    return jsonify({'orderInfo': order_info}), 201


@bp.route('/api/orders', methods=['GET'])
@login_required
def order_list():
    orders = lifecycle_service.list_user_orders(current_user)
    return jsonify({'orders': orders})


@bp.route('/api/orders/<int:order_id>', methods=['GET'])
@login_required
def order_detail(order_id):
    return jsonify(
        lifecycle_service.user_order_details(order_id, current_user))

