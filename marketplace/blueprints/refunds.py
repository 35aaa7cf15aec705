from flask import Blueprint, jsonify
from flask_login import login_required, current_user
from marketplace.services import refund_service
from marketplace.utils import get_json_body
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('refunds', __name__)


@bp.route('/api/orders/<int:order_id>/refund', methods=['GET'])
@login_required
def order_refund(order_id):
    return jsonify(
        refund_service.order_refund_summary(order_id, current_user))


@bp.route('/api/orders/<int:order_id>/refunds', methods=['POST'])
@login_required
def create_refund(order_id):
    data = get_json_body()
    refund = refund_service.request_refund(
        order_id,
        current_user,
        reason=data.get('reason'),
        other_reason=data.get('otherReason'),
        image_urls=data.get('imageUrls'),
        amount=data.get('amount'),
        prod_id=data.get('prodId'),
    )
    return jsonify({
        'success': True,
        'message': 'Refund request created successfully',
        'refundId': refund.id,
    }), 201


@bp.route('/api/orders/<int:order_id>/refund-info', methods=['GET'])
@login_required
def refund_info(order_id):
    return jsonify(refund_service.user_refund_info(order_id, current_user))
