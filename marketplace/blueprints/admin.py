from flask import Blueprint, current_app, jsonify
from flask_login import login_required, current_user
from marketplace.middleware import role_required
from marketplace.services import lifecycle_service, refund_service
from marketplace.utils import get_json_body, get_page_args
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('admin', __name__)

ADMIN_ROLES = ('admin', 'superuser')


@bp.route('/api/admin/orders', methods=['GET'])
@login_required
@role_required(*ADMIN_ROLES)
def admin_orders():
    page, per_page = get_page_args(current_app.config['ITEMS_PER_PAGE'])
    result = lifecycle_service.list_orders(page=page, per_page=per_page)
    return jsonify({
        'orders': result['items'],
        'total': result['total'],
        'pages': result['pages'],
        'current_page': result['page'],
    })


@bp.route('/api/admin/orders/<int:order_id>', methods=['GET'])
@login_required
@role_required(*ADMIN_ROLES)
def admin_order_detail(order_id):
    return jsonify(lifecycle_service.order_details(order_id))


@bp.route('/api/admin/orders/<int:order_id>', methods=['DELETE'])
@login_required
@role_required(*ADMIN_ROLES)
def delete_order(order_id):
    refund = lifecycle_service.delete_order(order_id, actor=current_user)
    return jsonify({
        'success': True,
        'message': 'Order was deleted successfully.',
        'refundId': refund.id if refund else None,
    })


@bp.route('/api/admin/orders/<int:order_id>/status', methods=['PATCH'])
@login_required
@role_required(*ADMIN_ROLES)
def update_order_status(order_id):
    data = get_json_body()
    status = data.get('status')
    if status is None:
        return jsonify({'error': 'Status cannot be empty'}), 400

    order = lifecycle_service.update_order_status(
        order_id, status, actor=current_user)
    return jsonify({
        'success': True,
        'message': 'Order status updated',
        'status': order.status.value,
    })


@bp.route('/api/admin/order-progress-options', methods=['GET'])
@login_required
@role_required(*ADMIN_ROLES)
def order_progress_options():
    return jsonify(lifecycle_service.order_progress_options())


@bp.route('/api/admin/refunds', methods=['GET'])
@login_required
@role_required(*ADMIN_ROLES)
def list_refunds():
    return jsonify({'refunds': refund_service.list_refunds()})


@bp.route('/api/admin/refunds/<int:refund_id>', methods=['GET'])
@login_required
@role_required(*ADMIN_ROLES)
def refund_detail(refund_id):
    return jsonify(refund_service.refund_details(refund_id))


@bp.route('/api/admin/refunds/<int:refund_id>/progress', methods=['PATCH'])
@login_required
@role_required(*ADMIN_ROLES)
def update_refund_progress(refund_id):
    data = get_json_body()
    progress = data.get('progress')
    if progress is None:
        return jsonify({'error': 'Progress cannot be empty'}), 400

    refund = refund_service.update_refund_progress(
        refund_id, progress, actor=current_user)
    return jsonify({
        'success': True,
        'message': 'Refund progress updated',
        'progress': refund.progress.value,
        'status': refund.status.value,
    })
