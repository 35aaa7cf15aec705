from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user
from marketplace.services import reconciliation_service
from marketplace.utils import get_json_body
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('payments', __name__)


@bp.route('/verify-payment', methods=['POST'])
@login_required
def verify_payment():
    """Verify a gateway reference and settle the order it pays for.

    ``cname`` names the collection of a single-item order.
    """
    result = reconciliation_service.verify_payment(
        current_user,
        get_json_body(),
        request.args.get('cname'),
    )
    logger.info(
        "Payment verification for user %s: %s",
        current_user.id, result.outcome.value)
    return jsonify(result.body), result.status_code


@bp.route('/verify-offline-payment', methods=['POST'])
@login_required
def verify_offline_payment():
    body = reconciliation_service.verify_offline_payment(
        current_user, get_json_body())
    return jsonify(body)
