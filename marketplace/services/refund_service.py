from flask import current_app
from marketplace.extensions import db
from marketplace.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from marketplace.models import (
    Order,
    Refund,
    RefundProgress,
    RefundReason,
    RefundStatus,
    User,
)
from marketplace.services.audit_service import log_audit
from marketplace.services.pricing_service import (
    round_for_currency,
    validate_price_format,
)
from marketplace.utils import isoformat
from sqlalchemy.exc import IntegrityError
from datetime import datetime, timedelta
import json
import logging

logger = logging.getLogger(__name__)

OTHER_REASON_MIN = 20
OTHER_REASON_MAX = 500


def retention_period():
    return timedelta(days=current_app.config.get('REFUND_RETENTION_DAYS', 14))


def refund_query(now=None):
    return Refund.live(retention_period(), now)


def get_refund_or_404(refund_id):
    refund = refund_query().filter(Refund.id == refund_id).first()
    if refund is None:
        raise NotFoundError('Refund not found!')
    return refund


def _refund_user_info(user):
    return {
        'userId': user.id,
        'email': user.email,
        'username': user.username,
    }


def _whole_order_refund_exists(order_id):
    return db.session.query(
        Refund.query.filter(
            Refund.order_id == order_id,
            Refund.prod_id.is_(None),
        ).exists()
    ).scalar()


def _line_refund_exists(order_id, prod_id):
    return db.session.query(
        Refund.query.filter_by(order_id=order_id, prod_id=prod_id).exists()
    ).scalar()


def _save_refund(refund):
    db.session.add(refund)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError('Refund already exist for this order.')


def request_refund(order_id, user, reason, other_reason=None,
                   image_urls=None, amount=None, prod_id=None):
    """Open a refund for a whole order or for one of its line items."""
    order = Order.live().filter(Order.id == order_id).first()
    if order is None:
        raise NotFoundError('No existing order for item/user!')
    if order.user_id != user.id:
        raise PermissionDeniedError('Unauthorized request!')

    refund_reason = RefundReason.from_label(reason)
    if refund_reason is None:
        raise ValidationError(f'Invalid refund reason [{reason}]')

    other_reason = (other_reason or '').strip() or None
    if refund_reason is RefundReason.OTHERS and other_reason is None:
        raise ValidationError('Please describe the reason for this refund.')
    if other_reason is not None and not (
            OTHER_REASON_MIN <= len(other_reason) <= OTHER_REASON_MAX):
        raise ValidationError('Description length too short :(')

    if amount is None:
        raise ValidationError('amount absent from request body')
    amount = validate_price_format(amount, 'amount')

    if image_urls is None:
        image_urls = []
    if not isinstance(image_urls, list):
        raise ValidationError('imageUrls must be a list')

    prod_id = str(prod_id) if prod_id not in (None, '') else None

    if _whole_order_refund_exists(order.id):
        raise ConflictError('Refund already exist for this order.')
    if prod_id is not None and _line_refund_exists(order.id, prod_id):
        raise ConflictError('Refund already exist for this item.')

    refund = Refund(
        user_id=user.id,
        user_info=_refund_user_info(user),
        amount=amount,
        order_id=order.id,
        prod_id=prod_id,
        reason=refund_reason,
        other_reason=other_reason,
        image_urls=image_urls,
    )
    # A refund request keeps the order alive until it is settled
    order.schedule_expiry(None)
    _save_refund(refund)

    log_audit(
        actor_id=user.id,
        actor_role=user.role.value,
        action='REFUND_REQUEST',
        target_type='REFUND',
        target_id=refund.id,
        payload={'orderId': order.id, 'prodId': prod_id,
                 'reason': refund_reason.value, 'amount': amount},
    )
    return refund


def build_cancellation_refund(order):
    """Stage the whole-order refund owed for a cancelled paid order.

    The refund is added to the session, not committed. Returns ``None``
    when the order already carries a whole-order refund.
    """
    if _whole_order_refund_exists(order.id):
        logger.info(
            "Order %s already has a whole-order refund, skipping", order.id)
        return None

    payment = order.payment or {}
    user = db.session.get(User, order.user_id)
    if user is not None:
        user_info = _refund_user_info(user)
    else:
        snapshot = order.user_info or {}
        user_info = {
            'userId': order.user_id,
            'email': snapshot.get('email'),
            'username': snapshot.get('fullname'),
        }

    amount = round_for_currency(
        payment.get('amount') or 0,
        payment.get('currency'),
        current_app.config.get('NATIVE_CURRENCY', 'NGN'),
    )
    refund = Refund(
        user_id=order.user_id,
        user_info=user_info,
        amount=str(amount),
        order_id=order.id,
        reason=RefundReason.CANCELED_ORDER,
        progress=RefundProgress.PROCESSING,
        image_urls=[],
    )
    db.session.add(refund)
    return refund


def update_refund_progress(refund_id, progress, actor=None):
    refund = get_refund_or_404(refund_id)
    new_progress = RefundProgress.from_label(progress)
    if new_progress is None:
        raise ValidationError(f'Invalid input! [{progress}]')

    refund.progress = new_progress
    if new_progress is RefundProgress.SUCCEEDED:
        now = datetime.utcnow()
        refund.status = RefundStatus.COMPLETED
        refund.completed_at = now
        order = db.session.get(Order, refund.order_id)
        if order is not None:
            order.schedule_expiry(now)
    db.session.commit()

    log_audit(
        actor_id=getattr(actor, 'id', None),
        actor_role=actor.role.value if actor is not None else 'SYSTEM',
        action='REFUND_PROGRESS_UPDATE',
        target_type='REFUND',
        target_id=refund.id,
        payload={'progress': new_progress.value,
                 'status': refund.status.value},
    )
    return refund


def _order_currencies(order_ids):
    if not order_ids:
        return {}
    orders = Order.query.filter(Order.id.in_(order_ids)).all()
    return {
        order.id: (order.payment or {}).get('currency')
        for order in orders
    }


def list_refunds():
    refunds = refund_query().order_by(Refund.created_at.desc()).all()
    currencies = _order_currencies([refund.order_id for refund in refunds])
    return [
        {
            'id': refund.id,
            'username': refund.user_info.get('username'),
            'amount': refund.amount,
            'currency': currencies.get(refund.order_id),
            'status': refund.status.value,
            'createdAt': isoformat(refund.created_at),
        }
        for refund in refunds
    ]


def _order_content_snapshot(order):
    if order is None:
        return {}
    if order.items is not None:
        return {'items': order.items}
    return {'product': order.product}


def refund_details(refund_id):
    refund = get_refund_or_404(refund_id)
    order = db.session.get(Order, refund.order_id)
    return {
        'id': refund.id,
        'email': refund.user_info.get('email'),
        'username': refund.user_info.get('username'),
        'amount': refund.amount,
        'currency': (order.payment or {}).get('currency') if order else None,
        'orderId': refund.order_id,
        'prodId': refund.prod_id,
        'orderInfo': json.dumps(_order_content_snapshot(order)),
        'reason': refund.reason.value,
        'otherReason': refund.other_reason,
        'imageUrls': refund.image_urls,
        'progress': refund.progress.value,
        'status': refund.status.value,
        'createdAt': isoformat(refund.created_at),
        'updatedAt': isoformat(refund.updated_at),
    }


def order_refund_summary(order_id, user):
    """What the buyer may claim back for an order."""
    order = Order.live().filter(Order.id == order_id).first()
    if order is None:
        raise NotFoundError('Order does not exists!')
    if order.user_id != user.id:
        raise PermissionDeniedError('Unauthorized request!')

    payment = order.payment or {}
    amount = None
    if payment:
        amount = f"{payment.get('amount')} {payment.get('currency')}"
    return {
        'orderId': order.id,
        'amount': amount,
        'orderInfo': json.dumps(order.items if order.items is not None
                                else order.product),
    }


def user_refund_info(order_id, user):
    refund = refund_query().filter(
        Refund.order_id == order_id,
        Refund.user_id == user.id,
    ).order_by(Refund.prod_id.isnot(None), Refund.created_at).first()
    if refund is None:
        raise NotFoundError('Refund not available!')

    order = db.session.get(Order, refund.order_id)
    return {
        'amount': refund.amount,
        'orderInfo': _order_content_snapshot(order),
        'prodId': refund.prod_id,
        'reason': refund.reason.value,
        'otherReason': refund.other_reason,
        'imageUrls': refund.image_urls,
        'progress': refund.progress.value,
        'status': refund.status.value,
        'createdAt': isoformat(refund.created_at),
        'updatedAt': isoformat(refund.updated_at),
    }
