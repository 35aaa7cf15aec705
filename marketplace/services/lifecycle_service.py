from marketplace.extensions import db
from marketplace.errors import (
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from marketplace.models import (
    FULFILLED_ORDER_STATUSES,
    Order,
    OrderStatus,
)
from marketplace.services.audit_service import log_audit
from marketplace.services import refund_service
from marketplace.utils import isoformat, paginate_query
import logging

logger = logging.getLogger(__name__)

SHOP_PROGRESS = (
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED_PAYMENT,
    OrderStatus.PROCESSING,
    OrderStatus.PROCESSED,
    OrderStatus.DELIVERED,
    OrderStatus.COMPLETED,
)

SERVICE_PROGRESS = (
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED_PAYMENT,
    OrderStatus.PROCESSED,
    OrderStatus.RECEIVED,
    OrderStatus.REPAIR_IN_PROGRESS,
    OrderStatus.REPAIR_SUCCEEDED,
    OrderStatus.REPAIR_FAILED,
    OrderStatus.SENT,
    OrderStatus.DELIVERED,
    OrderStatus.PAID,
)

# What buyers see for each stored status; anything else reads "Pending".
USER_STATUS_LABELS = {
    OrderStatus.COMPLETED: 'Completed',
    OrderStatus.DELIVERED: 'Delivered',
    OrderStatus.PROCESSED: 'On its way!',
    OrderStatus.PROCESSING: 'Processing',
    OrderStatus.CONFIRMED_PAYMENT: 'Received',
}


def get_order_or_404(order_id):
    order = Order.live().filter(Order.id == order_id).first()
    if order is None:
        raise NotFoundError('Order not found :(')
    return order


def list_orders(page=1, per_page=20):
    query = Order.live().order_by(Order.created_at.desc())
    result = paginate_query(query, page=page, per_page=per_page)
    result['items'] = [
        {
            'orderId': order.id,
            'email': (order.user_info or {}).get('email'),
            'status': order.status.value,
            'date': isoformat(order.created_at),
        }
        for order in result['items']
    ]
    return result


def order_details(order_id):
    order = get_order_or_404(order_id)
    user_info = order.user_info or {}
    details = {
        'orderId': order.id,
        'orderNo': order.order_no,
        'user': {
            'name': user_info.get('fullname'),
            'email': user_info.get('email'),
            'deliveryAddress': user_info.get('deliveryAddress'),
            'phone': user_info.get('phone'),
        },
        'products': None,
        'product': order.product,
        'payOnDelivery': order.pay_on_delivery,
        'payment': order.payment,
        'date': isoformat(order.created_at),
        'status': order.status.value,
    }
    if order.items is not None:
        details['products'] = [
            {
                'title': item.get('title'),
                'category': item.get('category'),
                'imageUrl': item.get('imageUrl'),
                'price': item.get('price'),
                'qty': item.get('qty'),
            }
            for item in order.items
        ]
    return details


def order_progress_options():
    return {
        'shop': [status.value for status in SHOP_PROGRESS],
        'service': [status.value for status in SERVICE_PROGRESS],
        'all': OrderStatus.labels(),
    }


def update_order_status(order_id, value, actor=None):
    """Move an order to any status of the enum; no transition rules apply."""
    order = get_order_or_404(order_id)
    status = OrderStatus.from_label(value)
    if status is None:
        shown = value.strip().lower() if isinstance(value, str) else value
        raise ValidationError(f'Invalid input! [{shown}]')

    previous = order.status
    order.status = status
    db.session.commit()

    log_audit(
        actor_id=getattr(actor, 'id', None),
        actor_role=actor.role.value if actor is not None else 'SYSTEM',
        action='ORDER_STATUS_UPDATE',
        target_type='ORDER',
        target_id=order.id,
        payload={'from': previous.value, 'to': status.value},
    )
    return order


def is_refundable_cancellation(order):
    return (order.payment is not None
            and order.status not in FULFILLED_ORDER_STATUSES)


def delete_order(order_id, actor=None):
    """Delete an order, refunding the buyer when a paid order is cancelled."""
    order = get_order_or_404(order_id)
    refund = None
    if is_refundable_cancellation(order):
        refund = refund_service.build_cancellation_refund(order)

    db.session.delete(order)
    db.session.commit()

    log_audit(
        actor_id=getattr(actor, 'id', None),
        actor_role=actor.role.value if actor is not None else 'SYSTEM',
        action='ORDER_DELETE',
        target_type='ORDER',
        target_id=order_id,
        payload={'refundId': refund.id if refund else None},
    )
    if refund is not None:
        logger.info(
            "Cancellation refund %s created for order %s",
            refund.id, order_id)
    return refund


def user_status_label(status):
    return USER_STATUS_LABELS.get(status, 'Pending')


def list_user_orders(user):
    orders = Order.live().filter(Order.user_id == user.id).order_by(
        Order.created_at.desc()).all()
    return [
        {
            'orderId': order.id,
            'orderNo': order.order_no,
            'date': order.created_at.strftime('%a %b %d %Y'),
            'status': user_status_label(order.status),
        }
        for order in orders
    ]


def user_order_details(order_id, user):
    order = Order.live().filter(Order.id == order_id).first()
    if order is None:
        raise NotFoundError('Order not found')
    if order.user_id != user.id:
        raise PermissionDeniedError('Unauthorized request!')

    payment = order.payment or {}
    pod = order.pay_on_delivery or {}
    total = payment.get('amount', pod.get('totalAmount'))
    return {
        'orderNo': order.order_no,
        'totalAmount': str(total) if total is not None else None,
        'orderStatus': order.status.value,
        'products': order.items,
        'product': order.product,
    }
