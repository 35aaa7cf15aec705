"""Payment verification pipeline.

One request runs the stages in order: gateway verification, order write,
stock batch, purchase history. Each stage commits on its own; a failure in
a later stage never undoes an earlier one.
"""
from marketplace.extensions import db
from marketplace.errors import (
    ConflictError,
    GatewayError,
    NotFoundError,
    PermissionDeniedError,
    StockReconciliationError,
    ValidationError,
)
from marketplace.models import (
    Order,
    OrderStatus,
    PaymentStatus,
    SingleItemContent,
)
from marketplace.services.audit_service import log_audit
from marketplace.services.loyalty_service import (
    purchased_products,
    record_purchase,
)
from marketplace.services.order_service import (
    OrderInfo,
    build_user_info,
    create_order,
    create_pod_order,
    describe_document,
    require_checkout_fields,
    validate_collection_name,
    validate_order_content,
)
from marketplace.services.paystack_service import VerifyOutcome, get_gateway
from marketplace.services.pricing_service import (
    from_minor_units,
    native_currency_code,
    resolve_currency,
    validate_price_format,
)
from marketplace.services.stock_service import reconcile_stock
from dataclasses import dataclass, replace
from decimal import Decimal
import enum
import logging

logger = logging.getLogger(__name__)


class ReconciliationOutcome(enum.Enum):
    ORDER_CREATED = 'order_created'
    ORDER_CONFIRMED = 'order_confirmed'
    INSPECTION_FEE_PAID = 'inspection_fee_paid'
    REJECTED = 'rejected'


@dataclass
class ReconciliationResult:
    outcome: ReconciliationOutcome
    body: dict
    status_code: int = 200


def _user_can_settle(order, user):
    return order.user_id == user.id or user.is_admin


def _load_deferred_order(order_id, user):
    order = Order.live().filter(Order.id == order_id).first()
    if order is None:
        raise NotFoundError('Order was not found!')
    if not _user_can_settle(order, user):
        raise PermissionDeniedError('Unauthorized request!')
    if not order.awaiting_payment:
        raise ConflictError('Order is not awaiting payment.')
    return order


def _check_request(body, collection_name):
    """Reject malformed requests before the gateway is asked anything."""
    order_data = body.get('orderData')
    if not isinstance(order_data, dict):
        raise ValidationError('orderData absent from request body')
    if order_data.get('inspectionFee'):
        validate_collection_name(collection_name)
        validate_order_content(order_data, collection_name)
    elif order_data.get('orderId') in (None, ''):
        user_data = body.get('userData')
        if not isinstance(user_data, dict):
            raise ValidationError('userData absent from request body')
        require_checkout_fields(user_data, order_data)
        validate_order_content(order_data, collection_name)
    return order_data


def build_payment_data(reference, verification, gateway_name='Paystack'):
    data = verification.data
    return {
        'gateway': gateway_name,
        'transRef': reference,
        'amount': from_minor_units(data.get('amount') or 0),
        'currency': data.get('currency'),
        'rate': resolve_currency().rate,
        'method': data.get('channel'),
    }


def _mark_paid(order, payment_data):
    """Settle a deferred order; returns the buyer-facing product details."""
    order.status = OrderStatus.COMPLETED
    order.pay_on_delivery = None
    order.payment = payment_data

    content = order.content
    if isinstance(content, SingleItemContent):
        price = content.to_pay
        order.content = replace(
            content,
            to_pay=None,
            payment_status=PaymentStatus.PAID.value,
        )
        return describe_document(content.collection, content.ref, price)
    return order.items


def confirm_deferred_order(user, order, payment_data):
    details = _mark_paid(order, payment_data)
    db.session.commit()

    log_audit(
        actor_id=user.id,
        actor_role=user.role.value,
        action='PAYMENT_CONFIRM_DEFERRED',
        target_type='ORDER',
        target_id=order.id,
        payload={'transRef': payment_data.get('transRef'),
                 'amount': payment_data.get('amount')},
    )
    return order, OrderInfo(
        order_no=order.order_no,
        product_details=details,
        total=payment_data.get('amount'),
        order_id=order.id,
    )


def reconcile_order_stock(order):
    """Run the stock batch for a cart order.

    Returns ``None`` for orders without line items, otherwise whether the
    batch succeeded.
    """
    if order.items is None:
        return None
    try:
        reconcile_stock(order.items)
    except StockReconciliationError:
        logger.error(
            "Order %s was paid but its stock was not reconciled", order.id)
        return False
    return True


def _finish(order, user_id, total, body):
    stock_reconciled = reconcile_order_stock(order)
    if stock_reconciled is not None:
        body['stockReconciled'] = stock_reconciled
    record_purchase(user_id, purchased_products(order), total)
    return body


def verify_payment(user, body, collection_name=None):
    reference = body.get('reference')
    if not reference:
        raise ValidationError('Failed: invalid transaction reference.')
    order_data = _check_request(body, collection_name)
    order_id = order_data.get('orderId')
    deferred = None
    if not order_data.get('inspectionFee') and order_id not in (None, ''):
        deferred = _load_deferred_order(order_id, user)

    gateway = get_gateway()
    verification = gateway.verify(reference)
    trans_info = verification.to_dict()

    if verification.outcome is VerifyOutcome.ERROR:
        log_audit(
            actor_id=user.id,
            actor_role=user.role.value,
            action='PAYMENT_VERIFY_ERROR',
            target_type='PAYMENT',
            payload={'reference': reference, 'error': verification.error},
        )
        raise GatewayError(
            verification.error or 'Payment verification failed.')

    if not verification.accepted:
        log_audit(
            actor_id=user.id,
            actor_role=user.role.value,
            action='PAYMENT_REJECTED',
            target_type='PAYMENT',
            payload={'reference': reference,
                     'status': verification.data.get('status')},
        )
        return ReconciliationResult(
            ReconciliationOutcome.REJECTED, trans_info, 500)

    if order_data.get('inspectionFee'):
        order_info = create_pod_order(
            user, collection_name, body, reference=reference)
        return ReconciliationResult(
            ReconciliationOutcome.INSPECTION_FEE_PAID,
            {'orderInfo': order_info, 'transInfo': trans_info},
            201,
        )

    payment_data = build_payment_data(
        reference, verification, getattr(gateway, 'gateway_name', 'Paystack'))

    if deferred is None:
        user_info = build_user_info(user, body.get('userData'))
        info = create_order(
            user_info, order_data, payment_data, collection_name)
        order = db.session.get(Order, info.order_id)
        outcome = ReconciliationOutcome.ORDER_CREATED
    else:
        order, info = confirm_deferred_order(user, deferred, payment_data)
        outcome = ReconciliationOutcome.ORDER_CONFIRMED

    response = {'orderInfo': info.to_dict(), 'transInfo': trans_info}
    _finish(order, order.user_id, payment_data['amount'], response)
    return ReconciliationResult(outcome, response, 200)


def _as_amount(text):
    value = Decimal(text)
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def verify_offline_payment(user, body):
    """Settle an order paid by bank transfer against an uploaded receipt."""
    order_id = body.get('orderId')
    if order_id in (None, ''):
        raise ValidationError('orderId absent from request body')
    if body.get('total') in (None, ''):
        raise ValidationError('total absent from request body')
    total = _as_amount(validate_price_format(body.get('total'), 'total'))

    order = _load_deferred_order(order_id, user)
    payment_data = {
        'gateway': 'Offline',
        'method': 'transfer',
        'currency': native_currency_code(),
        'amount': total,
        'transReceipt': body.get('receipt'),
    }
    _mark_paid(order, payment_data)
    db.session.commit()

    log_audit(
        actor_id=user.id,
        actor_role=user.role.value,
        action='PAYMENT_CONFIRM_OFFLINE',
        target_type='ORDER',
        target_id=order.id,
        payload={'amount': total, 'receipt': body.get('receipt')},
    )

    response = {'success': True, 'message': 'Order completed successfully.'}
    return _finish(order, order.user_id, total, response)
