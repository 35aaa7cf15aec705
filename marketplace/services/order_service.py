from marketplace.extensions import db
from marketplace.errors import NotFoundError, ValidationError
from marketplace.models import (
    CartContent,
    CartItem,
    Order,
    OrderStatus,
    ORDER_COLLECTIONS,
    PaymentStatus,
    SingleItemContent,
)
from marketplace.services.audit_service import log_audit
from marketplace.services.pricing_service import validate_price_format
from dataclasses import dataclass
from typing import Any, Optional
import logging

logger = logging.getLogger(__name__)

USER_FIELDS = ('fullname', 'email', 'deliveryAddress', 'phone')
LINE_ITEM_FIELDS = (
    'prodId',
    'title',
    'category',
    'subcategory',
    'condition',
    'imageUrl',
    'price',
    'qty',
)


@dataclass
class OrderInfo:
    order_no: str
    product_details: Any
    total: Any
    order_id: Optional[int] = None

    def to_dict(self):
        return {
            'orderNo': self.order_no,
            'productDetails': self.product_details,
            'total': self.total,
        }


def build_user_info(user, user_data=None):
    """Snapshot of the buyer stored on the order."""
    user_data = user_data or {}
    return {
        'userId': user.id,
        'email': user_data.get('email') or user.email,
        'fullname': user_data.get('fullname') or user.fullname,
        'phone': user_data.get('phone') or user.phone,
        'deliveryAddress': (user_data.get('deliveryAddress')
                            or user.delivery_address),
    }


def require_content_fields(order_data):
    if 'items' not in order_data and 'prodId' not in order_data:
        raise ValidationError("'items' or 'prodId' must be provided!")
    if 'items' in order_data and 'prodId' in order_data:
        raise ValidationError("Provide either 'items' or 'prodId', not both.")
    if 'items' in order_data:
        required = ('items', 'subTotal')
    else:
        required = ('prodId', 'price')
    for name in required:
        if name not in order_data:
            raise ValidationError(f'{name} absent from request body')


def require_checkout_fields(user_data, order_data):
    """Checkout bodies need the buyer fields plus one kind of content."""
    require_content_fields(order_data)
    for name in USER_FIELDS:
        if name not in user_data:
            raise ValidationError(f'{name} absent from request body')


def normalize_items(items):
    if not isinstance(items, list) or not items:
        raise ValidationError('items must be a non-empty list')

    normalized = []
    for raw in items:
        if not isinstance(raw, dict) or raw.get('prodId') in (None, ''):
            raise ValidationError('Every item needs a prodId')
        try:
            qty = int(raw.get('qty', 1))
        except (TypeError, ValueError):
            raise ValidationError('Item quantity must be a whole number')
        if qty <= 0:
            raise ValidationError('Item quantity must be greater than 0')
        item = {name: raw.get(name) for name in LINE_ITEM_FIELDS}
        item['prodId'] = str(_parse_ref(raw['prodId']))
        item['price'] = validate_price_format(raw.get('price'), 'item price')
        item['qty'] = qty
        normalized.append(item)
    return normalized


def validate_collection_name(collection_name):
    if collection_name not in ORDER_COLLECTIONS:
        raise ValidationError('Invalid url params!')
    return collection_name


def _parse_ref(ref):
    if isinstance(ref, bool):
        raise ValidationError('Invalid prodId')
    try:
        return int(str(ref).strip())
    except (TypeError, ValueError):
        raise ValidationError('Invalid prodId')


def validate_order_content(order_data, collection_name=None):
    """Check the content of a checkout body without writing anything."""
    require_content_fields(order_data)
    if 'items' in order_data:
        normalize_items(order_data['items'])
    else:
        validate_collection_name(collection_name)
        _parse_ref(order_data['prodId'])
        validate_price_format(order_data.get('price'))


def find_collection_document(collection_name, ref):
    model = ORDER_COLLECTIONS[collection_name]
    try:
        return db.session.get(model, int(ref))
    except (TypeError, ValueError):
        return None


def describe_document(collection_name, ref, price):
    """Display copy of a collection document, carrying the order price."""
    document = find_collection_document(collection_name, ref)
    details = document.to_dict() if document is not None else {}
    details['id'] = str(ref)
    details['price'] = price
    return details


def create_order(user_info, order_data, payment_data, collection_name=None):
    """Persist an already paid order and describe it for the buyer."""
    if order_data.get('prodId') not in (None, ''):
        validate_collection_name(collection_name)
        ref = _parse_ref(order_data['prodId'])
        price = validate_price_format(order_data.get('price'))
        content = SingleItemContent(
            collection=collection_name,
            ref=ref,
            payment_status=PaymentStatus.PAID.value,
        )
    else:
        content = CartContent(items=normalize_items(order_data.get('items')))

    order = Order(
        user_id=user_info['userId'],
        user_info=user_info,
        payment=payment_data,
        status=OrderStatus.PENDING,
    )
    order.content = content
    db.session.add(order)
    db.session.commit()

    if isinstance(content, SingleItemContent):
        details = describe_document(collection_name, content.ref, price)
        if 'title' not in details:
            logger.warning(
                "Paid order %s references missing %s/%s",
                order.id, collection_name, content.ref)
    else:
        details = content.items

    log_audit(
        actor_id=user_info['userId'],
        actor_role='BUYER',
        action='ORDER_CREATE',
        target_type='ORDER',
        target_id=order.id,
        payload={
            'transRef': payment_data.get('transRef'),
            'amount': payment_data.get('amount'),
            'collection': collection_name if order.product else None,
        },
    )
    logger.info("Order %s created for user %s", order.id, order.user_id)

    return OrderInfo(
        order_no=order.order_no,
        product_details=details,
        total=payment_data.get('amount'),
        order_id=order.id,
    )


def create_pod_order(user, collection_name, body, reference=None):
    """Create a pay-on-delivery order; returns the ``orderInfo`` body."""
    validate_collection_name(collection_name)
    user_info = build_user_info(user, body.get('userData'))
    order_data = body.get('orderData') or {}
    require_content_fields(order_data)

    inspection_fee = order_data.get('inspectionFee')
    if reference:
        inspection_fee = PaymentStatus.PAID.value

    if 'items' in order_data:
        items = normalize_items(order_data.get('items'))
        total = validate_price_format(order_data.get('subTotal'), 'subTotal')
        content = CartContent(items=items)
        document = None
    else:
        ref = _parse_ref(order_data.get('prodId'))
        total = validate_price_format(order_data.get('price'))
        document = find_collection_document(collection_name, ref)
        if document is None:
            raise NotFoundError(
                f'Product does not exist in {collection_name} db')
        content = SingleItemContent(
            collection=collection_name,
            ref=ref,
            payment_status=PaymentStatus.PENDING.value,
            to_pay=total,
            inspection_fee=inspection_fee,
        )

    order = Order(
        user_id=user.id,
        user_info=user_info,
        pay_on_delivery={'status': True, 'totalAmount': total},
        payment=None,
        status=OrderStatus.PENDING,
    )
    order.content = content
    db.session.add(order)

    if isinstance(content, CartContent):
        CartItem.query.filter_by(user_id=user.id).delete()

    db.session.commit()

    log_audit(
        actor_id=user.id,
        actor_role=user.role.value,
        action='ORDER_CREATE_POD',
        target_type='ORDER',
        target_id=order.id,
        payload={
            'collection': collection_name,
            'total': total,
            'inspectionFee': inspection_fee,
            'reference': reference,
        },
    )

    if document is not None:
        product = document.to_dict()
        product.update({'id': str(document.id), 'price': total})
        return {
            'orderNo': order.order_no,
            'product': product,
            'total': total,
        }
    return {
        'orderNo': order.order_no,
        'products': content.items,
        'subTotal': total,
    }
