from marketplace.extensions import db
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional
from sqlalchemy import CheckConstraint, UniqueConstraint
import enum
import json


class UserRole(enum.Enum):
    STANDARD = 'standard'
    ADMIN = 'admin'
    SUPERUSER = 'superuser'


class LabelledEnum(enum.Enum):
    """Enum whose values are the human labels used on the wire."""

    @classmethod
    def from_label(cls, label):
        if isinstance(label, cls):
            return label
        if not isinstance(label, str):
            return None
        wanted = label.strip().lower()
        for member in cls:
            if member.value.lower() == wanted:
                return member
        return None

    @classmethod
    def labels(cls):
        return [member.value for member in cls]


class OrderStatus(LabelledEnum):
    PENDING = 'Pending'
    CONFIRMED_PAYMENT = 'Confirmed payment'
    PROCESSING = 'Processing'
    PROCESSED = 'Processed'
    DELIVERED = 'Delivered'
    COMPLETED = 'Completed'
    RECEIVED = 'Received'
    REPAIR_IN_PROGRESS = 'Repair in progress'
    REPAIR_SUCCEEDED = 'Repair succeeded'
    REPAIR_FAILED = 'Repair failed'
    SENT = 'Sent'
    PAID = 'Paid'
    ORDER_REJECTED = 'Order rejected'
    OUT_OF_STOCK = 'Out of stock'


# Orders in these states were handed over (or refused); cancelling them
# does not owe the buyer anything.
FULFILLED_ORDER_STATUSES = frozenset({
    OrderStatus.COMPLETED,
    OrderStatus.DELIVERED,
    OrderStatus.ORDER_REJECTED,
    OrderStatus.SENT,
})


class PaymentStatus(enum.Enum):
    PENDING = 'Pending'
    PAID = 'Paid'


class RefundReason(LabelledEnum):
    ITEM_OUT_OF_STOCK = 'Item out of stock'
    CANCELED_ORDER = 'Canceled order'
    PACKAGE_NOT_RECEIVED = 'Package not received'
    PACKAGE_DAMAGED = 'Package was damaged'
    OTHERS = 'Others'


class RefundProgress(LabelledEnum):
    IN_REVIEW = 'Refund request in review'
    PROCESSING = 'Processing'
    SUCCEEDED = 'Succeeded'
    REJECTED = 'Rejected'
    FAILED = 'Failed'


class RefundStatus(enum.Enum):
    INCOMPLETE = 'Incomplete'
    COMPLETED = 'Completed'


class User(UserMixin, db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    username = db.Column(
        db.String(100),
        unique=True,
        nullable=False,
        index=True)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(
        db.Enum(UserRole),
        nullable=False,
        default=UserRole.STANDARD)
    phone = db.Column(db.String(20), nullable=True)
    delivery_address = db.Column(db.Text, nullable=True)
    # Loyalty points
    xp = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)
    last_login_at = db.Column(db.DateTime, nullable=True)

    # Relationships
    cart_items = db.relationship(
        'CartItem',
        backref='user',
        lazy='dynamic',
        cascade='all, delete-orphan')
    purchase_history = db.relationship(
        'PurchaseRecord',
        backref='user',
        lazy='dynamic',
        order_by='PurchaseRecord.date',
        cascade='all, delete-orphan')

    @property
    def fullname(self):
        return f'{self.first_name} {self.last_name}'

    @property
    def is_admin(self):
        return self.role in (UserRole.ADMIN, UserRole.SUPERUSER)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def __repr__(self):
        return f'<User {self.email}>'


class Currency(db.Model):
    __tablename__ = 'currencies'

    id = db.Column(db.Integer, primary_key=True)
    country = db.Column(db.String(100), nullable=False)
    # ISO code, e.g. NGN, USD
    code = db.Column(db.String(3), unique=True, nullable=False, index=True)
    # Units of this currency per native unit
    rate = db.Column(db.Float, nullable=False)

    def __repr__(self):
        return f'<Currency {self.code} rate={self.rate}>'


def _money(value):
    return str(value) if value is not None else None


class Product(db.Model):
    """Shop products; the ``products`` order collection."""

    __tablename__ = 'products'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False, index=True)
    category = db.Column(db.String(100), nullable=False)
    subcategory = db.Column(db.String(100), nullable=True)
    description = db.Column(db.Text, nullable=True)
    condition = db.Column(db.String(50), nullable=True)
    price = db.Column(db.Numeric(12, 2), nullable=False)
    stock_qty = db.Column(db.Integer, nullable=False, default=0)
    image_urls = db.Column(db.JSON, nullable=False, default=list)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False)

    cart_items = db.relationship(
        'CartItem',
        backref='product',
        lazy='dynamic',
        cascade='all, delete-orphan')

    @property
    def cover_image_url(self):
        urls = self.image_urls or []
        for url in urls:
            if 'slot0' in url:
                return url
        return urls[0] if urls else None

    def to_dict(self):
        return {
            'id': str(self.id),
            'title': self.title,
            'category': self.category,
            'subcategory': self.subcategory,
            'description': self.description,
            'condition': self.condition,
            'price': _money(self.price),
            'stockQty': self.stock_qty,
            'imageUrls': list(self.image_urls or []),
        }

    def __repr__(self):
        return f'<Product {self.title}>'


class GameDownload(db.Model):
    __tablename__ = 'gamedownloads'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    platform = db.Column(db.String(50), nullable=False)
    image_url = db.Column(db.String(255), nullable=True)
    install_type = db.Column(db.String(50), nullable=True)
    price = db.Column(db.Numeric(12, 2), nullable=False)
    home_service = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)

    def to_dict(self):
        return {
            'id': str(self.id),
            'title': self.title,
            'description': self.description,
            'platform': self.platform,
            'imageUrl': self.image_url,
            'installType': self.install_type,
            'price': _money(self.price),
            'homeService': self.home_service,
        }


class GameRent(db.Model):
    __tablename__ = 'gamerents'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    image_url = db.Column(db.String(255), nullable=True)
    category = db.Column(db.String(100), nullable=False)
    sub_category = db.Column(db.String(100), nullable=True)
    info = db.Column(db.Text, nullable=True)
    # Rental price per day
    rate = db.Column(db.Numeric(12, 2), nullable=False)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)

    def to_dict(self):
        return {
            'id': str(self.id),
            'title': self.title,
            'imageUrl': self.image_url,
            'category': self.category,
            'subCategory': self.sub_category,
            'info': self.info,
            'rate': _money(self.rate),
        }


class GameSwap(db.Model):
    __tablename__ = 'gameswaps'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    image_url = db.Column(db.String(255), nullable=True)
    platform = db.Column(db.String(50), nullable=False)
    condition = db.Column(db.String(50), nullable=True)
    swap_fee = db.Column(db.Numeric(12, 2), nullable=False)
    accepted_titles = db.Column(db.JSON, nullable=False, default=list)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)

    def to_dict(self):
        return {
            'id': str(self.id),
            'title': self.title,
            'imageUrl': self.image_url,
            'platform': self.platform,
            'condition': self.condition,
            'swapFee': _money(self.swap_fee),
            'acceptedTitles': list(self.accepted_titles or []),
        }


class GameRepair(db.Model):
    __tablename__ = 'gamerepairs'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    image_url = db.Column(db.String(255), nullable=True)
    category = db.Column(db.String(100), nullable=False)
    game = db.Column(db.String(200), nullable=True)
    price = db.Column(db.Numeric(12, 2), nullable=False)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)

    def to_dict(self):
        return {
            'id': str(self.id),
            'title': self.title,
            'imageUrl': self.image_url,
            'category': self.category,
            'game': self.game,
            'price': _money(self.price),
        }


# Collections a single-item order may reference, by wire name.
ORDER_COLLECTIONS = {
    'products': Product,
    'gamedownloads': GameDownload,
    'gamerents': GameRent,
    'gameswaps': GameSwap,
    'gamerepairs': GameRepair,
}


class CartItem(db.Model):
    __tablename__ = 'cart_items'

    user_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'users.id',
            ondelete='CASCADE'),
        primary_key=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'products.id',
            ondelete='CASCADE'),
        primary_key=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)

    __table_args__ = (
        CheckConstraint('quantity > 0', name='check_quantity_positive'),
    )

    def __repr__(self):
        return (
            f"<CartItem user={self.user_id} product={self.product_id} "
            f"qty={self.quantity}>"
        )


class PurchaseRecord(db.Model):
    __tablename__ = 'purchase_records'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'users.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    date = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    # Snapshot of the purchased content
    products = db.Column(db.JSON, nullable=False, default=list)
    total_amount = db.Column(db.String(50), nullable=False)

    def to_dict(self):
        return {
            'date': self.date.isoformat(),
            'products': self.products,
            'totalAmount': self.total_amount,
        }

    def __repr__(self):
        return f'<PurchaseRecord {self.id} user={self.user_id}>'


@dataclass(frozen=True)
class CartContent:
    """Shop line items bought through a cart checkout."""

    items: List[dict] = field(default_factory=list)


@dataclass(frozen=True)
class SingleItemContent:
    """One referenced service/product document from an order collection."""

    collection: str
    ref: int
    payment_status: str
    to_pay: Optional[str] = None
    inspection_fee: Optional[str] = None

    def to_document(self):
        order_data = {
            'orderInfo': self.ref,
            'paymentStatus': self.payment_status,
        }
        if self.to_pay is not None:
            order_data['toPay'] = self.to_pay
        if self.inspection_fee is not None:
            order_data['inspectionFee'] = self.inspection_fee
        return {'orderTitle': self.collection, 'orderData': order_data}

    @classmethod
    def from_document(cls, document):
        order_data = document.get('orderData') or {}
        return cls(
            collection=document['orderTitle'],
            ref=order_data['orderInfo'],
            payment_status=order_data.get('paymentStatus'),
            to_pay=order_data.get('toPay'),
            inspection_fee=order_data.get('inspectionFee'),
        )


class Order(db.Model):
    __tablename__ = 'orders'

    id = db.Column(db.Integer, primary_key=True)
    # Mirrors user_info['userId'] for lookups; not a foreign key so the
    # order history outlives account changes.
    user_id = db.Column(db.Integer, nullable=False, index=True)
    # {userId, email, fullname, phone, deliveryAddress} at order time
    user_info = db.Column(db.JSON, nullable=False)
    # {status, totalAmount}; only for orders created before payment
    pay_on_delivery = db.Column(db.JSON(none_as_null=True), nullable=True)
    # Exactly one of items/product is set, see Order.content
    items = db.Column(db.JSON(none_as_null=True), nullable=True)
    product = db.Column(db.JSON(none_as_null=True), nullable=True)
    # {gateway, transRef, method, currency, rate, amount, transReceipt?}
    payment = db.Column(db.JSON(none_as_null=True), nullable=True)
    status = db.Column(
        db.Enum(OrderStatus),
        default=OrderStatus.PENDING,
        nullable=False)
    # Removed by the expiry sweep once reached
    to_expire = db.Column(db.DateTime, nullable=True, index=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False)

    __table_args__ = (
        CheckConstraint(
            '(items IS NULL) <> (product IS NULL)',
            name='ck_order_single_content'),
    )

    @property
    def content(self):
        if self.items is not None and self.product is None:
            return CartContent(items=list(self.items))
        if self.product is not None and self.items is None:
            return SingleItemContent.from_document(self.product)
        raise ValueError(
            f'Order {self.id} must hold exactly one of items/product')

    @content.setter
    def content(self, value):
        if isinstance(value, CartContent):
            if not value.items:
                raise ValueError('A cart order needs at least one item')
            self.items = [dict(item) for item in value.items]
            self.product = None
        elif isinstance(value, SingleItemContent):
            self.product = value.to_document()
            self.items = None
        else:
            raise TypeError(f'Unsupported order content: {value!r}')

    @property
    def awaiting_payment(self):
        """True while a pay-on-delivery order has not been settled."""
        return bool(self.pay_on_delivery) and self.payment is None

    @property
    def order_no(self):
        if self.payment and self.payment.get('transRef'):
            return f"{self.id}-{self.payment['transRef']}"
        return str(self.id)

    def schedule_expiry(self, when):
        self.to_expire = when

    @classmethod
    def live(cls, now=None):
        """Query over orders that have not reached their expiry."""
        now = now or datetime.utcnow()
        return cls.query.filter(
            db.or_(cls.to_expire.is_(None), cls.to_expire > now))

    def __repr__(self):
        return f'<Order {self.id} status={self.status}>'


class Refund(db.Model):
    __tablename__ = 'refunds'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=False, index=True)
    # {userId, email, username}
    user_info = db.Column(db.JSON, nullable=False)
    # Already converted, in the currency the buyer paid with
    amount = db.Column(db.String(50), nullable=False)
    # The order may be deleted before the refund is settled, so this is a
    # plain reference.
    order_id = db.Column(db.Integer, nullable=False, index=True)
    # Set when the refund covers a single line item
    prod_id = db.Column(db.String(64), nullable=True)
    reason = db.Column(db.Enum(RefundReason), nullable=False)
    other_reason = db.Column(db.Text, nullable=True)
    image_urls = db.Column(db.JSON, nullable=False, default=list)
    progress = db.Column(
        db.Enum(RefundProgress),
        default=RefundProgress.IN_REVIEW,
        nullable=False)
    status = db.Column(
        db.Enum(RefundStatus),
        default=RefundStatus.INCOMPLETE,
        nullable=False)
    completed_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False)

    __table_args__ = (
        UniqueConstraint(
            'order_id',
            'prod_id',
            name='uq_refund_order_prod'),
        # NULLs are distinct in the constraint above
        db.Index(
            'uq_refund_whole_order',
            'order_id',
            unique=True,
            sqlite_where=db.text('prod_id IS NULL'),
            postgresql_where=db.text('prod_id IS NULL')),
    )

    @classmethod
    def live(cls, retention, now=None):
        """Query over refunds still inside their retention window."""
        now = now or datetime.utcnow()
        return cls.query.filter(db.or_(
            cls.status != RefundStatus.COMPLETED,
            cls.completed_at.is_(None),
            cls.completed_at > now - retention,
        ))

    def __repr__(self):
        return (
            f"<Refund {self.id} order={self.order_id} "
            f"progress={self.progress}>"
        )


class AuditLog(db.Model):
    __tablename__ = 'audit_logs'

    id = db.Column(db.Integer, primary_key=True)
    actor_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'users.id',
            ondelete='SET NULL'),
        nullable=True)
    actor_role = db.Column(db.String(20), nullable=False)
    # e.g., ORDER_CREATE, PAYMENT_REJECTED, REFUND_PROGRESS_UPDATE
    action = db.Column(db.String(100), nullable=False)
    # ORDER, REFUND, etc.
    target_type = db.Column(db.String(50), nullable=True)
    target_id = db.Column(db.Integer, nullable=True)
    ip = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(500), nullable=True)
    # JSON format key field snapshot
    payload_json = db.Column(db.Text, nullable=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False,
        index=True)

    actor = db.relationship('User', foreign_keys=[actor_id])

    def set_payload(self, data):
        self.payload_json = json.dumps(data, ensure_ascii=False, default=str)

    def get_payload(self):
        if self.payload_json:
            return json.loads(self.payload_json)
        return {}

    def __repr__(self):
        return f'<AuditLog {self.id} action={self.action}>'
