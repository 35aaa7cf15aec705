from flask import current_app
from marketplace.extensions import db
from marketplace.models import PurchaseRecord, User
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from datetime import datetime
import logging

logger = logging.getLogger(__name__)

HISTORY_ITEM_FIELDS = (
    'prodId',
    'title',
    'category',
    'subcategory',
    'imageUrl',
    'condition',
    'price',
    'qty',
)


def purchased_products(order):
    """Purchase-history view of an order's content."""
    if order.items is not None:
        return [
            {name: item.get(name) for name in HISTORY_ITEM_FIELDS}
            for item in order.items
        ]
    return [dict(order.product)]


def record_purchase(user_id, products, total_amount):
    """Append a purchase-history entry and grant loyalty xp.

    Runs after the order is durable; failures are logged and reported as
    ``False`` so the caller's response is unaffected.
    """
    increment = current_app.config.get('LOYALTY_XP_INCREMENT', 5)
    try:
        record = PurchaseRecord(
            user_id=user_id,
            date=datetime.utcnow(),
            products=products,
            total_amount=str(total_amount),
        )
        db.session.add(record)
        db.session.execute(
            update(User)
            .where(User.id == user_id)
            .values(xp=User.xp + increment)
        )
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(
            "Failed to record purchase for user %s: %s",
            user_id, e, exc_info=True)
        return False

    logger.info(
        "Purchase recorded for user %s (+%s xp)", user_id, increment)
    return True
