from flask import current_app
from marketplace.extensions import db
from marketplace.models import Order, Refund, RefundStatus
from datetime import datetime, timedelta
import logging

logger = logging.getLogger(__name__)


def sweep_expired(now=None):
    """Remove expired orders and completed refunds past retention."""
    now = now or datetime.utcnow()
    retention = timedelta(
        days=current_app.config.get('REFUND_RETENTION_DAYS', 14))

    orders_removed = Order.query.filter(
        Order.to_expire.isnot(None),
        Order.to_expire <= now,
    ).delete(synchronize_session=False)

    refunds_removed = Refund.query.filter(
        Refund.status == RefundStatus.COMPLETED,
        Refund.completed_at.isnot(None),
        Refund.completed_at <= now - retention,
    ).delete(synchronize_session=False)

    db.session.commit()
    logger.info(
        "Expiry sweep removed %s orders and %s refunds",
        orders_removed, refunds_removed)
    return {'orders': orders_removed, 'refunds': refunds_removed}
