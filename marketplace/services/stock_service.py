from marketplace.extensions import db
from marketplace.errors import StockReconciliationError
from marketplace.models import Product
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from collections import OrderedDict
import logging

logger = logging.getLogger(__name__)


def _ordered_quantities(items):
    quantities = OrderedDict()
    for item in items or []:
        try:
            prod_id = int(item.get('prodId'))
            qty = int(item.get('qty') or 0)
        except (TypeError, ValueError):
            logger.warning("Skipping malformed line item %r", item)
            continue
        if qty <= 0:
            continue
        quantities[prod_id] = quantities.get(prod_id, 0) + qty
    return quantities


def reconcile_stock(items):
    """Decrement ``stock_qty`` for every sold line item in one batch.

    Each decrement is evaluated by the database (``stock_qty - qty``), so
    concurrent sales never lose an update. Stock is allowed to go negative.
    Returns the mapping of product id to decremented quantity.
    """
    quantities = _ordered_quantities(items)
    if not quantities:
        return {}

    applied = {}
    try:
        for prod_id, qty in quantities.items():
            result = db.session.execute(
                update(Product)
                .where(Product.id == prod_id)
                .values(stock_qty=Product.stock_qty - qty)
            )
            if result.rowcount:
                applied[prod_id] = qty
            else:
                logger.warning(
                    "Stock reconcile: product %s no longer exists", prod_id)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error("Stock reconciliation failed: %s", e, exc_info=True)
        raise StockReconciliationError('Stock reconciliation failed.')

    logger.info("Stock reconciled for products %s", applied)
    return applied
