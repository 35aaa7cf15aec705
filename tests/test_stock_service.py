"""
Tests for post-sale stock reconciliation.
"""
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from conftest import line_item, make_product
from marketplace.errors import StockReconciliationError
from marketplace.extensions import db
from marketplace.models import Product
from marketplace.services.stock_service import reconcile_stock


def _stock(product_id):
    db.session.expire_all()
    return db.session.get(Product, product_id).stock_qty


class TestReconcileStock:
    """Test suite for reconcile_stock()."""

    def test_decrements_each_product(self, app) -> None:
        pad = make_product('Pad', stock_qty=10)
        headset = make_product('Headset', stock_qty=5)

        applied = reconcile_stock(
            [line_item(pad, qty=2), line_item(headset, qty=1)])

        assert applied == {pad.id: 2, headset.id: 1}
        assert _stock(pad.id) == 8
        assert _stock(headset.id) == 4

    def test_repeated_lines_are_summed(self, app) -> None:
        pad = make_product('Pad', stock_qty=10)

        reconcile_stock([line_item(pad, qty=2), line_item(pad, qty=3)])

        assert _stock(pad.id) == 5

    def test_missing_product_is_skipped(self, app) -> None:
        pad = make_product('Pad', stock_qty=10)

        applied = reconcile_stock([
            {'prodId': '9999', 'qty': 1},
            line_item(pad, qty=1),
        ])

        assert applied == {pad.id: 1}
        assert _stock(pad.id) == 9

    def test_concurrent_sales_can_oversell(self, app) -> None:
        """Two checkouts that both saw the last unit each take it."""
        last_unit = make_product('Limited edition', stock_qty=1)
        first_checkout = [line_item(last_unit, qty=1)]
        second_checkout = [line_item(last_unit, qty=1)]

        reconcile_stock(first_checkout)
        reconcile_stock(second_checkout)

        # No decrement is lost and nothing stops the stock going negative
        assert _stock(last_unit.id) == -1

    def test_database_failure_raises_and_rolls_back(self, app) -> None:
        pad = make_product('Pad', stock_qty=10)

        with patch.object(
                db.session, 'execute',
                side_effect=OperationalError('UPDATE', {}, Exception('locked'))):
            with pytest.raises(StockReconciliationError):
                reconcile_stock([line_item(pad, qty=1)])

        assert _stock(pad.id) == 10

    def test_empty_items_is_noop(self, app) -> None:
        assert reconcile_stock([]) == {}
        assert reconcile_stock(None) == {}
