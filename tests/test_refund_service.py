"""
Tests for refund requests and refund progress.
"""
from datetime import datetime

import pytest

from conftest import (
    line_item,
    login,
    make_cart_order,
    paystack_payment,
)
from marketplace.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from marketplace.extensions import db
from marketplace.models import (
    Order,
    RefundProgress,
    RefundReason,
    RefundStatus,
)
from marketplace.services import refund_service

LONG_REASON = 'The console arrived with a cracked casing and no cables.'


@pytest.fixture
def paid_order(app, buyer, controller):
    return make_cart_order(
        buyer, [line_item(controller, qty=2)],
        payment=paystack_payment(40, reference='ref_paid'))


class TestRequestRefund:
    """Test suite for request_refund()."""

    def test_whole_order_refund(self, app, buyer, paid_order) -> None:
        refund = refund_service.request_refund(
            paid_order.id, buyer, 'Package was damaged', amount='40',
            image_urls=['/uploads/damage.jpg'])

        assert refund.prod_id is None
        assert refund.reason is RefundReason.PACKAGE_DAMAGED
        assert refund.progress is RefundProgress.IN_REVIEW
        assert refund.status is RefundStatus.INCOMPLETE
        assert refund.user_info['username'] == buyer.username
        assert refund.image_urls == ['/uploads/damage.jpg']

    def test_second_whole_order_refund_conflicts(
            self, app, buyer, paid_order) -> None:
        refund_service.request_refund(
            paid_order.id, buyer, 'Package not received', amount='40')

        with pytest.raises(ConflictError) as exc:
            refund_service.request_refund(
                paid_order.id, buyer, 'Package not received', amount='40')
        assert exc.value.status_code == 409

    def test_line_refund_after_whole_refund_conflicts(
            self, app, buyer, paid_order, controller) -> None:
        refund_service.request_refund(
            paid_order.id, buyer, 'Package not received', amount='40')

        with pytest.raises(ConflictError):
            refund_service.request_refund(
                paid_order.id, buyer, 'Item out of stock', amount='20',
                prod_id=controller.id)

    def test_duplicate_line_refund_conflicts(
            self, app, buyer, paid_order, controller) -> None:
        refund_service.request_refund(
            paid_order.id, buyer, 'Item out of stock', amount='20',
            prod_id=controller.id)

        with pytest.raises(ConflictError):
            refund_service.request_refund(
                paid_order.id, buyer, 'Item out of stock', amount='20',
                prod_id=str(controller.id))

    def test_others_needs_a_description(self, app, buyer, paid_order) -> None:
        with pytest.raises(ValidationError):
            refund_service.request_refund(
                paid_order.id, buyer, 'Others', amount='40')

    @pytest.mark.parametrize('text', ['Too short', 'x' * 501])
    def test_description_length_is_checked(
            self, app, buyer, paid_order, text) -> None:
        with pytest.raises(ValidationError, match='Description length'):
            refund_service.request_refund(
                paid_order.id, buyer, 'Others', other_reason=text,
                amount='40')

    def test_others_with_description(self, app, buyer, paid_order) -> None:
        refund = refund_service.request_refund(
            paid_order.id, buyer, 'others', other_reason=LONG_REASON,
            amount='40')
        assert refund.reason is RefundReason.OTHERS
        assert refund.other_reason == LONG_REASON

    def test_unknown_reason(self, app, buyer, paid_order) -> None:
        with pytest.raises(ValidationError):
            refund_service.request_refund(
                paid_order.id, buyer, 'Changed my mind', amount='40')

    def test_order_must_exist(self, app, buyer) -> None:
        with pytest.raises(NotFoundError):
            refund_service.request_refund(
                404, buyer, 'Package not received', amount='40')

    def test_order_must_belong_to_user(
            self, app, other_buyer, paid_order) -> None:
        with pytest.raises(PermissionDeniedError):
            refund_service.request_refund(
                paid_order.id, other_buyer, 'Package not received',
                amount='40')

    def test_request_clears_pending_expiry(
            self, app, buyer, paid_order) -> None:
        paid_order.schedule_expiry(datetime(2999, 1, 1))
        db.session.commit()

        refund_service.request_refund(
            paid_order.id, buyer, 'Package not received', amount='40')

        assert db.session.get(Order, paid_order.id).to_expire is None


class TestUpdateRefundProgress:

    def test_success_completes_refund_and_expires_order(
            self, app, buyer, paid_order) -> None:
        refund = refund_service.request_refund(
            paid_order.id, buyer, 'Package not received', amount='40')

        refund_service.update_refund_progress(refund.id, 'Succeeded')

        assert refund.status is RefundStatus.COMPLETED
        assert refund.completed_at is not None
        order = db.session.get(Order, paid_order.id)
        assert order.to_expire is not None
        assert order.to_expire <= datetime.utcnow()
        assert Order.live().filter(Order.id == paid_order.id).first() is None

    def test_other_progress_keeps_refund_open(
            self, app, buyer, paid_order) -> None:
        refund = refund_service.request_refund(
            paid_order.id, buyer, 'Package not received', amount='40')

        refund_service.update_refund_progress(refund.id, 'Processing')

        assert refund.progress is RefundProgress.PROCESSING
        assert refund.status is RefundStatus.INCOMPLETE
        assert db.session.get(Order, paid_order.id).to_expire is None

    def test_invalid_progress(self, app, buyer, paid_order) -> None:
        refund = refund_service.request_refund(
            paid_order.id, buyer, 'Package not received', amount='40')

        with pytest.raises(ValidationError):
            refund_service.update_refund_progress(refund.id, 'Done')

    def test_missing_refund(self, app) -> None:
        with pytest.raises(NotFoundError):
            refund_service.update_refund_progress(99, 'Succeeded')


class TestRefundViews:

    def test_order_refund_summary(self, app, buyer, paid_order) -> None:
        summary = refund_service.order_refund_summary(paid_order.id, buyer)
        assert summary['amount'] == '40 NGN'
        assert summary['orderId'] == paid_order.id

    def test_user_refund_info(self, app, buyer, paid_order) -> None:
        refund_service.request_refund(
            paid_order.id, buyer, 'Package not received', amount='40')

        info = refund_service.user_refund_info(paid_order.id, buyer)

        assert info['progress'] == 'Refund request in review'
        assert info['orderInfo']['items'][0]['qty'] == 2

    def test_refund_info_is_per_user(
            self, app, buyer, other_buyer, paid_order) -> None:
        refund_service.request_refund(
            paid_order.id, buyer, 'Package not received', amount='40')

        with pytest.raises(NotFoundError):
            refund_service.user_refund_info(paid_order.id, other_buyer)

    def test_admin_list_shows_payment_currency(
            self, app, buyer, paid_order) -> None:
        refund_service.request_refund(
            paid_order.id, buyer, 'Package not received', amount='40')

        [row] = refund_service.list_refunds()

        assert row['currency'] == 'NGN'
        assert row['username'] == buyer.username
        assert row['status'] == 'Incomplete'


class TestRefundApi:

    def test_post_refund(self, client, buyer, paid_order) -> None:
        login(client, buyer)

        response = client.post(
            f'/api/orders/{paid_order.id}/refunds',
            json={'reason': 'Package not received', 'amount': '40'})

        assert response.status_code == 201
        assert response.get_json()['success'] is True

    def test_duplicate_refund_is_409(self, client, buyer, paid_order) -> None:
        login(client, buyer)
        body = {'reason': 'Package not received', 'amount': '40'}
        client.post(f'/api/orders/{paid_order.id}/refunds', json=body)

        response = client.post(
            f'/api/orders/{paid_order.id}/refunds', json=body)

        assert response.status_code == 409
        assert response.get_json() == {
            'error': 'Refund already exist for this order.'}
