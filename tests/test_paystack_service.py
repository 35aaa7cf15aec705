"""
Unit tests for the Paystack client.
"""
from unittest.mock import MagicMock

import pytest
import requests

from marketplace.errors import GatewayError
from marketplace.services.paystack_service import (
    PaystackClient,
    VerifyOutcome,
)


def _response(body):
    response = MagicMock()
    response.json.return_value = body
    return response


def _client(session):
    return PaystackClient(
        secret_key='sk_test_123',
        base_url='https://api.paystack.test/',
        timeout=5,
        session=session,
    )


class TestVerify:
    """Test suite for PaystackClient.verify()."""

    def test_success_is_accepted_and_filtered(self) -> None:
        session = MagicMock()
        session.get.return_value = _response({
            'status': True,
            'message': 'Verification successful',
            'data': {
                'id': 7,
                'status': 'success',
                'reference': 'ref 1',
                'amount': 3998,
                'currency': 'NGN',
                'channel': 'card',
                'metadata': {'cart': 2},
                'log': {'history': []},
                'fees': 60,
                'authorization': {'last4': '4081'},
                'customer': {'email': 'buyer@example.com'},
                'plan': None,
            },
        })

        result = _client(session).verify('ref 1')

        assert result.outcome is VerifyOutcome.ACCEPTED
        assert result.accepted
        assert result.verified is True
        assert 'metadata' in result.data
        assert 'log' not in result.data
        assert 'fees' not in result.data
        assert 'plan' not in result.data
        assert result.data['authorization'] == {'last4': '4081'}
        assert result.data['customer'] == {'email': 'buyer@example.com'}

        url = session.get.call_args[0][0]
        assert url == 'https://api.paystack.test/transaction/verify/ref%201'
        headers = session.get.call_args[1]['headers']
        assert headers['Authorization'] == 'Bearer sk_test_123'
        assert session.get.call_args[1]['timeout'] == 5

    def test_failed_transaction_is_rejected(self) -> None:
        session = MagicMock()
        session.get.return_value = _response({
            'status': True,
            'data': {'status': 'abandoned', 'amount': 500},
        })

        result = _client(session).verify('ref')

        assert result.outcome is VerifyOutcome.REJECTED
        assert result.to_dict() == {
            'verified': True,
            'accepted': False,
            'data': {'status': 'abandoned', 'amount': 500},
        }

    def test_transport_failure_is_error_not_exception(self) -> None:
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError('connection reset')

        result = _client(session).verify('ref')

        assert result.outcome is VerifyOutcome.ERROR
        assert not result.accepted
        assert result.to_dict() == {'error': 'connection reset'}

    def test_unparseable_body_is_error(self) -> None:
        session = MagicMock()
        response = MagicMock()
        response.json.side_effect = ValueError('Expecting value')
        session.get.return_value = response

        result = _client(session).verify('ref')

        assert result.outcome is VerifyOutcome.ERROR

    def test_missing_data_is_error(self) -> None:
        session = MagicMock()
        session.get.return_value = _response(
            {'status': False, 'message': 'Transaction reference not found'})

        assert _client(session).verify('ref').outcome is VerifyOutcome.ERROR


class TestInitialize:
    """Test suite for PaystackClient.initialize()."""

    def test_returns_access_code_and_reference(self) -> None:
        session = MagicMock()
        session.post.return_value = _response({
            'status': True,
            'data': {
                'authorization_url': 'https://checkout.paystack.com/abc',
                'access_code': 'abc',
                'reference': 'ref_abc',
            },
        })

        transaction = _client(session).initialize('buyer@example.com', 3998)

        assert transaction.access_code == 'abc'
        assert transaction.reference == 'ref_abc'
        assert session.post.call_args[1]['json'] == {
            'email': 'buyer@example.com', 'amount': 3998}

    def test_transport_failure_raises_gateway_error(self) -> None:
        session = MagicMock()
        session.post.side_effect = requests.Timeout('timed out')

        with pytest.raises(GatewayError) as exc:
            _client(session).initialize('buyer@example.com', 3998)
        assert exc.value.status_code == 502

    def test_refusal_raises_gateway_error_with_message(self) -> None:
        session = MagicMock()
        session.post.return_value = _response(
            {'status': False, 'message': 'Invalid key'})

        with pytest.raises(GatewayError, match='Invalid key'):
            _client(session).initialize('buyer@example.com', 3998)


def test_from_config_reads_settings() -> None:
    client = PaystackClient.from_config({
        'PAYSTACK_SECRET_KEY': 'sk_live',
        'PAYSTACK_BASE_URL': 'https://api.paystack.co',
        'PAYMENT_GATEWAY_TIMEOUT': 12.0,
    })
    assert client.secret_key == 'sk_live'
    assert client.timeout == 12.0
    assert isinstance(client.session, requests.Session)
