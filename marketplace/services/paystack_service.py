from flask import current_app
from marketplace.errors import GatewayError
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import quote
import enum
import logging
import requests

logger = logging.getLogger(__name__)


class VerifyOutcome(enum.Enum):
    ACCEPTED = 'accepted'
    REJECTED = 'rejected'
    ERROR = 'error'


@dataclass
class VerifyResult:
    outcome: VerifyOutcome
    verified: Optional[bool] = None
    data: dict = field(default_factory=dict)
    error: Optional[str] = None
    message: Optional[str] = None

    @property
    def accepted(self):
        return self.outcome is VerifyOutcome.ACCEPTED

    def to_dict(self):
        if self.outcome is VerifyOutcome.ERROR:
            return {'error': self.error}
        return {
            'verified': self.verified,
            'accepted': self.accepted,
            'data': self.data,
        }


@dataclass(frozen=True)
class InitializedTransaction:
    access_code: str
    reference: str
    authorization_url: Optional[str] = None

    def to_dict(self):
        return {
            'accessCode': self.access_code,
            'reference': self.reference,
            'authorizationUrl': self.authorization_url,
        }


def _filter_transaction_data(data):
    """Keep the keys up to ``metadata`` plus authorization and customer."""
    if not isinstance(data, dict):
        return {}
    keys = list(data)
    cutoff = keys.index('metadata') if 'metadata' in keys else len(keys)
    filtered = {}
    for index, key in enumerate(keys):
        if index <= cutoff or key in ('authorization', 'customer'):
            filtered[key] = data[key]
    return filtered


class PaystackClient:
    gateway_name = 'Paystack'

    def __init__(self, secret_key, base_url='https://api.paystack.co',
                 timeout=30, session=None):
        self.secret_key = secret_key
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config):
        return cls(
            secret_key=config.get('PAYSTACK_SECRET_KEY', ''),
            base_url=config.get('PAYSTACK_BASE_URL',
                                'https://api.paystack.co'),
            timeout=config.get('PAYMENT_GATEWAY_TIMEOUT', 30),
        )

    def _headers(self):
        return {
            'Authorization': f'Bearer {self.secret_key}',
            'Content-Type': 'application/json',
        }

    def initialize(self, email, amount_minor):
        """Start a transaction for ``amount_minor`` (kobo/cents)."""
        url = f'{self.base_url}/transaction/initialize'
        try:
            response = self.session.post(
                url,
                json={'email': email, 'amount': int(amount_minor)},
                headers=self._headers(),
                timeout=self.timeout,
            )
            body = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error("Paystack initialize failed: %s", e)
            raise GatewayError('Payment initialization failed.')

        if not isinstance(body, dict):
            body = {}
        data = body.get('data')
        if not body.get('status') or not isinstance(data, dict):
            message = body.get('message')
            logger.warning("Paystack refused initialize: %s", message)
            raise GatewayError(
                message or 'Payment initialization failed.')

        return InitializedTransaction(
            access_code=data.get('access_code'),
            reference=data.get('reference'),
            authorization_url=data.get('authorization_url'),
        )

    def verify(self, reference):
        url = (f'{self.base_url}/transaction/verify/'
               f'{quote(str(reference), safe="")}')
        try:
            response = self.session.get(
                url, headers=self._headers(), timeout=self.timeout)
            body = response.json()
            data = body['data']
            if not isinstance(data, dict):
                raise ValueError('transaction data is not an object')
        except (requests.RequestException, ValueError, KeyError,
                TypeError) as e:
            logger.error("Paystack verify failed for %s: %s", reference, e)
            return VerifyResult(outcome=VerifyOutcome.ERROR, error=str(e))

        outcome = (VerifyOutcome.ACCEPTED
                   if data.get('status') == 'success'
                   else VerifyOutcome.REJECTED)
        if outcome is VerifyOutcome.REJECTED:
            logger.info(
                "Paystack rejected %s with status %s",
                reference, data.get('status'))
        return VerifyResult(
            outcome=outcome,
            verified=body.get('status'),
            data=_filter_transaction_data(data),
            message=body.get('message'),
        )


def get_gateway():
    return current_app.extensions['payment_gateway']
