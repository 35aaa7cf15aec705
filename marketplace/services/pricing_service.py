from flask import current_app
from marketplace.errors import ValidationError
from marketplace.models import Currency
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
import logging
import math

logger = logging.getLogger(__name__)

NATIVE_CURRENCY = 'NGN'


@dataclass(frozen=True)
class CurrencyInfo:
    code: str
    rate: float
    country: str = ''

    @classmethod
    def from_model(cls, currency):
        return cls(
            code=currency.code,
            rate=float(currency.rate),
            country=currency.country or '')


def round_half_up(value):
    """Round to the nearest whole number, halves going up."""
    return int(math.floor(float(value) + 0.5))


def round_to_cents(value):
    quantized = Decimal(repr(float(value))).quantize(
        Decimal('0.01'), rounding=ROUND_HALF_UP)
    return float(quantized)


def round_for_currency(value, code, native_code=NATIVE_CURRENCY):
    if code == native_code:
        return round_half_up(value)
    return round_to_cents(value)


def convert(base_price, currency, native_code=NATIVE_CURRENCY):
    """Convert a catalog price (native units) into ``currency``.

    The native currency is shown in whole units; every other currency is
    rounded to two decimal places.
    """
    return round_for_currency(
        float(base_price) * float(currency.rate), currency.code, native_code)


def validate_price_format(price, field='price'):
    """Reject price literals carrying more than two fractional digits.

    Returns the canonical string form of the price.
    """
    if isinstance(price, bool) or price is None:
        raise ValidationError(f'Invalid {field}.')
    text = str(price)
    text = text.strip()
    try:
        Decimal(text)
    except InvalidOperation:
        raise ValidationError(f'Invalid {field}.')
    if '.' in text and len(text.split('.', 1)[1]) > 2:
        raise ValidationError(
            f'Invalid {field} format. Too many numbers after decimal point.')
    return text


def native_currency_code():
    return current_app.config.get('NATIVE_CURRENCY', NATIVE_CURRENCY)


def resolve_currency(code=None):
    """Currency prices are displayed (and new payments recorded) in."""
    native = native_currency_code()
    code = (code or current_app.config.get('DEFAULT_CURRENCY') or native)
    code = code.upper()
    currency = Currency.query.filter_by(code=code).first()
    if currency is not None:
        return CurrencyInfo.from_model(currency)
    if code == native:
        return CurrencyInfo(code=native, rate=1.0)
    logger.warning(
        "Currency %s is not configured, falling back to %s", code, native)
    return CurrencyInfo(code=native, rate=1.0)


def to_minor_units(amount):
    return round_half_up(float(amount) * 100)


def from_minor_units(amount_minor):
    return round_half_up(float(amount_minor) / 100)
