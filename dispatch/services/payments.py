"""
Client for the booking app's payment endpoints.

The dispatcher never talks to the card processor directly. It asks the
booking app, which holds the customer's saved payment method, to charge
a trip or to email a payment reminder.
"""
import json
import logging
import time
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional

import requests
from django.conf import settings

from dispatch.exceptions import UpstreamServiceError

logger = logging.getLogger('dispatch.payments')

# urllib3 blocks until a whole chunk arrives; charge replies are a few hundred bytes
READ_CHUNK = 1


@dataclass
class ChargeResult:
    ok: bool
    payment_intent_id: str = ''
    amount: Optional[Decimal] = None
    error: str = ''
    error_type: str = ''


def _amount(value) -> Optional[Decimal]:
    if value in (None, ''):
        return None
    try:
        return Decimal(str(value)).quantize(Decimal('0.01'))
    except (InvalidOperation, ValueError):
        return None


def _limit_socket(r, deadline: float) -> None:
    # a single blocking read must not outlive the deadline either
    conn = getattr(r.raw, 'connection', None)
    sock = getattr(conn, 'sock', None)
    if sock is not None:
        sock.settimeout(max(deadline - time.monotonic(), 0.01))


def _read_body(r, deadline: float) -> Optional[bytes]:
    """Read a streamed body, giving up (``None``) once ``deadline`` has passed."""
    chunks = []
    _limit_socket(r, deadline)
    for chunk in r.iter_content(chunk_size=READ_CHUNK):
        chunks.append(chunk)
        if time.monotonic() > deadline:
            return None
        _limit_socket(r, deadline)
    if time.monotonic() > deadline:
        return None
    return b''.join(chunks)


def charge_trip_payment(trip_id, *, timeout: Optional[float] = None) -> ChargeResult:
    """POST one charge request for a trip. Never raises; failures come back as ``ok=False``.

    ``timeout`` is a deadline for the whole call, body included. A response
    still arriving when it passes is dropped and reported as a timeout. The
    call is never retried.
    """
    url = f"{settings.BOOKING_APP_URL}/api/stripe/charge-payment"
    timeout = settings.PAYMENT_CHARGE_TIMEOUT if timeout is None else timeout
    timed_out = ChargeResult(ok=False, error=f'Payment service timed out after {timeout:g}s', error_type='timeout')
    deadline = time.monotonic() + timeout
    try:
        r = requests.post(url, json={'tripId': str(trip_id)}, timeout=timeout, stream=True)
    except requests.Timeout:
        logger.warning('payment charge for trip %s timed out after %ss', trip_id, timeout)
        return timed_out
    except requests.RequestException as e:
        logger.warning('payment charge for trip %s failed: %s', trip_id, e)
        return ChargeResult(ok=False, error=str(e) or e.__class__.__name__, error_type='network')

    try:
        body = _read_body(r, deadline)
    except requests.RequestException as e:
        # requests reports a read timeout mid-body as ConnectionError
        if not isinstance(e, requests.Timeout) and time.monotonic() < deadline:
            logger.warning('payment charge for trip %s failed while reading: %s', trip_id, e)
            return ChargeResult(ok=False, error=str(e) or e.__class__.__name__, error_type='network')
        body = None
    finally:
        r.close()
    if body is None:
        logger.warning('payment charge for trip %s exceeded the %ss deadline', trip_id, timeout)
        return timed_out

    try:
        data = json.loads(body.decode(r.encoding or 'utf-8'))
    except (ValueError, LookupError):
        data = {}
    if not isinstance(data, dict):
        data = {}
    if r.ok and data.get('success', True) is not False:
        intent = data.get('paymentIntent') or {}
        charged = data.get('trip') or {}
        return ChargeResult(
            ok=True,
            payment_intent_id=str(intent.get('id') or ''),
            amount=_amount(charged.get('amount')),
        )
    message = data.get('error') or data.get('message') or f'HTTP {r.status_code}'
    logger.warning('payment charge for trip %s rejected: %s', trip_id, message)
    return ChargeResult(ok=False, error=str(message), error_type='declined' if r.status_code < 500 else 'upstream')


def send_payment_reminder(trip_id, *, user_email: str, amount) -> dict:
    """Ask the booking app to email the client; raises ``UpstreamServiceError`` on failure."""
    url = f"{settings.BOOKING_APP_URL}/api/trips/payment-reminder"
    payload = {'tripId': str(trip_id), 'userEmail': user_email, 'amount': str(amount) if amount is not None else None}
    try:
        r = requests.post(url, json=payload, timeout=settings.PAYMENT_CHARGE_TIMEOUT)
    except requests.RequestException as e:
        logger.warning('payment reminder for trip %s failed: %s', trip_id, e)
        raise UpstreamServiceError(f'Failed to send reminder: {e}')
    try:
        data = r.json()
    except ValueError:
        data = {}
    if not r.ok:
        message = (data.get('error') if isinstance(data, dict) else None) or f'HTTP {r.status_code}'
        raise UpstreamServiceError(f'Failed to send reminder: {message}')
    return data if isinstance(data, dict) else {}
