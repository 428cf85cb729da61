# services/payment_gateway.py

import requests
from flask import current_app

from services.errors import PaymentStatusError

SUCCESS_STATUSES = {'success', 'succeeded', 'completed', 'paid'}
FAILED_STATUSES = {'failed', 'error', 'cancelled', 'canceled', 'expired', 'rejected'}


def normalize_status(raw_status):
    status = (raw_status or '').strip().lower()
    if status in SUCCESS_STATUSES:
        return 'success'
    if status in FAILED_STATUSES:
        return 'failed'
    return 'pending'


class JekoPaymentGateway:
    """Status checks against the Jeko partner API: check_status(reference) -> {status, raw}."""

    def __init__(self, api_url, api_key, api_key_id, timeout=15, session=None):
        self.api_url = api_url.rstrip('/')
        self.api_key = api_key
        self.api_key_id = api_key_id
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config=None):
        config = config or current_app.config
        return cls(
            api_url=config['JEKO_API_URL'],
            api_key=config.get('JEKO_API_KEY'),
            api_key_id=config.get('JEKO_API_KEY_ID'),
            timeout=config.get('JEKO_TIMEOUT', 15),
        )

    def check_status(self, payment_reference):
        url = f"{self.api_url}/partner_api/payment_requests/{payment_reference}"
        headers = {
            'X-API-KEY': self.api_key or '',
            'X-API-KEY-ID': self.api_key_id or '',
            'Accept': 'application/json',
        }
        try:
            response = self.session.get(url, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise PaymentStatusError(f"Status check for {payment_reference} failed: {e}") from e

        if not response.ok:
            raise PaymentStatusError(
                f"Status check for {payment_reference} returned HTTP {response.status_code}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise PaymentStatusError(f"Status check for {payment_reference} returned invalid JSON") from e

        return {'status': normalize_status(data.get('status')), 'raw': data}
