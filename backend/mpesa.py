"""
Thin client for the M-Pesa Daraja STK push API.

Only the two calls the store needs are implemented: the OAuth token exchange
and the STK push request. The provider answers asynchronously through the
callback endpoint in routers/payments.py.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple
import base64
import logging
import math
import os

import requests

from .errors import PaymentGatewayError

logger = logging.getLogger(__name__)

MPESA_ENV = os.environ.get('MPESA_ENV', 'sandbox')
MPESA_CONSUMER_KEY = os.environ.get('MPESA_CONSUMER_KEY', '')
MPESA_CONSUMER_SECRET = os.environ.get('MPESA_CONSUMER_SECRET', '')
MPESA_SHORTCODE = os.environ.get('MPESA_SHORTCODE', '')
MPESA_PASSKEY = os.environ.get('MPESA_PASSKEY', '')
MPESA_CALLBACK_URL = os.environ.get('MPESA_CALLBACK_URL', '')
MPESA_CALLBACK_TOKEN = os.environ.get('MPESA_CALLBACK_TOKEN', '')
REQUEST_TIMEOUT = 30


def base_url() -> str:
    if MPESA_ENV == "production":
        return "https://api.safaricom.co.ke"
    return "https://sandbox.safaricom.co.ke"


def get_access_token() -> str:
    if not MPESA_CONSUMER_KEY or not MPESA_CONSUMER_SECRET:
        raise PaymentGatewayError("M-Pesa configuration is incomplete")

    url = f"{base_url()}/oauth/v1/generate?grant_type=client_credentials"
    try:
        response = requests.get(
            url,
            auth=(MPESA_CONSUMER_KEY, MPESA_CONSUMER_SECRET),
            timeout=REQUEST_TIMEOUT,
        )
        response.raise_for_status()
        data = response.json()
    except (requests.RequestException, ValueError) as exc:
        logger.error(f"M-Pesa auth error: {exc}")
        raise PaymentGatewayError("Failed to authenticate with M-Pesa")

    token = data.get("access_token")
    if not token:
        raise PaymentGatewayError("Failed to authenticate with M-Pesa")
    return token


def password_and_timestamp(now: Optional[datetime] = None) -> Tuple[str, str]:
    """Daraja password is base64(shortcode + passkey + timestamp), timestamp as YYYYMMDDHHMMSS."""
    now = now or datetime.now(timezone.utc)
    timestamp = now.strftime("%Y%m%d%H%M%S")
    raw = f"{MPESA_SHORTCODE}{MPESA_PASSKEY}{timestamp}"
    return base64.b64encode(raw.encode()).decode(), timestamp


def callback_url() -> str:
    if MPESA_CALLBACK_TOKEN and "token=" not in MPESA_CALLBACK_URL:
        separator = "&" if "?" in MPESA_CALLBACK_URL else "?"
        return f"{MPESA_CALLBACK_URL}{separator}token={MPESA_CALLBACK_TOKEN}"
    return MPESA_CALLBACK_URL


def stk_push(phone: str, amount: float, account_ref: str, description: str) -> Dict[str, Any]:
    token = get_access_token()
    password, timestamp = password_and_timestamp()

    payload = {
        "BusinessShortCode": MPESA_SHORTCODE,
        "Password": password,
        "Timestamp": timestamp,
        "TransactionType": "CustomerPayBillOnline",
        # Daraja only accepts whole shillings
        "Amount": int(math.ceil(amount)),
        "PartyA": phone,
        "PartyB": MPESA_SHORTCODE,
        "PhoneNumber": phone,
        "CallBackURL": callback_url(),
        "AccountReference": account_ref,
        "TransactionDesc": description,
    }

    logger.info(f"Sending STK push for {account_ref} ({payload['Amount']} KES)")
    try:
        response = requests.post(
            f"{base_url()}/mpesa/stkpush/v1/processrequest",
            json=payload,
            headers={"Authorization": f"Bearer {token}"},
            timeout=REQUEST_TIMEOUT,
        )
        data = response.json()
    except (requests.RequestException, ValueError) as exc:
        logger.error(f"M-Pesa STK push error: {exc}")
        raise PaymentGatewayError("Failed to reach M-Pesa")

    if response.status_code != 200 or str(data.get("ResponseCode")) != "0":
        message = data.get("errorMessage") or data.get("ResponseDescription") or "STK push rejected"
        logger.error(f"M-Pesa STK push failed: {response.status_code} {data}")
        raise PaymentGatewayError(f"M-Pesa error: {message}")

    return data


def callback_metadata(callback: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten CallbackMetadata.Item ([{Name, Value}, ...]) into a dict."""
    metadata = callback.get("CallbackMetadata")
    items = metadata.get("Item") if isinstance(metadata, dict) else None
    values = {}
    for item in items or []:
        if isinstance(item, dict) and "Name" in item:
            values[item["Name"]] = item.get("Value")
    return values
