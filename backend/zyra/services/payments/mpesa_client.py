"""
M-Pesa Daraja client - STK Push deposit initiation
"""

import base64
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

import httpx

from zyra.infrastructure.settings import Settings, get_settings
from zyra.services.payments.exceptions import PaymentProviderError
from zyra.services.phone import normalize_phone

logger = logging.getLogger(__name__)

# Daraja limits
ACCOUNT_REFERENCE_MAX_LENGTH = 12
TRANSACTION_DESC_MAX_LENGTH = 13
# Refresh the OAuth token this many seconds before it expires
TOKEN_REFRESH_MARGIN_SECONDS = 60


@dataclass(frozen=True)
class DepositInitiation:
    merchant_request_id: str
    checkout_request_id: str


def stk_password(shortcode: str, passkey: str, timestamp: str) -> str:
    """STK Push password = base64(shortcode + passkey + timestamp)"""
    return base64.b64encode(f"{shortcode}{passkey}{timestamp}".encode("utf-8")).decode("ascii")


class MpesaClient:
    """
    Payment provider backed by Safaricom Daraja.

    The OAuth access token is cached on the instance until shortly before it
    expires.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.Client] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings or get_settings()
        self._http = http_client or httpx.Client(timeout=self.settings.HTTP_TIMEOUT_SECONDS)
        self._clock = clock
        self._token: Optional[str] = None
        self._token_expires_at = 0.0

    @property
    def base_url(self) -> str:
        return self.settings.MPESA_BASE_URL.rstrip("/")

    def _get_access_token(self) -> str:
        if self._token and self._clock() < self._token_expires_at - TOKEN_REFRESH_MARGIN_SECONDS:
            return self._token

        try:
            response = self._http.get(
                f"{self.base_url}/oauth/v1/generate",
                params={"grant_type": "client_credentials"},
                auth=(self.settings.MPESA_CONSUMER_KEY, self.settings.MPESA_CONSUMER_SECRET),
            )
        except httpx.HTTPError as e:
            raise PaymentProviderError(f"M-Pesa token request failed: {e}") from e

        if response.status_code != 200:
            raise PaymentProviderError(f"M-Pesa token request returned {response.status_code}")

        data = response.json()
        token = data.get("access_token")
        if not token:
            raise PaymentProviderError("M-Pesa token response has no access_token")

        self._token = token
        self._token_expires_at = self._clock() + int(data.get("expires_in", 3599))
        logger.info("M-Pesa OAuth token refreshed")
        return token

    def initiate_deposit(self, amount: int, phone: str, account_reference: str) -> DepositInitiation:
        """
        Start an STK Push prompting the payer's phone for `amount` KES.

        Returns the provider correlation ids used to match the asynchronous
        completion callback.

        Raises:
            PaymentProviderError: on transport errors or any non-success response
        """
        token = self._get_access_token()
        shortcode = self.settings.MPESA_BUSINESS_SHORTCODE
        timestamp = datetime.now().strftime("%Y%m%d%H%M%S")
        payer = normalize_phone(phone).lstrip("+")

        payload = {
            "BusinessShortCode": shortcode,
            "Password": stk_password(shortcode, self.settings.MPESA_PASSKEY, timestamp),
            "Timestamp": timestamp,
            "TransactionType": "CustomerPayBillOnline",
            "Amount": int(amount),
            "PartyA": payer,
            "PartyB": shortcode,
            "PhoneNumber": payer,
            "CallBackURL": self.settings.mpesa_callback_url,
            "AccountReference": account_reference[:ACCOUNT_REFERENCE_MAX_LENGTH],
            "TransactionDesc": "Zyra deposit"[:TRANSACTION_DESC_MAX_LENGTH],
        }

        try:
            response = self._http.post(
                f"{self.base_url}/mpesa/stkpush/v1/processrequest",
                json=payload,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as e:
            logger.error(f"STK Push request failed: phone={payer}, amount={amount}, error={e}")
            raise PaymentProviderError(f"STK Push request failed: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        response_code = str(data.get("ResponseCode", ""))
        if response.status_code != 200 or response_code != "0":
            description = data.get("errorMessage") or data.get("ResponseDescription") or response.text
            logger.error(
                f"STK Push rejected: phone={payer}, amount={amount}, "
                f"status={response.status_code}, response_code={response_code}, description={description}"
            )
            raise PaymentProviderError(f"STK Push rejected: {description}", response_code=response_code or None)

        merchant_request_id = data.get("MerchantRequestID")
        checkout_request_id = data.get("CheckoutRequestID")
        if not merchant_request_id or not checkout_request_id:
            raise PaymentProviderError("STK Push response is missing correlation ids")

        logger.info(
            f"STK Push initiated: phone={payer}, amount={amount}, "
            f"merchant_request_id={merchant_request_id}, checkout_request_id={checkout_request_id}"
        )
        return DepositInitiation(
            merchant_request_id=merchant_request_id,
            checkout_request_id=checkout_request_id,
        )
