"""
Payment provider exceptions
"""


class PaymentProviderError(Exception):
    """Raised when the mobile-money provider rejects or fails a request"""

    def __init__(self, message: str = "Payment provider request failed", response_code: str = None):
        self.code = "PAYMENT_PROVIDER_FAILED"
        self.message = message
        self.response_code = response_code
        super().__init__(self.message)
