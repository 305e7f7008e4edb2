"""
Messaging-related exceptions
"""


class MessagingError(Exception):
    """Raised when an outbound WhatsApp message cannot be delivered"""

    def __init__(self, message: str = "WhatsApp message delivery failed", status_code: int = None):
        self.code = "MESSAGING_FAILED"
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)
