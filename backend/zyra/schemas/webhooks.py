"""
Webhook payload schemas
"""

from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class WhatsAppWebhookResponse(BaseModel):
    """WhatsApp webhook acknowledgement"""
    status: str = Field(..., description="Processing status (completed, ignored, duplicate, no_message)")
    code: Optional[str] = Field(None, description="Machine-readable outcome code")
    transaction_id: Optional[str] = Field(None, description="Transaction UUID, when the command created one")


class MpesaCallbackItem(BaseModel):
    """One CallbackMetadata item (Amount, MpesaReceiptNumber, PhoneNumber, ...)"""
    Name: str
    Value: Optional[Any] = None


class MpesaCallbackMetadata(BaseModel):
    Item: List[MpesaCallbackItem] = Field(default_factory=list)


class MpesaStkCallback(BaseModel):
    MerchantRequestID: Optional[str] = None
    CheckoutRequestID: Optional[str] = None
    ResultCode: int
    ResultDesc: Optional[str] = None
    CallbackMetadata: Optional[MpesaCallbackMetadata] = None


class MpesaCallbackBody(BaseModel):
    stkCallback: MpesaStkCallback


class MpesaCallbackPayload(BaseModel):
    """
    Daraja STK Push result callback

    Posted by Safaricom to the CallBackURL given when the STK Push was initiated.
    """
    Body: MpesaCallbackBody

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "Body": {
                    "stkCallback": {
                        "MerchantRequestID": "29115-34620561-1",
                        "CheckoutRequestID": "ws_CO_191220191020363925",
                        "ResultCode": 0,
                        "ResultDesc": "The service request is processed successfully.",
                        "CallbackMetadata": {
                            "Item": [
                                {"Name": "Amount", "Value": 100},
                                {"Name": "MpesaReceiptNumber", "Value": "NLJ7RT61SV"},
                                {"Name": "PhoneNumber", "Value": 254708374149},
                            ]
                        },
                    }
                }
            }
        }
    )


class MpesaCallbackResponse(BaseModel):
    """Acknowledgement in the shape Daraja expects"""
    ResultCode: int = Field(0, description="0 acknowledges the callback")
    ResultDesc: str = Field(..., description="Human readable processing result")
    status: str = Field(..., description="Processing status (success, failed, duplicate, ignored)")
    transaction_id: Optional[str] = Field(None, description="Matched transaction UUID")
