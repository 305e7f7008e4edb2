"""
Web deposit schemas
"""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class StkPushRequest(BaseModel):
    """Deposit started from the web app; presence of each field is checked by the endpoint"""
    model_config = ConfigDict(populate_by_name=True)

    amount: Optional[int] = Field(None, description="Whole amount in KES")
    phone: Optional[str] = Field(None, description="Phone number to prompt for payment")
    user_id: Optional[str] = Field(None, alias="userId", description="Account UUID")


class StkPushResponse(BaseModel):
    message: str = Field(default="STK Push initiated successfully")
    transaction_id: str
    checkout_request_id: str
