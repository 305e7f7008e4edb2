"""
User, verification and history schemas
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, EmailStr, Field


class RegisterRequest(BaseModel):
    """User registration request"""
    email: EmailStr = Field(..., description="User email address")
    phone: str = Field(..., min_length=1, description="Phone number, any common format")
    password: str = Field(..., min_length=8, description="User password (min 8 characters)")


class RegisterResponse(BaseModel):
    """User registration response"""
    user_id: str = Field(..., description="Created user UUID")
    email: str = Field(..., description="User email address")
    phone: str = Field(..., description="Canonical phone number")
    public_key: str = Field(..., description="Ledger address of the new wallet")
    verification_code: str = Field(..., description="Six-digit code to send to the WhatsApp bot")
    message: str = Field(default="User registered successfully")


class LoginRequest(BaseModel):
    """Password login by email or phone number"""
    identifier: Optional[str] = Field(None, description="Email address or phone number")
    password: Optional[str] = Field(None, description="Account password")


class LoginResponse(BaseModel):
    """Account profile; no session or token is issued"""
    user_id: str
    email: str
    phone: str
    public_key: str
    whatsapp_verified: bool
    message: str = Field(default="Login successful")


class VerifyWhatsAppRequest(BaseModel):
    """Web-side WhatsApp verification; both fields are checked by the endpoint"""
    phone: Optional[str] = Field(None, description="Phone number the code was issued for")
    code: Optional[str] = Field(None, description="Six-digit verification code")


class VerifyWhatsAppResponse(BaseModel):
    message: str = Field(default="Phone number verified successfully")
    phone: str


class BalanceResponse(BaseModel):
    """Authoritative balance read from the ledger"""
    public_key: str
    balance: str = Field(..., description="Balance as a decimal string")
    unit: str


class TransactionItem(BaseModel):
    """Transaction history entry"""
    id: str
    type: str
    status: str
    amount: str
    counterparty_phone: Optional[str] = None
    merchant_request_id: Optional[str] = None
    checkout_request_id: Optional[str] = None
    mpesa_receipt_number: Optional[str] = None
    ledger_tx_hash: Optional[str] = None
    result_code: Optional[int] = None
    result_desc: Optional[str] = None
    created_at: datetime


class TransactionListResponse(BaseModel):
    public_key: str
    transactions: List[TransactionItem]
