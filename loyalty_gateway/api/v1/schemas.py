"""Pydantic schemas for API request/response validation"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class Credentials(BaseModel):
    """Request body for POST /api/user/register and /api/user/login"""

    login: str = Field(..., min_length=1, description="User login")
    password: str = Field(..., min_length=1, description="User password")


class MessageResponse(BaseModel):
    status: str
    message: str


class TokenResponse(MessageResponse):
    """Response for register/login; the token is also set as header and cookie"""

    token: str


class OrderItem(BaseModel):
    """Single order in GET /api/user/orders"""

    number: str
    status: str
    accrual: Optional[float] = None
    uploaded_at: str


class BalanceResponse(BaseModel):
    """Response for GET /api/user/balance"""

    current: float
    withdrawn: float


class WithdrawRequest(BaseModel):
    """Request body for POST /api/user/balance/withdraw"""

    order: str = Field(..., min_length=1, description="Luhn-valid number the spend is recorded under")
    sum: Decimal = Field(..., gt=0, description="Amount to withdraw")


class WithdrawalItem(BaseModel):
    """Single withdrawal in GET /api/user/withdrawals"""

    order: str
    sum: float
    processed_at: str
