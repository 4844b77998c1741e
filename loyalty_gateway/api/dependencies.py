"""Dependency injection for FastAPI endpoints"""

import uuid

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from loyalty_gateway.config import Settings
from loyalty_gateway.domain.exceptions import InvalidTokenError
from loyalty_gateway.infrastructure.database.session import get_db
from loyalty_gateway.infrastructure.security.tokens import TokenService
from loyalty_gateway.services.auth import UserAuth
from loyalty_gateway.services.order_intake import OrderIntake
from loyalty_gateway.services.withdrawals import WithdrawalProcessor

ACCESS_TOKEN_COOKIE = "access_token"


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_current_user(request: Request, tokens: TokenService = Depends(get_token_service)) -> uuid.UUID:
    """
    Resolve the caller from ``Authorization: Bearer <token>`` or the
    ``access_token`` cookie.
    """
    header = request.headers.get("Authorization")
    if header:
        scheme, _, token = header.partition(" ")
        if scheme.lower() != "bearer" or not token:
            raise HTTPException(status_code=401, detail="Invalid Authorization header format")
    else:
        token = request.cookies.get(ACCESS_TOKEN_COOKIE)
        if not token:
            raise HTTPException(status_code=401, detail="Missing access token")

    try:
        return tokens.resolve(token.strip())
    except InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e))


def get_user_auth(
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
    settings: Settings = Depends(get_settings),
) -> UserAuth:
    return UserAuth(db, tokens, bcrypt_rounds=settings.bcrypt_rounds)


def get_order_intake(db: Session = Depends(get_db)) -> OrderIntake:
    return OrderIntake(db)


def get_withdrawal_processor(db: Session = Depends(get_db)) -> WithdrawalProcessor:
    return WithdrawalProcessor(db)


async def get_order_number(request: Request) -> str:
    """
    Plain-text request body carrying an order number.

    The body is passed on as sent; surrounding whitespace makes the Luhn
    check fail rather than being trimmed away.
    """
    try:
        order_number = (await request.body()).decode("utf-8")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="Order number must be text")
    if not order_number:
        raise HTTPException(status_code=400, detail="Empty order number")
    return order_number
