"""GET /api/user/balance, POST /api/user/balance/withdraw, GET /api/user/withdrawals"""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from loyalty_gateway.api.dependencies import get_current_user, get_request_id, get_withdrawal_processor
from loyalty_gateway.api.v1.schemas import BalanceResponse, MessageResponse, WithdrawalItem, WithdrawRequest
from loyalty_gateway.domain.exceptions import (
    BalanceNotFoundError,
    InsufficientFundsError,
    InvalidOrderNumberError,
    InvalidWithdrawalError,
    StorageError,
    WithdrawalAlreadyExistsError,
)
from loyalty_gateway.services.withdrawals import WithdrawalProcessor
from loyalty_gateway.utils.date_utils import to_rfc3339

router = APIRouter()


@router.get("/balance", response_model=BalanceResponse)
def get_balance(
    request: Request,
    owner_id: uuid.UUID = Depends(get_current_user),
    processor: WithdrawalProcessor = Depends(get_withdrawal_processor),
):
    try:
        balance = processor.get_balance(owner_id)
    except StorageError as e:
        logging.error(f"Balance query failed: {e}", extra={"request_id": get_request_id(request)})
        raise HTTPException(status_code=500, detail="Internal server error")

    return BalanceResponse(current=float(balance.current), withdrawn=float(balance.withdrawn))


@router.post("/balance/withdraw", response_model=MessageResponse)
def withdraw(
    body: WithdrawRequest,
    request: Request,
    owner_id: uuid.UUID = Depends(get_current_user),
    processor: WithdrawalProcessor = Depends(get_withdrawal_processor),
):
    """
    Spend loyalty points.

    Error mapping:
    - 402: not enough points
    - 409: a withdrawal under this order number already exists
    - 422: order number fails the Luhn check
    """
    request_id = get_request_id(request)
    try:
        processor.withdraw(owner_id, body.order, body.sum)
    except InvalidOrderNumberError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except InvalidWithdrawalError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except InsufficientFundsError as e:
        raise HTTPException(status_code=402, detail=str(e))
    except WithdrawalAlreadyExistsError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except (BalanceNotFoundError, StorageError) as e:
        logging.error(f"Withdrawal failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    return MessageResponse(status="OK", message="Withdrawal applied")


@router.get("/withdrawals", response_model=list[WithdrawalItem])
def list_withdrawals(
    request: Request,
    owner_id: uuid.UUID = Depends(get_current_user),
    processor: WithdrawalProcessor = Depends(get_withdrawal_processor),
):
    """Caller's withdrawals, newest first; 204 when there are none."""
    try:
        withdrawals = processor.list_withdrawals(owner_id)
    except StorageError as e:
        logging.error(f"Withdrawal listing failed: {e}", extra={"request_id": get_request_id(request)})
        raise HTTPException(status_code=500, detail="Internal server error")

    if not withdrawals:
        return Response(status_code=204)

    return [
        WithdrawalItem(order=w.order_id, sum=float(w.sum), processed_at=to_rfc3339(w.processed_at))
        for w in withdrawals
    ]
