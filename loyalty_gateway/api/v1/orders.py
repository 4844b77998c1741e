"""POST/GET /api/user/orders - order submission and listing"""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from loyalty_gateway.api.dependencies import get_current_user, get_order_intake, get_order_number, get_request_id
from loyalty_gateway.api.v1.schemas import MessageResponse, OrderItem
from loyalty_gateway.domain.exceptions import InvalidOrderNumberError, OrderBelongsToAnotherUserError, StorageError
from loyalty_gateway.domain.models import SubmitOutcome
from loyalty_gateway.services.order_intake import OrderIntake
from loyalty_gateway.utils.date_utils import to_rfc3339

router = APIRouter()


@router.post("/orders", response_model=MessageResponse)
def submit_order(
    request: Request,
    response: Response,
    owner_id: uuid.UUID = Depends(get_current_user),
    order_number: str = Depends(get_order_number),
    intake: OrderIntake = Depends(get_order_intake),
):
    """
    Register a purchase order number (plain-text body).

    Returns:
        202 when newly accepted, 200 when the caller already registered it
    """
    request_id = get_request_id(request)
    try:
        outcome = intake.submit(owner_id, order_number)
    except InvalidOrderNumberError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except OrderBelongsToAnotherUserError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except StorageError as e:
        logging.error(f"Order submission failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    if outcome == SubmitOutcome.ACCEPTED:
        response.status_code = 202
        return MessageResponse(status="Accepted", message="Order accepted for processing")
    return MessageResponse(status="OK", message="Order already uploaded by this user")


@router.get("/orders", response_model=list[OrderItem], response_model_exclude_none=True)
def list_orders(
    request: Request,
    owner_id: uuid.UUID = Depends(get_current_user),
    intake: OrderIntake = Depends(get_order_intake),
):
    """Caller's orders, newest first; 204 when there are none."""
    try:
        orders = intake.list_orders(owner_id)
    except StorageError as e:
        logging.error(f"Order listing failed: {e}", extra={"request_id": get_request_id(request)})
        raise HTTPException(status_code=500, detail="Internal server error")

    if not orders:
        return Response(status_code=204)

    return [
        OrderItem(
            number=order.id,
            status=order.status.value,
            accrual=float(order.accrual) if order.accrual > 0 else None,
            uploaded_at=to_rfc3339(order.created_at),
        )
        for order in orders
    ]
