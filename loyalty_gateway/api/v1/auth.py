"""POST /api/user/register and /api/user/login - account endpoints"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from loyalty_gateway.api.dependencies import ACCESS_TOKEN_COOKIE, get_request_id, get_settings, get_user_auth
from loyalty_gateway.api.v1.schemas import Credentials, TokenResponse
from loyalty_gateway.config import Settings
from loyalty_gateway.domain.exceptions import InvalidCredentialsError, StorageError, UserAlreadyExistsError
from loyalty_gateway.services.auth import UserAuth

router = APIRouter()


def _attach_token(response: Response, token: str, settings: Settings) -> None:
    response.headers["Authorization"] = f"Bearer {token}"
    response.set_cookie(
        ACCESS_TOKEN_COOKIE,
        token,
        max_age=settings.token_ttl_minutes * 60,
        httponly=True,
        secure=True,
    )


@router.post("/register", response_model=TokenResponse)
def register(
    credentials: Credentials,
    request: Request,
    response: Response,
    auth: UserAuth = Depends(get_user_auth),
    settings: Settings = Depends(get_settings),
):
    """Create an account with an empty balance and log the user in."""
    try:
        token = auth.register(credentials.login, credentials.password)
    except UserAlreadyExistsError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except StorageError as e:
        logging.error(f"Registration failed: {e}", extra={"request_id": get_request_id(request)})
        raise HTTPException(status_code=500, detail="Internal server error")

    _attach_token(response, token, settings)
    return TokenResponse(status="OK", message="Registered", token=token)


@router.post("/login", response_model=TokenResponse)
def login(
    credentials: Credentials,
    request: Request,
    response: Response,
    auth: UserAuth = Depends(get_user_auth),
    settings: Settings = Depends(get_settings),
):
    try:
        token = auth.login(credentials.login, credentials.password)
    except InvalidCredentialsError as e:
        raise HTTPException(status_code=401, detail=str(e))
    except StorageError as e:
        logging.error(f"Login failed: {e}", extra={"request_id": get_request_id(request)})
        raise HTTPException(status_code=500, detail="Internal server error")

    _attach_token(response, token, settings)
    return TokenResponse(status="OK", message="Login success", token=token)
