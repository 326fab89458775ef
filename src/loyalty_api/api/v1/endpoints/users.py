"""Member registration and login."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from loyalty_api.api.dependencies.services import get_auth_service
from loyalty_api.core.settings import settings
from loyalty_api.models.user import User
from loyalty_api.services.auth import (
    AuthService,
    InvalidCredentialsError,
    LoginTakenError,
    issue_session_token,
)
from loyalty_api.services.orders import StorageError

router = APIRouter(prefix="/api/user", tags=["Members"])


class CredentialsRequest(BaseModel):
    login: str = Field(..., min_length=1, max_length=50)
    password: str = Field(..., min_length=1)

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


class SessionResponse(BaseModel):
    id: str
    login: str


async def _read_credentials(request: Request) -> CredentialsRequest:
    try:
        payload = await request.json()
        return CredentialsRequest.model_validate(payload)
    except (ValueError, ValidationError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid credentials payload") from exc


def _start_session(response: Response, user: User) -> SessionResponse:
    token = issue_session_token(user.id)
    response.set_cookie(settings.session_cookie_name, token, httponly=True, samesite="lax")
    response.headers["Authorization"] = f"Bearer {token}"
    return SessionResponse(id=str(user.id), login=user.login)


@router.post("/register", response_model=SessionResponse)
async def register_member(
    request: Request,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
) -> SessionResponse:
    credentials = await _read_credentials(request)
    try:
        user = await auth_service.register(credentials.login, credentials.password)
    except LoginTakenError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except StorageError as exc:
        logger.exception("Member registration failed", login=credentials.login)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Registration failed") from exc
    return _start_session(response, user)


@router.post("/login", response_model=SessionResponse)
async def login_member(
    request: Request,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
) -> SessionResponse:
    credentials = await _read_credentials(request)
    try:
        user = await auth_service.authenticate(credentials.login, credentials.password)
    except InvalidCredentialsError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    except StorageError as exc:
        logger.exception("Member login failed", login=credentials.login)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Login failed") from exc
    return _start_session(response, user)
