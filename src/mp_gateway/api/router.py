"""Auth and user API routers: register, login, logout, account lookups.

All endpoints return ApiResponse. request_id is read from request.state
(injected by RequestLogMiddleware). The session token travels in an
HttpOnly cookie named by SESSION_COOKIE_NAME.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Path, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.mp_common.database import MAX_ID, get_db_session
from src.mp_common.errors import UnauthorizedError
from src.mp_common.response import ApiResponse, success_response
from src.mp_gateway.auth.dependencies import (
    get_current_account_id,
    get_session_store,
    get_session_token,
)
from src.mp_gateway.auth.session import RedisSessionStore
from src.mp_gateway.user.db_models import AccountModel
from src.mp_gateway.user.schemas import LoginRequest, RegisterRequest, UserInfo
from src.mp_gateway.user.service import UserService

router = APIRouter(prefix="/auth", tags=["auth"])
users_router = APIRouter(prefix="/users", tags=["users"])
_service = UserService()


def _user_info(account: AccountModel) -> dict:
    return UserInfo.from_account(
        account_id=account.id,
        username=account.username,
        balance_cents=account.balance_cents,
        is_admin=account.is_admin,
        created_at=account.created_at.isoformat(),
    ).model_dump()


def _set_session_cookie(response: Response, token: str, max_age: int) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=max_age,
        httponly=True,
        secure=not settings.DEBUG,
        samesite="lax",
        path="/",
    )


@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse,
    summary="Create an account and log it in",
)
async def register(
    request: Request,
    response: Response,
    body: RegisterRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    sessions: Annotated[RedisSessionStore, Depends(get_session_store)],
) -> ApiResponse:
    async with db.begin():
        account = await _service.register(body.username, body.password, db)

    token = await sessions.create_session(account.id)
    _set_session_cookie(response, token, sessions.ttl_seconds)

    resp = success_response(_user_info(account), request)
    resp.message = "User registered successfully"
    return resp


@router.post(
    "/login",
    status_code=status.HTTP_200_OK,
    response_model=ApiResponse,
    summary="Log in",
)
async def login(
    request: Request,
    response: Response,
    body: LoginRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    sessions: Annotated[RedisSessionStore, Depends(get_session_store)],
) -> ApiResponse:
    account = await _service.login(body.username, body.password, db)

    token = await sessions.create_session(account.id)
    _set_session_cookie(response, token, sessions.ttl_seconds)

    resp = success_response(_user_info(account), request)
    resp.message = "Login successful"
    return resp


@router.post(
    "/logout",
    status_code=status.HTTP_200_OK,
    response_model=ApiResponse,
    summary="Revoke the current session",
)
async def logout(
    request: Request,
    response: Response,
    token: Annotated[str | None, Depends(get_session_token)],
    sessions: Annotated[RedisSessionStore, Depends(get_session_store)],
) -> ApiResponse:
    if not token:
        raise UnauthorizedError()
    await sessions.revoke_session(token)
    response.delete_cookie(settings.SESSION_COOKIE_NAME, path="/")

    resp = success_response(None, request)
    resp.message = "Logged out"
    return resp


@users_router.get("/me", response_model=ApiResponse, summary="Own account")
async def get_me(
    request: Request,
    account_id: Annotated[int, Depends(get_current_account_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    account = await _service.get_by_id(account_id, db)
    return success_response(_user_info(account), request)


@users_router.get(
    "/by-name/{username}", response_model=ApiResponse, summary="Account by username"
)
async def get_by_username(
    request: Request,
    username: str,
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    account = await _service.get_by_username(username, db)
    return success_response(_user_info(account), request)


@users_router.get("/{account_id}", response_model=ApiResponse, summary="Account by id")
async def get_by_id(
    request: Request,
    account_id: Annotated[int, Path(ge=1, le=MAX_ID)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    account = await _service.get_by_id(account_id, db)
    return success_response(_user_info(account), request)
