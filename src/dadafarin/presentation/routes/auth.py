"""Auth routes: signup, login and the current user's profile."""

from __future__ import annotations

from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from loguru import logger

from dadafarin.application.exceptions import (
    UnauthorizedError,
    UserExistsError,
    UserNotFoundError,
    ValidationFailedError,
)
from dadafarin.infrastructure.account_store import AccountStore
from dadafarin.infrastructure.passwords import hash_password, verify_password
from dadafarin.presentation.auth import AuthenticatedUser, create_token, get_current_user
from dadafarin.presentation.schemas import (
    LoginRequest,
    LoginResponse,
    MeResponse,
    SignupRequest,
    SignupResponse,
    UserResponse,
)

router = APIRouter(prefix="/api/auth", tags=["auth"])


# The account store connection is only used from the event loop; bcrypt runs in the threadpool.


@router.post("/signup", response_model=SignupResponse)
async def signup(request: SignupRequest, raw_request: Request):
    """Create an account with a trial subscription."""
    settings = raw_request.app.state.settings
    accounts: AccountStore = raw_request.app.state.accounts

    if not request.email or not request.password:
        raise ValidationFailedError("Email and password are required")
    if accounts.get_user_by_email(request.email):
        logger.info("Signup for existing email {}", request.email)
        raise UserExistsError()

    trial_end = datetime.now(ZoneInfo(settings.timezone)) + timedelta(
        days=settings.signup_trial_days
    )
    user = accounts.create_user(
        email=request.email,
        password_hash=await run_in_threadpool(hash_password, request.password),
        first_name=request.first_name,
        last_name=request.last_name,
        valid_until=trial_end,
    )
    return SignupResponse(user_id=user.id)


@router.post("/login", response_model=LoginResponse)
async def login(request: LoginRequest, raw_request: Request):
    """Check the password and return a JWT."""
    settings = raw_request.app.state.settings
    accounts: AccountStore = raw_request.app.state.accounts

    if not request.email or not request.password:
        raise ValidationFailedError("Email and password are required")
    user = accounts.get_user_by_email(request.email)
    if user is None:
        raise UserNotFoundError()
    if not await run_in_threadpool(verify_password, request.password, user.password_hash):
        logger.info("Failed login for user {}", user.id)
        raise UnauthorizedError("Invalid credentials")

    logger.info("POST /api/auth/login | user={}", user.id)
    return LoginResponse(token=create_token(settings, user.id, user.email))


@router.get("/me", response_model=MeResponse)
async def me(
    raw_request: Request,
    current_user: AuthenticatedUser = Depends(get_current_user),
):
    accounts: AccountStore = raw_request.app.state.accounts
    user = accounts.get_user(current_user.user_id)
    if user is None:
        raise UserNotFoundError()
    return MeResponse(
        user=UserResponse(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            valid_until=user.valid_until,
        )
    )
