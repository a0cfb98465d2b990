# PURPOSE: /auth/register, /auth/login, /auth/otp/request, /auth/otp/verify, /auth/me

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from ..alerts.channels import ChannelAdapter, find_channel
from ..api.deps import get_channels
from ..auth import create_access_token, generate_otp, get_current_user, hash_password, verify_password
from ..config import settings
from ..models import OtpRequest, OtpRequestResponse, OtpVerify, TokenResponse, UserCreate, UserPublic
from ..rate_limit import limiter
from ..store_db import consume_otp, create_otp, create_user, get_db, get_user_by_phone, touch_last_login

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=UserPublic, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.RATE_LIMIT_REGISTER)
def register_user(
    request: Request, response: Response, payload: UserCreate, db: Session = Depends(get_db)
):
    if get_user_by_phone(db, payload.phone_number):
        raise HTTPException(status_code=400, detail="Phone number already registered")
    user = create_user(
        db,
        payload.phone_number,
        name=payload.name,
        password_hash=hash_password(payload.password),
    )
    return user


@router.post("/login", response_model=TokenResponse)
@limiter.limit(settings.RATE_LIMIT_LOGIN)
def login(
    request: Request,
    response: Response,
    form: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
):
    # OAuth2PasswordRequestForm expects fields: username (phone number), password
    user = get_user_by_phone(db, form.username)
    if not user or not verify_password(form.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Incorrect phone number or password")
    touch_last_login(db, user)
    return TokenResponse(access_token=create_access_token(user.phone_number))


@router.post("/otp/request", response_model=OtpRequestResponse)
@limiter.limit(settings.RATE_LIMIT_OTP)
def request_otp(
    request: Request,
    response: Response,
    payload: OtpRequest,
    db: Session = Depends(get_db),
    channels: list[ChannelAdapter] = Depends(get_channels),
):
    code = generate_otp()
    create_otp(db, payload.phone_number, code, ttl_minutes=settings.OTP_TTL_MINUTES)

    sms = find_channel(channels, "sms")
    body = (
        f"Your Todo Alert verification code is: {code}\n\n"
        f"This code expires in {settings.OTP_TTL_MINUTES} minutes."
    )
    if sms is not None and sms.send_text(payload.phone_number, body):
        return OtpRequestResponse(message="OTP sent successfully", phone_number=payload.phone_number)

    logger.warning("otp not delivered phone=%s sms_configured=%s", payload.phone_number, sms is not None)
    if not settings.OTP_RETURN_CODE_IN_RESPONSE:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="OTP could not be delivered")
    return OtpRequestResponse(
        message="OTP generated (SMS not configured)",
        phone_number=payload.phone_number,
        otp=code,
    )


@router.post("/otp/verify", response_model=TokenResponse)
@limiter.limit(settings.RATE_LIMIT_LOGIN)
def verify_otp(
    request: Request,
    response: Response,
    payload: OtpVerify,
    db: Session = Depends(get_db),
):
    if not consume_otp(db, payload.phone_number, payload.code):
        raise HTTPException(status_code=400, detail="Invalid or expired OTP")
    user = get_user_by_phone(db, payload.phone_number)
    if user is None:
        user = create_user(db, payload.phone_number, name=payload.name)
        logger.info("user registered via otp user_id=%s", user.id)
    touch_last_login(db, user)
    return TokenResponse(access_token=create_access_token(user.phone_number))


@router.get("/me", response_model=UserPublic)
def me(user: UserPublic = Depends(get_current_user)):
    # If token is valid, user is injected
    return user
