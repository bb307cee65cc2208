"""
Account endpoints:
  POST /auth/register   — create an unverified account and mail an OTP
  POST /auth/verify-otp — confirm the OTP, returns a bearer token
  POST /auth/resend-otp — mail a fresh OTP
  POST /auth/login      — exchange email + password for a bearer token
"""
import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, status
from opentelemetry import trace
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from luna.clients.email_client import EmailClient, EmailDeliveryError, get_email_client
from luna.config import settings
from luna.database import get_db
from luna.models import User, utcnow
from luna.schemas import (
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    RegisterResponse,
    ResendOtpRequest,
    TokenResponse,
    UserResponse,
    VerifyOtpRequest,
)
from luna.security import create_access_token, generate_otp, hash_password, verify_password

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


async def _user_by_email(db: AsyncSession, email: str) -> User | None:
    row = await db.execute(select(User).where(User.email == email.lower()))
    return row.scalar_one_or_none()


def _issue_otp(user: User) -> str:
    otp = generate_otp()
    user.email_otp = otp
    user.otp_expires_at = utcnow() + timedelta(minutes=settings.otp_ttl_minutes)
    return otp


async def _mail_otp(mailer: EmailClient, user: User, otp: str) -> None:
    try:
        await mailer.send_otp(user.email, otp, user.name)
    except EmailDeliveryError as exc:
        logger.error("OTP delivery failed for %s: %s", user.email, exc)
        # Raising rolls back the session, so no half-registered account remains
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Could not send verification email, please try again",
        )


def _token_response(user: User) -> TokenResponse:
    return TokenResponse(
        token=create_access_token(user.user_id),
        user=UserResponse.model_validate(user),
    )


@router.post("/register", response_model=RegisterResponse)
async def register(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db),
    mailer: EmailClient = Depends(get_email_client),
):
    """
    Register a new account.

    The account stays unverified (and cannot log in) until the OTP mailed
    to the address is confirmed via /auth/verify-otp.
    """
    with tracer.start_as_current_span("register"):
        email = body.email.lower()
        if await _user_by_email(db, email):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT, detail="User already exists"
            )

        user = User(
            name=body.name,
            email=email,
            password_hash=hash_password(body.password),
            is_email_verified=False,
        )
        otp = _issue_otp(user)
        db.add(user)
        await db.flush()

        await _mail_otp(mailer, user, otp)

        logger.info("Registered user %s (id=%s)", email, user.user_id)
        return RegisterResponse(
            message="Registration successful. Please verify your email using the OTP sent.",
            email=email,
        )


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    user = await _user_by_email(db, body.email)
    if not user:
        raise _bad_request("Invalid credentials")
    if not user.is_email_verified:
        raise _bad_request("Please verify your email before logging in.")
    if not verify_password(body.password, user.password_hash):
        raise _bad_request("Invalid credentials")

    logger.info("User %s logged in", user.user_id)
    return _token_response(user)


@router.post("/verify-otp", response_model=TokenResponse)
async def verify_otp(body: VerifyOtpRequest, db: AsyncSession = Depends(get_db)):
    user = await _user_by_email(db, body.email)
    if not user:
        raise _bad_request("User not found")
    if user.is_email_verified:
        raise _bad_request("Email already verified")
    if not user.email_otp or not user.otp_expires_at:
        raise _bad_request("No OTP request found")
    if user.otp_expires_at < utcnow():
        raise _bad_request("OTP has expired. Please request a new one.")
    if user.email_otp != body.otp:
        raise _bad_request("Invalid OTP")

    user.is_email_verified = True
    user.email_otp = None
    user.otp_expires_at = None

    logger.info("Verified email for user %s", user.user_id)
    return _token_response(user)


@router.post("/resend-otp", response_model=MessageResponse)
async def resend_otp(
    body: ResendOtpRequest,
    db: AsyncSession = Depends(get_db),
    mailer: EmailClient = Depends(get_email_client),
):
    user = await _user_by_email(db, body.email)
    if not user:
        raise _bad_request("User not found")
    if user.is_email_verified:
        raise _bad_request("Email already verified")

    otp = _issue_otp(user)
    await _mail_otp(mailer, user, otp)
    return MessageResponse(message="New OTP sent to your email.")
