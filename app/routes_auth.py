import logging
import secrets
from datetime import datetime, timedelta
from typing import Callable

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models
from .auth import client_meta, get_token_service
from .config import settings
from .db import get_db
from .emailer import send_password_reset_email, send_welcome_email
from .exceptions import Conflict, Unauthorized
from .otp import normalize_email
from .schemas import (AuthTokensOut, ForgotPasswordIn, MessageOut, RegisterIn,
                      ResetPasswordIn, ResetTokenStatusOut)
from .security import hash_password
from .tokens import TokenService
from .util.time import utcnow_naive

logger = logging.getLogger(__name__)

auth_router = APIRouter(prefix="/auth", tags=["auth"])

FORGOT_MESSAGE = "If an account with that email exists, we have sent a password reset link."
INVALID_RESET = "Invalid or expired reset token"


# ----------------- Helpers -----------------
def create_user(db: Session, data: RegisterIn) -> models.User:
    email = normalize_email(data.email)
    if db.query(models.User).filter(models.User.email == email).first():
        raise Conflict("Account", "email", email)

    user = models.User(
        first_name=data.first_name,
        last_name=data.last_name,
        email=email,
        password=hash_password(data.password),  # store HASH
    )
    db.add(user)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise Conflict("Account", "email", email)
    return user

def create_password_reset_token(
    db: Session, email: str, clock: Callable[[], datetime] = utcnow_naive
) -> tuple[str, models.User] | None:
    user = db.query(models.User).filter(models.User.email == normalize_email(email)).first()
    if not user:
        return None

    # older reset links stop working once a new one is issued
    db.query(models.PasswordResetToken).filter(
        models.PasswordResetToken.user_id == user.id,
        models.PasswordResetToken.used == False,  # noqa: E712
    ).update({"used": True}, synchronize_session=False)

    token = secrets.token_hex(32)
    db.add(models.PasswordResetToken(
        user_id=user.id,
        token=token,
        expires_at=clock() + timedelta(minutes=settings.PASSWORD_RESET_EXP_MINUTES),
        used=False,
    ))
    db.commit()
    return token, user

def find_valid_reset_token(
    db: Session, token: str, clock: Callable[[], datetime] = utcnow_naive
) -> models.PasswordResetToken | None:
    return (
        db.query(models.PasswordResetToken)
        .filter(
            models.PasswordResetToken.token == token,
            models.PasswordResetToken.used == False,  # noqa: E712
            models.PasswordResetToken.expires_at > clock(),
        )
        .first()
    )

def reset_password(
    db: Session, tokens: TokenService, token: str, new_password: str,
    clock: Callable[[], datetime] = utcnow_naive,
) -> models.User:
    rec = find_valid_reset_token(db, token, clock)
    if not rec:
        raise Unauthorized(INVALID_RESET)
    user = db.get(models.User, rec.user_id)
    if not user:
        raise Unauthorized(INVALID_RESET)

    user.password = hash_password(new_password)
    rec.used = True
    db.add_all([user, rec])
    db.flush()

    # a new password ends every existing session, in the same commit
    tokens.revoke_all_for_user(user.id, commit=False)
    db.commit()
    return user


# ----------------- Registration -----------------
@auth_router.post("/register", response_model=AuthTokensOut, status_code=201)
async def register(
    data: RegisterIn,
    request: Request,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    user = create_user(db, data)
    out = tokens.generate_auth_tokens(user, **client_meta(request))
    await send_welcome_email(user.email, user.first_name)
    return out


# ----------------- Password reset -----------------
@auth_router.post("/forgot-password", response_model=MessageOut)
async def forgot_password(data: ForgotPasswordIn, db: Session = Depends(get_db)):
    result = create_password_reset_token(db, data.email)
    if result:
        token, user = result
        reset_url = f"{settings.FRONTEND_URL}/reset-password?token={token}"
        await send_password_reset_email(user.email, user.first_name, reset_url)
    # same answer either way so the endpoint does not reveal accounts
    return {"message": FORGOT_MESSAGE}

@auth_router.post("/reset-password", response_model=MessageOut)
def reset_password_ep(
    data: ResetPasswordIn,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    reset_password(db, tokens, data.token, data.password)
    return {"message": "Password has been reset successfully. You can now log in with your new password."}

@auth_router.get("/validate-reset-token", response_model=ResetTokenStatusOut)
def validate_reset_token(token: str = Query(...), db: Session = Depends(get_db)):
    if not find_valid_reset_token(db, token):
        return {"valid": False, "message": INVALID_RESET}
    return {"valid": True, "message": "Token is valid"}
