# app/auth.py
from __future__ import annotations
import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from . import models
from .db import get_db
from .exceptions import InvalidCredentials, Unauthorized
from .otp import normalize_email
from .schemas import AuthTokensOut, MessageOut, RefreshIn, UserOut
from .security import verify_password
from .tokens import TokenService, decode_access_token

logger = logging.getLogger(__name__)

# This must match the login path below
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")

router = APIRouter(prefix="/auth", tags=["auth"])


# ------------- Helpers -------------
def authenticate_user(db: Session, email: str, password: str) -> models.User | None:
    user = db.query(models.User).filter(models.User.email == normalize_email(email)).first()
    if not user:
        return None
    # passwordless accounts have no hash and never match
    if not verify_password(password, user.password):
        return None
    return user

def client_meta(request: Request) -> dict:
    return {
        "user_agent": request.headers.get("user-agent"),
        "ip_address": request.client.host if request.client else None,
    }

def get_token_service(db: Session = Depends(get_db)) -> TokenService:
    return TokenService(db)


# ------------- The dependency you import elsewhere -------------
async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> models.User:
    payload = decode_access_token(token)
    sub = payload.get("sub")
    try:
        user_id = int(sub)
    except (TypeError, ValueError):
        raise Unauthorized("Could not validate credentials")

    user = db.get(models.User, user_id)
    if not user:
        raise Unauthorized("Could not validate credentials")
    return user


# ------------- Login endpoint -------------
@router.post("/login", response_model=AuthTokensOut)
def login(
    request: Request,
    form: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    user = authenticate_user(db, form.username, form.password)
    if not user:
        # same message for unknown email and wrong password
        raise InvalidCredentials("Invalid email or password")
    return tokens.generate_auth_tokens(user, **client_meta(request))


# ------------- Who am I -------------
@router.get("/me", response_model=UserOut)
def me(current: models.User = Depends(get_current_user)):
    return current


# ------------- Sessions -------------
@router.post("/refresh", response_model=AuthTokensOut)
def refresh(
    body: RefreshIn,
    request: Request,
    tokens: TokenService = Depends(get_token_service),
):
    return tokens.refresh_access_token(body.refresh_token, **client_meta(request))

@router.post("/logout", response_model=MessageOut)
def logout(body: RefreshIn, tokens: TokenService = Depends(get_token_service)):
    tokens.revoke_token(body.refresh_token)
    return {"message": "Logged out"}

@router.post("/logout-all", response_model=MessageOut, status_code=status.HTTP_200_OK)
def logout_all(
    tokens: TokenService = Depends(get_token_service),
    current: models.User = Depends(get_current_user),
):
    count = tokens.revoke_all_for_user(current.id)
    return {"message": f"Revoked {count} session(s)"}
