from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from .db import get_db
from .auth import client_meta, get_token_service
from .emailer import send_otp_email
from .otp import OtpService, normalize_email
from .schemas import AuthTokensOut, MagicLinkIn, MessageOut, VerifyOtpIn
from .tokens import TokenService

router = APIRouter(prefix="/auth/magic-link", tags=["auth-otp"])

def get_otp_service(db: Session = Depends(get_db)) -> OtpService:
    return OtpService(db)

@router.post("", response_model=MessageOut)
async def request_code(body: MagicLinkIn, otp: OtpService = Depends(get_otp_service)):
    code = otp.request_code(body.email)
    # send the raw code by email (async, best-effort)
    await send_otp_email(normalize_email(body.email), code)
    return {"message": "If the address is valid, a sign-in code is on its way."}

@router.post("/verify", response_model=AuthTokensOut)
def verify_code(
    body: VerifyOtpIn,
    request: Request,
    otp: OtpService = Depends(get_otp_service),
    tokens: TokenService = Depends(get_token_service),
):
    user = otp.verify_code(body.email, body.code)
    return tokens.generate_auth_tokens(user, **client_meta(request))
