# app/tokens.py
from __future__ import annotations
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from jose import JWTError, jwt
from sqlalchemy.orm import Session

from . import models
from .config import Settings, settings as default_settings
from .exceptions import Unauthorized
from .schemas import AuthTokensOut, UserOut
from .util.time import utcnow_naive

logger = logging.getLogger(__name__)


# ------------- access tokens (signed, short-lived) -------------
def create_access_token(data: dict, expires_delta: Optional[timedelta] = None, cfg: Settings = default_settings) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=cfg.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, cfg.SECRET_KEY, algorithm=cfg.ALGORITHM)

def decode_access_token(token: str, cfg: Settings = default_settings) -> dict:
    try:
        return jwt.decode(token, cfg.SECRET_KEY, algorithms=[cfg.ALGORITHM])
    except JWTError:
        raise Unauthorized("Could not validate credentials")


# ------------- refresh tokens (opaque, stored, rotated) -------------
class TokenService:
    def __init__(
        self,
        db: Session,
        clock: Callable[[], datetime] = utcnow_naive,
        cfg: Settings = default_settings,
    ):
        self.db = db
        self.clock = clock
        self.cfg = cfg

    def generate_auth_tokens(
        self,
        user: models.User,
        *,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> AuthTokensOut:
        access = create_access_token({"sub": str(user.id), "email": user.email}, cfg=self.cfg)
        refresh = self._issue_refresh(user.id, user_agent=user_agent, ip_address=ip_address)
        self.db.commit()
        return AuthTokensOut(
            access_token=access,
            refresh_token=refresh.token,
            user=UserOut.model_validate(user),
        )

    def refresh_access_token(
        self,
        token: str,
        *,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> AuthTokensOut:
        now = self.clock()
        presented = self.db.query(models.RefreshToken).filter(models.RefreshToken.token == token)

        # revoke first; of two requests presenting the same token only one matches
        claimed = (
            presented
            .filter(
                models.RefreshToken.revoked == False,  # noqa: E712
                models.RefreshToken.expires_at > now,
            )
            .update({"revoked": True, "revoked_at": now}, synchronize_session=False)
        )
        if not claimed:
            # unknown, expired or already rotated (replay)
            raise Unauthorized("Invalid or expired refresh token")

        user_id = presented.with_entities(models.RefreshToken.user_id).scalar()
        user = self.db.get(models.User, user_id)
        if not user:
            self.db.rollback()
            raise Unauthorized("Invalid or expired refresh token")

        new_refresh = self._issue_refresh(user.id, user_agent=user_agent, ip_address=ip_address)
        presented.update({"replaced_by_token": new_refresh.token}, synchronize_session=False)
        self.db.commit()
        logger.info("refresh token rotated for user %s", user.id)

        access = create_access_token({"sub": str(user.id), "email": user.email}, cfg=self.cfg)
        return AuthTokensOut(
            access_token=access,
            refresh_token=new_refresh.token,
            user=UserOut.model_validate(user),
        )

    def revoke_token(self, token: str) -> bool:
        updated = (
            self.db.query(models.RefreshToken)
            .filter(models.RefreshToken.token == token, models.RefreshToken.revoked == False)  # noqa: E712
            .update({"revoked": True, "revoked_at": self.clock()}, synchronize_session=False)
        )
        self.db.commit()
        return updated > 0

    def revoke_all_for_user(self, user_id: int, *, commit: bool = True) -> int:
        updated = (
            self.db.query(models.RefreshToken)
            .filter(models.RefreshToken.user_id == user_id, models.RefreshToken.revoked == False)  # noqa: E712
            .update({"revoked": True, "revoked_at": self.clock()}, synchronize_session=False)
        )
        if commit:
            self.db.commit()
        logger.info("revoked %s refresh token(s) for user %s", updated, user_id)
        return updated

    def _issue_refresh(self, user_id: int, *, user_agent: str | None, ip_address: str | None) -> models.RefreshToken:
        rec = models.RefreshToken(
            user_id=user_id,
            token=secrets.token_hex(40),
            expires_at=self.clock() + timedelta(days=self.cfg.REFRESH_TOKEN_EXPIRE_DAYS),
            revoked=False,
            user_agent=(user_agent or None) and user_agent[:255],
            ip_address=ip_address,
        )
        self.db.add(rec)
        self.db.flush()
        return rec
