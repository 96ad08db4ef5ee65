# app/otp.py
from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy.orm import Session

from . import models
from .config import Settings, settings as default_settings
from .exceptions import AttemptsExhausted, InvalidCredentials
from .security import hash_password, verify_password
from .util.time import utcnow_naive

logger = logging.getLogger(__name__)

INVALID_CODE = "Invalid or expired code"


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()

def gen_otp_code() -> str:
    # uniform over the six-digit range; hashed before it is stored
    return str(random.randint(100000, 999999))


class OtpService:
    """
    Email one-time codes for passwordless sign-in.

    A code is looked up as "newest unused, unexpired row for this email"
    rather than by id. Requesting a code marks every earlier one used, so at
    most one live code exists per email.
    """

    def __init__(
        self,
        db: Session,
        clock: Callable[[], datetime] = utcnow_naive,
        cfg: Settings = default_settings,
    ):
        self.db = db
        self.clock = clock
        self.cfg = cfg

    # =========================================================
    #  REQUEST  (supersedes older codes, returns the raw code)
    # =========================================================
    def request_code(self, email: str) -> str:
        email = normalize_email(email)
        now = self.clock()

        self.purge_expired()

        # supersede ALL earlier unused codes for this email
        self.db.query(models.Otp).filter(
            models.Otp.email == email,
            models.Otp.used == False,  # noqa: E712
        ).update({"used": True}, synchronize_session=False)

        user = self.db.query(models.User).filter(models.User.email == email).first()
        code = gen_otp_code()
        otp = models.Otp(
            email=email,
            code_hash=hash_password(code),
            expires_at=now + timedelta(minutes=self.cfg.OTP_EXP_MINUTES),
            used=False,
            attempts=0,
            user_id=user.id if user else None,
        )
        self.db.add(otp)
        self.db.commit()
        logger.info("otp issued for %s (expires %s)", email, otp.expires_at.isoformat())

        # caller emails the raw code; only the hash is stored
        return code

    # =========================================================
    #  VERIFY  (newest live code, attempt-limited)
    # =========================================================
    def verify_code(self, email: str, code: str) -> models.User:
        email = normalize_email(email)
        code = (code or "").strip()
        now = self.clock()

        rec = (
            self.db.query(models.Otp)
            .filter(
                models.Otp.email == email,
                models.Otp.used == False,  # noqa: E712
                models.Otp.expires_at > now,
            )
            .order_by(models.Otp.id.desc())
            .first()
        )
        if not rec:
            raise InvalidCredentials(INVALID_CODE)

        if rec.attempts >= self.cfg.OTP_MAX_ATTEMPTS:
            rec.used = True
            self.db.add(rec)
            self.db.commit()
            logger.info("otp for %s exhausted after %s attempts", email, rec.attempts)
            raise AttemptsExhausted()

        live = self.db.query(models.Otp).filter(
            models.Otp.id == rec.id,
            models.Otp.used == False,  # noqa: E712
            models.Otp.attempts < self.cfg.OTP_MAX_ATTEMPTS,
        )

        if not verify_password(code, rec.code_hash):
            # counted in SQL so parallel guesses cannot share one attempt
            counted = live.update({models.Otp.attempts: models.Otp.attempts + 1}, synchronize_session=False)
            self.db.commit()
            if not counted:
                raise AttemptsExhausted()
            raise InvalidCredentials(INVALID_CODE)

        # only one request may consume the code
        claimed = live.update({models.Otp.used: True}, synchronize_session=False)
        if not claimed:
            self.db.rollback()
            raise InvalidCredentials(INVALID_CODE)
        user = self._resolve_user(email)
        self.db.commit()
        self.db.refresh(user)
        return user

    def purge_expired(self) -> int:
        return (
            self.db.query(models.Otp)
            .filter(models.Otp.expires_at < self.clock())
            .delete(synchronize_session=False)
        )

    def _resolve_user(self, email: str) -> models.User:
        user = self.db.query(models.User).filter(models.User.email == email).first()
        if user:
            return user
        user = models.User(email=email, first_name=email.split("@")[0][:50], password=None)
        self.db.add(user)
        self.db.flush()
        logger.info("created passwordless account %s", user.id)
        return user
