import logging
from datetime import date, datetime
from typing import Callable, List, Optional

from fastapi import APIRouter, Depends, Query, Response, status as http_status
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models
from .auth import get_current_user
from .db import get_db
from .exceptions import Conflict, NotFound
from .models import Fast, FastType
from .schemas import BulkFastsIn, FastIn, FastOut, FastStatsOut, FastStatusIn
from .util.time import get_clock, utcnow_naive
from .year_buckets import YearBucketService

logger = logging.getLogger(__name__)


def counts_toward_bucket(fast: Fast) -> bool:
    # only an observed qada fast linked to a bucket moves its counter
    return fast.type == FastType.QADA.value and fast.year_bucket_id is not None and bool(fast.status)


class FastService:
    """
    Fast log for one user per calendar date.

    Inserting, deleting or flipping the status of a linked qada fast moves
    the bucket counter inside the same transaction as the fast row itself.
    """

    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow_naive):
        self.db = db
        self.clock = clock
        self.buckets = YearBucketService(db)

    def today(self) -> date:
        return self.clock().date()

    # ---- reads ----
    def get(self, fast_id: int, user_id: int) -> Fast:
        fast = self.db.query(Fast).filter(Fast.id == fast_id, Fast.user_id == user_id).first()
        if not fast:
            raise NotFound("Fast", fast_id)
        return fast

    def list_fasts(self, user_id: int, fast_type: Optional[FastType] = None) -> List[Fast]:
        q = self.db.query(Fast).filter(Fast.user_id == user_id)
        if fast_type is not None:
            q = q.filter(Fast.type == fast_type.value)
        return q.order_by(Fast.fast_date.desc()).all()

    def missed(self, user_id: int) -> List[Fast]:
        return (
            self.db.query(Fast)
            .filter(Fast.user_id == user_id, Fast.status == False)  # noqa: E712
            .order_by(Fast.fast_date.asc())
            .all()
        )

    def today_fast(self, user_id: int) -> Optional[Fast]:
        return self.db.query(Fast).filter(Fast.user_id == user_id, Fast.fast_date == self.today()).first()

    def stats(self, user_id: int) -> FastStatsOut:
        rows = (
            self.db.query(Fast.type, Fast.status, func.count(Fast.id))
            .filter(Fast.user_id == user_id)
            .group_by(Fast.type, Fast.status)
            .all()
        )
        by_type = {t.value: 0 for t in FastType}
        missed = 0
        for fast_type, observed, cnt in rows:
            if observed:
                by_type[fast_type] = by_type.get(fast_type, 0) + int(cnt)
            else:
                missed += int(cnt)
        return FastStatsOut(total_fasts=sum(by_type.values()), missed_fasts=missed, **by_type)

    # ---- writes ----
    def create(self, user_id: int, payload: FastIn, *, commit: bool = True) -> Fast:
        fast_date = payload.fast_date or self.today()

        bucket_id = None
        if payload.type == FastType.QADA:
            if payload.year_bucket_id is not None:
                bucket_id = self.buckets.get(payload.year_bucket_id, user_id).id
            else:
                urgent = self.buckets.find_most_urgent(user_id)
                bucket_id = urgent.id if urgent else None

        exists = self.db.query(Fast.id).filter(Fast.user_id == user_id, Fast.fast_date == fast_date).first()
        if exists:
            raise Conflict("Fast", "date", fast_date.isoformat())

        fast = Fast(
            user_id=user_id,
            fast_date=fast_date,
            type=payload.type.value,
            sunnah_type=payload.sunnah_type.value if payload.sunnah_type else None,
            description=payload.description,
            year_bucket_id=bucket_id,
            status=True,
        )
        self.db.add(fast)
        try:
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            raise Conflict("Fast", "date", fast_date.isoformat())

        if counts_toward_bucket(fast):
            self.buckets.increment_completed(fast.year_bucket_id, user_id, 1, commit=False)

        if commit:
            self.db.commit()
            self.db.refresh(fast)
        logger.info("fast %s logged for user %s on %s (%s)", fast.id, user_id, fast_date, fast.type)
        return fast

    def create_bulk(self, user_id: int, payload: BulkFastsIn) -> List[Fast]:
        try:
            created = [self.create(user_id, item, commit=False) for item in payload.fasts]
        except (Conflict, NotFound):
            self.db.rollback()
            raise
        self.db.commit()
        for fast in created:
            self.db.refresh(fast)
        return created

    def set_status(self, fast_id: int, user_id: int, observed: bool) -> Fast:
        fast = self.get(fast_id, user_id)
        if bool(fast.status) != observed:
            was_counted = counts_toward_bucket(fast)
            fast.status = observed
            if counts_toward_bucket(fast) and not was_counted:
                self.buckets.adjust_if_present(fast.year_bucket_id, user_id, 1)
            elif was_counted and not counts_toward_bucket(fast):
                self.buckets.adjust_if_present(fast.year_bucket_id, user_id, -1)
            self.db.add(fast)
            self.db.commit()
            self.db.refresh(fast)
        return fast

    def delete(self, fast_id: int, user_id: int) -> None:
        fast = self.get(fast_id, user_id)
        if counts_toward_bucket(fast):
            self.buckets.adjust_if_present(fast.year_bucket_id, user_id, -1)
        self.db.delete(fast)
        self.db.commit()
        logger.info("fast %s deleted for user %s", fast_id, user_id)


def get_fast_service(
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> FastService:
    return FastService(db, clock)


router = APIRouter(prefix="/fasts", tags=["fasts"])

@router.post("", response_model=FastOut, status_code=http_status.HTTP_201_CREATED)
def create_fast(
    payload: FastIn,
    svc: FastService = Depends(get_fast_service),
    current: models.User = Depends(get_current_user),
):
    return svc.create(current.id, payload)

@router.post("/bulk", response_model=List[FastOut], status_code=http_status.HTTP_201_CREATED)
def create_fasts_bulk(
    payload: BulkFastsIn,
    svc: FastService = Depends(get_fast_service),
    current: models.User = Depends(get_current_user),
):
    return svc.create_bulk(current.id, payload)

@router.get("", response_model=List[FastOut])
def list_fasts(
    type: Optional[FastType] = Query(None, description="Filter by fast type"),
    svc: FastService = Depends(get_fast_service),
    current: models.User = Depends(get_current_user),
):
    return svc.list_fasts(current.id, type)

@router.get("/missed", response_model=List[FastOut])
def list_missed_fasts(
    svc: FastService = Depends(get_fast_service),
    current: models.User = Depends(get_current_user),
):
    return svc.missed(current.id)

@router.get("/stats", response_model=FastStatsOut)
def fast_stats(
    svc: FastService = Depends(get_fast_service),
    current: models.User = Depends(get_current_user),
):
    return svc.stats(current.id)

@router.get("/today", response_model=Optional[FastOut])
def todays_fast(
    svc: FastService = Depends(get_fast_service),
    current: models.User = Depends(get_current_user),
):
    return svc.today_fast(current.id)

@router.get("/{fast_id}", response_model=FastOut)
def get_fast(
    fast_id: int,
    svc: FastService = Depends(get_fast_service),
    current: models.User = Depends(get_current_user),
):
    return svc.get(fast_id, current.id)

@router.patch("/{fast_id}/status", response_model=FastOut)
def update_fast_status(
    fast_id: int,
    payload: FastStatusIn,
    svc: FastService = Depends(get_fast_service),
    current: models.User = Depends(get_current_user),
):
    return svc.set_status(fast_id, current.id, payload.status)

@router.delete("/{fast_id}", status_code=http_status.HTTP_204_NO_CONTENT)
def delete_fast(
    fast_id: int,
    svc: FastService = Depends(get_fast_service),
    current: models.User = Depends(get_current_user),
):
    svc.delete(fast_id, current.id)
    return Response(status_code=http_status.HTTP_204_NO_CONTENT)
