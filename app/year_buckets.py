import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status as http_status
from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models
from .auth import get_current_user
from .db import get_db
from .exceptions import Conflict, NotFound
from .models import YearBucket
from .schemas import CountIn, LedgerSummaryOut, YearBucketIn, YearBucketOut, YearBucketUpdate

logger = logging.getLogger(__name__)


def progress_fraction(completed: int, owed: int) -> float:
    """Share of owed days made up, rounded to 2 places; 0 when nothing is owed."""
    if owed <= 0:
        return 0.0
    return round(min(max(completed / owed, 0.0), 1.0), 2)

def progress_percentage(bucket: YearBucket) -> int:
    if bucket.total_days_owed == 0:
        return 100
    return round(bucket.completed_days / bucket.total_days_owed * 100)

def bucket_out(bucket: YearBucket) -> YearBucketOut:
    return YearBucketOut(
        id=bucket.id,
        name=bucket.name,
        hijri_year=bucket.hijri_year,
        total_days_owed=bucket.total_days_owed,
        completed_days=bucket.completed_days,
        is_completed=bucket.is_completed,
        notes=bucket.notes,
        reason_breakdown=bucket.reason_breakdown or [],
        remaining_days=max(0, bucket.total_days_owed - bucket.completed_days),
        progress_percentage=progress_percentage(bucket),
        created_at=bucket.created_at,
        updated_at=bucket.updated_at,
    )


class YearBucketService:
    """
    Qada ledger over a user's year buckets.

    Counter changes are pushed to the database as a single clamped UPDATE
    expression, so two requests logging against the same bucket cannot
    lose each other's increment. Pass commit=False to fold the change into
    a caller's transaction (fast logging does this).
    """

    def __init__(self, db: Session):
        self.db = db

    # ---- reads ----
    def get(self, bucket_id: int, user_id: int) -> YearBucket:
        bucket = (
            self.db.query(YearBucket)
            .filter(YearBucket.id == bucket_id, YearBucket.user_id == user_id)
            .first()
        )
        if not bucket:
            raise NotFound("YearBucket", bucket_id)
        return bucket

    def list_all(self, user_id: int) -> List[YearBucket]:
        return (
            self.db.query(YearBucket)
            .filter(YearBucket.user_id == user_id)
            .order_by(YearBucket.hijri_year.desc())
            .all()
        )

    def list_incomplete(self, user_id: int) -> List[YearBucket]:
        # oldest first = most urgent first
        return (
            self.db.query(YearBucket)
            .filter(YearBucket.user_id == user_id, YearBucket.is_completed == False)  # noqa: E712
            .order_by(YearBucket.hijri_year.asc())
            .all()
        )

    def find_most_urgent(self, user_id: int) -> Optional[YearBucket]:
        # hijri_year is unique per user, so there are no ties to break
        return (
            self.db.query(YearBucket)
            .filter(YearBucket.user_id == user_id, YearBucket.is_completed == False)  # noqa: E712
            .order_by(YearBucket.hijri_year.asc())
            .first()
        )

    def get_ledger_summary(self, user_id: int) -> LedgerSummaryOut:
        total_owed, total_completed, bucket_count, completed_buckets = (
            self.db.query(
                func.coalesce(func.sum(YearBucket.total_days_owed), 0),
                func.coalesce(func.sum(YearBucket.completed_days), 0),
                func.count(YearBucket.id),
                func.coalesce(func.sum(case((YearBucket.is_completed == True, 1), else_=0)), 0),  # noqa: E712
            )
            .filter(YearBucket.user_id == user_id)
            .one()
        )
        return LedgerSummaryOut(
            total_owed=int(total_owed),
            total_completed=int(total_completed),
            total_remaining=int(total_owed) - int(total_completed),
            bucket_count=int(bucket_count),
            completed_buckets=int(completed_buckets),
        )

    # ---- writes ----
    def create(self, user_id: int, payload: YearBucketIn) -> YearBucket:
        bucket = YearBucket(
            user_id=user_id,
            name=payload.name,
            hijri_year=payload.hijri_year,
            total_days_owed=payload.total_days_owed,
            completed_days=0,
            is_completed=False,
            notes=payload.notes,
            reason_breakdown=[r.model_dump(mode="json") for r in payload.reason_breakdown],
        )
        self.db.add(bucket)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise Conflict("YearBucket", "hijri_year", payload.hijri_year)
        self.db.refresh(bucket)
        logger.info("year bucket %s created for user %s (hijri %s)", bucket.id, user_id, bucket.hijri_year)
        return bucket

    def update(self, bucket_id: int, user_id: int, payload: YearBucketUpdate) -> YearBucket:
        bucket = self.get(bucket_id, user_id)

        changes = payload.model_dump(exclude_unset=True, mode="json")
        for field, value in changes.items():
            if value is None and field != "notes":
                continue
            setattr(bucket, field, value)
        self.db.add(bucket)
        self.db.flush()

        # a lowered total_days_owed may now sit below completed_days
        self._shift(bucket.id, user_id, 0)
        self.db.commit()
        self.db.refresh(bucket)
        return bucket

    def increment_completed(self, bucket_id: int, user_id: int, count: int = 1, *, commit: bool = True) -> YearBucket:
        bucket = self.get(bucket_id, user_id)
        self._shift(bucket.id, user_id, count)
        return self._finish(bucket, commit)

    def decrement_completed(self, bucket_id: int, user_id: int, count: int = 1, *, commit: bool = True) -> YearBucket:
        bucket = self.get(bucket_id, user_id)
        self._shift(bucket.id, user_id, -count)
        return self._finish(bucket, commit)

    def adjust_if_present(self, bucket_id: Optional[int], user_id: int, delta: int) -> bool:
        """Shift a linked bucket without failing when it was deleted meanwhile."""
        if bucket_id is None:
            return False
        return self._shift(bucket_id, user_id, delta) > 0

    def delete(self, bucket_id: int, user_id: int) -> None:
        bucket = self.get(bucket_id, user_id)
        self.db.delete(bucket)
        self.db.commit()
        logger.info("year bucket %s deleted for user %s", bucket_id, user_id)

    # ---- helpers ----
    def _shift(self, bucket_id: int, user_id: int, delta: int) -> int:
        shifted = YearBucket.completed_days + delta
        clamped = case(
            (shifted > YearBucket.total_days_owed, YearBucket.total_days_owed),
            (shifted < 0, 0),
            else_=shifted,
        )
        q = self.db.query(YearBucket).filter(YearBucket.id == bucket_id, YearBucket.user_id == user_id)
        matched = q.update({YearBucket.completed_days: clamped}, synchronize_session=False)
        # second statement sees the clamped value
        q.update(
            {YearBucket.is_completed: YearBucket.completed_days >= YearBucket.total_days_owed},
            synchronize_session=False,
        )
        return matched

    def _finish(self, bucket: YearBucket, commit: bool) -> YearBucket:
        if commit:
            self.db.commit()
        self.db.refresh(bucket)
        return bucket


def get_year_bucket_service(db: Session = Depends(get_db)) -> YearBucketService:
    return YearBucketService(db)


router = APIRouter(prefix="/year-buckets", tags=["year-buckets"])

@router.post("", response_model=YearBucketOut, status_code=http_status.HTTP_201_CREATED)
def create_bucket(
    payload: YearBucketIn,
    svc: YearBucketService = Depends(get_year_bucket_service),
    current: models.User = Depends(get_current_user),
):
    return bucket_out(svc.create(current.id, payload))

@router.get("", response_model=List[YearBucketOut])
def list_buckets(
    svc: YearBucketService = Depends(get_year_bucket_service),
    current: models.User = Depends(get_current_user),
):
    return [bucket_out(b) for b in svc.list_all(current.id)]

@router.get("/incomplete", response_model=List[YearBucketOut])
def list_incomplete_buckets(
    svc: YearBucketService = Depends(get_year_bucket_service),
    current: models.User = Depends(get_current_user),
):
    return [bucket_out(b) for b in svc.list_incomplete(current.id)]

@router.get("/summary", response_model=LedgerSummaryOut)
def ledger_summary(
    svc: YearBucketService = Depends(get_year_bucket_service),
    current: models.User = Depends(get_current_user),
):
    return svc.get_ledger_summary(current.id)

@router.get("/most-urgent", response_model=Optional[YearBucketOut])
def most_urgent_bucket(
    svc: YearBucketService = Depends(get_year_bucket_service),
    current: models.User = Depends(get_current_user),
):
    bucket = svc.find_most_urgent(current.id)
    return bucket_out(bucket) if bucket else None

@router.get("/{bucket_id}", response_model=YearBucketOut)
def get_bucket(
    bucket_id: int,
    svc: YearBucketService = Depends(get_year_bucket_service),
    current: models.User = Depends(get_current_user),
):
    return bucket_out(svc.get(bucket_id, current.id))

@router.put("/{bucket_id}", response_model=YearBucketOut)
def update_bucket(
    bucket_id: int,
    payload: YearBucketUpdate,
    svc: YearBucketService = Depends(get_year_bucket_service),
    current: models.User = Depends(get_current_user),
):
    return bucket_out(svc.update(bucket_id, current.id, payload))

@router.post("/{bucket_id}/increment", response_model=YearBucketOut)
def increment_bucket(
    bucket_id: int,
    payload: CountIn = CountIn(),
    svc: YearBucketService = Depends(get_year_bucket_service),
    current: models.User = Depends(get_current_user),
):
    return bucket_out(svc.increment_completed(bucket_id, current.id, payload.count))

@router.post("/{bucket_id}/decrement", response_model=YearBucketOut)
def decrement_bucket(
    bucket_id: int,
    payload: CountIn = CountIn(),
    svc: YearBucketService = Depends(get_year_bucket_service),
    current: models.User = Depends(get_current_user),
):
    return bucket_out(svc.decrement_completed(bucket_id, current.id, payload.count))

@router.delete("/{bucket_id}", status_code=http_status.HTTP_204_NO_CONTENT)
def delete_bucket(
    bucket_id: int,
    svc: YearBucketService = Depends(get_year_bucket_service),
    current: models.User = Depends(get_current_user),
):
    svc.delete(bucket_id, current.id)
    return Response(status_code=http_status.HTTP_204_NO_CONTENT)
