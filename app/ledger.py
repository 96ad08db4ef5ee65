from datetime import date, datetime
from typing import Callable, List, Optional

from fastapi import APIRouter, Depends, Query, status as http_status
from sqlalchemy.orm import Session

from . import models
from .auth import get_current_user
from .db import get_db
from .fasts import FastService
from .models import FastType
from .schemas import CurrentBucketOut, FastIn, FastOut, LedgerOverviewOut, LogFastIn
from .util.time import get_clock, utcnow_naive
from .year_buckets import YearBucketService, progress_fraction


class LedgerService:
    """Qada balance overview and fast logging on top of buckets and fasts."""

    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow_naive):
        self.buckets = YearBucketService(db)
        self.fasts = FastService(db, clock)

    def overview(self, user_id: int) -> LedgerOverviewOut:
        summary = self.buckets.get_ledger_summary(user_id)
        stats = self.fasts.stats(user_id)
        urgent = self.buckets.find_most_urgent(user_id)

        current = None
        if urgent:
            current = CurrentBucketOut(
                id=urgent.id,
                name=urgent.name,
                progress=progress_fraction(urgent.completed_days, urgent.total_days_owed),
            )
        return LedgerOverviewOut(
            qada_balance=summary.total_remaining,
            fasts_completed=stats.total_fasts,
            progress=progress_fraction(summary.total_completed, summary.total_owed),
            current_year_bucket=current,
        )

    def log_fast(self, user_id: int, payload: LogFastIn) -> models.Fast:
        # qada without a bucket falls through to the most urgent one
        return self.fasts.create(user_id, FastIn(
            fast_date=date.fromisoformat(payload.date),
            type=payload.type,
            year_bucket_id=payload.year_bucket_id,
        ))

    def history(self, user_id: int, fast_type: Optional[FastType] = None) -> List[models.Fast]:
        return self.fasts.list_fasts(user_id, fast_type)


def get_ledger_service(
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> LedgerService:
    return LedgerService(db, clock)


router = APIRouter(prefix="/ledger", tags=["ledger"])

@router.get("/summary", response_model=LedgerOverviewOut)
def ledger_overview(
    svc: LedgerService = Depends(get_ledger_service),
    current: models.User = Depends(get_current_user),
):
    return svc.overview(current.id)

@router.post("/log", response_model=FastOut, status_code=http_status.HTTP_201_CREATED)
def log_fast(
    payload: LogFastIn,
    svc: LedgerService = Depends(get_ledger_service),
    current: models.User = Depends(get_current_user),
):
    return svc.log_fast(current.id, payload)

@router.get("/history", response_model=List[FastOut])
def fast_history(
    type: Optional[FastType] = Query(None),
    svc: LedgerService = Depends(get_ledger_service),
    current: models.User = Depends(get_current_user),
):
    return svc.history(current.id, type)
