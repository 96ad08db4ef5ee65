from datetime import datetime
from typing import Callable

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from . import models
from .auth import get_current_user
from .db import get_db
from .fasts import FastService
from .hijri import approximate_hijri_date, sunnah_opportunities, upcoming_opportunities
from .schemas import DashboardOut, FastOut, SunnahOverviewOut
from .util.time import get_clock, utcnow_naive
from .year_buckets import YearBucketService, bucket_out, progress_fraction

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


def greeting_for(hour: int) -> str:
    if hour < 12:
        return "Good morning"
    if hour < 17:
        return "Good afternoon"
    return "Good evening"

def build_dashboard(db: Session, user: models.User, clock: Callable[[], datetime] = utcnow_naive) -> DashboardOut:
    now = clock()
    buckets = YearBucketService(db)
    fasts = FastService(db, clock)

    summary = buckets.get_ledger_summary(user.id)
    featured = buckets.find_most_urgent(user.id)
    today_fast = fasts.today_fast(user.id)
    hijri = approximate_hijri_date(now.date())

    return DashboardOut(
        greeting=greeting_for(now.hour),
        name=user.first_name,
        today={
            "date": now.date(),
            "hijri_date": hijri.formatted,
            "has_logged_fast": today_fast is not None,
            "today_fast": FastOut.model_validate(today_fast) if today_fast else None,
        },
        hijri=hijri._asdict(),
        qada_balance={
            "total_remaining": summary.total_remaining,
            "total_completed": summary.total_completed,
            "progress": progress_fraction(summary.total_completed, summary.total_owed),
            "featured_bucket": bucket_out(featured) if featured else None,
        },
        sunnah_opportunities=sunnah_opportunities(now.date()),
        year_buckets=[bucket_out(b) for b in buckets.list_incomplete(user.id)],
        stats=fasts.stats(user.id),
    )


@router.get("", response_model=DashboardOut)
def dashboard(
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
    current: models.User = Depends(get_current_user),
):
    return build_dashboard(db, current, clock)

@router.get("/sunnah", response_model=SunnahOverviewOut)
def sunnah(
    clock: Callable[[], datetime] = Depends(get_clock),
    _: models.User = Depends(get_current_user),
):
    today = clock().date()
    return {"today": sunnah_opportunities(today), "upcoming": upcoming_opportunities(today)}
