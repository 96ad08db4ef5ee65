# app/users.py
from datetime import date, datetime, timedelta
from typing import Callable, Sequence, Tuple

from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from . import models
from .auth import get_current_user
from .db import get_db
from .models import Fast
from .schemas import UpdateProfileIn, UserProfileOut, UserStatsOut, WeeklyGoalOut
from .util.time import get_clock, utcnow_naive

DEFAULT_WEEKLY_GOAL = 2


# ----------------- Helpers -----------------
def percent(part: int, whole: int) -> int:
    # half rounds up
    if whole <= 0:
        return 0
    return int(part * 100 / whole + 0.5)

def fasting_streaks(observed: Sequence[bool]) -> Tuple[int, int]:
    """(current, longest) runs of observed fasts, in logged-date order."""
    longest = run = 0
    for ok in observed:
        run = run + 1 if ok else 0
        longest = max(longest, run)

    current = 0
    for ok in reversed(observed):
        if not ok:
            break
        current += 1
    return current, longest

def week_bounds(today: date) -> Tuple[date, date]:
    # weeks run Sunday..Saturday
    start = today - timedelta(days=(today.weekday() + 1) % 7)
    return start, start + timedelta(days=6)


class UserService:
    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow_naive):
        self.db = db
        self.clock = clock

    def stats(self, user_id: int) -> UserStatsOut:
        rows = (
            self.db.query(Fast.fast_date, Fast.status)
            .filter(Fast.user_id == user_id)
            .order_by(Fast.fast_date.asc())
            .all()
        )
        observed = [bool(status) for _, status in rows]
        completed = sum(observed)
        current, longest = fasting_streaks(observed)
        return UserStatsOut(
            total_fasts=len(rows),
            completed_fasts=completed,
            remaining_fasts=len(rows) - completed,
            completion_rate=percent(completed, len(rows)),
            current_streak=current,
            longest_streak=longest,
            last_fast_date=rows[-1][0] if rows else None,
        )

    def goal_progress(self, user: models.User) -> WeeklyGoalOut:
        goal = user.fast_goal_per_week or DEFAULT_WEEKLY_GOAL
        start, end = week_bounds(self.clock().date())
        done = (
            self.db.query(func.count(Fast.id))
            .filter(
                Fast.user_id == user.id,
                Fast.status == True,  # noqa: E712
                Fast.fast_date >= start,
                Fast.fast_date <= end,
            )
            .scalar()
        )
        return WeeklyGoalOut(weekly_goal=goal, current_week_completed=int(done), week_progress=percent(int(done), goal))

    def profile(self, user: models.User) -> UserProfileOut:
        return UserProfileOut(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            avatar_url=user.avatar_url,
            timezone=user.timezone,
            preferred_language=user.preferred_language,
            fast_goal_per_week=user.fast_goal_per_week,
            notification_enabled=user.notification_enabled,
            stats=self.stats(user.id),
            goal=self.goal_progress(user),
            created_at=user.created_at,
            updated_at=user.updated_at,
        )

    def update_profile(self, user: models.User, payload: UpdateProfileIn) -> UserProfileOut:
        changes = payload.model_dump(exclude_unset=True, mode="json")
        for field, value in changes.items():
            # only the avatar can be cleared
            if value is None and field != "avatar_url":
                continue
            setattr(user, field, value)

        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return self.profile(user)


def get_user_service(
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> UserService:
    return UserService(db, clock)


router = APIRouter(prefix="/users", tags=["users"])

# ========= Own profile (/profile is an alias of /me) =========
@router.get("/me", response_model=UserProfileOut)
@router.get("/profile", response_model=UserProfileOut)
def read_profile(
    svc: UserService = Depends(get_user_service),
    current: models.User = Depends(get_current_user),
):
    return svc.profile(current)

@router.patch("/me", response_model=UserProfileOut)
@router.patch("/profile", response_model=UserProfileOut)
def update_profile(
    payload: UpdateProfileIn,
    svc: UserService = Depends(get_user_service),
    current: models.User = Depends(get_current_user),
):
    return svc.update_profile(current, payload)
