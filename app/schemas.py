from typing import Optional, List
from datetime import date, datetime
from pydantic import BaseModel, EmailStr, Field, HttpUrl, constr, field_validator
from .models import FastType, SunnahFastType, MissedReason, Language


#users / auth

class UserOut(BaseModel):
    id: int
    email: EmailStr
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    class Config:
        from_attributes = True

class RegisterIn(BaseModel):
    first_name: constr(strip_whitespace=True, min_length=2, max_length=50)
    last_name: constr(strip_whitespace=True, min_length=2, max_length=50)
    email: EmailStr
    password: constr(min_length=8)

class AuthTokensOut(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: UserOut

class RefreshIn(BaseModel):
    refresh_token: str

class MagicLinkIn(BaseModel):
    email: EmailStr

class VerifyOtpIn(BaseModel):
    email: EmailStr
    code: constr(strip_whitespace=True, pattern=r"^\d{6}$")

class ForgotPasswordIn(BaseModel):
    email: EmailStr

class ResetPasswordIn(BaseModel):
    token: str
    password: constr(min_length=8)

class MessageOut(BaseModel):
    message: str

class ResetTokenStatusOut(BaseModel):
    valid: bool
    message: str


#profile

class UpdateProfileIn(BaseModel):
    first_name: Optional[constr(strip_whitespace=True, min_length=2, max_length=50)] = None
    last_name: Optional[constr(strip_whitespace=True, min_length=2, max_length=50)] = None
    avatar_url: Optional[HttpUrl] = None
    timezone: Optional[constr(strip_whitespace=True, min_length=1, max_length=64)] = None
    preferred_language: Optional[Language] = None
    fast_goal_per_week: Optional[int] = Field(default=None, ge=1, le=7)
    notification_enabled: Optional[bool] = None

class UserStatsOut(BaseModel):
    total_fasts: int
    completed_fasts: int
    remaining_fasts: int
    completion_rate: int      # percent
    current_streak: int
    longest_streak: int
    last_fast_date: Optional[date] = None

class WeeklyGoalOut(BaseModel):
    weekly_goal: int
    current_week_completed: int
    week_progress: int        # percent, may pass 100

class UserProfileOut(BaseModel):
    id: int
    email: EmailStr
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    avatar_url: Optional[str] = None
    timezone: str
    preferred_language: Language
    fast_goal_per_week: int
    notification_enabled: bool
    stats: UserStatsOut
    goal: WeeklyGoalOut
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


#year buckets

class ReasonBreakdownIn(BaseModel):
    reason: MissedReason
    count: int = Field(ge=0)

class YearBucketIn(BaseModel):
    name: constr(strip_whitespace=True, min_length=1, max_length=50)
    hijri_year: int = Field(ge=1400, le=1500)
    total_days_owed: int = Field(ge=1, le=30)
    reason_breakdown: List[ReasonBreakdownIn] = Field(default_factory=list)
    notes: Optional[constr(strip_whitespace=True, max_length=500)] = None

class YearBucketUpdate(BaseModel):
    name: Optional[constr(strip_whitespace=True, min_length=1, max_length=50)] = None
    total_days_owed: Optional[int] = Field(default=None, ge=1, le=30)
    reason_breakdown: Optional[List[ReasonBreakdownIn]] = None
    notes: Optional[constr(strip_whitespace=True, max_length=500)] = None

class CountIn(BaseModel):
    count: int = Field(default=1, ge=1, le=30)

class YearBucketOut(BaseModel):
    id: int
    name: str
    hijri_year: int
    total_days_owed: int
    completed_days: int
    is_completed: bool
    notes: Optional[str] = None
    reason_breakdown: List[ReasonBreakdownIn] = Field(default_factory=list)
    remaining_days: int
    progress_percentage: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class LedgerSummaryOut(BaseModel):
    total_owed: int
    total_completed: int
    total_remaining: int
    bucket_count: int
    completed_buckets: int


#fasts

class FastIn(BaseModel):
    fast_date: Optional[date] = None        # defaults to today
    type: FastType = FastType.SUNNAH
    sunnah_type: Optional[SunnahFastType] = None
    year_bucket_id: Optional[int] = None
    description: Optional[constr(max_length=500)] = None

class BulkFastsIn(BaseModel):
    fasts: List[FastIn] = Field(min_length=1, max_length=60)

class FastStatusIn(BaseModel):
    status: bool

class FastOut(BaseModel):
    id: int
    fast_date: date
    type: FastType
    sunnah_type: Optional[SunnahFastType] = None
    year_bucket_id: Optional[int] = None
    status: bool
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    class Config:
        from_attributes = True

class FastStatsOut(BaseModel):
    total_fasts: int
    missed_fasts: int
    qada: int
    sunnah: int
    kaffarah: int
    nafl: int


#ledger

class LogFastIn(BaseModel):
    date: constr(pattern=r"^\d{4}-\d{2}-\d{2}$")
    type: FastType = FastType.NAFL
    year_bucket_id: Optional[int] = None

    @field_validator("date")
    @classmethod
    def must_be_calendar_date(cls, v: str) -> str:
        date.fromisoformat(v)   # ValueError -> 422
        return v

class CurrentBucketOut(BaseModel):
    id: int
    name: str
    progress: float   # 0..1

class LedgerOverviewOut(BaseModel):
    qada_balance: int
    fasts_completed: int
    progress: float
    current_year_bucket: Optional[CurrentBucketOut] = None


#dashboard

class HijriDateOut(BaseModel):
    day: int
    month: int
    year: int
    month_name: str

class SunnahOpportunityOut(BaseModel):
    type: str
    name: str
    description: str
    date: date
    is_today: bool
    hijri_date: Optional[str] = None

class TodayOut(BaseModel):
    date: date
    hijri_date: str
    has_logged_fast: bool
    today_fast: Optional[FastOut] = None

class QadaBalanceOut(BaseModel):
    total_remaining: int
    total_completed: int
    progress: float
    featured_bucket: Optional[YearBucketOut] = None

class DashboardOut(BaseModel):
    greeting: str
    name: Optional[str] = None
    today: TodayOut
    hijri: HijriDateOut
    qada_balance: QadaBalanceOut
    sunnah_opportunities: List[SunnahOpportunityOut]
    year_buckets: List[YearBucketOut]
    stats: FastStatsOut

class SunnahOverviewOut(BaseModel):
    today: List[SunnahOpportunityOut]
    upcoming: List[SunnahOpportunityOut]
