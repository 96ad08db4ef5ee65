"""
Approximate Hijri calendar and the sunnah fasting days that hang off it.

This is arithmetic on mean year/month lengths, not an astronomical or
Umm al-Qura conversion, and may be off by a day or two.
"""
from datetime import date, timedelta
from typing import List, NamedTuple, Optional

HIJRI_EPOCH = date(622, 7, 19)
HIJRI_YEAR_DAYS = 354.36667
HIJRI_MONTH_DAYS = 29.530588853

MONTH_NAMES = [
    "Muharram",
    "Safar",
    "Rabi al-Awwal",
    "Rabi al-Thani",
    "Jumada al-Awwal",
    "Jumada al-Thani",
    "Rajab",
    "Shaban",
    "Ramadan",
    "Shawwal",
    "Dhul Qadah",
    "Dhul Hijjah",
]


class HijriDate(NamedTuple):
    day: int
    month: int
    year: int
    month_name: str

    @property
    def formatted(self) -> str:
        return f"{self.day} {self.month_name} {self.year}"


def approximate_hijri_date(gregorian: date) -> HijriDate:
    days = (gregorian - HIJRI_EPOCH).days

    year = int(days // HIJRI_YEAR_DAYS) + 1
    day_of_year = days % int(HIJRI_YEAR_DAYS)
    month = min(int(day_of_year // HIJRI_MONTH_DAYS) + 1, 12)
    day = min(int(day_of_year % HIJRI_MONTH_DAYS) + 1, 30)

    return HijriDate(day=day, month=month, year=year, month_name=MONTH_NAMES[month - 1])


def is_white_day(h: HijriDate) -> bool:
    return h.day in (13, 14, 15)

def is_monday(d: date) -> bool:
    return d.weekday() == 0

def is_thursday(d: date) -> bool:
    return d.weekday() == 3

def is_shaban(h: HijriDate) -> bool:
    return h.month == 8

def is_day_of_arafah(h: HijriDate) -> bool:
    return h.month == 12 and h.day == 9

def is_ashura_window(h: HijriDate) -> bool:
    # 9th, 10th or 11th of Muharram
    return h.month == 1 and h.day in (9, 10, 11)

def is_shawwal_six(h: HijriDate) -> bool:
    # after Eid: 2nd..7th of Shawwal
    return h.month == 10 and 2 <= h.day <= 7


def _opportunity(kind: str, name: str, description: str, on: date, is_today: bool,
                 hijri_date: Optional[str] = None) -> dict:
    return {
        "type": kind,
        "name": name,
        "description": description,
        "date": on,
        "is_today": is_today,
        "hijri_date": hijri_date,
    }


def sunnah_opportunities(on: date, is_today: bool = True) -> List[dict]:
    h = approximate_hijri_date(on)
    out: List[dict] = []

    if is_monday(on):
        out.append(_opportunity("monday", "Monday Fast",
                                "The Prophet ﷺ used to fast on Mondays and Thursdays", on, is_today))
    if is_thursday(on):
        out.append(_opportunity("thursday", "Thursday Fast",
                                "The Prophet ﷺ used to fast on Mondays and Thursdays", on, is_today))
    if is_white_day(h):
        out.append(_opportunity("white_days", "White Days",
                                f"Fasting the 13th, 14th, and 15th of the lunar month (Day {h.day} of {h.month_name})",
                                on, is_today, h.formatted))
    if is_shaban(h):
        out.append(_opportunity("shaban", "Shaban Fasting",
                                "The Prophet ﷺ used to fast most of Shaban", on, is_today, h.formatted))
    if is_day_of_arafah(h):
        out.append(_opportunity("arafah", "Day of Arafah",
                                "Fasting expiates sins of the previous year and the coming year",
                                on, is_today, f"9 Dhul Hijjah {h.year}"))
    if is_ashura_window(h):
        out.append(_opportunity("ashura", "Ashura & Surrounding Days",
                                "Fasting the 9th, 10th, or 11th of Muharram", on, is_today, h.formatted))
    if is_shawwal_six(h):
        out.append(_opportunity("shawwal", "Six Days of Shawwal",
                                "Fasting six days in Shawwal after Ramadan", on, is_today, h.formatted))
    return out


def upcoming_opportunities(start: date, days: int = 7) -> List[dict]:
    out: List[dict] = []
    for offset in range(1, days + 1):
        out.extend(sunnah_opportunities(start + timedelta(days=offset), is_today=False))
    return out
