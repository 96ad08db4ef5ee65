from datetime import date, timedelta

from app.hijri import (HijriDate, approximate_hijri_date, is_ashura_window, is_day_of_arafah,
                       is_shawwal_six, is_white_day, sunnah_opportunities, upcoming_opportunities)


def test_known_date():
    h = approximate_hijri_date(date(2024, 3, 11))
    assert h == HijriDate(day=28, month=2, year=1445, month_name="Safar")
    assert h.formatted == "28 Safar 1445"


def test_fields_stay_in_range_over_several_years():
    start = date(2020, 1, 1)
    for offset in range(0, 365 * 6):
        h = approximate_hijri_date(start + timedelta(days=offset))
        assert 1 <= h.month <= 12
        assert 1 <= h.day <= 30
        assert 1441 <= h.year <= 1448


def test_predicates():
    assert is_white_day(HijriDate(13, 5, 1445, "Jumada al-Awwal"))
    assert not is_white_day(HijriDate(16, 5, 1445, "Jumada al-Awwal"))
    assert is_day_of_arafah(HijriDate(9, 12, 1445, "Dhul Hijjah"))
    assert not is_day_of_arafah(HijriDate(10, 12, 1445, "Dhul Hijjah"))
    assert is_ashura_window(HijriDate(10, 1, 1446, "Muharram"))
    assert not is_ashura_window(HijriDate(12, 1, 1446, "Muharram"))
    assert is_shawwal_six(HijriDate(2, 10, 1445, "Shawwal"))
    assert not is_shawwal_six(HijriDate(1, 10, 1445, "Shawwal"))


def test_monday_and_thursday_opportunities():
    monday = sunnah_opportunities(date(2024, 3, 11))
    assert "monday" in [o["type"] for o in monday]
    assert all(o["is_today"] for o in monday)

    thursday = sunnah_opportunities(date(2024, 3, 14))
    assert "thursday" in [o["type"] for o in thursday]

    # 2024-03-12 is a Tuesday, approximately 29 Safar
    assert sunnah_opportunities(date(2024, 3, 12)) == []


def test_upcoming_excludes_start_day():
    start = date(2024, 3, 10)
    upcoming = upcoming_opportunities(start, days=7)

    dates = {o["date"] for o in upcoming}
    assert start not in dates
    assert min(dates) > start
    assert max(dates) <= start + timedelta(days=7)
    assert not any(o["is_today"] for o in upcoming)
    weekly = [o["type"] for o in upcoming if o["type"] in ("monday", "thursday")]
    assert weekly == ["monday", "thursday"]
