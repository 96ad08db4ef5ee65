import pytest

from app.exceptions import Conflict, NotFound
from app.schemas import YearBucketIn, YearBucketUpdate
from app.year_buckets import YearBucketService, bucket_out, progress_fraction

from .conftest import make_user


def new_bucket(svc, user_id, year=1445, owed=10, name=None):
    return svc.create(user_id, YearBucketIn(
        name=name or f"Ramadan {year}",
        hijri_year=year,
        total_days_owed=owed,
    ))


def assert_consistent(bucket):
    assert 0 <= bucket.completed_days <= bucket.total_days_owed
    assert bucket.is_completed == (bucket.completed_days >= bucket.total_days_owed)


def test_create_starts_empty(db, user):
    svc = YearBucketService(db)
    bucket = new_bucket(svc, user.id)

    assert bucket.completed_days == 0
    assert bucket.is_completed is False
    out = bucket_out(bucket)
    assert out.remaining_days == 10
    assert out.progress_percentage == 0


def test_increments_complete_then_clamp(db, user):
    svc = YearBucketService(db)
    bucket = new_bucket(svc, user.id, owed=10)

    for _ in range(3):
        bucket = svc.increment_completed(bucket.id, user.id, 3)
    assert bucket.completed_days == 9
    assert bucket.is_completed is False

    bucket = svc.increment_completed(bucket.id, user.id, 3)
    assert bucket.completed_days == 10
    assert bucket.is_completed is True


def test_decrement_clamps_at_zero_and_reopens(db, user):
    svc = YearBucketService(db)
    bucket = new_bucket(svc, user.id, owed=2)
    svc.increment_completed(bucket.id, user.id, 2)

    bucket = svc.decrement_completed(bucket.id, user.id, 1)
    assert bucket.completed_days == 1
    assert bucket.is_completed is False

    bucket = svc.decrement_completed(bucket.id, user.id, 5)
    assert bucket.completed_days == 0


def test_counter_stays_in_range_for_any_sequence(db, user):
    svc = YearBucketService(db)
    bucket = new_bucket(svc, user.id, owed=7)

    for delta in [3, -1, 10, -20, 4, 4, -2, 1, 1, -7, 30]:
        if delta > 0:
            bucket = svc.increment_completed(bucket.id, user.id, delta)
        else:
            bucket = svc.decrement_completed(bucket.id, user.id, -delta)
        assert_consistent(bucket)


def test_duplicate_year_conflicts(db, user):
    svc = YearBucketService(db)
    new_bucket(svc, user.id, year=1445)

    with pytest.raises(Conflict) as exc:
        new_bucket(svc, user.id, year=1445, name="Again")
    assert exc.value.status_code == 409

    # another user may own the same year
    other = make_user(db, email="other@example.com")
    assert new_bucket(svc, other.id, year=1445).hijri_year == 1445


def test_other_users_bucket_is_not_found(db, user, other_user):
    svc = YearBucketService(db)
    bucket = new_bucket(svc, user.id)

    with pytest.raises(NotFound):
        svc.get(bucket.id, other_user.id)
    with pytest.raises(NotFound):
        svc.increment_completed(bucket.id, other_user.id)
    with pytest.raises(NotFound):
        svc.delete(bucket.id, other_user.id)

    db.refresh(bucket)
    assert bucket.completed_days == 0


def test_most_urgent_is_oldest_incomplete(db, user):
    svc = YearBucketService(db)
    assert svc.find_most_urgent(user.id) is None

    b1445 = new_bucket(svc, user.id, year=1445, owed=5)
    b1444 = new_bucket(svc, user.id, year=1444, owed=2)
    assert svc.find_most_urgent(user.id).id == b1444.id

    svc.increment_completed(b1444.id, user.id, 2)
    assert svc.find_most_urgent(user.id).id == b1445.id

    svc.increment_completed(b1445.id, user.id, 5)
    assert svc.find_most_urgent(user.id) is None


def test_list_orders(db, user):
    svc = YearBucketService(db)
    for year in (1443, 1445, 1444):
        new_bucket(svc, user.id, year=year, owed=3)
    done = svc.list_all(user.id)[-1]
    svc.increment_completed(done.id, user.id, 3)

    assert [b.hijri_year for b in svc.list_all(user.id)] == [1445, 1444, 1443]
    assert [b.hijri_year for b in svc.list_incomplete(user.id)] == [1444, 1445]


def test_summary_empty(db, user):
    summary = YearBucketService(db).get_ledger_summary(user.id)
    assert summary.total_owed == 0
    assert summary.total_completed == 0
    assert summary.total_remaining == 0
    assert summary.bucket_count == 0
    assert summary.completed_buckets == 0


def test_summary_adds_up_across_buckets(db):
    svc = YearBucketService(db)
    only_a = make_user(db, email="a@example.com")
    only_b = make_user(db, email="b@example.com")
    both = make_user(db, email="ab@example.com")

    for owner in (only_a, both):
        bucket = new_bucket(svc, owner.id, year=1444, owed=6)
        svc.increment_completed(bucket.id, owner.id, 6)
    for owner in (only_b, both):
        bucket = new_bucket(svc, owner.id, year=1445, owed=10)
        svc.increment_completed(bucket.id, owner.id, 4)

    a = svc.get_ledger_summary(only_a.id)
    b = svc.get_ledger_summary(only_b.id)
    ab = svc.get_ledger_summary(both.id)

    assert ab.total_owed == a.total_owed + b.total_owed == 16
    assert ab.total_completed == a.total_completed + b.total_completed == 10
    assert ab.total_remaining == a.total_remaining + b.total_remaining == 6
    assert ab.bucket_count == 2
    assert ab.completed_buckets == 1


def test_lowering_total_clamps_completed(db, user):
    svc = YearBucketService(db)
    bucket = new_bucket(svc, user.id, owed=10)
    svc.increment_completed(bucket.id, user.id, 8)

    bucket = svc.update(bucket.id, user.id, YearBucketUpdate(total_days_owed=5))
    assert bucket.total_days_owed == 5
    assert bucket.completed_days == 5
    assert bucket.is_completed is True

    bucket = svc.update(bucket.id, user.id, YearBucketUpdate(total_days_owed=12, notes="travel in Shaban"))
    assert bucket.completed_days == 5
    assert bucket.is_completed is False
    assert bucket.notes == "travel in Shaban"


def test_delete_bucket(db, user):
    svc = YearBucketService(db)
    bucket = new_bucket(svc, user.id)
    svc.delete(bucket.id, user.id)

    with pytest.raises(NotFound):
        svc.get(bucket.id, user.id)


@pytest.mark.parametrize("completed, owed, expected", [
    (0, 0, 0.0),
    (5, 0, 0.0),
    (0, 10, 0.0),
    (3, 10, 0.3),
    (2, 3, 0.67),
    (10, 10, 1.0),
])
def test_progress_fraction(completed, owed, expected):
    assert progress_fraction(completed, owed) == expected


def test_increment_applies_on_top_of_other_sessions(db, other_db, user):
    mine = YearBucketService(db)
    theirs = YearBucketService(other_db)
    bucket = new_bucket(mine, user.id, owed=10)

    # loaded here, then moved by another session
    loaded = mine.get(bucket.id, user.id)
    assert loaded.completed_days == 0
    theirs.increment_completed(bucket.id, user.id)

    bucket = mine.increment_completed(bucket.id, user.id)
    assert bucket.completed_days == 2
    assert_consistent(bucket)
