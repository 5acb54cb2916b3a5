"""Tests for spots.py - SpotStore and LifecycleReaper."""

import datetime as dt

import pytest
from sqlalchemy import func, select

from spotmap.errors import NotFoundError, ValidationError
from spotmap.geo import BoundingBox
from spotmap.models import Comment, Location, Vote
from spotmap.schemas import SpotDraft, TrustState, VoteDirection


def count(db, model):
    return db.scalar(select(func.count()).select_from(model))


class TestCreate:
    def test_counters_start_at_zero(self, make_spot):
        spot = make_spot()
        assert spot.upvotes == 0
        assert spot.downvotes == 0
        assert spot.id

    def test_empty_name_rejected_and_nothing_written(self, store, today, make_spot):
        make_spot()
        before = len(store.list_visible(today, today=today))

        with pytest.raises(ValidationError):
            store.create(SpotDraft(name="", lat=23.8, lng=90.4), today=today)
        with pytest.raises(ValidationError):
            store.create(SpotDraft(name="   ", lat=23.8, lng=90.4), today=today)

        assert len(store.list_visible(today, today=today)) == before

    def test_missing_coordinates_rejected(self, store, db, today):
        with pytest.raises(ValidationError):
            store.create(SpotDraft(name="Khichuri", lat=23.8), today=today)
        with pytest.raises(ValidationError):
            store.create(SpotDraft(name="Khichuri", lng=90.4), today=today)
        assert count(db, Location) == 0

    def test_out_of_range_coordinates_rejected(self, store, today):
        with pytest.raises(ValidationError):
            store.create(SpotDraft(name="Nowhere", lat=123.0, lng=90.4), today=today)

    def test_expiry_before_date_rejected(self, store, today):
        with pytest.raises(ValidationError):
            store.create(
                SpotDraft(name="Iftar", lat=23.8, lng=90.4, date=today, expiry_date=today - dt.timedelta(days=1)),
                today=today,
            )

    def test_defaults(self, store, config, today):
        spot = store.create(SpotDraft(name="  Sherbet stall ", lat=23.8, lng=90.4), today=today)
        assert spot.name == "Sherbet stall"
        assert spot.area == config.fallback_area_label
        assert spot.category == "biryani"
        assert spot.date == today
        assert spot.expiry_date is None
        assert spot.packets == 0

    def test_category_normalized(self, make_spot):
        assert make_spot(category="🥤").category == "water"
        assert make_spot(category="pizza").category == "other"

    def test_client_supplied_id(self, make_spot):
        assert make_spot(id="abc123xyz").id == "abc123xyz"
        with pytest.raises(ValidationError):
            make_spot(id="abc123xyz")


class TestListVisible:
    def test_expiry_yesterday_hidden_today_shown(self, store, make_spot, today):
        yesterday = today - dt.timedelta(days=1)
        gone = make_spot(name="Yesterday's biryani", date=yesterday, expiry_date=yesterday)
        live = make_spot(name="Today's biryani", date=yesterday, expiry_date=today)

        ids = [s.id for s in store.list_visible(today, today=today)]
        assert live.id in ids
        assert gone.id not in ids

    def test_open_ended_spot_stays_visible(self, store, make_spot, today):
        spot = make_spot(date=today - dt.timedelta(days=30))
        assert [s.id for s in store.list_visible(today, today=today)] == [spot.id]

    def test_future_spot_not_yet_visible(self, store, make_spot, today):
        make_spot(date=today + dt.timedelta(days=2))
        assert store.list_visible(today, today=today) == []
        assert len(store.list_visible(today + dt.timedelta(days=2), today=today)) == 1

    def test_reference_date_past_expiry(self, store, make_spot, today):
        """A spot still alive today is hidden when asking about a day after its expiry."""
        make_spot(expiry_date=today + dt.timedelta(days=1))
        assert store.list_visible(today + dt.timedelta(days=3), today=today) == []

    def test_newest_first(self, store, db, make_spot, today):
        older = make_spot(name="Older")
        newer = make_spot(name="Newer")
        older.created_at = dt.datetime(2026, 3, 15, 8, 0)
        newer.created_at = dt.datetime(2026, 3, 15, 9, 0)
        db.commit()

        assert [s.name for s in store.list_visible(today, today=today)] == ["Newer", "Older"]

    def test_search_query(self, store, make_spot, today):
        make_spot(name="Kacchi biryani", area="Dhanmondi")
        make_spot(name="Free water", area="Mirpur", category="water")

        assert [s.name for s in store.list_visible(today, query="mirpur", today=today)] == ["Free water"]
        assert [s.name for s in store.list_visible(today, query="KACCHI", today=today)] == ["Kacchi biryani"]
        assert len(store.list_visible(today, query="  ", today=today)) == 2


class TestReaper:
    def test_deletes_expired_and_moderated(self, store, db, make_spot, today):
        yesterday = today - dt.timedelta(days=1)
        make_spot(name="Expired", date=yesterday, expiry_date=yesterday)
        doomed = make_spot(name="Fake")
        suppressed = make_spot(name="Suspicious")
        doomed.downvotes = 20
        suppressed.downvotes = 12
        db.commit()

        stats = store.reaper.reap(today)

        assert (stats.expired, stats.deleted) == (1, 1)
        names = {s.name for s in db.scalars(select(Location))}
        assert names == {"Suspicious"}

    def test_runs_on_read(self, store, db, make_spot, today):
        doomed = make_spot()
        doomed.downvotes = 25
        db.commit()

        assert store.list_visible(today, today=today) == []
        assert count(db, Location) == 0

    def test_nothing_to_do(self, store, make_spot, today):
        make_spot()
        assert store.reaper.reap(today).total == 0


class TestLiveness:
    """Dead spots are hidden from single-spot reads before the reaper gets to them."""

    def test_expired_spot_not_found(self, store, make_spot, today):
        yesterday = today - dt.timedelta(days=1)
        spot = make_spot(date=today - dt.timedelta(days=2), expiry_date=yesterday)

        with pytest.raises(NotFoundError):
            store.get(spot.id, today)
        assert store.get(spot.id, today, live_only=False).id == spot.id

    def test_expiring_today_still_found(self, store, make_spot, today):
        spot = make_spot(expiry_date=today)
        assert store.get(spot.id, today).id == spot.id

    def test_voted_down_spot_not_found(self, store, db, make_spot, today):
        spot = make_spot()
        spot.downvotes = 20
        db.commit()

        with pytest.raises(NotFoundError):
            store.get(spot.id, today)

    def test_within_bbox_skips_dead_spots(self, store, db, make_spot, today):
        live = make_spot(name="Live")
        make_spot(name="Expired", date=today - dt.timedelta(days=2), expiry_date=today - dt.timedelta(days=1))
        doomed = make_spot(name="Fake")
        doomed.downvotes = 20
        db.commit()

        box = BoundingBox.around([(live.lat, live.lng)]).padded(0.01)
        assert [s.id for s in store.within_bbox(box, today)] == [live.id]

    def test_remove_accepts_dead_spot(self, store, db, make_spot, today):
        spot = make_spot(date=today - dt.timedelta(days=2), expiry_date=today - dt.timedelta(days=1))
        store.remove(spot.id)
        assert count(db, Location) == 0


class TestRemove:
    def test_cascades_to_votes_and_comments(self, store, db, make_spot):
        spot = make_spot()
        db.add(Vote(location_id=spot.id, user_id="u-1", vote_type=VoteDirection.UP))
        db.add(Comment(location_id=spot.id, text="Still there at 6pm"))
        db.commit()

        store.remove(spot.id)

        assert count(db, Location) == 0
        assert count(db, Vote) == 0
        assert count(db, Comment) == 0

    def test_missing_spot(self, store):
        with pytest.raises(NotFoundError):
            store.remove("nope")


class TestCounterDelta:
    def test_increment_and_decrement(self, store, db, make_spot):
        spot = make_spot()
        store.apply_counter_delta(spot.id, "upvotes", 3)
        store.apply_counter_delta(spot.id, "upvotes", -1)
        db.refresh(spot)
        assert spot.upvotes == 2

    def test_clamped_at_zero(self, store, db, make_spot):
        spot = make_spot()
        store.apply_counter_delta(spot.id, "downvotes", -5)
        db.refresh(spot)
        assert spot.downvotes == 0

    def test_unknown_field(self, store, make_spot):
        spot = make_spot()
        with pytest.raises(ValidationError):
            store.apply_counter_delta(spot.id, "name", 1)

    def test_unknown_spot(self, store):
        with pytest.raises(NotFoundError):
            store.apply_counter_delta("nope", "upvotes", 1)


class TestSerialization:
    def test_trust_and_travel_annotations(self, store, db, make_spot):
        spot = make_spot(lat=23.8103, lng=90.4125)
        spot.downvotes = 6
        db.commit()

        out = store.to_out(spot, origin=(23.8103, 90.4215))
        assert out.trust is TrustState.FLAGGED
        assert out.distance_km == pytest.approx(0.917, abs=0.01)
        assert out.walk_minutes == 11
        assert out.drive_minutes == 2

    def test_without_origin(self, store, make_spot):
        out = store.to_out(make_spot())
        assert out.distance_km is None
        assert out.walk_minutes is None

    def test_stats(self, store, db, make_spot, today):
        make_spot(name="Fine")
        flagged = make_spot(name="Dubious")
        flagged.downvotes = 5
        db.commit()

        stats = store.stats(today)
        assert stats.visible == 2
        assert stats.normal == 1
        assert stats.flagged == 1
