"""Tests for comments.py."""

import datetime as dt

import pytest

from spotmap.comments import CommentThread
from spotmap.errors import NotFoundError, ValidationError


@pytest.fixture
def thread(db, store):
    return CommentThread(db, store=store)


class TestCommentThread:
    def test_add_strips_text(self, thread, make_spot):
        spot = make_spot()
        comment = thread.add(spot.id, "  Ran out at 7pm  ")
        assert comment.text == "Ran out at 7pm"
        assert comment.location_id == spot.id
        assert comment.created_at is not None

    def test_empty_text_rejected(self, thread, make_spot):
        spot = make_spot()
        with pytest.raises(ValidationError):
            thread.add(spot.id, "   ")
        assert thread.list(spot.id) == []

    def test_unknown_spot(self, thread):
        with pytest.raises(NotFoundError):
            thread.add("nope", "hello")

    def test_newest_first(self, thread, db, make_spot):
        spot = make_spot()
        first = thread.add(spot.id, "first")
        second = thread.add(spot.id, "second")
        first.created_at = dt.datetime(2026, 3, 15, 17, 0)
        second.created_at = dt.datetime(2026, 3, 15, 18, 0)
        db.commit()

        assert [c.text for c in thread.list(spot.id)] == ["second", "first"]

    def test_threads_are_per_spot(self, thread, make_spot):
        a = make_spot(name="A")
        b = make_spot(name="B")
        thread.add(a.id, "on a")
        assert thread.list(b.id) == []

    def test_expired_spot_takes_no_comments(self, thread, make_spot, today):
        spot = make_spot(date=today - dt.timedelta(days=2), expiry_date=today - dt.timedelta(days=1))
        with pytest.raises(NotFoundError):
            thread.add(spot.id, "still here?", today=today)
        assert thread.list(spot.id) == []

    def test_voted_down_spot_takes_no_comments(self, thread, db, make_spot, today):
        spot = make_spot()
        spot.downvotes = 20
        db.commit()
        with pytest.raises(NotFoundError):
            thread.add(spot.id, "fake?", today=today)
