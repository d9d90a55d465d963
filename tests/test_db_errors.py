"""Tests for database error classification and retry with backoff."""

from unittest.mock import MagicMock

import pytest
from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError, OperationalError

from backend.app.utils.db_errors import (
    MSG_CONNECTION,
    MSG_CONSTRAINT,
    MSG_DUPLICATE,
    MSG_INTERNAL,
    classify_db_error,
    raise_db_error,
)
from backend.app.utils.retry import with_retry


# ── Classification ──


@pytest.mark.parametrize(
    "message,expected",
    [
        ("could not connect to server", (503, MSG_CONNECTION)),
        ("Connection reset by peer", (503, MSG_CONNECTION)),
        ("statement timeout", (503, MSG_CONNECTION)),
        ('duplicate key value violates unique constraint "funds_name_key"', (409, MSG_DUPLICATE)),
        ("UNIQUE constraint failed: funds.name", (409, MSG_DUPLICATE)),
        ("FOREIGN KEY constraint failed", (409, MSG_CONSTRAINT)),
        ("syntax error at or near", (500, MSG_INTERNAL)),
    ],
)
def test_classify_db_error(message, expected):
    assert classify_db_error(Exception(message)) == expected


def test_raise_db_error_rolls_back():
    db = MagicMock()
    exc = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed: funds.name"))
    with pytest.raises(HTTPException) as err:
        raise_db_error(db, exc, "[funds] crear")
    assert err.value.status_code == 409
    db.rollback.assert_called_once()


# ── Retry ──


def _operational():
    return OperationalError("SELECT 1", {}, Exception("server closed the connection"))


class TestWithRetry:
    def test_returns_first_success(self):
        sleeps = []
        assert with_retry(lambda: 42, sleep=sleeps.append) == 42
        assert sleeps == []

    def test_retries_with_exponential_backoff(self):
        calls = {"n": 0}
        sleeps = []

        def flaky():
            calls["n"] += 1
            if calls["n"] < 3:
                raise _operational()
            return "ok"

        assert with_retry(flaky, attempts=3, initial_delay=0.5, sleep=sleeps.append) == "ok"
        assert sleeps == [0.5, 1.0]

    def test_gives_up_after_attempts(self):
        sleeps = []

        def broken():
            raise _operational()

        with pytest.raises(OperationalError):
            with_retry(broken, attempts=2, initial_delay=1, sleep=sleeps.append)
        assert sleeps == [1, 2]

    def test_other_errors_are_not_retried(self):
        sleeps = []

        def bad():
            raise ValueError("boom")

        with pytest.raises(ValueError):
            with_retry(bad, sleep=sleeps.append)
        assert sleeps == []
