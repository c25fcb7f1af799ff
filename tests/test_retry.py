"""Tests for database retry handling."""
import pytest
from sqlalchemy.exc import DisconnectionError, IntegrityError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from utils import retry
from utils.exceptions import PersistenceError, ValidationError

@pytest.fixture
def sleeps(monkeypatch):
    delays = []

    async def fake_sleep(delay):
        delays.append(delay)

    monkeypatch.setattr(retry.asyncio, "sleep", fake_sleep)
    return delays

def locked():
    return OperationalError("UPDATE streaks", {}, Exception("database is locked"))

class Flaky:
    """Operation failing with the given errors before succeeding."""

    def __init__(self, *errors):
        self.errors = list(errors)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "ok"

@pytest.mark.parametrize("error, expected", [
    (locked(), True),
    (DisconnectionError("gone"), True),
    (OperationalError("SELECT 1", {}, Exception("no such table: streaks")), False),
    (IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed")), False),
    (PoolTimeoutError("QueuePool limit reached"), False),
])
def test_is_transient(error, expected):
    assert retry.is_transient(error) is expected

async def test_transient_error_is_retried(sleeps):
    operation = Flaky(locked(), DisconnectionError("gone"))
    assert await retry.with_retry(operation, max_retries=3, retry_delay=0.5) == "ok"
    assert operation.calls == 3
    assert sleeps == [0.5, 1.0]

async def test_retries_are_bounded(sleeps):
    operation = Flaky(locked(), locked(), locked(), locked())
    with pytest.raises(PersistenceError) as exc:
        await retry.with_retry(operation, max_retries=3, retry_delay=1)
    assert operation.calls == 3
    assert sleeps == [1, 2]
    assert isinstance(exc.value.__cause__, OperationalError)

async def test_permanent_error_fails_fast(sleeps):
    operation = Flaky(IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed")))
    with pytest.raises(PersistenceError):
        await retry.with_retry(operation, max_retries=3)
    assert operation.calls == 1
    assert sleeps == []

async def test_acquire_timeout_is_not_retried(sleeps):
    operation = Flaky(PoolTimeoutError("QueuePool limit reached"))
    with pytest.raises(PersistenceError):
        await retry.with_retry(operation, max_retries=3)
    assert operation.calls == 1

async def test_domain_errors_pass_through(sleeps):
    operation = Flaky(ValidationError("bad input"))
    with pytest.raises(ValidationError):
        await retry.with_retry(operation)
    assert operation.calls == 1
