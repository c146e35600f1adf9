"""Unit tests for TransactionRunner: isolation, rollback, retry, failure mapping."""

import asyncio

import pytest
from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError, OperationalError

from src.mp_common.errors import (
    InsufficientFundsError,
    StoreConflictError,
    StoreTimeoutError,
    StoreUnavailableError,
    ValidationError,
)
from src.mp_ledger.infrastructure.transaction import (
    TransactionRunner,
    backoff_delay,
    is_data_error,
    sqlstate_of,
)


class _PgError(Exception):
    def __init__(self, sqlstate: str | None) -> None:
        super().__init__(f"pg error {sqlstate}")
        self.sqlstate = sqlstate


class _DriverDataError(ValueError):
    """Argument the driver could not encode, e.g. an int outside BIGINT."""


class _FakeTransaction:
    def __init__(self, session: "_FakeSession") -> None:
        self._session = session

    async def __aenter__(self) -> "_FakeTransaction":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            self._session.commits += 1
        else:
            self._session.rollbacks += 1
        return False


class _FakeSession:
    def __init__(self) -> None:
        self.commits = 0
        self.rollbacks = 0
        self.isolation_levels: list[str] = []

    async def __aenter__(self) -> "_FakeSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        return False

    def begin(self) -> _FakeTransaction:
        return _FakeTransaction(self)

    async def connection(self, execution_options=None):  # type: ignore[no-untyped-def]
        self.isolation_levels.append(execution_options["isolation_level"])


@pytest.fixture
def session() -> _FakeSession:
    return _FakeSession()


def _runner(session: _FakeSession, **kwargs) -> TransactionRunner:  # type: ignore[no-untyped-def]
    kwargs.setdefault("max_attempts", 3)
    kwargs.setdefault("base_delay", 0.0)
    kwargs.setdefault("timeout", 1.0)
    return TransactionRunner(session_factory=lambda: session, **kwargs)  # type: ignore[arg-type]


def _conflict(sqlstate: str = "40001") -> DBAPIError:
    return DBAPIError("UPDATE accounts ...", {}, _PgError(sqlstate))


class TestRun:
    async def test_commits_and_returns_result(self, session: _FakeSession) -> None:
        async def fn(db):  # type: ignore[no-untyped-def]
            return 42

        assert await _runner(session).run(fn) == 42
        assert session.commits == 1
        assert session.rollbacks == 0

    async def test_runs_at_serializable(self, session: _FakeSession) -> None:
        async def fn(db):  # type: ignore[no-untyped-def]
            return None

        await _runner(session).run(fn)
        assert session.isolation_levels == ["SERIALIZABLE"]

    async def test_business_error_rolls_back_and_is_not_retried(
        self, session: _FakeSession
    ) -> None:
        calls = 0

        async def fn(db):  # type: ignore[no-untyped-def]
            nonlocal calls
            calls += 1
            raise InsufficientFundsError(10, 0)

        with pytest.raises(InsufficientFundsError):
            await _runner(session).run(fn)
        assert calls == 1
        assert session.rollbacks == 1
        assert session.commits == 0


class TestConflictRetry:
    async def test_retries_serialization_failure_then_succeeds(
        self, session: _FakeSession
    ) -> None:
        calls = 0

        async def fn(db):  # type: ignore[no-untyped-def]
            nonlocal calls
            calls += 1
            if calls < 3:
                raise _conflict("40001")
            return "ok"

        assert await _runner(session).run(fn) == "ok"
        assert calls == 3
        assert session.rollbacks == 2
        assert session.commits == 1

    async def test_deadlock_is_retryable(self, session: _FakeSession) -> None:
        calls = 0

        async def fn(db):  # type: ignore[no-untyped-def]
            nonlocal calls
            calls += 1
            if calls == 1:
                raise _conflict("40P01")
            return "ok"

        assert await _runner(session).run(fn) == "ok"
        assert calls == 2

    async def test_gives_up_after_max_attempts(self, session: _FakeSession) -> None:
        calls = 0

        async def fn(db):  # type: ignore[no-untyped-def]
            nonlocal calls
            calls += 1
            raise _conflict()

        with pytest.raises(StoreConflictError):
            await _runner(session, max_attempts=4).run(fn)
        assert calls == 4
        assert session.commits == 0


class TestFailureMapping:
    async def test_operational_error_is_unavailable_and_not_retried(
        self, session: _FakeSession
    ) -> None:
        calls = 0

        async def fn(db):  # type: ignore[no-untyped-def]
            nonlocal calls
            calls += 1
            raise OperationalError("SELECT 1", {}, _PgError(None))

        with pytest.raises(StoreUnavailableError):
            await _runner(session).run(fn)
        assert calls == 1

    async def test_os_error_is_unavailable(self, session: _FakeSession) -> None:
        async def fn(db):  # type: ignore[no-untyped-def]
            raise ConnectionRefusedError("connection refused")

        with pytest.raises(StoreUnavailableError):
            await _runner(session).run(fn)

    async def test_other_driver_errors_propagate(self, session: _FakeSession) -> None:
        async def fn(db):  # type: ignore[no-untyped-def]
            raise IntegrityError("INSERT", {}, _PgError("23505"))

        with pytest.raises(IntegrityError):
            await _runner(session).run(fn)

    async def test_interface_error_is_unavailable(self, session: _FakeSession) -> None:
        async def fn(db):  # type: ignore[no-untyped-def]
            raise InterfaceError("SELECT 1", {}, Exception("connection is closed"))

        with pytest.raises(StoreUnavailableError):
            await _runner(session).run(fn)

    async def test_unencodable_argument_is_validation_error(
        self, session: _FakeSession
    ) -> None:
        calls = 0

        async def fn(db):  # type: ignore[no-untyped-def]
            nonlocal calls
            calls += 1
            raise InterfaceError("UPDATE accounts ...", {}, _DriverDataError("out of int64 range"))

        with pytest.raises(ValidationError):
            await _runner(session).run(fn)
        assert calls == 1
        assert session.rollbacks == 1

    async def test_numeric_out_of_range_is_validation_error(
        self, session: _FakeSession
    ) -> None:
        async def fn(db):  # type: ignore[no-untyped-def]
            raise DBAPIError("UPDATE accounts ...", {}, _PgError("22003"))

        with pytest.raises(ValidationError):
            await _runner(session).run(fn)

    async def test_deadline_rolls_back_and_raises_timeout(
        self, session: _FakeSession
    ) -> None:
        async def fn(db):  # type: ignore[no-untyped-def]
            await asyncio.sleep(5)

        with pytest.raises(StoreTimeoutError):
            await _runner(session, timeout=0.01).run(fn)
        assert session.rollbacks == 1
        assert session.commits == 0

    async def test_cancellation_rolls_back(self, session: _FakeSession) -> None:
        started = asyncio.Event()

        async def fn(db):  # type: ignore[no-untyped-def]
            started.set()
            await asyncio.sleep(5)

        task = asyncio.create_task(_runner(session).run(fn))
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert session.rollbacks == 1
        assert session.commits == 0


class TestHelpers:
    def test_sqlstate_of_reads_driver_attribute(self) -> None:
        assert sqlstate_of(_conflict("40001")) == "40001"

    def test_sqlstate_of_missing(self) -> None:
        assert sqlstate_of(DBAPIError("x", {}, Exception("boom"))) is None

    def test_is_data_error(self) -> None:
        assert is_data_error(DBAPIError("x", {}, _PgError("22P02")))
        assert is_data_error(InterfaceError("x", {}, _DriverDataError("bad")))
        assert not is_data_error(InterfaceError("x", {}, Exception("connection is closed")))
        assert not is_data_error(_conflict("40001"))

    def test_backoff_grows_with_jitter(self) -> None:
        first = backoff_delay(1, 0.02)
        assert 0.01 <= first <= 0.02
        third = backoff_delay(3, 0.02)
        assert 0.04 <= third <= 0.08

    def test_backoff_is_capped(self) -> None:
        assert backoff_delay(30, 0.02) <= 1.0
