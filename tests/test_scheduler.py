"""Tests for app.services.scheduler.SyncScheduler using a fake clock and sleep."""

import asyncio
from datetime import datetime, timedelta, timezone

from app.services.scheduler import SyncScheduler
from app.services.sync import SyncMapping
from fakes import FakeDestination, FakeSource, make_rows

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)

MAPPING = SyncMapping(
    name="submissions",
    source_table="product_submissions",
    destination_table="Submissions",
    key_field="id",
    fields=("id", "product_name"),
)


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def _scheduler(source, clock, sleeps=None, interval=60):
    async def fake_sleep(seconds):
        if sleeps is not None:
            sleeps.append(seconds)
        clock.advance(seconds)

    return SyncScheduler(
        [MAPPING],
        source=source,
        destination=FakeDestination(),
        interval_seconds=interval,
        clock=clock,
        sleep=fake_sleep,
    )


class TestSyncScheduler:
    def test_cursors_start_unset(self):
        scheduler = _scheduler(FakeSource(), FakeClock(T0))
        assert scheduler.cursors == {"submissions": None}

    def test_run_once_stores_returned_cursor(self):
        scheduler = _scheduler(FakeSource(make_rows(2)), FakeClock(T0))
        outcomes = asyncio.run(scheduler.run_once())
        assert outcomes[0].created == 2
        assert scheduler.cursors["submissions"] == T0

    def test_fixed_cadence_and_cursor_progression(self):
        source = FakeSource(make_rows(1))
        clock = FakeClock(T0)
        sleeps = []
        scheduler = _scheduler(source, clock, sleeps, interval=60)

        asyncio.run(scheduler.run_forever(max_runs=3))

        assert sleeps == [60, 60]
        assert [since for _, since in source.calls] == [
            None,
            T0,
            T0 + timedelta(seconds=60),
        ]
        assert scheduler.cursors["submissions"] == T0 + timedelta(seconds=120)

    def test_fetch_error_leaves_cursor_for_next_window(self):
        source = FakeSource(make_rows(1))
        clock = FakeClock(T0)
        scheduler = _scheduler(source, clock)

        asyncio.run(scheduler.run_once())
        source.fail = True
        clock.advance(60)
        asyncio.run(scheduler.run_once())
        assert scheduler.cursors["submissions"] == T0

        source.fail = False
        clock.advance(60)
        asyncio.run(scheduler.run_once())
        # the failed window is fetched again from the old lower bound
        assert source.calls[-1][1] == T0

    def test_start_and_stop(self):
        async def scenario():
            scheduler = SyncScheduler(
                [MAPPING],
                source=FakeSource(),
                destination=FakeDestination(),
                interval_seconds=3600,
            )
            scheduler.start()
            assert scheduler.running
            await asyncio.sleep(0)
            await scheduler.stop()
            return scheduler

        scheduler = asyncio.run(scenario())
        assert not scheduler.running
