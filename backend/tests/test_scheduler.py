"""Daily refresh job run by the background scheduler."""

from services import scheduler
from services.ingestion import RefreshSummary


async def test_scheduled_refresh_skips_without_api_key(caplog):
    caplog.set_level("INFO", logger="services.scheduler")
    await scheduler.run_scheduled_refresh()
    assert "skipping scheduled refresh" in caplog.text


async def test_scheduled_refresh_runs_without_force(monkeypatch):
    calls = []

    class StubEngine:
        async def run(self, force=False):
            calls.append(force)
            return RefreshSummary(new_posts=1)

    monkeypatch.setattr(scheduler, "build_ingestion_engine", lambda settings: StubEngine())
    await scheduler.run_scheduled_refresh()

    assert calls == [False]


async def test_scheduled_refresh_survives_engine_errors(monkeypatch, caplog):
    class BrokenEngine:
        async def run(self, force=False):
            raise RuntimeError("database unavailable")

    monkeypatch.setattr(scheduler, "build_ingestion_engine", lambda settings: BrokenEngine())
    await scheduler.run_scheduled_refresh()

    assert "Scheduled refresh failed" in caplog.text
