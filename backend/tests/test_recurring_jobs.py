"""
Tests for recurring jobs: notification outbox worker.

Covers:
  - A tick processes due rows and commits
  - Without a database the tick is a no-op
  - The loop runs ticks off the event loop and survives errors
  - Disabled jobs never tick
"""

from __future__ import annotations

import asyncio
from unittest.mock import patch

import pytest

import app.services.recurring_jobs as recurring_jobs
from app.models.service_order import NotificationOutbox
from app.services.notification_outbox import enqueue_notification


def test_tick_without_database_is_noop(monkeypatch):
    monkeypatch.setattr(recurring_jobs, "SessionLocal", None)
    assert recurring_jobs.run_notification_outbox_tick(batch_size=10, max_attempts=3) == 0


def test_tick_processes_and_commits(monkeypatch, session_factory):
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    with session_factory() as db:
        outbox_id = enqueue_notification(
            db,
            entity_type="service_order",
            entity_id="1",
            channel="email",
            template_key="order_created",
            payload_json={"to": "client@example.com", "subject": "s", "html": "<p>h</p>"},
        )
        db.commit()

    monkeypatch.setattr(recurring_jobs, "SessionLocal", session_factory)
    sent_payloads = []

    def fake_process(db, *, batch_size, max_attempts):
        from app.services.notification_outbox import process_notification_outbox_once

        return process_notification_outbox_once(
            db,
            batch_size=batch_size,
            max_attempts=max_attempts,
            sender=lambda _db, payload: sent_payloads.append(payload),
        )

    monkeypatch.setattr(recurring_jobs, "process_notification_outbox_once", fake_process)

    assert recurring_jobs.run_notification_outbox_tick(batch_size=10, max_attempts=3) == 1
    assert len(sent_payloads) == 1
    with session_factory() as db:
        assert db.get(NotificationOutbox, outbox_id).status == "SENT"


@pytest.mark.asyncio
async def test_loop_ticks_and_recovers_from_errors(monkeypatch):
    monkeypatch.setenv("ENABLE_RECURRING_JOBS", "true")
    calls = []

    def flaky_tick(*, batch_size, max_attempts):
        calls.append((batch_size, max_attempts))
        if len(calls) == 1:
            raise RuntimeError("database unavailable")
        return 0

    sleeps = []
    real_sleep = asyncio.sleep

    async def fast_sleep(seconds):
        sleeps.append(seconds)
        if len(calls) >= 2:
            raise asyncio.CancelledError
        await real_sleep(0)

    with patch.object(recurring_jobs, "run_notification_outbox_tick", flaky_tick), patch.object(
        recurring_jobs.asyncio, "sleep", fast_sleep
    ):
        with pytest.raises(asyncio.CancelledError):
            await recurring_jobs._notification_outbox_loop(interval_seconds=30, batch_size=5, max_attempts=4)

    assert calls == [(5, 4), (5, 4)]
    # error backoff first, then the regular interval
    assert sleeps == [30, 30]


@pytest.mark.asyncio
async def test_loop_skips_when_disabled(monkeypatch):
    monkeypatch.setenv("ENABLE_RECURRING_JOBS", "false")
    ticks = []
    sleeps = []

    async def fast_sleep(seconds):
        sleeps.append(seconds)
        if len(sleeps) >= 2:
            raise asyncio.CancelledError

    with patch.object(recurring_jobs, "run_notification_outbox_tick", lambda **kw: ticks.append(kw)), patch.object(
        recurring_jobs.asyncio, "sleep", fast_sleep
    ):
        with pytest.raises(asyncio.CancelledError):
            await recurring_jobs._notification_outbox_loop(interval_seconds=15, batch_size=5, max_attempts=4)

    assert ticks == []
    assert sleeps == [15, 15]


@pytest.mark.asyncio
async def test_start_worker_clamps_settings(monkeypatch):
    monkeypatch.setenv("NOTIFICATION_WORKER_INTERVAL_SECONDS", "1")
    monkeypatch.setenv("NOTIFICATION_WORKER_BATCH_SIZE", "1000")
    captured = {}

    async def fake_loop(**kwargs):
        captured.update(kwargs)

    with patch.object(recurring_jobs, "_notification_outbox_loop", fake_loop):
        task = recurring_jobs.start_notification_outbox_worker()
        await task

    assert captured == {"interval_seconds": 5, "batch_size": 200, "max_attempts": 5}
