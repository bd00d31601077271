"""Tests for maintenance tasks."""

from contextlib import asynccontextmanager
from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlmodel import select

from sudu.models import PendingRegistration, utc_now
from sudu.tasks.maintenance import MAINTENANCE_TIMEOUT_SECONDS, sweep_pending_registrations
from sudu.tasks.queue import get_queue_settings, sweep_schedule


class TestSweepPendingRegistrations:
    """Tests for the sweep_pending_registrations task."""

    @pytest.mark.asyncio
    async def test_deletes_expired_rows(self, session, store):
        now = utc_now()
        async with store.transaction():
            await store.add_pending(
                name="Old",
                email="old@example.com",
                password_hash="x",
                link_code="111111",
                expires_at=now - timedelta(minutes=1),
            )
            await store.add_pending(
                name="New",
                email="new@example.com",
                password_hash="x",
                link_code="222222",
                expires_at=now + timedelta(minutes=15),
            )

        @asynccontextmanager
        async def shared_session():
            yield session

        with patch("sudu.tasks.maintenance.get_session_context", shared_session):
            result = await sweep_pending_registrations({})

        assert result == {"deleted": 1}
        emails = (await session.execute(select(PendingRegistration.email))).scalars().all()
        assert emails == ["new@example.com"]


class TestQueueSettings:
    """Worker configuration."""

    def test_sweep_schedule(self):
        assert sweep_schedule(5) == "*/5 * * * *"

    def test_cron_job_registered(self):
        queue_settings = get_queue_settings()

        [job] = queue_settings["cron_jobs"]
        assert job.function is sweep_pending_registrations
        assert job.cron == "*/5 * * * *"
        assert job.timeout == MAINTENANCE_TIMEOUT_SECONDS
        assert sweep_pending_registrations in queue_settings["functions"]
