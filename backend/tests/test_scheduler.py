import asyncio
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from yogaflow import scheduler
from yogaflow.store import MemoryStore

NOW = datetime(2024, 3, 5, 9, 0)


@pytest.fixture
def store():
    s = MemoryStore()
    s.create_user("asha", "h", "asha@example.com")
    s.create_user("ben", "h", "ben@example.com")
    s.create_user("cy", "h", None)
    return s


class TestSendDailyReminders:
    def test_skips_without_mirror_db(self, store):
        with patch("yogaflow.scheduler.send_exercise_reminder", new_callable=AsyncMock) as send:
            result = asyncio.run(scheduler.send_daily_reminders(store, None, NOW))
        assert result == {"sent": 0, "total": 0}
        send.assert_not_awaited()

    def test_reminds_users_without_progress_today(self, store):
        ben = store.get_user_by_username("ben")
        done_today = lambda db, user_id, day: {"day": day} if user_id == ben["id"] else None
        with patch("yogaflow.scheduler.get_daily_progress", side_effect=done_today) as lookup, \
             patch("yogaflow.scheduler.send_exercise_reminder", new_callable=AsyncMock, return_value=True) as send:
            result = asyncio.run(scheduler.send_daily_reminders(store, MagicMock(), NOW))

        assert result == {"sent": 1, "total": 3}
        send.assert_awaited_once_with("asha@example.com", "asha")
        assert {c.args[2] for c in lookup.call_args_list} == {"2024-03-05"}

    def test_one_failure_does_not_stop_the_rest(self, store):
        async def flaky(email, username):
            if username == "asha":
                raise OSError("smtp down")
            return True

        with patch("yogaflow.scheduler.get_daily_progress", return_value=None), \
             patch("yogaflow.scheduler.send_exercise_reminder", side_effect=flaky):
            result = asyncio.run(scheduler.send_daily_reminders(store, MagicMock(), NOW))
        assert result == {"sent": 1, "total": 3}


class TestStartScheduler:
    def test_disabled_by_default(self, monkeypatch):
        monkeypatch.delenv("CRON_ENABLED", raising=False)
        with patch.object(scheduler, "scheduler") as sched:
            assert scheduler.start_scheduler() is False
        sched.add_job.assert_not_called()

    @pytest.mark.parametrize("flag", ["1", "true", "TRUE"])
    def test_enabled_flag_values(self, monkeypatch, flag):
        monkeypatch.setenv("CRON_ENABLED", flag)
        assert scheduler.cron_enabled()

    def test_registers_cron_job(self, monkeypatch):
        monkeypatch.setenv("CRON_ENABLED", "1")
        monkeypatch.setenv("CRON_TIME", "30 7 * * *")
        monkeypatch.setenv("TZ", "Asia/Kolkata")
        with patch.object(scheduler, "scheduler") as sched:
            sched.running = False
            assert scheduler.start_scheduler() is True

        sched.add_job.assert_called_once()
        trigger = sched.add_job.call_args.args[1]
        assert str(trigger.fields[trigger.FIELD_NAMES.index("hour")]) == "7"
        assert str(trigger.fields[trigger.FIELD_NAMES.index("minute")]) == "30"
        assert sched.add_job.call_args.kwargs["id"] == scheduler.JOB_ID
        sched.start.assert_called_once()
