# ABOUTME: Tests for scheduled backup runs.
# ABOUTME: Checks cron validation and that a failing run is logged instead of killing the scheduler.

import logging

import pytest

from nft_rescue.config import ConfigError
from nft_rescue.scheduler import build_trigger, run_scheduled_backup


def test_build_trigger_accepts_crontab():
    assert build_trigger("0 3 * * *") is not None


def test_build_trigger_rejects_garbage():
    with pytest.raises(ConfigError, match="Invalid schedule"):
        build_trigger("every day at noon")


class TestRunScheduledBackup:

    def test_logs_status_summary(self, caplog):
        results = [{"wallet": "a", "status": "completed"}, {"wallet": "b", "status": "failed"},
                   {"wallet": "c", "status": "completed"}]
        with caplog.at_level(logging.INFO, logger="nft_rescue.scheduler"):
            run_scheduled_backup(object(), lambda config: results)

        assert "3 wallet(s): 2 completed, 1 failed" in caplog.text

    def test_swallows_run_errors(self, caplog):
        """Should log an exception from the backup so the next trigger still fires."""
        def explode(config):
            raise RuntimeError("disk full")

        with caplog.at_level(logging.ERROR, logger="nft_rescue.scheduler"):
            run_scheduled_backup(object(), explode)

        assert "disk full" in caplog.text
