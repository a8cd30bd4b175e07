"""
Worker Reminders.

Назначение:
- периодически запускать reminder_job вне API-процесса
- для деплоя, где у gateway выставлено REMINDER_IN_PROCESS=false
"""

from __future__ import annotations

import time

from venture_connect.common.config import get_settings
from venture_connect.common.logging import get_project_logger, setup_logging
from venture_connect.jobs.reminder_job import run as run_reminders

log = get_project_logger()


def main() -> None:
    setup_logging()
    settings = get_settings()
    interval_sec = max(5, int(settings.reminder_interval_sec))

    log.info(
        "worker_reminders_started",
        extra={
            "payload": {
                "enabled": bool(settings.reminder_enabled),
                "interval_sec": interval_sec,
                "lookahead_sec": int(settings.reminder_lookahead_sec),
            }
        },
    )

    while True:
        try:
            run_reminders(source="worker")
        except Exception as e:
            log.error(
                "worker_reminders_error",
                extra={"payload": {"err": str(e)[:300]}},
            )
        time.sleep(interval_sec)


if __name__ == "__main__":
    main()
