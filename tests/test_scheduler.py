import pytest
from apscheduler.schedulers.blocking import BlockingScheduler

import scheduler


def test_worker_scheduler_registers_single_drain_job(monkeypatch):
    captured = {}

    def fake_start(self):
        captured["jobs"] = self.get_jobs()
        raise KeyboardInterrupt

    monkeypatch.setattr(BlockingScheduler, "start", fake_start)
    monkeypatch.setattr(BlockingScheduler, "shutdown", lambda self, wait=True: None)

    with pytest.raises(SystemExit) as exc:
        scheduler.start_worker_scheduler(lambda: 0, poll_seconds=7)

    assert exc.value.code == 0
    (job,) = captured["jobs"]
    assert job.id == "drain_task_queue"
    assert job.max_instances == 1
    assert job.trigger.interval.total_seconds() == 7
