"""Tests for scheduling, listing and cancelling jobs."""

import json
from datetime import datetime, timezone

import pytest

from models import Job, JOB_TYPE_SERVICE_STOP, JOB_TYPE_MACHINE_SHUTDOWN
from servermanager.orchestrator import JobOrchestrator
from servermanager.store import JsonJobStore, MemoryJobStore


class BrokenStore(MemoryJobStore):
    """Store whose writes always fail."""

    def _write_entries(self, entries):
        raise OSError("read-only file system")


class TestScheduleServiceStop:

    def test_records_job(self, orchestrator, store, runner):
        outcome = orchestrator.schedule_service_stop("sunshine", "45m")

        assert outcome.ok
        assert outcome.delay_seconds == 2700
        jobs = store.load()
        assert len(jobs) == 1
        assert jobs[0].type == JOB_TYPE_SERVICE_STOP
        assert jobs[0].target == "sunshine.service"
        assert jobs[0].scheduled_at == "45m"
        assert jobs[0].trigger_id == outcome.job.trigger_id
        assert runner.calls_with("--on-active=2700s")

    def test_accepts_unit_name(self, orchestrator, store):
        assert orchestrator.schedule_service_stop("tailscaled.service", "1h").ok
        assert store.load()[0].target == "tailscaled.service"

    def test_unknown_service_is_rejected(self, orchestrator, store, runner):
        outcome = orchestrator.schedule_service_stop("sshd", "45m")
        assert not outcome.ok
        assert "sshd" in outcome.message
        assert store.load() == []
        assert runner.calls == []

    @pytest.mark.parametrize("value", ["abc", "25:00", "1x", "0m", ""])
    def test_bad_time_has_no_side_effects(self, orchestrator, store, runner, value):
        orchestrator.schedule_shutdown("1h")
        before = store.load()
        runner.calls.clear()

        outcome = orchestrator.schedule_service_stop("sunshine", value)

        assert not outcome.ok
        assert value in outcome.message
        assert store.load() == before
        assert runner.calls == []

    def test_replaces_job_of_same_type(self, orchestrator, store, runner):
        first = orchestrator.schedule_service_stop("sunshine", "45m").job
        second = orchestrator.schedule_service_stop("tailscale", "1h").job

        jobs = store.load()
        assert jobs == [second]
        assert runner.calls_with(f"{first.trigger_id}.timer")

    def test_other_type_is_kept(self, orchestrator, store):
        shutdown = orchestrator.schedule_shutdown("23:40").job
        stop = orchestrator.schedule_service_stop("sunshine", "45m").job
        assert store.load() == [shutdown, stop]

    def test_store_never_exceeds_cap(self, orchestrator, store):
        for value in ["10m", "20m", "30m"]:
            orchestrator.schedule_service_stop("sunshine", value)
            orchestrator.schedule_shutdown(value)
            assert len(store.load()) <= store.max_jobs
        types = [j.type for j in store.load()]
        assert sorted(types) == [JOB_TYPE_MACHINE_SHUTDOWN, JOB_TYPE_SERVICE_STOP]


class TestScheduleShutdown:

    def test_passed_clock_time_is_tomorrow(self, store, installer, services):
        now = datetime(2026, 10, 19, 23, 41, tzinfo=timezone.utc)
        orchestrator = JobOrchestrator(store, installer, services, clock=lambda: now)

        outcome = orchestrator.schedule_shutdown("23:40")

        assert outcome.ok
        assert outcome.delay_seconds == 86400 - 60
        assert store.load()[0].type == JOB_TYPE_MACHINE_SHUTDOWN
        assert store.load()[0].target == "pc"


class TestScheduleFailures:

    def test_install_failure_leaves_store_untouched(self, orchestrator, store, runner):
        existing = orchestrator.schedule_service_stop("sunshine", "45m").job
        runner.fail_when("systemd-run", stderr="Unit exists")

        outcome = orchestrator.schedule_service_stop("tailscale", "1h")

        assert not outcome.ok
        assert store.load() == [existing]
        # the live trigger of the existing job is kept too
        assert not runner.calls_with(f"{existing.trigger_id}.timer")

    def test_store_failure_removes_new_trigger(self, installer, runner, services, now):
        orchestrator = JobOrchestrator(BrokenStore(), installer, services, clock=lambda: now)

        outcome = orchestrator.schedule_shutdown("30m")

        assert not outcome.ok
        installed = runner.calls_with("systemd-run")[0]
        trigger_id = installed[2].split("=", 1)[1]
        assert runner.calls_with(f"{trigger_id}.timer")

    def test_superseded_trigger_failure_is_not_fatal(self, orchestrator, store, runner):
        first = orchestrator.schedule_shutdown("30m").job
        runner.fail_when(f"{first.trigger_id}.timer", stderr="Access denied")

        outcome = orchestrator.schedule_shutdown("1h")

        assert outcome.ok
        assert store.load() == [outcome.job]


class TestExclusive:

    def test_new_job_supersedes_all(self, store, installer, runner, services, now):
        orchestrator = JobOrchestrator(store, installer, services, exclusive=True, clock=lambda: now)
        stop = orchestrator.schedule_service_stop("sunshine", "45m").job

        shutdown = orchestrator.schedule_shutdown("2h").job

        assert store.load() == [shutdown]
        assert runner.calls_with(f"{stop.trigger_id}.timer")


class TestList:

    def test_empty(self, orchestrator):
        assert orchestrator.list_jobs() == []

    def test_rows_are_one_based(self, orchestrator):
        stop = orchestrator.schedule_service_stop("sunshine", "45m").job
        rows = orchestrator.list_jobs()

        assert len(rows) == 1
        assert rows[0].index == 1
        assert rows[0].trigger_id == stop.trigger_id
        assert rows[0].scheduled_at == "45m"
        assert rows[0].type == JOB_TYPE_SERVICE_STOP
        assert rows[0].format().startswith("1) Target: sunshine.service | Unit: stop-sunshine-")

    def test_listing_is_idempotent(self, orchestrator):
        orchestrator.schedule_service_stop("sunshine", "45m")
        orchestrator.schedule_shutdown("23:40")
        assert orchestrator.list_jobs() == orchestrator.list_jobs()


class TestCancel:

    def test_empty_store(self, orchestrator, runner):
        outcome = orchestrator.cancel(1)
        assert not outcome.ok
        assert outcome.message == "No scheduled jobs to cancel."
        assert runner.calls == []

    @pytest.mark.parametrize("index", [0, 2, 99, -1])
    def test_out_of_range(self, orchestrator, store, runner, index):
        orchestrator.schedule_service_stop("sunshine", "45m")
        before = store.load()
        runner.calls.clear()

        outcome = orchestrator.cancel(index)

        assert not outcome.ok
        assert outcome.message == "Invalid number."
        assert store.load() == before
        assert runner.calls == []

    def test_end_to_end(self, orchestrator, store, runner):
        job = orchestrator.schedule_service_stop("sunshine", "45m").job
        assert orchestrator.list_jobs()[0].index == 1

        outcome = orchestrator.cancel(1)

        assert outcome.ok
        assert outcome.job == job
        assert store.load() == []
        assert runner.calls_with(f"{job.trigger_id}.timer")
        assert runner.calls_with("reset-failed")

    def test_shutdown_needs_no_reset(self, orchestrator, runner):
        orchestrator.schedule_shutdown("1h")
        runner.calls.clear()

        assert orchestrator.cancel(1).ok
        assert len(runner.calls) == 1
        assert runner.calls[0][2] == "stop"

    def test_uninstall_failure_still_removes_record(self, orchestrator, store, runner):
        job = orchestrator.schedule_shutdown("1h").job
        runner.fail_when(f"{job.trigger_id}.timer", stderr="Access denied")

        assert orchestrator.cancel(1).ok
        assert store.load() == []

    def test_cancel_all(self, orchestrator, store, runner):
        stop = orchestrator.schedule_service_stop("sunshine", "45m").job
        shutdown = orchestrator.schedule_shutdown("1h").job

        outcome = orchestrator.cancel_all()

        assert outcome.ok
        assert store.load() == []
        assert runner.calls_with(f"{stop.trigger_id}.timer")
        assert runner.calls_with(f"{shutdown.trigger_id}.timer")

    def test_cancel_all_empty(self, orchestrator):
        assert not orchestrator.cancel_all().ok


def test_prior_ledger_from_disk_is_honoured(store, installer, services, now, runner):
    store.save([Job("sunshine.service", "stop-sunshine-1", "45m", JOB_TYPE_SERVICE_STOP)])
    orchestrator = JobOrchestrator(store, installer, services, clock=lambda: now)

    orchestrator.schedule_service_stop("sunshine", "1h")

    assert [j.scheduled_at for j in store.load()] == ["1h"]
    assert runner.calls_with("stop-sunshine-1.timer")


class TestOlderLedgers:

    def test_cancel_job_recorded_with_full_unit_name(self, tmp_path, installer, runner, services, now):
        job_file = tmp_path / "jobs.json"
        job_file.write_text(json.dumps([
            {"target": "pc", "unit": "shutdown-pc-1700000000.service", "time": "23:40", "type": "pc-shutdown"},
        ]))
        orchestrator = JobOrchestrator(JsonJobStore(job_file), installer, services, clock=lambda: now)

        assert orchestrator.cancel(1).ok
        assert runner.calls == [[
            "sudo", "/usr/bin/systemctl", "stop",
            "shutdown-pc-1700000000.timer", "shutdown-pc-1700000000.service",
        ]]

    def test_superseding_job_recorded_with_full_unit_name(self, tmp_path, installer, runner, services, now):
        job_file = tmp_path / "jobs.json"
        job_file.write_text(json.dumps([
            {"target": "sunshine.service", "unit": "stop-sunshine-1699999000.service",
             "time": "45m", "type": "service-stop"},
        ]))
        orchestrator = JobOrchestrator(JsonJobStore(job_file), installer, services, clock=lambda: now)

        assert orchestrator.schedule_service_stop("tailscale", "1h").ok
        stop_call = runner.calls_with("stop-sunshine-1699999000.timer")
        assert stop_call == [[
            "sudo", "/usr/bin/systemctl", "stop",
            "stop-sunshine-1699999000.timer", "stop-sunshine-1699999000.service",
        ]]


def test_job_trimmed_by_cap_loses_its_trigger(installer, runner, services, now):
    store = MemoryJobStore(max_jobs=1)
    orchestrator = JobOrchestrator(store, installer, services, clock=lambda: now)
    shutdown = orchestrator.schedule_shutdown("1h").job

    stop = orchestrator.schedule_service_stop("sunshine", "45m").job

    assert store.load() == [stop]
    assert runner.calls_with(f"{shutdown.trigger_id}.timer")
    assert not runner.calls_with(f"{stop.trigger_id}.timer")
