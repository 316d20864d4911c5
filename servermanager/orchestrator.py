"""
Scheduling, listing and cancelling of deferred jobs.

The job ledger and the live systemd triggers are two separate resources
with no transaction between them. Scheduling therefore runs as a fixed
sequence of steps, each with its own failure handling:

1. Parse the time string. On failure nothing has been touched.
2. Install the new trigger. On failure the ledger and any existing
   triggers are left as they were.
3. Record the job in the ledger. On failure the new trigger is removed
   again so no unrecorded trigger is left behind.
4. Remove the triggers of every job that dropped out of the ledger, both
   those of the same type and those trimmed by the size cap. Failures
   here are only logged; those jobs are already gone from the ledger.

A crash between steps 2 and 3 leaves a live trigger with no record. The
ledger never refers to a trigger that was not installed.
"""

import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from models import Job, DisplayRow, Outcome, JOB_TYPE_SERVICE_STOP
from servermanager.actions import StopServiceAction, PowerOffAction
from servermanager.config import ServiceConfig
from servermanager.store import JobStore
from servermanager.timeparse import parse_time, TimeParseError
from servermanager.triggers import SystemdRunInstaller, TriggerAction, TriggerInstallError

logger = logging.getLogger(__name__)


class JobOrchestrator:
    """
    Owns the one-job-per-type rule for scheduled service stops and shutdowns.

    No exception leaves the public methods; each returns an Outcome.
    """

    def __init__(
        self,
        store: JobStore,
        installer: SystemdRunInstaller,
        services: Dict[str, ServiceConfig],
        exclusive: bool = False,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Args:
            store: Job ledger
            installer: Trigger installer
            services: Services that may be scheduled for stopping
            exclusive: If True, a new job supersedes every existing job
                       instead of only the one of the same type
            clock: Returns "now" for time parsing (defaults to local time)
        """
        self.store = store
        self.installer = installer
        self.services = services
        self.exclusive = exclusive
        self.clock = clock

    def _resolve_unit(self, service: str) -> Optional[str]:
        if service in self.services:
            return self.services[service].unit
        for svc in self.services.values():
            if svc.unit == service:
                return svc.unit
        return None

    def schedule_service_stop(self, service: str, time_input: str) -> Outcome:
        """
        Schedule a service to be stopped and disabled.

        Args:
            service: Service key or unit name; must be configured
            time_input: Time string ("45m", "1h30m", "23:40")
        """
        unit = self._resolve_unit(service)
        if unit is None:
            logger.warning(f"Refusing to schedule stop of unknown service {service!r}")
            return Outcome(False, f"Unknown service: {service}")
        try:
            action = StopServiceAction(unit)
        except ValueError as e:
            return Outcome(False, str(e))
        return self._schedule(action, time_input)

    def schedule_shutdown(self, time_input: str) -> Outcome:
        """Schedule the machine to power off."""
        return self._schedule(PowerOffAction(), time_input)

    def _schedule(self, action: TriggerAction, time_input: str) -> Outcome:
        try:
            now = self.clock() if self.clock else None
            parsed = parse_time(time_input, now=now)
        except TimeParseError as e:
            logger.info(f"Rejected time string {time_input!r}")
            return Outcome(False, str(e))

        try:
            trigger_id = self.installer.install(parsed.trigger_token, action)
        except TriggerInstallError as e:
            return Outcome(False, str(e), delay_seconds=parsed.delay_seconds)

        job = Job(
            target=action.target,
            trigger_id=trigger_id,
            scheduled_at=time_input,
            type=action.job_type
        )

        previous = self.store.load()

        try:
            if self.exclusive:
                self.store.save([job])
            else:
                self.store.replace_by_type(job)
        except OSError as e:
            logger.error(f"Failed to record job {trigger_id}, removing its trigger: {e}")
            if not self.installer.uninstall(trigger_id):
                logger.error(f"Trigger {trigger_id} is live but unrecorded")
            return Outcome(False, f"Failed to save job: {e}", delay_seconds=parsed.delay_seconds)

        # Anything no longer recorded was superseded, including jobs
        # trimmed by the ledger cap
        recorded = {j.trigger_id for j in self.store.load()}
        superseded = [j for j in previous if j.trigger_id not in recorded]
        for old in superseded:
            if not self.installer.uninstall(old.trigger_id):
                logger.warning(f"Superseded trigger {old.trigger_id} may still fire")

        logger.info(
            f"Scheduled {job.type} of {job.target} in {parsed.delay_seconds}s "
            f"(at {time_input}) as {trigger_id}"
        )
        return Outcome(
            True,
            f"Scheduled {action.description.lower()} in {parsed.delay_seconds} seconds (at {time_input}).",
            job=job,
            delay_seconds=parsed.delay_seconds
        )

    def list_jobs(self) -> List[DisplayRow]:
        """Return the ledger as 1-based display rows."""
        return [DisplayRow.from_job(i, job) for i, job in enumerate(self.store.load(), start=1)]

    def cancel(self, index: int) -> Outcome:
        """
        Cancel a job by its 1-based display index.

        The ledger record is removed even if its trigger cannot be, since
        the trigger may already have fired.
        """
        jobs = self.store.load()
        if not jobs:
            return Outcome(False, "No scheduled jobs to cancel.")
        if index < 1 or index > len(jobs):
            return Outcome(False, "Invalid number.")

        job = jobs[index - 1]
        self._retire_trigger(job)

        try:
            self.store.remove_at(index)
        except IndexError:
            return Outcome(False, "Invalid number.")
        except OSError as e:
            logger.error(f"Failed to update job ledger: {e}")
            return Outcome(False, f"Failed to update job ledger: {e}", job=job)

        logger.info(f"Cancelled job {job.trigger_id}")
        return Outcome(True, f"Job {index} canceled.", job=job)

    def cancel_all(self) -> Outcome:
        """Cancel every job and empty the ledger."""
        jobs = self.store.load()
        if not jobs:
            return Outcome(False, "No scheduled jobs to cancel.")

        for job in jobs:
            self._retire_trigger(job)

        try:
            self.store.clear()
        except OSError as e:
            logger.error(f"Failed to clear job ledger: {e}")
            return Outcome(False, f"Failed to update job ledger: {e}")

        logger.info(f"Cancelled {len(jobs)} job(s)")
        return Outcome(True, f"Canceled {len(jobs)} job(s).")

    def _retire_trigger(self, job: Job):
        """Best-effort removal of a cancelled job's trigger."""
        if not self.installer.uninstall(job.trigger_id):
            logger.warning(f"Trigger {job.trigger_id} could not be removed, dropping record anyway")
        if job.type == JOB_TYPE_SERVICE_STOP:
            self.installer.reset(job.trigger_id)
