"""
Data models for scheduled jobs.
"""

from dataclasses import dataclass
from typing import Optional, Dict, Any

JOB_TYPE_SERVICE_STOP = "service-stop"
JOB_TYPE_MACHINE_SHUTDOWN = "machine-shutdown"

JOB_TYPES = (JOB_TYPE_SERVICE_STOP, JOB_TYPE_MACHINE_SHUTDOWN)

# Type names written by older ledgers
_LEGACY_TYPES = {
    "pc-shutdown": JOB_TYPE_MACHINE_SHUTDOWN,
}

# Target recorded for machine-wide jobs
MACHINE_TARGET = "pc"

# Older ledgers record the full unit name instead of the trigger id
_UNIT_SUFFIXES = (".service", ".timer")


def trigger_base_name(unit: str) -> str:
    """Strip a trailing unit type suffix, e.g. 'shutdown-pc-1.service' -> 'shutdown-pc-1'."""
    for suffix in _UNIT_SUFFIXES:
        if unit.endswith(suffix):
            return unit[:-len(suffix)]
    return unit


@dataclass(frozen=True)
class Job:
    """A pending scheduled action and the trigger backing it"""
    target: str  # service unit, or 'pc' for shutdown
    trigger_id: str  # transient systemd unit name
    scheduled_at: str  # time string exactly as the user typed it
    type: str  # 'service-stop' or 'machine-shutdown'

    def to_dict(self) -> Dict[str, str]:
        """Serialize using the ledger's field names"""
        return {
            'target': self.target,
            'unit': self.trigger_id,
            'time': self.scheduled_at,
            'type': self.type,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Job':
        """
        Create from a ledger entry.

        Extra keys are ignored.

        Raises:
            ValueError: If a required field is missing or the type is unknown
        """
        try:
            job_type = _LEGACY_TYPES.get(data['type'], data['type'])
            job = cls(
                target=str(data['target']),
                trigger_id=trigger_base_name(str(data['unit'])),
                scheduled_at=str(data['time']),
                type=job_type,
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"Malformed job entry: {data!r}") from e

        if job.type not in JOB_TYPES:
            raise ValueError(f"Unknown job type: {job.type!r}")
        return job


@dataclass(frozen=True)
class DisplayRow:
    """One line of the job listing"""
    index: int  # 1-based
    target: str
    trigger_id: str
    scheduled_at: str
    type: str

    @classmethod
    def from_job(cls, index: int, job: Job) -> 'DisplayRow':
        return cls(
            index=index,
            target=job.target,
            trigger_id=job.trigger_id,
            scheduled_at=job.scheduled_at,
            type=job.type,
        )

    def format(self) -> str:
        return (
            f"{self.index}) Target: {self.target} | Unit: {self.trigger_id} | "
            f"Time: {self.scheduled_at} | Type: {self.type}"
        )


@dataclass
class Outcome:
    """Result of an orchestrator operation"""
    ok: bool
    message: str
    job: Optional[Job] = None
    delay_seconds: Optional[int] = None

    def __bool__(self) -> bool:
        return self.ok
