"""
Deferred actions a trigger may run.

This is a closed set: a trigger can stop and disable a known service, or
power off the machine. Each action renders to a fixed argument list.
"""

import re
from dataclasses import dataclass
from typing import List

from models import JOB_TYPE_SERVICE_STOP, JOB_TYPE_MACHINE_SHUTDOWN, MACHINE_TARGET

SYSTEMCTL = "/usr/bin/systemctl"

# systemd unit names: letters, digits, ":-_.\@"
UNIT_NAME_PATTERN = re.compile(r"[A-Za-z0-9:_.@\\-]+")


@dataclass(frozen=True)
class StopServiceAction:
    """Stop and disable a service unit."""
    unit: str

    job_type = JOB_TYPE_SERVICE_STOP

    def __post_init__(self):
        if not UNIT_NAME_PATTERN.fullmatch(self.unit):
            raise ValueError(f"Invalid unit name: {self.unit!r}")

    @property
    def target(self) -> str:
        return self.unit

    @property
    def unit_prefix(self) -> str:
        name = self.unit[:-len(".service")] if self.unit.endswith(".service") else self.unit
        return f"stop-{name}"

    @property
    def description(self) -> str:
        return f"Stop {self.unit} service"

    def argv(self) -> List[str]:
        return [SYSTEMCTL, "disable", "--now", self.unit]


@dataclass(frozen=True)
class PowerOffAction:
    """Power off the machine."""

    job_type = JOB_TYPE_MACHINE_SHUTDOWN
    target = MACHINE_TARGET
    unit_prefix = "shutdown-pc"
    description = "Shutdown PC"

    def argv(self) -> List[str]:
        return [SYSTEMCTL, "poweroff"]
