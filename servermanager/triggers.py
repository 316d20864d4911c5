"""
One-shot deferred triggers backed by systemd transient timers.

A trigger is registered with `systemd-run --on-active=<delay>`, which
creates a transient `<id>.timer` and `<id>.service` pair. The trigger id
is the unit base name and is what the job ledger records.
"""

import logging
import time
import uuid
from typing import Callable, Union

from models import trigger_base_name
from servermanager.actions import StopServiceAction, PowerOffAction, SYSTEMCTL
from servermanager.runner import CommandRunner, CommandError

logger = logging.getLogger(__name__)

TriggerAction = Union[StopServiceAction, PowerOffAction]

SYSTEMD_RUN = "/usr/bin/systemd-run"

# systemctl stderr fragments meaning the unit is already gone
_MISSING_UNIT_MARKERS = ("not loaded", "not found", "does not exist", "no such file")


class TriggerInstallError(Exception):
    """Raised when the deferred-execution facility rejects a trigger."""
    pass


def _is_missing_unit(stderr: str) -> bool:
    """True only if every error line reports a unit that is already gone."""
    lines = [line.lower() for line in stderr.splitlines() if line.strip()]
    if not lines:
        return False
    return all(any(marker in line for marker in _MISSING_UNIT_MARKERS) for line in lines)


class SystemdRunInstaller:
    """
    Installs and removes one-shot triggers with systemd-run.
    """

    def __init__(self, runner: CommandRunner, clock: Callable[[], float] = time.time):
        """
        Args:
            runner: Command runner used for all systemd calls
            clock: Source of epoch seconds for trigger ids
        """
        self.runner = runner
        self.clock = clock

    def new_trigger_id(self, action: TriggerAction) -> str:
        """Unique id from the action target, the current time and a random suffix."""
        return f"{action.unit_prefix}-{int(self.clock())}-{uuid.uuid4().hex[:6]}"

    def install(self, trigger_token: str, action: TriggerAction) -> str:
        """
        Register a deferred action.

        Args:
            trigger_token: Delay in systemd time syntax, e.g. "2700s"
            action: What to run when the trigger fires

        Returns:
            The trigger id

        Raises:
            TriggerInstallError: If systemd-run fails
        """
        trigger_id = self.new_trigger_id(action)
        argv = [
            SYSTEMD_RUN,
            f"--unit={trigger_id}",
            f"--on-active={trigger_token}",
            f"--description={action.description}",
            "--collect",
        ] + action.argv()

        try:
            self.runner.run(argv, privileged=True)
        except CommandError as e:
            logger.error(f"Failed to install trigger {trigger_id}: {e}")
            raise TriggerInstallError(f"Failed to install trigger {trigger_id}: {e}") from e

        logger.info(f"Installed trigger {trigger_id} (fires in {trigger_token})")
        return trigger_id

    def uninstall(self, trigger_id: str) -> bool:
        """
        Remove a trigger so it no longer fires.

        A trigger that has already fired or been removed counts as removed.

        Returns:
            True if the trigger is gone, False if removal failed
        """
        trigger_id = trigger_base_name(trigger_id)
        argv = [SYSTEMCTL, "stop", f"{trigger_id}.timer", f"{trigger_id}.service"]
        try:
            result = self.runner.run(argv, privileged=True, check=False)
        except CommandError as e:
            logger.warning(f"Could not remove trigger {trigger_id}: {e}")
            return False

        if result.ok or _is_missing_unit(result.stderr):
            logger.info(f"Removed trigger {trigger_id}")
            return True

        logger.warning(f"Could not remove trigger {trigger_id}: {result.stderr.strip()}")
        return False

    def reset(self, trigger_id: str) -> bool:
        """
        Disable the trigger's service unit and clear any failed state.

        Best-effort; returns False if either step failed.
        """
        ok = True
        unit = f"{trigger_base_name(trigger_id)}.service"
        for argv in ([SYSTEMCTL, "disable", unit], [SYSTEMCTL, "reset-failed", unit]):
            try:
                result = self.runner.run(argv, privileged=True, check=False)
            except CommandError as e:
                logger.warning(f"Reset of {unit} failed: {e}")
                ok = False
                continue
            if not result.ok and not _is_missing_unit(result.stderr):
                logger.debug(f"'{' '.join(argv)}' exited with {result.returncode}")
                ok = False
        return ok
