"""
Execution of external commands.

Commands are always argument lists and are never passed through a shell.
Privileged commands are prefixed with sudo unless that is disabled in the
configuration (e.g. when the tool itself already runs as root).
"""

import logging
import subprocess
from dataclasses import dataclass
from typing import List, Optional, Sequence

logger = logging.getLogger(__name__)


class CommandError(Exception):
    """Raised when an external command cannot be run or exits non-zero."""

    def __init__(self, message: str, returncode: Optional[int] = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


@dataclass
class CommandResult:
    """Outcome of a finished command"""
    argv: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner:
    """
    Runs commands with subprocess and logs what it does.
    """

    def __init__(self, use_sudo: bool = True, timeout: Optional[int] = 60):
        """
        Initialize command runner.

        Args:
            use_sudo: Prefix privileged commands with "sudo"
            timeout: Timeout in seconds for each command
        """
        self.use_sudo = use_sudo
        self.timeout = timeout

    def build_argv(self, argv: Sequence[str], privileged: bool = False) -> List[str]:
        argv = [str(a) for a in argv]
        if privileged and self.use_sudo:
            return ['sudo'] + argv
        return argv

    def run(
        self,
        argv: Sequence[str],
        privileged: bool = False,
        check: bool = True
    ) -> CommandResult:
        """
        Run a command.

        Args:
            argv: Command and arguments
            privileged: Run with elevated privileges
            check: Raise CommandError on a non-zero exit code

        Returns:
            CommandResult with captured output

        Raises:
            CommandError: If the command cannot be started, times out, or
                          (with check) exits non-zero
        """
        full_argv = self.build_argv(argv, privileged)
        logger.info(f"Running: {' '.join(full_argv)}")

        try:
            completed = subprocess.run(
                full_argv,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                timeout=self.timeout
            )
        except subprocess.TimeoutExpired as e:
            logger.error(f"Command timed out after {self.timeout}s: {' '.join(full_argv)}")
            raise CommandError(f"Command timed out after {self.timeout}s") from e
        except OSError as e:
            logger.error(f"Command could not be started: {e}")
            raise CommandError(f"Command could not be started: {e}") from e

        result = CommandResult(
            argv=full_argv,
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or ""
        )

        if result.ok:
            logger.debug(f"Command succeeded: {full_argv[0]}")
        else:
            logger.debug(f"Command exited with {result.returncode}: {result.stderr.strip()}")
            if check:
                raise CommandError(
                    f"Command failed with exit code {result.returncode}: {result.stderr.strip()}",
                    returncode=result.returncode,
                    stderr=result.stderr
                )

        return result


class DryRunRunner(CommandRunner):
    """Logs commands instead of running them."""

    def run(
        self,
        argv: Sequence[str],
        privileged: bool = False,
        check: bool = True
    ) -> CommandResult:
        full_argv = self.build_argv(argv, privileged)
        logger.info(f"[dry-run] {' '.join(full_argv)}")
        print(f"[dry-run] {' '.join(full_argv)}")
        return CommandResult(argv=full_argv, returncode=0)
