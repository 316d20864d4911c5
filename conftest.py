"""
Shared fixtures: a recording command runner, isolated data directories,
and a fixed clock.
"""

import logging
from datetime import datetime, timezone

import pytest

from config import Config, ENV_DATA_DIR
from servermanager.config import ENV_CONFIG_PATH, ManagerConfig
from servermanager.orchestrator import JobOrchestrator
from servermanager.runner import CommandRunner, CommandResult, CommandError
from servermanager.store import MemoryJobStore
from servermanager.triggers import SystemdRunInstaller

FIXED_EPOCH = 1700000000.0


class FakeRunner(CommandRunner):
    """Records every command instead of running it."""

    def __init__(self, use_sudo: bool = True, timeout: int = 5):
        super().__init__(use_sudo=use_sudo, timeout=timeout)
        self.calls = []
        self.stdout = ""
        self._failures = []

    def fail_when(self, fragment: str, returncode: int = 1, stderr: str = "Job failed"):
        """Make commands with an argument containing `fragment` fail."""
        self._failures.append((fragment, returncode, stderr))

    def run(self, argv, privileged=False, check=True):
        full_argv = self.build_argv(argv, privileged)
        self.calls.append(full_argv)

        for fragment, returncode, stderr in self._failures:
            if any(fragment in arg for arg in full_argv):
                if check:
                    raise CommandError(f"exit {returncode}", returncode=returncode, stderr=stderr)
                return CommandResult(full_argv, returncode, "", stderr)

        return CommandResult(full_argv, 0, self.stdout, "")

    def calls_with(self, fragment: str):
        return [c for c in self.calls if any(fragment in arg for arg in c)]


@pytest.fixture(autouse=True)
def isolated_data_dir(tmp_path, monkeypatch):
    """Point all data and config paths at a temporary directory."""
    data_dir = tmp_path / "data"
    monkeypatch.setenv(ENV_DATA_DIR, str(data_dir))
    monkeypatch.delenv(ENV_CONFIG_PATH, raising=False)
    Config._instance = None
    yield data_dir
    Config._instance = None

    from servermanager import cli
    root_logger = logging.getLogger()
    for handler in cli._installed_handlers:
        root_logger.removeHandler(handler)
        handler.close()
    cli._installed_handlers.clear()


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def store():
    return MemoryJobStore(max_jobs=2)


@pytest.fixture
def installer(runner):
    return SystemdRunInstaller(runner, clock=lambda: FIXED_EPOCH)


@pytest.fixture
def services():
    return ManagerConfig().services


@pytest.fixture
def now():
    return datetime(2026, 10, 19, 20, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def orchestrator(store, installer, services, now):
    return JobOrchestrator(store, installer, services, clock=lambda: now)
