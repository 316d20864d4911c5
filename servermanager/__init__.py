"""
Workstation Server Manager

Starts and stops the remote-desktop and VPN services, and schedules a
delayed service stop or machine shutdown with systemd transient timers.

Features:
- Relative ("1h30m") and absolute ("23:40") scheduling times
- Persistent job ledger (survives restarts)
- One scheduled job per type; a new job replaces the old one
- Cancellation of pending jobs
"""

from servermanager.orchestrator import JobOrchestrator
from servermanager.store import JobStore, JsonJobStore, MemoryJobStore
from servermanager.timeparse import parse_time, TimeParseError
from servermanager.config import ManagerConfig

__version__ = "0.1.0"
__all__ = [
    "JobOrchestrator",
    "JobStore",
    "JsonJobStore",
    "MemoryJobStore",
    "parse_time",
    "TimeParseError",
    "ManagerConfig",
]
