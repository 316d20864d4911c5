"""
Command-line interface for the server manager.

Provides:
- An interactive numbered menu (the default)
- Sub-commands for starting/stopping services
- Scheduling a delayed service stop or machine shutdown
- Listing and cancelling scheduled jobs
"""

import argparse
import logging
import sys
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from config import get_config, set_data_directory
from servermanager.config import ManagerConfig, ServiceConfig, ConfigError
from servermanager.controllers import ServiceController
from servermanager.orchestrator import JobOrchestrator
from servermanager.runner import CommandRunner, DryRunRunner
from servermanager.store import JobStore, JsonJobStore, MemoryJobStore
from servermanager.triggers import SystemdRunInstaller

logger = logging.getLogger(__name__)

TIME_HINT = "e.g. 30m, 1h30m, 23:40"

INFO_TEXT = """\
Server Manager

Commands:

- Start / stop each server, or both at once
- Schedule a server stop at a time
- Schedule PC shutdown at a time
- List scheduled jobs
- Cancel a scheduled job

Time format for scheduling:
- Relative: 30m, 1h, 1h30m, 2h45m
- Absolute: HH:MM (24h format), e.g. 23:40

Notes:
- Jobs are saved persistently and survive exiting this program.
- You can schedule service stops or PC shutdown separately.
- Scheduling a new job replaces the previous job of the same type.
- You can cancel jobs before they trigger.
- Jobs that already fired stay listed until cancelled or replaced.
- PC shutdown will power off your machine at the scheduled time."""

# Handlers installed by setup_logging, replaced on each call
_installed_handlers: List[logging.Handler] = []


def setup_logging(log_file: str = None, verbose: bool = False, level: str = "INFO"):
    """Setup logging configuration."""
    root_logger = logging.getLogger()
    for handler in _installed_handlers:
        root_logger.removeHandler(handler)
        handler.close()
    _installed_handlers.clear()

    file_level = logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO)
    console_level = logging.DEBUG if verbose else logging.WARNING

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)
    console_formatter = logging.Formatter(
        '%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    console_handler.setFormatter(console_formatter)
    _installed_handlers.append(console_handler)

    # File handler
    if log_file:
        log_path = Path(log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(file_level)
        file_formatter = logging.Formatter(
            '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
        )
        file_handler.setFormatter(file_formatter)
        _installed_handlers.append(file_handler)

    root_logger.setLevel(min(file_level, console_level))
    for handler in _installed_handlers:
        root_logger.addHandler(handler)


@dataclass
class Manager:
    """Wired-up collaborators for one CLI invocation."""
    config: ManagerConfig
    store: JobStore
    controller: ServiceController
    orchestrator: JobOrchestrator


def build_manager(config: ManagerConfig, dry_run: bool = False) -> Manager:
    """Create the runner, store, installer and orchestrator from config."""
    runner_cls = DryRunRunner if dry_run else CommandRunner
    runner = runner_cls(use_sudo=config.use_sudo, timeout=config.command_timeout)

    if dry_run:
        store = MemoryJobStore(max_jobs=config.max_jobs)
    else:
        store = JsonJobStore(config.job_file, max_jobs=config.max_jobs)

    installer = SystemdRunInstaller(runner)
    orchestrator = JobOrchestrator(
        store,
        installer,
        config.services,
        exclusive=config.exclusive_schedule
    )
    return Manager(
        config=config,
        store=store,
        controller=ServiceController(runner, config.services),
        orchestrator=orchestrator
    )


def print_jobs(orchestrator: JobOrchestrator):
    rows = orchestrator.list_jobs()
    if not rows:
        print("No scheduled jobs.")
        return
    print("Scheduled jobs:")
    for row in rows:
        print(row.format())


def _report_schedule(outcome) -> bool:
    print(outcome.message)
    if outcome.ok:
        print("Job saved.")
    else:
        print("Failed to schedule.")
    return outcome.ok


def prompt_schedule_stop(manager: Manager, service: ServiceConfig, input_func=input) -> bool:
    time_input = input_func(f"Enter time to stop {service.label} ({TIME_HINT}): ")
    return _report_schedule(manager.orchestrator.schedule_service_stop(service.key, time_input))


def prompt_schedule_shutdown(manager: Manager, input_func=input) -> bool:
    time_input = input_func(f"Enter time to shutdown PC ({TIME_HINT}): ")
    return _report_schedule(manager.orchestrator.schedule_shutdown(time_input))


def prompt_cancel(manager: Manager, input_func=input) -> bool:
    """List jobs and cancel the one the user picks."""
    if not manager.orchestrator.list_jobs():
        print("No scheduled jobs to cancel.")
        return False

    print_jobs(manager.orchestrator)
    print()
    answer = input_func("Enter job number to cancel (or empty to abort): ").strip()
    if not answer:
        print("Cancel aborted.")
        return False
    if not answer.isdecimal():
        print("Invalid number.")
        return False

    outcome = manager.orchestrator.cancel(int(answer))
    print(outcome.message)
    return outcome.ok


def build_menu(manager: Manager, input_func=input) -> List[Tuple[str, Optional[Callable[[], object]]]]:
    """
    Menu entries in display order. An entry without an action exits.

    With the two default services this reproduces the familiar 1-13 layout.
    """
    controller = manager.controller
    services = list(manager.config.services.values())
    group = "both" if len(services) == 2 else "all"

    items = []
    for svc in services:
        items.append((f"Start {svc.label} server", partial(controller.enable_and_start, svc.key)))
        items.append((f"Stop {svc.label} server", partial(controller.stop_and_disable, svc.key)))
    items.append((f"Start {group} servers", controller.start_all))
    items.append((f"Stop {group} servers", controller.stop_all))
    for svc in services:
        items.append((
            f"Schedule {svc.label} server stop",
            partial(prompt_schedule_stop, manager, svc, input_func=input_func)
        ))
    items.append(("Schedule PC shutdown", partial(prompt_schedule_shutdown, manager, input_func=input_func)))
    items.append(("List scheduled jobs", partial(print_jobs, manager.orchestrator)))
    items.append(("Cancel scheduled job", partial(prompt_cancel, manager, input_func=input_func)))
    items.append(("Info / Help", partial(print, INFO_TEXT)))
    items.append(("Exit", None))
    return items


def run_menu(manager: Manager, input_func=input):
    """Interactive menu loop."""
    items = build_menu(manager, input_func=input_func)

    while True:
        print()
        print("===== Server Manager =====")
        for number, (label, _) in enumerate(items, start=1):
            print(f"{number}) {label}")

        try:
            option = input_func("Choose an option: ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            print("Bye!")
            return
        print()

        if not option.isdecimal() or not 1 <= int(option) <= len(items):
            print("Invalid option.")
            continue

        label, action = items[int(option) - 1]
        if action is None:
            print("Bye!")
            return

        try:
            action()
        except (EOFError, KeyboardInterrupt):
            print()
            print("Aborted.")


def _require_service(manager: Manager, name: str) -> Optional[ServiceConfig]:
    try:
        return manager.controller.get_service(name)
    except KeyError:
        known = ", ".join(manager.config.services)
        print(f"Unknown service: {name} (known: {known})")
        return None


def cmd_menu(args, manager: Manager):
    """Run the interactive menu."""
    run_menu(manager)


def cmd_start(args, manager: Manager):
    """Start a service, or all of them."""
    if args.service == 'all':
        ok = manager.controller.start_all()
    else:
        service = _require_service(manager, args.service)
        if service is None:
            sys.exit(1)
        ok = manager.controller.enable_and_start(service.key)
    if not ok:
        sys.exit(1)


def cmd_stop(args, manager: Manager):
    """Stop a service, or all of them."""
    if args.service == 'all':
        ok = manager.controller.stop_all()
    else:
        service = _require_service(manager, args.service)
        if service is None:
            sys.exit(1)
        ok = manager.controller.stop_and_disable(service.key)
    if not ok:
        sys.exit(1)


def cmd_schedule_stop(args, manager: Manager):
    """Schedule a delayed service stop."""
    if not _report_schedule(manager.orchestrator.schedule_service_stop(args.service, args.time)):
        sys.exit(1)


def cmd_schedule_shutdown(args, manager: Manager):
    """Schedule a delayed machine shutdown."""
    if not _report_schedule(manager.orchestrator.schedule_shutdown(args.time)):
        sys.exit(1)


def cmd_list(args, manager: Manager):
    """List scheduled jobs."""
    print_jobs(manager.orchestrator)


def cmd_cancel(args, manager: Manager):
    """Cancel a scheduled job by number, or all of them."""
    if args.all:
        outcome = manager.orchestrator.cancel_all()
    elif args.number is None:
        print("Give a job number or --all")
        sys.exit(1)
    else:
        outcome = manager.orchestrator.cancel(args.number)
    print(outcome.message)
    if not outcome.ok:
        sys.exit(1)


def cmd_info(args, manager: Manager):
    """Show help text."""
    print(INFO_TEXT)


def cmd_show_config(args, manager: Manager):
    """Show current configuration."""
    config = manager.config
    print(f"\nData directory: {get_config().data_dir}")
    print(f"Configuration file: {config.config_path}")
    print(f"Job file: {config.job_file}")
    print(f"Max jobs: {config.max_jobs}")
    print(f"Use sudo: {config.use_sudo}")
    print(f"Exclusive scheduling: {config.exclusive_schedule}")
    print(f"Logging level: {config.logging.level}")
    print(f"Log file: {config.logging.file}")
    print(f"\nServices: {len(config.services)}")
    for key, svc in config.services.items():
        extra = f" (then: {' '.join(svc.post_start)})" if svc.post_start else ""
        print(f"  {key}: {svc.unit}{extra}")


def cmd_init(args, manager: Manager):
    """Write the data directory and a default configuration file."""
    if args.data_dir:
        data_config = set_data_directory(args.data_dir, save=True)
        config = ManagerConfig(str(data_config.manager_file))
    else:
        config = manager.config

    config.save()
    print(f"Initialized configuration at: {config.config_path}")


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Server Manager - start, stop and schedule shutdown of workstation services",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        '-c', '--config',
        type=str,
        help='Path to manager configuration file'
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose logging'
    )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Print commands instead of running them; jobs are not saved'
    )

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    menu_parser = subparsers.add_parser('menu', help='Interactive menu (default)')
    menu_parser.set_defaults(func=cmd_menu)

    start_parser = subparsers.add_parser('start', help='Start and enable a service')
    start_parser.add_argument('service', help="Service name, or 'all'")
    start_parser.set_defaults(func=cmd_start)

    stop_parser = subparsers.add_parser('stop', help='Stop and disable a service')
    stop_parser.add_argument('service', help="Service name, or 'all'")
    stop_parser.set_defaults(func=cmd_stop)

    schedule_stop_parser = subparsers.add_parser('schedule-stop', help='Schedule a service stop')
    schedule_stop_parser.add_argument('service', help='Service name')
    schedule_stop_parser.add_argument('time', help=f'When to stop ({TIME_HINT})')
    schedule_stop_parser.set_defaults(func=cmd_schedule_stop)

    schedule_shutdown_parser = subparsers.add_parser('schedule-shutdown', help='Schedule PC shutdown')
    schedule_shutdown_parser.add_argument('time', help=f'When to shut down ({TIME_HINT})')
    schedule_shutdown_parser.set_defaults(func=cmd_schedule_shutdown)

    list_parser = subparsers.add_parser('list', help='List scheduled jobs')
    list_parser.set_defaults(func=cmd_list)

    cancel_parser = subparsers.add_parser('cancel', help='Cancel a scheduled job')
    cancel_parser.add_argument('number', type=int, nargs='?', help='Job number as shown by list')
    cancel_parser.add_argument('--all', action='store_true', help='Cancel all scheduled jobs')
    cancel_parser.set_defaults(func=cmd_cancel)

    info_parser = subparsers.add_parser('info', help='Show help text')
    info_parser.set_defaults(func=cmd_info)

    show_config_parser = subparsers.add_parser('show-config', help='Show configuration')
    show_config_parser.set_defaults(func=cmd_show_config)

    init_parser = subparsers.add_parser('init', help='Write a default configuration file')
    init_parser.add_argument('--data-dir', type=str, help='Data directory to use and remember')
    init_parser.set_defaults(func=cmd_init)

    args = parser.parse_args(argv)

    try:
        config = ManagerConfig(args.config)
    except ConfigError as e:
        print(f"Error: {e}")
        sys.exit(1)

    setup_logging(
        log_file=config.logging.file,
        verbose=args.verbose,
        level=config.logging.level
    )

    errors = config.validate()
    if errors:
        logger.error("Configuration validation failed:")
        for error in errors:
            print(f"  - {error}")
        sys.exit(1)

    manager = build_manager(config, dry_run=args.dry_run)

    func = getattr(args, 'func', cmd_menu)
    func(args, manager)


if __name__ == '__main__':
    main()
