"""
Immediate control of the managed services.
"""

import logging
from typing import Dict

from servermanager.actions import SYSTEMCTL
from servermanager.config import ServiceConfig
from servermanager.runner import CommandRunner, CommandError

logger = logging.getLogger(__name__)


class ServiceController:
    """
    Starts and stops the configured services.

    Only services present in the configuration can be controlled. Command
    failures are logged and reported as False; nothing is retried.
    """

    def __init__(self, runner: CommandRunner, services: Dict[str, ServiceConfig]):
        self.runner = runner
        self.services = services

    def get_service(self, key: str) -> ServiceConfig:
        """
        Look up a service by key ("sunshine") or unit ("sunshine.service").

        Raises:
            KeyError: If the service is not configured
        """
        if key in self.services:
            return self.services[key]
        for service in self.services.values():
            if service.unit == key:
                return service
        raise KeyError(f"Unknown service: {key}")

    def enable_and_start(self, key: str) -> bool:
        """Enable and start a service, then run its post-start command."""
        service = self.get_service(key)
        print(f"Starting and enabling {service.unit} ...")
        try:
            self.runner.run([SYSTEMCTL, "enable", "--now", service.unit], privileged=True)
            if service.post_start:
                self.runner.run(service.post_start, privileged=True)
        except CommandError as e:
            logger.error(f"Failed to start {service.unit}: {e}")
            return False

        logger.info(f"Started {service.unit}")
        return True

    def stop_and_disable(self, key: str) -> bool:
        """Stop and disable a service."""
        service = self.get_service(key)
        print(f"Stopping and disabling {service.unit} ...")
        try:
            self.runner.run([SYSTEMCTL, "stop", service.unit], privileged=True)
            self.runner.run([SYSTEMCTL, "disable", service.unit], privileged=True)
        except CommandError as e:
            logger.error(f"Failed to stop {service.unit}: {e}")
            return False

        logger.info(f"Stopped {service.unit}")
        return True

    def start_all(self) -> bool:
        results = [self.enable_and_start(key) for key in self.services]
        return all(results)

    def stop_all(self) -> bool:
        results = [self.stop_and_disable(key) for key in self.services]
        return all(results)
