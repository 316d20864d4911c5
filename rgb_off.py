#!/usr/bin/env python3
"""
Switch off all RGB lighting through the OpenRGB command line.

Devices are looked up by name in the OpenRGB device listing and switched
off one by one; a device that is missing or fails is skipped and the rest
are still handled. Devices that support an "Off" mode use it, the others
are set to static black in "Direct" mode.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional

from servermanager.runner import CommandRunner, CommandError

logger = logging.getLogger(__name__)

OPENRGB = "openrgb"

# "<id>: <name>" header lines of `openrgb --list-devices`
DEVICE_LINE_PATTERN = re.compile(r'^(\d+):\s*(.*)$')


@dataclass(frozen=True)
class DeviceRule:
    """How to find and switch off one device"""
    label: str
    pattern: str  # regex matched against the device name
    mode: str  # 'Off' or 'Direct'
    occurrence: str = "first"  # 'first' or 'last' match


DEFAULT_DEVICES = [
    # Devices supporting 'Off' mode
    DeviceRule("ENE DRAM 1", r"ENE DRAM", "Off"),
    DeviceRule("ENE DRAM 2", r"ENE DRAM", "Off", occurrence="last"),
    DeviceRule("ASUS GPU", r"ASUS.*7900", "Off"),
    DeviceRule("LG Monitor", r"LG.*Monitor", "Off"),
    # Devices needing 'Direct' mode + black
    DeviceRule("MSI Motherboard", r"MSI MAG", "Direct"),
    DeviceRule("NZXT RGB & Fan", r"NZXT RGB & Fan", "Direct"),
    DeviceRule("NZXT RGB Controller", r"NZXT RGB Controller", "Direct"),
]


def parse_device_list(output: str) -> Dict[int, str]:
    """Map device id to device name from OpenRGB's listing."""
    devices = {}
    for line in output.splitlines():
        match = DEVICE_LINE_PATTERN.match(line)
        if match:
            devices[int(match.group(1))] = match.group(2).strip()
    return devices


class RGBController:
    """Turns devices off via the openrgb CLI."""

    def __init__(self, runner: Optional[CommandRunner] = None, devices: List[DeviceRule] = None):
        self.runner = runner or CommandRunner(use_sudo=False, timeout=60)
        self.rules = devices if devices is not None else DEFAULT_DEVICES

    def list_devices(self) -> Dict[int, str]:
        try:
            result = self.runner.run([OPENRGB, "--noautoconnect", "--list-devices"], check=False)
        except CommandError as e:
            logger.error(f"Could not list devices: {e}")
            return {}
        return parse_device_list(result.stdout)

    @staticmethod
    def find_device(devices: Dict[int, str], rule: DeviceRule) -> Optional[int]:
        matches = [dev_id for dev_id, name in sorted(devices.items()) if re.search(rule.pattern, name)]
        if not matches:
            return None
        return matches[-1] if rule.occurrence == "last" else matches[0]

    def turn_off(self, device_id: int, mode: str) -> bool:
        argv = [OPENRGB, "--noautoconnect", "-d", str(device_id)]
        if mode == "Off":
            argv += ["-m", "Off"]
        else:
            argv += ["-m", "Direct", "-c", "000000"]
        try:
            self.runner.run(argv)
        except CommandError as e:
            logger.warning(f"Device {device_id} did not switch off: {e}")
            return False
        return True

    def all_off(self) -> Dict[str, bool]:
        """
        Switch off every configured device.

        Returns:
            Dict of device label to whether it was switched off
        """
        logger.info("Scanning devices...")
        devices = self.list_devices()
        results = {}

        for rule in self.rules:
            device_id = self.find_device(devices, rule)
            if device_id is None:
                logger.info(f"  {rule.label} not found, skipping")
                results[rule.label] = False
                continue

            logger.info(f"  {rule.label} (device {device_id}) [{rule.mode}]...")
            results[rule.label] = self.turn_off(device_id, rule.mode)

        logger.info("Done")
        return results


def main():
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(description='Switch off all RGB lighting via OpenRGB')
    parser.add_argument(
        '-d', '--debug',
        action='store_true',
        help='Show progress logs'
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.debug else logging.ERROR,
        format='%(message)s'
    )

    RGBController().all_off()


if __name__ == "__main__":
    main()
