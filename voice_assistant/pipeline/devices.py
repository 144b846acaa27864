"""
Device command delivery.

Resolves a room to enabled devices and sends each one its on/off command.
A failure on one device never stops the rest; callers get a success count.
Dispatch from the voice pipeline goes through a small worker pool and is
never awaited.
"""

from concurrent.futures import Future, ThreadPoolExecutor
from typing import List, Optional

import requests

from ..core.schema import Device
from ..util.logging import logger

ALL_ROOMS = "all"


def build_get_url(endpoint: str, command: str) -> str:
    """URL for a GET-style device: absolute commands are used as-is."""
    if command.lower().startswith("http"):
        return command
    return endpoint.rstrip("/") + "/" + command.lstrip("/")


class DeviceDispatcher:
    """Delivers on/off commands to devices from a device directory."""

    def __init__(self, directory, timeout: int = 10, max_workers: int = 4):
        self.directory = directory
        self.timeout = timeout
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="device-dispatch")

    def find_targets(self, room: str) -> List[Device]:
        if room and room.strip().lower() == ALL_ROOMS:
            return self.directory.find_all(enabled_only=True)
        return self.directory.find_by_room(room)

    def resolve(self, room: str, turn_on: bool) -> int:
        """Command every enabled device in ``room`` ("all" for every room).

        Returns the number of devices that acknowledged with a 2xx response.
        """
        targets = self.find_targets(room)
        if not targets:
            logger.log_operation("device.resolve", "no_targets", {"room": room})
            return 0

        success = sum(1 for device in targets if self.control_device(device, turn_on))
        logger.log_operation("device.resolve", "success", {
            "room": room,
            "action": "on" if turn_on else "off",
            "targets": len(targets),
            "succeeded": success,
        })
        return success

    def control_device(self, device: Device, turn_on: bool) -> bool:
        """Send one command to one device. Any failure is logged and returns False."""
        action = "on" if turn_on else "off"
        endpoint = (device.connection_url or "").strip()
        command = (device.command_for(turn_on) or "").strip()
        if not endpoint or not command:
            logger.log_device_command(device.device_id, action, "failed", {"error": "missing endpoint or command"})
            return False

        method = (device.control_method or "GET").upper()
        try:
            if method == "POST":
                response = self._post(endpoint, command)
            else:
                response = requests.get(build_get_url(endpoint, command), timeout=self.timeout)
        except requests.RequestException as e:
            logger.log_device_command(device.device_id, action, "failed", {"error": str(e)})
            return False

        ok = 200 <= response.status_code < 300
        logger.log_device_command(
            device.device_id, action, "success" if ok else "failed",
            {"method": method, "http_status": response.status_code},
        )
        return ok

    def _post(self, endpoint: str, command: str) -> requests.Response:
        # Structured payloads go to the bare endpoint; anything else is a path suffix
        if command.startswith("{") or command.startswith("["):
            return requests.post(
                endpoint,
                data=command.encode("utf-8"),
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        return requests.post(endpoint.rstrip("/") + "/" + command.lstrip("/"), timeout=self.timeout)

    def dispatch_async(self, room: str, turn_on: bool) -> Future:
        """Hand a room command to the worker pool without waiting for it."""
        future = self._executor.submit(self.resolve, room, turn_on)
        future.add_done_callback(lambda f: self._log_outcome(f, room, turn_on))
        return future

    @staticmethod
    def _log_outcome(future: Future, room: str, turn_on: bool):
        error: Optional[BaseException] = future.exception()
        if error is not None:
            logger.error(f"Async device dispatch for room '{room}' ({'on' if turn_on else 'off'}) failed: {error}")
        else:
            logger.info(f"Async device dispatch for room '{room}' finished: {future.result()} device(s) commanded")

    def shutdown(self, wait: bool = True):
        self._executor.shutdown(wait=wait)
