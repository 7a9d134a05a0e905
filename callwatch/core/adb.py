"""Device control through the `adb` command-line tool."""

import logging
import shlex
import subprocess
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class AdbDevice:
    """A device listed by `adb devices`."""
    serial: str
    state: str  # "device", "offline", "unauthorized", ...

    @property
    def is_ready(self) -> bool:
        return self.state == "device"


class AdbError(Exception):
    """Exception raised for adb communication errors."""
    pass


class AdbClient:
    """Runs adb commands against the local adb server."""

    def __init__(self, adb_path: str = "adb", timeout: float = 10.0):
        self.adb_path = adb_path
        self.timeout = timeout

    def _run(self, args: list[str], timeout: Optional[float] = None) -> str:
        """Run adb with args and return stdout."""
        cmd = [self.adb_path] + args
        logger.debug(f"Running: {' '.join(cmd)}")
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                timeout=timeout or self.timeout,
            )
        except FileNotFoundError as e:
            raise AdbError(f"adb binary not found: {self.adb_path}") from e
        except subprocess.TimeoutExpired as e:
            raise AdbError(f"adb {' '.join(args)} timed out") from e

        stdout = result.stdout.decode("utf-8", errors="replace")
        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            raise AdbError(f"adb {' '.join(args)} failed ({result.returncode}): {stderr or stdout.strip()}")
        return stdout

    def connect(self, host: str, port: int = 5555) -> None:
        """Ask the adb server to connect to a network device."""
        address = f"{host}:{port}"
        output = self._run(["connect", address]).strip()
        # adb connect exits 0 even when the connection is refused
        if "connected to" not in output:
            raise AdbError(f"Failed to connect to {address}: {output}")
        logger.info(f"Connected to {address}")

    def list_devices(self) -> list[AdbDevice]:
        """List devices known to the adb server."""
        output = self._run(["devices"])
        devices = []
        for line in output.splitlines():
            line = line.strip()
            if not line or line.startswith(("List of devices", "*")):
                continue
            parts = line.split()
            if len(parts) >= 2:
                devices.append(AdbDevice(serial=parts[0], state=parts[1]))
        return devices

    def shell(self, serial: str, command: str, timeout: Optional[float] = None) -> str:
        """Run a shell command on the device and return its trimmed output."""
        return self._run(["-s", serial, "shell"] + shlex.split(command), timeout).strip()
