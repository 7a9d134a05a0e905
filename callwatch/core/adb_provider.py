"""ADB device provider implementation."""

import logging
import re
import threading
from urllib.parse import quote
from typing import Callable, Optional, TypeVar

from .adb import AdbClient, AdbError
from .provider import DeviceProvider, ProviderError, ProviderInfo

logger = logging.getLogger(__name__)

T = TypeVar("T")

DUMP_COMMAND = "dumpsys telecom"
DIAL_COMMAND = "am start -a android.intent.action.CALL -d tel:{number}"
END_CALL_COMMAND = "input keyevent KEYCODE_ENDCALL"
ACCEPT_CALL_COMMAND = "input keyevent KEYCODE_CALL"

_SEPARATORS_RE = re.compile(r"[\s\-().]")
_DIALABLE_RE = re.compile(r"^\+?[0-9*#]+$")


def normalize_number(number: str) -> str:
    """
    Strip formatting from a phone number and check it is dialable.

    Raises:
        ValueError: If anything other than digits, a leading +, * or # remains.
    """
    cleaned = _SEPARATORS_RE.sub("", number or "")
    if not _DIALABLE_RE.match(cleaned):
        raise ValueError(f"Invalid phone number: {number!r}")
    return cleaned


class AdbProvider(DeviceProvider):
    """Device provider for an Android phone reachable over adb.

    The device is connected lazily on first use. When a command fails the
    device is dropped, reconnected and the command retried once.
    """

    def __init__(
        self,
        host: Optional[str] = None,
        port: int = 5555,
        serial: Optional[str] = None,
        adb_path: str = "adb",
        command_timeout: float = 10.0,
        client: Optional[AdbClient] = None,
    ):
        """Initialize the adb provider.

        Args:
            host: Device IP for `adb connect`. USB devices need none.
            port: Device adb port.
            serial: Device serial to use. Defaults to the first ready device.
            adb_path: Path to the adb binary.
            command_timeout: Seconds before an adb command is abandoned.
            client: AdbClient to use instead of creating one.
        """
        self.host = host
        self.port = port
        self.serial = serial
        self.client = client or AdbClient(adb_path=adb_path, timeout=command_timeout)

        self._device_id: Optional[str] = None
        # Poller thread and API handlers share one device selection
        self._lock = threading.RLock()

    def connect(self) -> None:
        """Connect to the device and pick its serial."""
        with self._lock:
            self._select_device()

    def _select_device(self) -> str:
        """Return the selected serial, connecting first if needed."""
        if self._device_id is not None:
            return self._device_id

        try:
            if self.host:
                self.client.connect(self.host, self.port)
            devices = [d for d in self.client.list_devices() if d.is_ready]
        except AdbError as e:
            raise ProviderError(f"Failed to connect to device: {e}") from e

        if not devices:
            raise ProviderError("No adb devices found")

        if self.serial:
            if not any(d.serial == self.serial for d in devices):
                raise ProviderError(f"Device {self.serial} not found")
            self._device_id = self.serial
        else:
            self._device_id = devices[0].serial
        logger.info(f"Using device {self._device_id}")
        return self._device_id

    def disconnect(self) -> None:
        """Forget the selected device; the adb server keeps its connection."""
        with self._lock:
            self._device_id = None

    def get_info(self) -> ProviderInfo:
        """Get information about this provider."""
        target = f"{self.host}:{self.port}" if self.host else "local adb server"
        return ProviderInfo(
            name=f"ADB ({target})",
            description=f"Android device via adb ({target})",
            protocol="adb",
            serial=self._device_id,
        )

    def _with_reconnect(self, action: Callable[[str], T]) -> T:
        """Run action(serial), reconnecting and retrying once on failure."""
        with self._lock:
            serial = self._select_device()
            try:
                return action(serial)
            except AdbError as e:
                logger.warning(f"adb command failed, reconnecting: {e}")

            self._device_id = None
            serial = self._select_device()
            try:
                return action(serial)
            except AdbError as e:
                raise ProviderError(f"adb command failed after reconnect: {e}") from e

    def _shell(self, command: str) -> str:
        return self._with_reconnect(lambda serial: self.client.shell(serial, command))

    def get_telecom_dump(self) -> str:
        """Capture `dumpsys telecom` from the device."""
        return self._shell(DUMP_COMMAND)

    def dial(self, number: str) -> None:
        """Start an outgoing call via the CALL intent."""
        number = normalize_number(number)
        logger.info(f"Dialing {number}")
        # "#" would start a comment in the device shell
        self._shell(DIAL_COMMAND.format(number=quote(number, safe="+*")))

    def end_call(self) -> None:
        """Send KEYCODE_ENDCALL."""
        logger.info("Ending call")
        self._shell(END_CALL_COMMAND)

    def accept_call(self) -> None:
        """Send KEYCODE_CALL."""
        logger.info("Accepting call")
        self._shell(ACCEPT_CALL_COMMAND)
