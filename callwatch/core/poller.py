"""Periodic dump polling and status publication."""

import logging
import threading
import time
from typing import Callable, Optional

from ..analysis.classifier import CallStatus, StateClassifier
from .adb_provider import AdbProvider
from .provider import DeviceProvider, ProviderError

logger = logging.getLogger(__name__)


class PollerConfig:
    """Configuration for poller behavior."""

    def __init__(
        self,
        interval: float = 1.0,
        device_host: Optional[str] = None,
        device_port: int = 5555,
        device_serial: Optional[str] = None,
        adb_path: str = "adb",
        command_timeout: float = 10.0,
    ):
        self.interval = interval
        self.device_host = device_host
        self.device_port = device_port
        self.device_serial = device_serial
        self.adb_path = adb_path
        self.command_timeout = command_timeout


class Poller:
    """
    Polls the device and keeps the latest CallStatus.

    Workflow per tick:
    1. Fetch the telecom dump from the provider
    2. Classify it (carrying phone state and in-call timer across ticks)
    3. Publish the snapshot and notify the callback

    A failed fetch is logged and the previous snapshot stays published.
    """

    def __init__(
        self,
        provider: DeviceProvider,
        config: Optional[PollerConfig] = None,
        classifier: Optional[StateClassifier] = None,
        status_callback: Optional[Callable[[CallStatus], None]] = None,
    ):
        """
        Initialize poller.

        Args:
            provider: Source of telecom dumps
            config: Poller configuration
            classifier: Classifier to use (one with a default clock if omitted)
            status_callback: Called with each new snapshot
        """
        self.provider = provider
        self.config = config or PollerConfig()
        self.classifier = classifier or StateClassifier()
        self.status_callback = status_callback

        self.status: Optional[CallStatus] = None
        self._tick_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def poll_once(self) -> Optional[CallStatus]:
        """
        Run one tick.

        Returns:
            The new snapshot, or None if the fetch failed or another tick
            was still in progress.
        """
        if not self._tick_lock.acquire(blocking=False):
            logger.debug("Previous tick still running, skipping")
            return None

        try:
            try:
                dump = self.provider.get_telecom_dump()
            except ProviderError as e:
                logger.error(f"Dump fetch failed: {e}")
                return None

            status = self.classifier.update(dump)
            self.status = status
        finally:
            self._tick_lock.release()

        if self.status_callback:
            self.status_callback(status)
        return status

    def run(self) -> None:
        """Poll until stop() is called."""
        self._stop_event.clear()
        logger.info(f"Polling every {self.config.interval}s")

        while not self._stop_event.is_set():
            started = time.monotonic()
            try:
                self.poll_once()
            except Exception:
                logger.exception("Poll tick failed")
            elapsed = time.monotonic() - started
            self._stop_event.wait(max(self.config.interval - elapsed, 0.0))

        logger.info("Polling stopped")

    def start(self) -> None:
        """Run the polling loop in a background thread."""
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self.run, name="callwatch-poller", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        """Request the loop to stop and wait for the background thread."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    @property
    def is_running(self) -> bool:
        """Check if the background loop is running."""
        return self._thread is not None and self._thread.is_alive()


def poller_config_from_dict(config_data: dict) -> PollerConfig:
    """Build PollerConfig from the "device" and "poller" sections of a config dict."""
    device_cfg = config_data.get("device") or {}
    poller_cfg = config_data.get("poller") or {}

    return PollerConfig(
        interval=float(poller_cfg.get("interval", 1.0)),
        device_host=device_cfg.get("host"),
        device_port=int(device_cfg.get("port", 5555)),
        device_serial=device_cfg.get("serial"),
        adb_path=device_cfg.get("adb_path", "adb"),
        command_timeout=float(device_cfg.get("command_timeout", 10.0)),
    )


def create_provider_from_config(config_data: dict) -> AdbProvider:
    """Create an AdbProvider from a loaded config dict."""
    config = poller_config_from_dict(config_data)
    return AdbProvider(
        host=config.device_host,
        port=config.device_port,
        serial=config.device_serial,
        adb_path=config.adb_path,
        command_timeout=config.command_timeout,
    )


def create_poller_from_config(config_data: dict) -> Poller:
    """Create a Poller (with an AdbProvider) from a loaded config dict."""
    return Poller(create_provider_from_config(config_data), poller_config_from_dict(config_data))
