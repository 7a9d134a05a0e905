"""Abstract device provider interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass
class ProviderInfo:
    """Information about a device provider."""
    name: str
    description: str
    protocol: str  # "adb", etc.
    serial: Optional[str] = None


class ProviderError(Exception):
    """Exception raised for provider errors."""
    pass


class DeviceProvider(ABC):
    """Abstract base class for device backends.

    Implementations handle connecting to the phone, capturing the telecom
    dump and sending call-control commands. The Poller and the HTTP API use
    this interface to stay transport-agnostic.
    """

    @abstractmethod
    def connect(self) -> None:
        """Establish connection to the device.

        Raises:
            ProviderError: If connection fails.
        """
        ...

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the device."""
        ...

    @abstractmethod
    def get_info(self) -> ProviderInfo:
        """Get information about this provider.

        Returns:
            ProviderInfo with name, description and device serial.
        """
        ...

    @abstractmethod
    def get_telecom_dump(self) -> str:
        """Capture the current `dumpsys telecom` output.

        Returns:
            Dump text.

        Raises:
            ProviderError: If the dump cannot be captured.
        """
        ...

    @abstractmethod
    def dial(self, number: str) -> None:
        """Place an outgoing call.

        Args:
            number: Phone number to dial.

        Raises:
            ValueError: If the number contains characters that cannot be dialed.
            ProviderError: If the command fails.
        """
        ...

    @abstractmethod
    def end_call(self) -> None:
        """Hang up the active call or reject a ringing one."""
        ...

    @abstractmethod
    def accept_call(self) -> None:
        """Answer the ringing call."""
        ...
