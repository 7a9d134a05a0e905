"""Provider that replays a saved dump file."""

import logging
from pathlib import Path
from typing import Union

from .provider import DeviceProvider, ProviderError, ProviderInfo

logger = logging.getLogger(__name__)


class FileProvider(DeviceProvider):
    """Read-only provider backed by a `dumpsys telecom` capture on disk.

    The file is re-read on every fetch, so a capture that is rewritten while
    watching shows up on the next tick. Call control is not available.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def connect(self) -> None:
        if not self.path.is_file():
            raise ProviderError(f"Dump file not found: {self.path}")

    def disconnect(self) -> None:
        pass

    def get_info(self) -> ProviderInfo:
        return ProviderInfo(
            name=f"File ({self.path.name})",
            description=f"Saved telecom dump at {self.path}",
            protocol="file",
        )

    def get_telecom_dump(self) -> str:
        try:
            return self.path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            raise ProviderError(f"Failed to read {self.path}: {e}") from e

    def _read_only(self, action: str) -> None:
        logger.warning(f"{action} requested on file provider {self.path}")
        raise ProviderError(f"{action} is not available for a saved dump")

    def dial(self, number: str) -> None:
        self._read_only("Dial")

    def end_call(self) -> None:
        self._read_only("Hang up")

    def accept_call(self) -> None:
        self._read_only("Accept")
