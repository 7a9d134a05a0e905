"""Shared test fixtures for callwatch."""
from typing import Optional

import pytest

from callwatch.analysis.classifier import StateClassifier
from callwatch.core.adb_provider import normalize_number
from callwatch.core.provider import DeviceProvider, ProviderError, ProviderInfo


IDLE_DUMP = """\
CallsManager:
  mCallAudioManager:
    All calls:
    Active dialing, or connecting calls:
    Ringing calls:
  mTtyManager:
    mCurrentTtyMode: 0
mCallLogManager:
  isEnabled: true
"""


def make_dump(
    call_id: str = "TC@1",
    state: Optional[str] = "RINGING",
    direction: Optional[str] = "INCOMING",
    caller: Optional[str] = "+15551234567",
) -> str:
    """Build a telecom dump with one tracked call."""
    lines = [
        "CallsManager:",
        "  mCallAudioManager:",
        "    All calls:",
        f"      {call_id}",
        "    Ringing calls:",
        "  mTtyManager:",
        "    mCurrentTtyMode: 0",
        "Call Logs:",
    ]
    if caller is not None:
        lines.append(
            f"  Call{call_id} [2024-05-01 10:00:00.000] CALL_HANDLE (tel:{caller}, presentation=1)"
        )
    if state is not None:
        lines.append(f"  Call id={call_id}, state={state}, subState=null, handle=tel:***")
    lines.append("Analytics:")
    lines.append(f"  Call {call_id}: {{")
    lines.append("      startTime: 1714557600000")
    lines.append("      endTime: 0")
    if direction is not None:
        lines.append(f"      direction: {direction}")
    lines.append("      isAdditionalCall: false")
    lines.append("      inCallServices:")
    lines.append("          InCallService: com.android.dialer {bound: true}")
    lines.append("  }")
    return "\n".join(lines) + "\n"


class FakeClock:
    """Manually advanced clock, in seconds."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProvider(DeviceProvider):
    """Provider serving a settable dump and recording call-control actions."""

    def __init__(self, dump: str = IDLE_DUMP):
        self.dump = dump
        self.error: Optional[str] = None
        self.actions: list[tuple] = []

    def connect(self) -> None:
        pass

    def disconnect(self) -> None:
        pass

    def get_info(self) -> ProviderInfo:
        return ProviderInfo(name="Fake", description="Test provider", protocol="fake")

    def _check(self) -> None:
        if self.error:
            raise ProviderError(self.error)

    def get_telecom_dump(self) -> str:
        self._check()
        return self.dump

    def dial(self, number: str) -> None:
        number = normalize_number(number)
        self._check()
        self.actions.append(("dial", number))

    def end_call(self) -> None:
        self._check()
        self.actions.append(("end_call",))

    def accept_call(self) -> None:
        self._check()
        self.actions.append(("accept_call",))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def classifier(clock) -> StateClassifier:
    return StateClassifier(clock=clock)


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def dump_factory():
    return make_dump


@pytest.fixture
def idle_dump() -> str:
    return IDLE_DUMP
