"""Phone state classification and in-call duration tracking."""

import logging
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Optional

from ..parsing.dump import parse_dump
from .telecom import (
    extract_analytics,
    get_call_state,
    get_caller_number,
    get_current_call,
    get_direction,
)

logger = logging.getLogger(__name__)

ZERO_DURATION = "00:00:00"


class PhoneState(Enum):
    """Simplified telephony state of the device."""
    IDLE = "IDLE"
    RINGING = "RINGING"
    DIALING = "DIALING"
    IN_CALL = "IN_CALL"


@dataclass
class CallStatus:
    """Snapshot of the device's call state for one poll."""
    phone_state: PhoneState = PhoneState.IDLE
    direction: str = ""
    caller_id: str = ""
    duration: str = ZERO_DURATION

    def to_dict(self) -> dict:
        """Convert to the JSON shape served to clients."""
        return {
            "phoneState": self.phone_state.value,
            "direction": self.direction,
            "callerID": self.caller_id,
            "duration": self.duration,
        }


@dataclass(frozen=True)
class ClassifierContext:
    """State carried from one poll to the next."""
    previous_state: PhoneState = PhoneState.IDLE
    in_call_started_at: Optional[float] = None


def derive_phone_state(call_id: Optional[str], direction: str, raw_state: str) -> PhoneState:
    """Map the located call and telecom's raw state onto a PhoneState."""
    if not call_id:
        return PhoneState.IDLE
    if raw_state == "RINGING":
        return PhoneState.RINGING
    if raw_state == "DIALING":
        return PhoneState.DIALING
    if direction == "OUTGOING" and not raw_state:
        return PhoneState.DIALING
    return PhoneState.IN_CALL


def format_duration(seconds: float) -> str:
    """Format elapsed seconds as HH:MM:SS (hours are not capped)."""
    total = max(int(seconds), 0)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def classify(
    context: ClassifierContext,
    call_id: Optional[str],
    direction: str,
    raw_state: str,
    caller_id: str,
    now: float,
) -> tuple[CallStatus, ClassifierContext]:
    """
    Classify one poll tick.

    The timer starts on the tick that enters IN_CALL and is cleared on any
    IDLE tick, whatever the previous state was.

    Args:
        context: State carried from the previous tick
        call_id: Current call id, or None when no call is listed
        direction: Analytics direction, possibly empty
        raw_state: Telecom state string, possibly empty
        caller_id: Caller number, possibly empty
        now: Current time in seconds

    Returns:
        Tuple of (status, context for the next tick)
    """
    phone_state = derive_phone_state(call_id, direction, raw_state)

    started_at = context.in_call_started_at
    if phone_state == PhoneState.IN_CALL and context.previous_state != PhoneState.IN_CALL:
        started_at = now
    if phone_state == PhoneState.IDLE:
        started_at = None

    duration = ZERO_DURATION
    if started_at is not None:
        duration = format_duration(now - started_at)

    status = CallStatus(
        phone_state=phone_state,
        direction=direction,
        caller_id=caller_id,
        duration=duration,
    )
    next_context = replace(context, previous_state=phone_state, in_call_started_at=started_at)
    return status, next_context


class StateClassifier:
    """
    Turns successive telecom dumps into CallStatus snapshots.

    Workflow per dump:
    1. Parse the dump and locate the current call
    2. Extract that call's analytics block for its direction
    3. Scan the flat log lines for raw state and caller number
    4. Classify and advance the in-call timer
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        """
        Initialize classifier.

        Args:
            clock: Returns the current time in seconds
        """
        self.clock = clock
        self.context = ClassifierContext()

    def update(self, dump: str) -> CallStatus:
        """Classify a fresh dump and advance the carried state."""
        call_id = get_current_call(parse_dump(dump))

        direction = ""
        raw_state = ""
        caller_id = ""
        if call_id:
            direction = get_direction(extract_analytics(dump, call_id))
            raw_state = get_call_state(dump, call_id)
            caller_id = get_caller_number(dump, call_id)

        logger.debug(
            f"call={call_id} direction={direction!r} state={raw_state!r} caller={caller_id!r}"
        )
        return self.tick(call_id, direction, raw_state, caller_id)

    def tick(
        self,
        call_id: Optional[str],
        direction: str = "",
        raw_state: str = "",
        caller_id: str = "",
    ) -> CallStatus:
        """Classify already-extracted fields against the current clock."""
        previous = self.context.previous_state
        status, self.context = classify(
            self.context, call_id, direction, raw_state, caller_id, self.clock()
        )
        if status.phone_state != previous:
            logger.info(f"Phone state {previous.value} -> {status.phone_state.value}")
        return status

    def reset(self) -> None:
        """Forget the carried state (previous phone state and timer)."""
        self.context = ClassifierContext()
