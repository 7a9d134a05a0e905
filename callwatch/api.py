"""
HTTP API for call status and call control.

Provides:
- GET /api/getcallstatus for the latest polled snapshot
- POST endpoints to start, stop, reject and accept calls
"""

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .analysis.classifier import CallStatus, PhoneState
from .core.poller import Poller
from .core.provider import DeviceProvider, ProviderError

logger = logging.getLogger(__name__)


class StartCallRequest(BaseModel):
    phoneNumber: Optional[str] = None


def _error(message: str, status_code: int = 400) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def create_app(poller: Poller, provider: Optional[DeviceProvider] = None) -> FastAPI:
    """
    Build the API around a poller.

    Args:
        poller: Poller whose latest snapshot is served
        provider: Provider for call-control commands (defaults to the poller's)
    """
    provider = provider or poller.provider
    app = FastAPI(title="callwatch")

    def current() -> Optional[CallStatus]:
        return poller.status

    def run_action(action, message: str):
        try:
            action()
        except ProviderError as e:
            logger.error(f"Call control failed: {e}")
            return _error(str(e), status_code=502)
        return {"message": message}

    @app.get("/api/getcallstatus")
    def get_call_status():
        status = current()
        return {"status": status.to_dict() if status else None}

    @app.post("/api/startcall")
    def start_call(payload: Optional[StartCallRequest] = None):
        number = payload.phoneNumber if payload else None
        if not number:
            return _error("Phone number is required.")
        status = current()
        if status and status.phone_state != PhoneState.IDLE:
            return _error("A call is already in progress.")
        try:
            return run_action(
                lambda: provider.dial(number),
                f"Call started to phone number {number}.",
            )
        except ValueError as e:
            return _error(str(e))

    @app.post("/api/stopcall")
    def stop_call():
        status = current()
        if not status or not status.caller_id or status.phone_state == PhoneState.IDLE:
            return _error("No call in progress.")
        return run_action(
            provider.end_call,
            f"Call with phone number {status.caller_id} ended after {status.duration}.",
        )

    @app.post("/api/rejectcall")
    def reject_call():
        status = current()
        if not status or not status.caller_id or status.phone_state != PhoneState.RINGING:
            return _error("No incoming call to reject.")
        return run_action(
            provider.end_call,
            f"Call rejected from phone number {status.caller_id}.",
        )

    @app.post("/api/acceptcall")
    def accept_call():
        status = current()
        if not status or status.phone_state != PhoneState.RINGING:
            return _error("No incoming call to accept.")
        return run_action(
            provider.accept_call,
            f"Call answered from phone number {status.caller_id}.",
        )

    return app
