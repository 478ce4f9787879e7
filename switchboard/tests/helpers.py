"""
Test helpers: agent-state values, raw wire bytes for malformed input and a
fake process controller.
"""

import base64
from typing import List, Optional

from switchboard.src.domain.errors import ProcessNotFoundError
from switchboard.src.infrastructure.target.session_codec import SessionResponse


def _varint(value: int) -> bytes:
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def length_field(number: int, payload: bytes) -> bytes:
    return _varint((number << 3) | 2) + _varint(len(payload)) + payload


def varint_field(number: int, value: int) -> bytes:
    return _varint(number << 3) + _varint(value)


def make_agent_state(email: str = "user@example.com",
                     name: str = "Test User",
                     plan: str = "pro",
                     access_token: str = "ya29.token",
                     token_type: str = "Bearer",
                     id_token: str = "eyJ.id") -> str:
    """Base64 SessionResponse as Antigravity stores it."""
    message = SessionResponse()
    message.auth.access_token = access_token
    message.auth.token_type = token_type
    message.auth.id_token = id_token
    message.context.email = email
    message.context.name = name
    if plan:
        message.context.plan.slug = plan
    return base64.b64encode(message.SerializeToString()).decode('ascii')


class FakeProcessController:
    """Records calls instead of touching real processes."""

    def __init__(self, running: bool = True, launch_error: Optional[Exception] = None,
                 terminate_error: Optional[Exception] = None):
        self.running = running
        self.launch_error = launch_error
        self.terminate_error = terminate_error
        self.calls: List[str] = []

    def is_running(self) -> bool:
        return self.running

    def terminate_all(self) -> List[str]:
        self.calls.append("terminate")
        if self.terminate_error is not None:
            raise self.terminate_error
        if not self.running:
            raise ProcessNotFoundError("Antigravity process not found")
        self.running = False
        return ["Antigravity (PID: 4242)"]

    def launch(self) -> str:
        self.calls.append("launch")
        if self.launch_error is not None:
            raise self.launch_error
        self.running = True
        return "Antigravity started: /opt/Antigravity/antigravity"

