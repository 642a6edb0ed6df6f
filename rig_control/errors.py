"""
Rig Control Errors
矿机控制错误类型

Every failure raised by an adapter belongs to one of these classes so that
callers can tell retryable transport problems from permanent schema problems.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class TransportErrorKind(str, Enum):
    CONNECTION = "connection"
    DEADLINE_EXCEEDED = "deadline_exceeded"
    CANCELLED = "cancelled"
    EXIT_STATUS = "exit_status"
    CLOSED = "closed"


class RigControlError(Exception):
    """Base class with structured details"""

    retryable = False
    # SettingsWrite in progress when the error interrupted a settings write
    write = None

    def __init__(self, message: str, host: str = ""):
        self.message = message
        self.host = host
        self.timestamp = datetime.utcnow()
        super().__init__(f"{message} (host={host})" if host else message)


class TransportError(RigControlError):
    """Connection, authentication, timeout or remote shell failure"""

    def __init__(self, message: str, kind: TransportErrorKind = TransportErrorKind.CONNECTION,
                 host: str = "", command: str = "", exit_status: Optional[int] = None):
        self.kind = kind
        self.command = command
        self.exit_status = exit_status
        super().__init__(f"[{kind.value}] {message}", host)

    @property
    def retryable(self) -> bool:
        return self.kind != TransportErrorKind.EXIT_STATUS


class ProtocolError(RigControlError):
    """Reply lacks the expected top-level status or sections"""

    def __init__(self, message: str, command: str = "", status: str = "", msg: str = "",
                 host: str = ""):
        self.command = command
        self.status = status
        self.msg = msg
        super().__init__(message, host)


class MalformedResponseError(RigControlError):
    """A required field is missing or has the wrong shape"""

    def __init__(self, message: str, command: str = "", field: str = "", host: str = ""):
        self.command = command
        self.field = field
        super().__init__(message, host)


class InconsistentTelemetryError(RigControlError):
    """Device array and per-device clock array disagree in length"""

    def __init__(self, devices: int, stats: int, host: str = ""):
        self.devices = devices
        self.stats = stats
        super().__init__(f"invalid stats/devs: {stats} stats entries for {devices} devices", host)


class UnsupportedSettingError(RigControlError):
    """The adapter cannot express the requested setting"""

    def __init__(self, message: str, field: str = "", value: Any = None):
        self.field = field
        self.value = value
        super().__init__(message)


class PartialSettingsWriteError(RigControlError):
    """
    Settings write left the rig in a mixed state.

    The miner settings were written but a later phase failed; ``write`` holds
    the state machine so only the remaining phase needs to be re-issued.
    """

    def __init__(self, write, failed_phase: str, cause: Exception, host: str = ""):
        self.write = write
        self.failed_phase = failed_phase
        self.cause = cause
        super().__init__(f"settings write stopped at phase '{failed_phase}': {cause}", host)
