"""
SSH Transport Session
SSH传输会话

Owns one authenticated SSH connection to a rig and executes remote commands
on it. Connection policy (reconnects, key management) belongs to the caller;
this module only opens a session and runs commands with a deadline.
"""
import logging
import socket
import threading
import time
from abc import ABC, abstractmethod
from typing import Optional

import paramiko

from .config import Config
from .errors import TransportError, TransportErrorKind

logger = logging.getLogger(__name__)

RECV_CHUNK_SIZE = 4096
POLL_INTERVAL = 0.2


class Deadline:
    """
    Per-call expiry and cancellation.

    Args:
        timeout: Seconds from now until the call must be abandoned (None = no limit)
        cancel_event: Optional event; once set, in-flight I/O is aborted
    """

    def __init__(self, timeout: Optional[float] = None,
                 cancel_event: Optional[threading.Event] = None):
        self.timeout = timeout
        self.cancel_event = cancel_event
        self._expires_at = None if timeout is None else time.monotonic() + timeout

    def remaining(self) -> Optional[float]:
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        return self._expires_at is not None and time.monotonic() >= self._expires_at

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def check(self, host: str = "", command: str = ""):
        """Raise TransportError if the call must stop now"""
        if self.cancelled:
            raise TransportError("Call cancelled by caller", TransportErrorKind.CANCELLED,
                                 host=host, command=command)
        if self.expired:
            raise TransportError(f"Deadline of {self.timeout}s exceeded",
                                 TransportErrorKind.DEADLINE_EXCEEDED,
                                 host=host, command=command)

    def slice(self, interval: float = POLL_INTERVAL) -> float:
        """Length of the next blocking wait"""
        remaining = self.remaining()
        if remaining is None:
            return interval
        return max(0.01, min(interval, remaining))


class TransportSession(ABC):
    """Contract the command runner depends on"""

    host = ""

    @abstractmethod
    def execute(self, command: str, deadline: Deadline, stdin: Optional[bytes] = None) -> str:
        """Run ``command`` remotely and return its stdout"""

    @abstractmethod
    def peer_address(self) -> str:
        """IP address of the remote end of the connection"""

    @abstractmethod
    def close(self):
        pass


class SSHSession(TransportSession):
    """paramiko backed session; one channel per executed command"""

    def __init__(self, client: paramiko.SSHClient, host: str = ""):
        self.client = client
        self.host = host

    @classmethod
    def connect(cls, host: str, config: Optional[Config] = None,
                username: Optional[str] = None, password: Optional[str] = None,
                port: Optional[int] = None) -> 'SSHSession':
        config = config or Config.from_env()
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            client.connect(
                host,
                port=port or config.ssh_port,
                username=username or config.ssh_user,
                password=password if password is not None else config.ssh_password,
                timeout=config.connect_timeout,
                allow_agent=False,
                look_for_keys=False,
            )
        except (paramiko.SSHException, socket.error, EOFError) as e:
            client.close()
            raise TransportError(f"SSH connect failed: {e}", TransportErrorKind.CONNECTION, host=host)
        logger.debug(f"Connected to {host}")
        return cls(client, host)

    def _transport(self, command: str) -> paramiko.Transport:
        transport = self.client.get_transport()
        if transport is None or not transport.is_active():
            raise TransportError("SSH connection is closed", TransportErrorKind.CLOSED,
                                 host=self.host, command=command)
        return transport

    def execute(self, command: str, deadline: Deadline, stdin: Optional[bytes] = None) -> str:
        deadline.check(self.host, command)
        transport = self._transport(command)

        try:
            channel = transport.open_session(timeout=deadline.remaining())
        except (paramiko.SSHException, socket.error, EOFError) as e:
            raise TransportError(f"Failed to open channel: {e}", TransportErrorKind.CONNECTION,
                                 host=self.host, command=command)

        try:
            channel.settimeout(deadline.slice())
            channel.exec_command(command)
            if stdin:
                channel.sendall(stdin)
            channel.shutdown_write()

            stdout = bytearray()
            stderr = bytearray()
            while True:
                deadline.check(self.host, command)
                channel.settimeout(deadline.slice())
                while channel.recv_stderr_ready():
                    stderr += channel.recv_stderr(RECV_CHUNK_SIZE)
                try:
                    chunk = channel.recv(RECV_CHUNK_SIZE)
                except socket.timeout:
                    continue
                if not chunk:
                    break
                stdout += chunk

            while not channel.exit_status_ready():
                deadline.check(self.host, command)
                time.sleep(deadline.slice(0.05))
            while channel.recv_stderr_ready():
                stderr += channel.recv_stderr(RECV_CHUNK_SIZE)
            exit_status = channel.recv_exit_status()
        except (paramiko.SSHException, socket.error, EOFError) as e:
            raise TransportError(f"SSH I/O failed: {e}", TransportErrorKind.CONNECTION,
                                 host=self.host, command=command)
        finally:
            channel.close()

        if exit_status != 0:
            detail = stderr.decode('utf-8', errors='replace').strip()
            raise TransportError(
                f"Command exited with status {exit_status}: {detail[:200]}",
                TransportErrorKind.EXIT_STATUS,
                host=self.host, command=command, exit_status=exit_status
            )

        return stdout.decode('utf-8', errors='replace')

    def peer_address(self) -> str:
        transport = self._transport("")
        return transport.getpeername()[0]

    def close(self):
        self.client.close()
