"""
Rig Command Runner
矿机命令执行器

Executes shell commands and miner API calls over a transport session.
The API listens on the rig itself, so requests are piped through ``nc``
inside the SSH session rather than opened as a TCP connection from here.

No retries are performed: a failed, expired or cancelled call is reported to
the caller, who owns the retry policy.
"""
import logging
import shlex
import time
from typing import Any, Dict, Iterable, Optional

from . import rpc_codec
from .config import Config
from .errors import TransportError
from .transport import Deadline, TransportSession

logger = logging.getLogger(__name__)

__all__ = ['CommandRunner', 'Deadline']


class CommandRunner:
    """Shell + API execution bound to one captured session handle"""

    def __init__(self, session: TransportSession, config: Optional[Config] = None):
        self.session = session
        self.config = config or Config.from_env()

    @property
    def host(self) -> str:
        return getattr(self.session, 'host', '')

    def _deadline(self, deadline: Optional[Deadline]) -> Deadline:
        return deadline if deadline is not None else Deadline(self.config.command_timeout)

    def _rpc_shell(self) -> str:
        return f"nc {shlex.quote(self.config.api_host)} {int(self.config.api_port)}"

    def output_shell(self, command: str, deadline: Optional[Deadline] = None,
                     stdin: Optional[bytes] = None) -> str:
        """
        Run a shell command and return stdout

        Raises:
            TransportError: On connection failure, deadline, cancellation or non-zero exit
        """
        deadline = self._deadline(deadline)
        start_time = time.time()
        try:
            output = self.session.execute(command, deadline, stdin)
        except TransportError as e:
            logger.debug(f"[{self.host}] shell failed after {(time.time() - start_time) * 1000:.0f}ms: {e}")
            raise
        logger.debug(f"[{self.host}] shell ok in {(time.time() - start_time) * 1000:.0f}ms: {command[:80]}")
        return output

    def run_shell(self, command: str, deadline: Optional[Deadline] = None,
                  stdin: Optional[bytes] = None):
        self.output_shell(command, deadline, stdin)

    def _call(self, request: bytes, command: str, deadline: Optional[Deadline]) -> Dict[str, Any]:
        output = self.output_shell(self._rpc_shell(), deadline, stdin=request)
        return rpc_codec.decode(output.encode('utf-8'), command)

    def call_rpc(self, command: str, parameter: str = "",
                 deadline: Optional[Deadline] = None) -> Dict[str, Any]:
        """
        Send one API command and return the status-checked reply

        Raises:
            TransportError: Transport failure
            ProtocolError: Reply without a successful STATUS section
        """
        response = self._call(rpc_codec.encode(command, parameter), command, deadline)
        return rpc_codec.check_status(response, command)

    def call_rpc_multi(self, commands: Iterable[str],
                       deadline: Optional[Deadline] = None) -> Dict[str, Dict[str, Any]]:
        """Send ``a+b+c`` in one request so all sections come from the same reply"""
        commands = [c.strip().lower() for c in commands]
        joined = rpc_codec.MULTI_SEPARATOR.join(commands)
        response = self._call(rpc_codec.encode_multi(commands), joined, deadline)
        return rpc_codec.split_multi(response, commands)
