"""
Base Rig Client Interface
矿机客户端适配器基类

One RigClient per rig. The client owns a transport handle and an optional
cached system-info snapshot, both guarded by one lock. Operations copy the
handle under the lock and release it before doing any I/O, so swapping the
connection never waits on an in-flight call.
"""
import logging
import threading
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, List, Optional, Sequence, Tuple

from ..command_runner import CommandRunner, Deadline
from ..config import Config
from ..errors import (PartialSettingsWriteError, RigControlError, TransportError,
                      TransportErrorKind)
from ..models import MinerSetting, RigIdentity, RigStatSnapshot
from ..transport import TransportSession

logger = logging.getLogger(__name__)

PHASE_SETTINGS = 'settings'
PHASE_POOLS = 'pools'


class SettingsWriteState(Enum):
    PENDING = "PENDING"
    SETTINGS_WRITTEN = "SETTINGS_WRITTEN"
    POOLS_WRITTEN = "POOLS_WRITTEN"
    FAILED = "FAILED"


_TRANSITIONS = {
    SettingsWriteState.PENDING: {SettingsWriteState.SETTINGS_WRITTEN, SettingsWriteState.FAILED},
    SettingsWriteState.SETTINGS_WRITTEN: {SettingsWriteState.POOLS_WRITTEN, SettingsWriteState.FAILED},
    SettingsWriteState.POOLS_WRITTEN: set(),
    SettingsWriteState.FAILED: {SettingsWriteState.PENDING, SettingsWriteState.SETTINGS_WRITTEN},
}


class SettingsWrite:
    """
    Two-phase settings write.

    PENDING -> SETTINGS_WRITTEN -> POOLS_WRITTEN on success, or FAILED with
    ``failed_phase`` set. A failed write can be resumed; only the phases that
    have not been applied are re-issued.
    """

    def __init__(self, miner_setting: Any, pools: Sequence[Any]):
        self.miner_setting = miner_setting
        self.pools: Tuple[Any, ...] = tuple(pools)
        self.state = SettingsWriteState.PENDING
        self.failed_phase: Optional[str] = None
        self.cause: Optional[Exception] = None

    def _move(self, state: SettingsWriteState):
        if state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal settings write transition {self.state.value} -> {state.value}")
        self.state = state

    def settings_written(self):
        self._move(SettingsWriteState.SETTINGS_WRITTEN)

    def pools_written(self):
        self._move(SettingsWriteState.POOLS_WRITTEN)

    def fail(self, phase: str, cause: Exception):
        self._move(SettingsWriteState.FAILED)
        self.failed_phase = phase
        self.cause = cause

    def retry(self):
        """Rewind a failed write to the start of the phase that failed"""
        if self.state is not SettingsWriteState.FAILED:
            return
        if self.failed_phase == PHASE_POOLS:
            self._move(SettingsWriteState.SETTINGS_WRITTEN)
        else:
            self._move(SettingsWriteState.PENDING)
        self.failed_phase = None
        self.cause = None

    @property
    def remaining_phases(self) -> List[str]:
        state = self.state
        if state is SettingsWriteState.FAILED:
            state = (SettingsWriteState.SETTINGS_WRITTEN if self.failed_phase == PHASE_POOLS
                     else SettingsWriteState.PENDING)
        if state is SettingsWriteState.PENDING:
            return [PHASE_SETTINGS, PHASE_POOLS]
        if state is SettingsWriteState.SETTINGS_WRITTEN:
            return [PHASE_POOLS]
        return []

    @property
    def completed(self) -> bool:
        return self.state is SettingsWriteState.POOLS_WRITTEN


class CanonicalMapper(ABC):
    """Vendor-native <-> canonical translation for one vendor family"""

    @abstractmethod
    def to_identity(self, system_info: Any, peer_address: str = "") -> RigIdentity:
        pass

    @abstractmethod
    def to_stat(self, stats_report: Any) -> RigStatSnapshot:
        pass

    @abstractmethod
    def to_setting(self, miner_setting: Any, pools: Sequence[Any]) -> MinerSetting:
        pass

    @abstractmethod
    def to_vendor_native(self, setting: MinerSetting,
                         model: Optional[str] = None) -> Tuple[Any, List[Any]]:
        """
        Raises:
            UnsupportedSettingError: The setting cannot be expressed for this vendor
        """


class RigClient(ABC):
    """Abstract base class for per-vendor rig clients"""

    vendor = ""

    def __init__(self, session: Optional[TransportSession], mapper: CanonicalMapper,
                 config: Optional[Config] = None):
        self.config = config or Config.from_env()
        self.mapper = mapper
        self._lock = threading.Lock()
        self._session = session
        self._system_info = None

    # -- shared state ------------------------------------------------------

    def set_ssh(self, session: TransportSession):
        """Replace the transport; calls already in flight keep their handle"""
        with self._lock:
            self._session = session

    def close(self):
        with self._lock:
            session, self._session = self._session, None
        if session is not None:
            session.close()

    def _capture(self) -> TransportSession:
        with self._lock:
            session = self._session
        if session is None:
            raise TransportError("No transport session", TransportErrorKind.CLOSED)
        return session

    def _runner(self) -> CommandRunner:
        return CommandRunner(self._capture(), self.config)

    @property
    def host(self) -> str:
        with self._lock:
            session = self._session
        return getattr(session, 'host', '') if session is not None else ''

    def cached_system_info(self):
        """Last system info seen by rig_info, or None"""
        with self._lock:
            return self._system_info

    def _remember_system_info(self, system_info):
        with self._lock:
            self._system_info = system_info

    # -- lifecycle ---------------------------------------------------------

    @abstractmethod
    def mine_start(self, deadline: Optional[Deadline] = None):
        pass

    @abstractmethod
    def mine_stop(self, deadline: Optional[Deadline] = None):
        pass

    @abstractmethod
    def restart(self, deadline: Optional[Deadline] = None):
        pass

    @abstractmethod
    def reboot(self, deadline: Optional[Deadline] = None):
        pass

    # -- reads -------------------------------------------------------------

    @abstractmethod
    def rig_info(self, deadline: Optional[Deadline] = None) -> RigIdentity:
        pass

    @abstractmethod
    def rig_stat(self, deadline: Optional[Deadline] = None) -> RigStatSnapshot:
        pass

    @abstractmethod
    def miner_setting(self, deadline: Optional[Deadline] = None) -> MinerSetting:
        pass

    # -- settings write ----------------------------------------------------

    @abstractmethod
    def _write_miner_setting(self, runner: CommandRunner, miner_setting: Any,
                             deadline: Optional[Deadline]):
        pass

    @abstractmethod
    def _write_pool_settings(self, runner: CommandRunner, pools: Sequence[Any],
                             deadline: Optional[Deadline]):
        pass

    def _known_model(self) -> Optional[str]:
        return None

    def set_miner_setting(self, setting: MinerSetting,
                          deadline: Optional[Deadline] = None) -> SettingsWrite:
        """
        Map ``setting`` to vendor-native form and write it in two phases

        Raises:
            UnsupportedSettingError: Nothing was written
            TransportError / ProtocolError: Miner settings phase failed, rig untouched;
                ``error.write`` can be passed to resume_settings_write
            PartialSettingsWriteError: Miner settings written, pool list not
        """
        miner_setting, pools = self.mapper.to_vendor_native(setting, self._known_model())
        write = SettingsWrite(miner_setting, pools)
        return self.resume_settings_write(write, deadline)

    def resume_settings_write(self, write: SettingsWrite,
                              deadline: Optional[Deadline] = None) -> SettingsWrite:
        """Issue the phases of ``write`` that have not been applied yet"""
        write.retry()
        runner = self._runner()

        if write.state is SettingsWriteState.PENDING:
            try:
                self._write_miner_setting(runner, write.miner_setting, deadline)
            except RigControlError as e:
                write.fail(PHASE_SETTINGS, e)
                e.write = write
                raise
            write.settings_written()

        if write.state is SettingsWriteState.SETTINGS_WRITTEN:
            try:
                self._write_pool_settings(runner, write.pools, deadline)
            except RigControlError as e:
                write.fail(PHASE_POOLS, e)
                logger.warning(f"[{runner.host}] miner settings applied but pool list write failed: {e}")
                raise PartialSettingsWriteError(write, PHASE_POOLS, e, host=runner.host) from e
            write.pools_written()

        logger.info(f"[{runner.host}] miner settings applied ({len(write.pools)} pools)")
        return write
