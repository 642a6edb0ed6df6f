"""
Baikal Rig Client
Baikal矿机客户端

Lifecycle actions run as shell commands, statistics come from the sgminer
API, and miner/pool settings live in two scripta JSON documents on the rig.
The pool list is replaced wholesale; the options document is merged so keys
without a canonical counterpart are kept.
"""
import logging
import shlex
from typing import Optional, Sequence

from ...command_runner import CommandRunner, Deadline
from ...config import Config
from ...models import MinerSetting, RigIdentity, RigStatSnapshot
from ...transport import SSHSession, TransportSession
from ..base import RigClient
from . import constants
from .mapper import SCRIPTA_FIELDS, BaikalMapper, FieldMap
from .parser import (MinerSettingRaw, PoolSettingRaw, SystemInfo, dump_miner_setting,
                     dump_pool_settings, parse_cpu_temperature, parse_miner_setting,
                     parse_options_document, parse_pool_settings, parse_stats_report,
                     parse_system_info, parse_version)

logger = logging.getLogger(__name__)


def _write_document_cmd(path: str) -> str:
    """Replace ``path`` with stdin atomically"""
    tmp = shlex.quote(path + '.tmp')
    return f"cat > {tmp} && mv {tmp} {shlex.quote(path)}"


class BaikalClient(RigClient):
    """Baikal (sgminer + scripta) rig client"""

    vendor = constants.VENDOR

    def __init__(self, session: Optional[TransportSession], config: Optional[Config] = None,
                 field_map: FieldMap = SCRIPTA_FIELDS):
        super().__init__(session, BaikalMapper(field_map), config)
        self.field_map = field_map

    @staticmethod
    def ssh_credentials(config: Optional[Config] = None):
        """(port, username, password) used to log in to a Baikal rig"""
        config = config or Config.from_env()
        return config.ssh_port, config.ssh_user, config.ssh_password

    @classmethod
    def connect(cls, host: str, config: Optional[Config] = None,
                field_map: FieldMap = SCRIPTA_FIELDS) -> 'BaikalClient':
        config = config or Config.from_env()
        port, username, password = cls.ssh_credentials(config)
        session = SSHSession.connect(host, config, username=username, password=password, port=port)
        return cls(session, config, field_map)

    # -- lifecycle ---------------------------------------------------------

    def mine_start(self, deadline: Optional[Deadline] = None):
        runner = self._runner()
        runner.run_shell(constants.MINER_START_CMD, deadline)
        logger.info(f"[{runner.host}] miner start requested")

    def mine_stop(self, deadline: Optional[Deadline] = None):
        runner = self._runner()
        runner.run_shell(constants.MINER_STOP_CMD, deadline)
        logger.info(f"[{runner.host}] miner stop requested")

    def restart(self, deadline: Optional[Deadline] = None):
        """Ask sgminer to restart; success means the API acknowledged it"""
        runner = self._runner()
        runner.call_rpc('restart', '', deadline)
        logger.info(f"[{runner.host}] miner restart acknowledged")

    def reboot(self, deadline: Optional[Deadline] = None):
        """Schedule an OS reboot after the configured delay"""
        runner = self._runner()
        minutes = int(self.config.reboot_delay_minutes)
        runner.run_shell(constants.REBOOT_CMD.format(minutes=minutes), deadline)
        logger.info(f"[{runner.host}] reboot scheduled in {minutes} min")

    # -- reads -------------------------------------------------------------

    def get_system_info(self, runner: CommandRunner,
                        deadline: Optional[Deadline] = None) -> SystemInfo:
        output = runner.output_shell(constants.SYSTEM_INFO_CMD, deadline)
        miner_version = parse_version(runner.call_rpc('version', '', deadline))
        system_info = parse_system_info(output, miner_version)
        self._remember_system_info(system_info)
        return system_info

    def _known_model(self) -> Optional[str]:
        system_info = self.cached_system_info()
        return system_info.product_type if system_info is not None else None

    def rig_info(self, deadline: Optional[Deadline] = None) -> RigIdentity:
        """Fresh identity on every call; the cached copy is only refreshed here"""
        session = self._capture()
        system_info = self.get_system_info(CommandRunner(session, self.config), deadline)

        peer_address = session.peer_address() if self.field_map.ip_from_connection else ""
        return self.mapper.to_identity(system_info, peer_address)

    def rig_stat(self, deadline: Optional[Deadline] = None) -> RigStatSnapshot:
        runner = self._runner()
        sections = runner.call_rpc_multi(constants.STAT_COMMANDS, deadline)

        temp_cpu = None
        if self.field_map.reports_cpu_temp:
            output = runner.output_shell(f"cat {constants.CPU_TEMP_PATH}", deadline)
            temp_cpu = parse_cpu_temperature(output)

        return self.mapper.to_stat(parse_stats_report(sections, temp_cpu))

    def get_miner_setting(self, runner: CommandRunner,
                          deadline: Optional[Deadline] = None) -> MinerSettingRaw:
        return parse_miner_setting(runner.output_shell(f"cat {constants.OPTIONS_PATH}", deadline))

    def get_miner_pools(self, runner: CommandRunner, deadline: Optional[Deadline] = None):
        return parse_pool_settings(runner.output_shell(f"cat {constants.POOLS_PATH}", deadline))

    def miner_setting(self, deadline: Optional[Deadline] = None) -> MinerSetting:
        runner = self._runner()
        miner_setting = self.get_miner_setting(runner, deadline)
        pools = self.get_miner_pools(runner, deadline)
        return self.mapper.to_setting(miner_setting, pools)

    # -- settings write ----------------------------------------------------

    def _write_miner_setting(self, runner: CommandRunner, miner_setting: MinerSettingRaw,
                             deadline: Optional[Deadline]):
        # firmware options outside MinerSettingRaw must survive the rewrite
        current = parse_options_document(runner.output_shell(f"cat {constants.OPTIONS_PATH}", deadline))
        runner.run_shell(_write_document_cmd(constants.OPTIONS_PATH), deadline,
                         stdin=dump_miner_setting(miner_setting, current))

    def _write_pool_settings(self, runner: CommandRunner, pools: Sequence[PoolSettingRaw],
                             deadline: Optional[Deadline]):
        runner.run_shell(_write_document_cmd(constants.POOLS_PATH), deadline,
                         stdin=dump_pool_settings(pools))
